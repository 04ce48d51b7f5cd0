from ocrbatch.overlay.geometry import (
    OverlayBox,
    Size,
    fit_within,
    is_valid_bbox,
    project_blocks,
    scale_factors,
)
from ocrbatch.overlay.renderer import DrawingSurface, OverlayRenderer, OverlayView

__all__ = [
    "DrawingSurface",
    "OverlayBox",
    "OverlayRenderer",
    "OverlayView",
    "Size",
    "fit_within",
    "is_valid_bbox",
    "project_blocks",
    "scale_factors",
]
