"""
Projection of server-reported boxes onto a resized image.

Boxes arrive as `[x, y, width, height]` in the original image's pixel
space; the image is shown at some other size, so every box is scaled
per axis before drawing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ocrbatch.core.exceptions import MissingImageDimensions
from ocrbatch.models.dto import Block


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    @property
    def is_known(self) -> bool:
        return self.width > 0 and self.height > 0

    def as_pixels(self) -> tuple[int, int]:
        return max(0, round(self.width)), max(0, round(self.height))


@dataclass(frozen=True)
class OverlayBox:
    """A box in displayed coordinates. `index` is the 1-based label."""

    index: int
    x: float
    y: float
    width: float
    height: float


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def is_valid_bbox(bbox: Any) -> bool:
    return (
        isinstance(bbox, (list, tuple))
        and len(bbox) == 4
        and all(_is_number(v) for v in bbox)
    )


def scale_factors(displayed: Size, natural: Size) -> tuple[float, float]:
    """
    Per-axis factors from natural to displayed pixels.

    Raises:
      MissingImageDimensions: When the natural size is not known yet.
    """
    if not natural.is_known:
        raise MissingImageDimensions(natural.width, natural.height)
    return displayed.width / natural.width, displayed.height / natural.height


def project_blocks(
    blocks: Sequence[Block], displayed: Size, natural: Size
) -> list[OverlayBox]:
    """
    Scale every well-formed block into displayed coordinates.

    Malformed boxes are skipped without affecting the others; labels keep
    the block's position in detection order, so a skipped entry leaves a
    gap in the numbering.
    """
    scale_x, scale_y = scale_factors(displayed, natural)
    boxes: list[OverlayBox] = []
    for i, block in enumerate(blocks):
        bbox = block.bbox
        if not is_valid_bbox(bbox):
            continue
        boxes.append(
            OverlayBox(
                index=i + 1,
                x=bbox[0] * scale_x,
                y=bbox[1] * scale_y,
                width=bbox[2] * scale_x,
                height=bbox[3] * scale_y,
            )
        )
    return boxes


def fit_within(natural: Size, max_width: float, max_height: Optional[float] = None) -> Size:
    """
    Displayed size of an image constrained to a box, never upscaled.

    Mirrors how a browser lays out an image with `max-width: 100%`.
    """
    if not natural.is_known:
        raise MissingImageDimensions(natural.width, natural.height)
    ratio = min(1.0, max_width / natural.width)
    if max_height is not None:
        ratio = min(ratio, max_height / natural.height)
    return Size(round(natural.width * ratio), round(natural.height * ratio))
