"""
Region overlay rendering.

`OverlayRenderer` draws numbered rectangles for one detail record onto a
transparent Pillow surface sized exactly like the displayed image.
`OverlayView` binds the renderer to the image's lifecycle: a change of
detail data, a resize and an image (re)load all trigger a redraw, and a
redraw that arrives before the image knows its natural size waits for
the load event instead of failing.
"""

from __future__ import annotations

import logging
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from ocrbatch.clients.backend_client import BackendClient
from ocrbatch.core.exceptions import MissingImageDimensions
from ocrbatch.models.dto import DetailRecord
from ocrbatch.overlay.geometry import OverlayBox, Size, project_blocks

logger = logging.getLogger(__name__)

OUTLINE_COLOR = (255, 255, 255, 255)
OUTLINE_WIDTH = 2
LABEL_FILL = (255, 255, 255, 255)
LABEL_TEXT = (0, 0, 0, 255)
LABEL_WIDTH = 30
LABEL_HEIGHT = 20
LABEL_TEXT_OFFSET = (8, 4)


class DrawingSurface:
    """Transparent RGBA canvas; reset to a new size before every draw."""

    def __init__(self) -> None:
        self.image: Optional[Image.Image] = None
        self._draw: Optional[ImageDraw.ImageDraw] = None

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size if self.image is not None else (0, 0)

    def reset(self, size: Size) -> None:
        self.image = Image.new("RGBA", size.as_pixels(), (0, 0, 0, 0))
        self._draw = ImageDraw.Draw(self.image)

    def _drawer(self) -> ImageDraw.ImageDraw:
        if self._draw is None:
            raise RuntimeError("Surface not reset")
        return self._draw

    def stroke_rect(self, x: float, y: float, w: float, h: float) -> None:
        x0, x1 = sorted((x, x + w))
        y0, y1 = sorted((y, y + h))
        self._drawer().rectangle([x0, y0, x1, y1], outline=OUTLINE_COLOR, width=OUTLINE_WIDTH)

    def label(self, x: float, y: float, text: str, font: ImageFont.ImageFont) -> None:
        """Filled tile sitting right above (x, y); may extend past the top edge."""
        top = y - LABEL_HEIGHT
        draw = self._drawer()
        draw.rectangle([x, top, x + LABEL_WIDTH, y], fill=LABEL_FILL)
        dx, dy = LABEL_TEXT_OFFSET
        draw.text((x + dx, top + dy), text, fill=LABEL_TEXT, font=font)

    def composite_onto(self, image: Image.Image) -> Image.Image:
        """Return `image` (resized to the surface) with the overlay on top."""
        if self.image is None:
            raise RuntimeError("Surface not reset")
        base = image.convert("RGBA")
        if base.size != self.image.size:
            base = base.resize(self.image.size)
        return Image.alpha_composite(base, self.image)


class OverlayRenderer:
    def __init__(self, surface: Optional[DrawingSurface] = None) -> None:
        self.surface = surface or DrawingSurface()
        self._font = ImageFont.load_default()

    def render(self, detail: DetailRecord, displayed: Size, natural: Size) -> list[OverlayBox]:
        """
        Clear the surface to `displayed` and draw every valid block.

        Args:
          detail: Detail record whose boxes are in natural-image pixels.
          displayed: Size the image is currently shown at.
          natural: Intrinsic size of the loaded image.

        Returns:
          The boxes that were drawn, in displayed coordinates.

        Raises:
          MissingImageDimensions: When `natural` is not known; the surface
            is left untouched.
        """
        boxes = project_blocks(detail.blocks, displayed, natural)
        self.surface.reset(displayed)
        for box in boxes:
            self.surface.stroke_rect(box.x, box.y, box.width, box.height)
            self.surface.label(box.x, box.y, str(box.index), self._font)
        return boxes


class OverlayView:
    """
    Keeps one surface in sync with one displayed image.

    Only one detail record is shown at a time; `load` keeps the response of
    the most recent request and discards older ones.
    """

    def __init__(self, renderer: Optional[OverlayRenderer] = None) -> None:
        self.renderer = renderer or OverlayRenderer()
        self.detail: Optional[DetailRecord] = None
        self.displayed: Optional[Size] = None
        self.natural: Optional[Size] = None
        self.boxes: list[OverlayBox] = []
        self.pending = False
        self._load_seq = 0

    @property
    def surface(self) -> DrawingSurface:
        return self.renderer.surface

    def set_detail(self, detail: DetailRecord) -> bool:
        self.detail = detail
        return self.redraw()

    def on_resize(self, displayed: Size) -> bool:
        self.displayed = displayed
        return self.redraw()

    def on_image_loaded(self, natural: Size, displayed: Optional[Size] = None) -> bool:
        """The image-ready event; runs any redraw that was waiting on it."""
        self.natural = natural
        if displayed is not None:
            self.displayed = displayed
        return self.redraw()

    def on_image_reset(self) -> None:
        """A new image source is loading; its natural size is unknown again."""
        self.natural = None

    def redraw(self) -> bool:
        """
        Draw with the current inputs.

        Returns:
          True when the surface was redrawn, False when inputs are missing
          or the draw is deferred until the image finishes loading.
        """
        if self.detail is None or self.displayed is None:
            return False
        try:
            self.boxes = self.renderer.render(
                self.detail, self.displayed, self.natural or Size(0, 0)
            )
        except MissingImageDimensions:
            self.pending = True
            logger.debug("Overlay deferred until image load", extra={"stem": self.detail.stem})
            return False
        self.pending = False
        return True

    async def load(self, client: BackendClient, stem: str) -> bool:
        """
        Fetch the detail record for `stem` and draw it.

        Raises:
          TransportFailure: When the detail request fails.
        """
        self._load_seq += 1
        seq = self._load_seq
        detail = await client.get_result(stem)
        if seq != self._load_seq:
            logger.debug("Discarding superseded detail response", extra={"stem": stem})
            return False
        return self.set_detail(detail)
