"""
Layout Compositor
=================
Draws one or two label documents onto a fixed A4-landscape canvas.

Single layout:
    ┌───────────────────────────────┐
    │ page 1 (native size)          │
    │                               │
    │ ┌──────┐                      │
    │ │pg 2  │ top 20%, scaled      │
    └─┴──────┴──────────────────────┘

Pair layout:
    left half  = document A's single layout
    right half = left half of document B's single layout
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from .errors import PageCountMismatch
from .models import Placement, RasterPage
from .transform import process_secondary_page, secondary_bounds

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4


@dataclass
class LayoutConfig:
    """Geometry of the composed sheet. Defaults reproduce the A4 label policy."""

    # Canvas (A4 landscape)
    dpi: int = 300
    page_width_mm: float = 297.0
    page_height_mm: float = 210.0
    background: str = "white"

    # Page 2: keep the top portion only, then shrink it
    crop_fraction: float = 0.2
    secondary_scale: float = 0.5

    # Page 2 position: bottom-left corner
    left_margin: int = 50
    bottom_margin: int = 50

    expected_pages: int = 2

    @property
    def canvas_width(self) -> int:
        return round(self.page_width_mm / MM_PER_INCH * self.dpi)

    @property
    def canvas_height(self) -> int:
        return round(self.page_height_mm / MM_PER_INCH * self.dpi)

    @property
    def canvas_size(self) -> tuple[int, int]:
        return (self.canvas_width, self.canvas_height)


class LayoutCompositor:
    """Builds composed canvases from rendered pages."""

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()

    def blank_canvas(self) -> Image.Image:
        return Image.new("RGB", self.config.canvas_size, self.config.background)

    def secondary_placement(self, page: RasterPage) -> Placement:
        """Bottom-left slot for the transformed page 2."""
        cfg = self.config
        return Placement(
            x=cfg.left_margin,
            y=cfg.canvas_height - page.height - cfg.bottom_margin,
            width=page.width,
            height=page.height,
        )

    def single_layout(self, pages: list[RasterPage]) -> RasterPage:
        """
        Compose one document: page 1 as-is at the origin, page 2 cropped and
        scaled at the bottom-left corner.

        Raises:
            PageCountMismatch: If `pages` does not hold exactly two pages.
        """
        cfg = self.config
        if len(pages) != cfg.expected_pages:
            raise PageCountMismatch(found=len(pages), expected=cfg.expected_pages)

        label, info = pages[0], pages[1]
        max_width, max_height = secondary_bounds(
            cfg.canvas_width, cfg.canvas_height, cfg.secondary_scale
        )
        canvas = self.blank_canvas()

        try:
            canvas.paste(label.image, (0, 0))

            secondary = process_secondary_page(
                info, max_width, max_height, cfg.crop_fraction
            )
            try:
                placement = self.secondary_placement(secondary)
                canvas.paste(secondary.image, placement.origin)
            finally:
                secondary.release()
        except Exception:
            canvas.close()
            raise

        return RasterPage(image=canvas)

    def pair_layout(
        self,
        pages_a: list[RasterPage],
        pages_b: list[RasterPage],
    ) -> RasterPage:
        """
        Compose two documents on one sheet.

        Document A's layout fills the canvas from the origin; the left half of
        document B's layout is pasted over the right half. B's right half is
        dropped: the label and its page-2 strip both sit on the left.
        """
        cfg = self.config
        layout_a = self.single_layout(pages_a)
        try:
            layout_b = self.single_layout(pages_b)
        except Exception:
            layout_a.release()
            raise

        half_width = cfg.canvas_width // 2
        canvas = self.blank_canvas()

        canvas.paste(layout_a.image, (0, 0))
        layout_a.release()

        left_of_b = layout_b.image.crop((0, 0, half_width, cfg.canvas_height))
        layout_b.release()
        canvas.paste(left_of_b, (half_width, 0))
        left_of_b.close()

        return RasterPage(image=canvas)
