"""
Page Transform
==============
Crop and scale operations for the secondary (product-info) page.
Every operation returns a new RasterPage and leaves its input untouched.
"""

from __future__ import annotations

import logging
import math

from PIL import Image

from .models import RasterPage

logger = logging.getLogger(__name__)

DEFAULT_CROP_FRACTION = 0.2
DEFAULT_SCALE_FACTOR = 0.5


def top_crop(page: RasterPage, fraction: float = DEFAULT_CROP_FRACTION) -> RasterPage:
    """Keep only the top `fraction` of the page height, full width."""
    if page.height <= 0 or page.width <= 0:
        raise ValueError(f"Cannot crop a degenerate page of size {page.size}")
    if not 0 < fraction <= 1:
        raise ValueError(f"Crop fraction must be in (0, 1], got {fraction}")

    crop_height = max(1, math.floor(page.height * fraction))
    cropped = page.image.crop((0, 0, page.width, crop_height))
    return RasterPage(image=cropped)


def secondary_bounds(
    canvas_width: int,
    canvas_height: int,
    scale_factor: float = DEFAULT_SCALE_FACTOR,
) -> tuple[float, float]:
    """Bounding box for the secondary page: half width, a third of the height, scaled."""
    return (
        canvas_width / 2 * scale_factor,
        canvas_height / 3 * scale_factor,
    )


def fit_scale(page: RasterPage, max_width: float, max_height: float) -> RasterPage:
    """
    Uniformly scale the page to fit inside (max_width, max_height).

    The binding dimension decides the scale factor; the result never
    exceeds the box in either dimension.
    """
    if page.height <= 0 or page.width <= 0:
        raise ValueError(f"Cannot scale a degenerate page of size {page.size}")

    ratio = page.width / page.height

    if ratio > max_width / max_height:
        # Width is the limiting factor
        new_width = max_width
        new_height = new_width / ratio
    else:
        new_height = max_height
        new_width = new_height * ratio

    width = max(1, min(math.floor(new_width), math.floor(max_width)))
    height = max(1, min(math.floor(new_height), math.floor(max_height)))

    resized = page.image.resize((width, height), Image.Resampling.LANCZOS)
    return RasterPage(image=resized)


def process_secondary_page(
    page: RasterPage,
    max_width: float,
    max_height: float,
    crop_fraction: float = DEFAULT_CROP_FRACTION,
) -> RasterPage:
    """Top-crop then fit-scale; the intermediate crop is released."""
    cropped = top_crop(page, crop_fraction)
    cropped_size = cropped.size
    try:
        scaled = fit_scale(cropped, max_width, max_height)
    finally:
        cropped.release()

    logger.debug(
        f"Secondary page {page.size} -> cropped {cropped_size} -> {scaled.size}"
    )
    return scaled
