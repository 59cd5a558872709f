"""
Document Encoder
================
Wraps a composed canvas as a single-page PDF using PyMuPDF (fitz).
The page is sized to the canvas pixel dimensions (1 px = 1 PDF unit) and
holds nothing but the canvas as a lossless PNG image.
"""

from __future__ import annotations

import io
import logging

import fitz  # PyMuPDF

from .errors import EncodingError
from .models import RasterPage

logger = logging.getLogger(__name__)


class DocumentEncoder:
    """Serializes a composed canvas into PDF bytes."""

    def __init__(self, png_compress_level: int = 6):
        self.png_compress_level = png_compress_level

    def encode_image(self, canvas: RasterPage) -> bytes:
        """Lossless PNG stream of the canvas."""
        buffer = io.BytesIO()
        canvas.image.save(
            buffer,
            format="PNG",
            compress_level=self.png_compress_level,
        )
        return buffer.getvalue()

    def encode(self, canvas: RasterPage) -> bytes:
        """
        Produce a one-page landscape PDF containing the canvas.

        Raises:
            EncodingError: If the image or the PDF could not be generated.
        """
        width, height = canvas.size
        if width <= 0 or height <= 0:
            raise EncodingError(f"Cannot encode an empty canvas of size {canvas.size}")

        try:
            image_data = self.encode_image(canvas)

            doc = fitz.open()
            try:
                page = doc.new_page(width=width, height=height)
                page.insert_image(page.rect, stream=image_data)
                # No creation/modification dates: same pixels, same bytes
                doc.set_metadata({})
                pdf_bytes = doc.tobytes(garbage=3, deflate=True, no_new_id=True)
            finally:
                doc.close()
        except Exception as e:
            raise EncodingError(f"Failed to generate PDF: {e}") from e

        logger.debug(
            f"Encoded {width}x{height} canvas "
            f"({len(image_data) / 1024:.0f} KB PNG -> {len(pdf_bytes) / 1024:.0f} KB PDF)"
        )
        return pdf_bytes
