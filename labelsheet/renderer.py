"""
Page Renderer
=============
Rasterizes input PDFs page by page using PyMuPDF (fitz).
Every page is rendered at the same DPI regardless of its physical size,
so page 1 (label) and page 2 (product info) come out in device pixels.
"""

from __future__ import annotations

import logging

import fitz  # PyMuPDF
from PIL import Image

from .errors import DecodeError, PageCountMismatch
from .models import RasterPage, SourceDocument

logger = logging.getLogger(__name__)

EXPECTED_PAGES_COUNT = 2
POINTS_PER_INCH = 72.0


class PageRenderer:
    """
    Decodes one SourceDocument into an ordered list of RasterPages.

    Page order is significant downstream: page 1 is the shipping label,
    page 2 is the product-info sheet.
    """

    def __init__(self, dpi: int = 300, expected_pages: int = EXPECTED_PAGES_COUNT):
        self.dpi = dpi
        self.expected_pages = expected_pages

    def _open(self, document: SourceDocument) -> fitz.Document:
        try:
            doc = fitz.open(stream=document.data, filetype="pdf")
        except Exception as e:
            raise DecodeError(
                f"Invalid or corrupt PDF {document.name}: {e}"
            ) from e

        if doc.needs_pass:
            doc.close()
            raise DecodeError(f"PDF {document.name} is password protected")

        return doc

    def page_count(self, document: SourceDocument) -> int:
        """Get total number of pages in the document."""
        with self._open(document) as doc:
            return doc.page_count

    def render(self, document: SourceDocument) -> list[RasterPage]:
        """
        Render every page of the document.

        Raises:
            DecodeError: If the bytes are not a parseable PDF.
            PageCountMismatch: If the page count is not exactly two.
                Checked before any page is rasterized.
        """
        zoom = self.dpi / POINTS_PER_INCH
        matrix = fitz.Matrix(zoom, zoom)
        pages: list[RasterPage] = []

        with self._open(document) as doc:
            if doc.page_count != self.expected_pages:
                raise PageCountMismatch(
                    found=doc.page_count,
                    expected=self.expected_pages,
                    files=[document.name],
                )

            logger.debug(
                f"Rendering {document.name} ({doc.page_count} pages) "
                f"at {self.dpi} DPI"
            )

            for page in doc:
                try:
                    pix = page.get_pixmap(matrix=matrix, alpha=False)
                    image = Image.frombytes(
                        "RGB", (pix.width, pix.height), pix.samples
                    )
                except Exception as e:
                    for rendered in pages:
                        rendered.release()
                    raise DecodeError(
                        f"Failed to render page {page.number + 1} "
                        f"of {document.name}: {e}"
                    ) from e
                pix = None
                pages.append(RasterPage(image=image))

        return pages
