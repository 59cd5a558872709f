"""
Shared fixtures: label PDFs built in memory with PyMuPDF.
"""

from __future__ import annotations

import fitz  # PyMuPDF
import pytest

from labelsheet.compositor import LayoutConfig
from labelsheet.engine import ProcessorConfig
from labelsheet.models import SourceDocument

RED = (1, 0, 0)
BLUE = (0, 0, 1)


def build_pdf(page_sizes_px, dpi=300, fills=None) -> bytes:
    """
    Build a PDF whose pages render to `page_sizes_px` at `dpi`.
    Each page is filled with a solid colour (red, blue, red, ...).
    """
    fills = fills or [RED, BLUE]
    doc = fitz.open()
    for index, (width, height) in enumerate(page_sizes_px):
        page = doc.new_page(width=width * 72 / dpi, height=height * 72 / dpi)
        colour = fills[index % len(fills)]
        page.draw_rect(page.rect, color=colour, fill=colour)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def make_document():
    """Factory: make_document(name, page_sizes_px=...) -> SourceDocument."""

    def _make(
        name: str = "label.pdf",
        page_sizes_px=((2100, 1500), (1500, 2100)),
        fills=None,
    ) -> SourceDocument:
        return SourceDocument(name=name, data=build_pdf(page_sizes_px, fills=fills))

    return _make


@pytest.fixture
def corrupt_document():
    return SourceDocument(name="broken.pdf", data=b"this is not a pdf document")


@pytest.fixture
def small_config():
    """72 DPI keeps canvases small (842 x 595) for fast tests."""
    return ProcessorConfig(layout=LayoutConfig(dpi=72))
