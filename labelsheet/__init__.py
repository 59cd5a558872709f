"""
Label Sheet Composer
====================
Combines two-page shipping-label PDFs into A4-landscape composite sheets.

Architecture:
    - Page Renderer: Rasterizes each input PDF page at a fixed DPI
    - Page Transform: Crops and scales the product-info page
    - Layout Compositor: Places one or two documents on an A4 canvas
    - Document Encoder: Wraps the composed canvas as a single-page PDF
    - Batch Processor: Pairs/singles orchestration with failure isolation
    - Archive Builder: Bundles all outputs into a single ZIP

Version: 1.0.0
"""

__version__ = "1.0.0"
