"""Page composition and PDF export."""

from comicrestore.pdf.compositor import Document, Page, PageGeometry, assemble, compose_page
from comicrestore.pdf.exporter import PDFExporter

__all__ = ["Document", "PDFExporter", "Page", "PageGeometry", "assemble", "compose_page"]
