"""PDF writing with PyMuPDF."""

from pathlib import Path

import anyio
import pymupdf

from comicrestore.config.constants import PRODUCER
from comicrestore.image.source import encode_png
from comicrestore.pdf.compositor import Document
from comicrestore.utils.logging import get_logger

log = get_logger(__name__)


class PDFExporter:
    """Writes documents as print-ready PDFs.

    Each page is sized to trim plus bleed in points with the page image drawn
    over the full page. The BleedBox covers the whole page and the TrimBox is
    inset by the bleed.
    """

    def __init__(self, author: str | None = None, producer: str = PRODUCER) -> None:
        self.author = author
        self.producer = producer

    def render(self, document: Document) -> bytes:
        """Render a document to PDF bytes."""
        geometry = document.geometry
        width_pt, height_pt = geometry.point_size()
        trim = pymupdf.Rect(*geometry.trim_box())

        doc = pymupdf.open()
        try:
            for page in document.pages:
                pdf_page = doc.new_page(width=width_pt, height=height_pt)
                pdf_page.insert_image(pdf_page.rect, stream=encode_png(page.content))
                pdf_page.set_bleedbox(pdf_page.rect)
                if geometry.bleed_in > 0:
                    pdf_page.set_trimbox(trim)

            metadata = {
                "title": document.title or "",
                "producer": self.producer,
                "creator": self.producer,
            }
            if self.author:
                metadata["author"] = self.author
            doc.set_metadata(metadata)

            return doc.tobytes(deflate=True, garbage=3)
        finally:
            doc.close()

    def write(self, document: Document, output_path: Path) -> Path:
        """Write a document to ``output_path``."""
        data = self.render(document)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(data)
        log.info(
            "PDF written",
            path=str(output_path),
            pages=len(document.pages),
            size_kb=round(len(data) / 1024, 1),
        )
        return output_path

    async def export(self, document: Document, output_path: Path) -> Path:
        """Write a document without blocking the event loop."""
        return await anyio.to_thread.run_sync(self.write, document, output_path)
