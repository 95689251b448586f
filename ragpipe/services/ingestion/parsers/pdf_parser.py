"""PDF parser backed by PyMuPDF."""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from ragpipe.interfaces.document_parser import IDocumentParser
from ragpipe.models.document import DocumentMetadata, ParsedDocument
from ragpipe.utils.errors import ParseError

logger = structlog.get_logger(logger_name=__name__)


class PDFParser(IDocumentParser):
    """Extracts text page by page; pages are separated by blank lines.

    Pages with no text layer are skipped.  A PDF with no extractable text at
    all parses to empty content, which ingestion reports as failed.
    """

    mime_types = ("application/pdf",)
    extensions = (".pdf",)

    def parse(self, data: bytes, filename: str) -> ParsedDocument:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ParseError(f"Cannot open PDF {filename}: {exc}") from exc

        try:
            page_count = len(doc)
            pages = [doc[i].get_text("text").strip() for i in range(page_count)]
            title = (doc.metadata or {}).get("title") or None
        finally:
            doc.close()

        pages = [p for p in pages if p]
        if not pages:
            logger.warning("pdf_no_text_extracted", file_name=filename)

        return ParsedDocument(
            content="\n\n".join(pages),
            metadata=DocumentMetadata(
                title=title,
                file_name=filename,
                file_type="application/pdf",
                file_size=len(data),
                page_count=page_count,
            ),
        )
