"""Closed registry resolving a filename or MIME type to a parser.

Resolution goes extension -> MIME type -> parser.  Unknown extensions are
treated as ``text/plain``; the ``.doc`` legacy Word format maps to a MIME
type no parser accepts and is rejected with :class:`ParseError`.
"""

from __future__ import annotations

from collections.abc import AsyncIterable
from pathlib import Path, PurePath
from typing import BinaryIO

import structlog

from ragpipe.interfaces.document_parser import IDocumentParser
from ragpipe.models.document import ParsedDocument
from ragpipe.services.ingestion.parsers.csv_parser import CSVParser
from ragpipe.services.ingestion.parsers.docx_parser import DocxParser
from ragpipe.services.ingestion.parsers.html_parser import HTMLParser
from ragpipe.services.ingestion.parsers.markdown_parser import MarkdownParser
from ragpipe.services.ingestion.parsers.pdf_parser import PDFParser
from ragpipe.services.ingestion.parsers.text_parser import TextParser
from ragpipe.utils.errors import ParseError

logger = structlog.get_logger(logger_name=__name__)

MIME_TYPES: dict[str, str] = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".json": "application/json",
    ".xml": "application/xml",
    ".html": "text/html",
    ".htm": "text/html",
    ".xhtml": "application/xhtml+xml",
}

_DEFAULT_MIME = "text/plain"


class ParserRegistry:
    """Maps MIME types to parser instances, most specific parser first."""

    def __init__(self, parsers: list[IDocumentParser] | None = None) -> None:
        # TextParser accepts any text/* type, so it must stay last.
        self._parsers: list[IDocumentParser] = parsers or [
            PDFParser(),
            DocxParser(),
            MarkdownParser(),
            CSVParser(),
            HTMLParser(),
            TextParser(),
        ]

    @staticmethod
    def mime_type_for(filename: str) -> str:
        return MIME_TYPES.get(PurePath(filename).suffix.lower(), _DEFAULT_MIME)

    def get_parser_for_mime_type(self, mime_type: str) -> IDocumentParser:
        for parser in self._parsers:
            if parser.can_parse(mime_type):
                return parser
        raise ParseError(f"Unsupported document type: {mime_type}")

    def get_parser_for_file(self, filename: str) -> IDocumentParser:
        return self.get_parser_for_mime_type(self.mime_type_for(filename))

    # ------------------------------------------------------------------
    # Convenience entry points
    # ------------------------------------------------------------------

    def parse_bytes(self, data: bytes, filename: str) -> ParsedDocument:
        parser = self.get_parser_for_file(filename)
        logger.debug("parsing_document", file_name=filename, parser=type(parser).__name__)
        return parser.parse(data, filename)

    async def parse_file(self, path: str | Path) -> ParsedDocument:
        return await self.get_parser_for_file(str(path)).parse_file(path)

    async def parse_stream(
        self, stream: AsyncIterable[bytes] | BinaryIO, filename: str
    ) -> ParsedDocument:
        return await self.get_parser_for_file(filename).parse_stream(stream, filename)
