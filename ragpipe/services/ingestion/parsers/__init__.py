"""Format-specific document parsers and the registry that picks one."""

from ragpipe.services.ingestion.parsers.csv_parser import CSVParser
from ragpipe.services.ingestion.parsers.docx_parser import DocxParser
from ragpipe.services.ingestion.parsers.html_parser import HTMLParser
from ragpipe.services.ingestion.parsers.markdown_parser import MarkdownParser
from ragpipe.services.ingestion.parsers.pdf_parser import PDFParser
from ragpipe.services.ingestion.parsers.registry import MIME_TYPES, ParserRegistry
from ragpipe.services.ingestion.parsers.text_parser import TextParser, decode_text

__all__ = [
    "MIME_TYPES",
    "CSVParser",
    "DocxParser",
    "HTMLParser",
    "MarkdownParser",
    "PDFParser",
    "ParserRegistry",
    "TextParser",
    "decode_text",
]
