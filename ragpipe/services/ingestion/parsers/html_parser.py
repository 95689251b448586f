"""HTML parser using BeautifulSoup."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from ragpipe.interfaces.document_parser import IDocumentParser
from ragpipe.models.document import DocumentMetadata, ParsedDocument
from ragpipe.services.ingestion.parsers.text_parser import decode_text

# Collapse runs of blank lines while keeping paragraph breaks.
_MULTI_NEWLINE = re.compile(r"\n{3,}")
_MULTI_SPACE = re.compile(r"[ \t]{2,}")
_NON_CONTENT_TAGS = ("script", "style", "noscript", "template")


class HTMLParser(IDocumentParser):
    """Extracts visible text; ``<title>`` becomes the document title."""

    mime_types = ("text/html", "application/xhtml+xml")
    extensions = (".html", ".htm", ".xhtml")

    def parse(self, data: bytes, filename: str) -> ParsedDocument:
        markup, _ = decode_text(data)
        soup = BeautifulSoup(markup, "html.parser")
        for tag in soup(_NON_CONTENT_TAGS):
            tag.decompose()

        title = soup.title.get_text(strip=True) if soup.title else None
        if soup.title:
            soup.title.decompose()
        html_tag = soup.find("html")
        lang = html_tag.get("lang") if html_tag is not None else None

        text = soup.get_text("\n")
        text = "\n".join(line.strip() for line in text.splitlines())
        text = _MULTI_SPACE.sub(" ", text)
        text = _MULTI_NEWLINE.sub("\n\n", text).strip()

        return ParsedDocument(
            content=text,
            metadata=DocumentMetadata(
                title=title or None,
                file_name=filename,
                file_type="text/html",
                file_size=len(data),
                language=lang if isinstance(lang, str) else None,
            ),
        )
