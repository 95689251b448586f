"""Markdown parser with YAML front matter."""

from __future__ import annotations

import re
from typing import Any

import structlog
import yaml

from ragpipe.interfaces.document_parser import IDocumentParser
from ragpipe.models.document import DocumentMetadata, ParsedDocument
from ragpipe.services.ingestion.parsers.text_parser import decode_text

logger = structlog.get_logger(logger_name=__name__)

_FRONT_MATTER = re.compile(r"\A---\r?\n(.*?)\r?\n---\r?\n", re.DOTALL)
_HEADING = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_FENCE_LANGUAGE = re.compile(r"^```(\w+)", re.MULTILINE)


class MarkdownParser(IDocumentParser):
    """Strips front matter into metadata and keeps the Markdown body as text.

    The title comes from the front matter ``title`` key, else the first
    ``#`` heading.  The language of the first fenced code block is recorded
    as the document language.
    """

    mime_types = ("text/markdown", "text/x-markdown")
    extensions = (".md", ".markdown")

    def parse(self, data: bytes, filename: str) -> ParsedDocument:
        text, _ = decode_text(data)
        front: dict[str, Any] = {}
        body = text

        match = _FRONT_MATTER.match(text)
        if match:
            front = _load_front_matter(match.group(1))
            body = text[match.end():]

        heading = _HEADING.search(body)
        fence = _FENCE_LANGUAGE.search(body)
        title = front.pop("title", None) or (heading.group(1).strip() if heading else None)

        return ParsedDocument(
            content=body.strip(),
            metadata=DocumentMetadata(
                title=str(title) if title is not None else None,
                file_name=filename,
                file_type="text/markdown",
                file_size=len(data),
                language=fence.group(1) if fence else None,
                extra=front,
            ),
        )


def _load_front_matter(raw: str) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        logger.warning("front_matter_invalid_yaml", error=str(exc))
        loaded = None
    if isinstance(loaded, dict):
        return {str(k): v for k, v in loaded.items()}

    # Fall back to loose "key: value" lines.
    front: dict[str, Any] = {}
    for line in raw.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip():
            front[key.strip()] = value.strip()
    return front
