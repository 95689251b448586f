"""Abstract base class for document parsers.

A parser turns raw bytes of one format into plain text plus
:class:`~ragpipe.models.document.DocumentMetadata`.  ``parse`` is pure and
synchronous; ``parse_file`` and ``parse_stream`` only gather the bytes and
hand them over.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable
from pathlib import Path
from typing import BinaryIO

from ragpipe.models.document import ParsedDocument
from ragpipe.utils.errors import ParseError


class IDocumentParser(ABC):
    """Contract for format-specific document parsers."""

    #: MIME types this parser handles.
    mime_types: tuple[str, ...] = ()
    #: Lower-case file extensions (with the dot) this parser handles.
    extensions: tuple[str, ...] = ()

    @abstractmethod
    def parse(self, data: bytes, filename: str) -> ParsedDocument:
        """Convert *data* to text.

        Raises
        ------
        ragpipe.utils.errors.ParseError
            If the input is corrupt or cannot be decoded.
        """

    def can_parse(self, mime_type: str) -> bool:
        return mime_type in self.mime_types

    async def parse_file(self, path: str | Path) -> ParsedDocument:
        """Read *path* off the event loop and parse it."""
        path = Path(path)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise ParseError(f"Cannot read {path}: {exc}") from exc
        return self.parse(data, path.name)

    async def parse_stream(
        self, stream: AsyncIterable[bytes] | BinaryIO, filename: str
    ) -> ParsedDocument:
        """Drain an async byte iterator or a binary file object, then parse."""
        if isinstance(stream, AsyncIterable):
            parts = [part async for part in stream]
            data = b"".join(parts)
        else:
            data = await asyncio.to_thread(stream.read)
        return self.parse(data, filename)
