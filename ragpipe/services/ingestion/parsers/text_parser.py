"""Plain-text parser (``.txt``, ``.json``, ``.xml`` and unknown extensions)."""

from __future__ import annotations

import codecs

from ragpipe.interfaces.document_parser import IDocumentParser
from ragpipe.models.document import DocumentMetadata, ParsedDocument

# latin-1 maps every byte, so decoding never falls through past it.
_ENCODINGS = ("utf-8", "utf-16", "latin-1")


def decode_text(data: bytes) -> tuple[str, str]:
    """Decode *data*, returning ``(text, encoding)``.

    utf-16 is only tried when the bytes carry a UTF-16 byte-order mark;
    otherwise almost any even-length byte string would "decode".
    """
    for encoding in _ENCODINGS:
        if encoding == "utf-16" and not data.startswith(
            (codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)
        ):
            continue
        try:
            text = data.decode("utf-8-sig" if encoding == "utf-8" else encoding)
        except UnicodeDecodeError:
            continue
        return text, encoding
    # Unreachable: latin-1 accepts every byte.
    return data.decode("latin-1", errors="replace"), "latin-1"


class TextParser(IDocumentParser):
    """Decodes bytes as text; a leading ``# `` line becomes the title."""

    mime_types = ("text/plain", "application/json", "application/xml")
    extensions = (".txt", ".json", ".xml")

    def can_parse(self, mime_type: str) -> bool:
        return mime_type.startswith("text/") or mime_type in self.mime_types

    def parse(self, data: bytes, filename: str) -> ParsedDocument:
        text, encoding = decode_text(data)
        first_line = text.split("\n", 1)[0]
        title = first_line[2:].strip() if first_line.startswith("# ") else None
        return ParsedDocument(
            content=text.strip(),
            metadata=DocumentMetadata(
                title=title,
                file_name=filename,
                file_type="text/plain",
                file_size=len(data),
                extra={"encoding": encoding},
            ),
        )
