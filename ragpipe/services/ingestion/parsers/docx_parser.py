"""DOCX parser backed by python-docx."""

from __future__ import annotations

import io
import zipfile

from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError

from ragpipe.interfaces.document_parser import IDocumentParser
from ragpipe.models.document import DocumentMetadata, ParsedDocument
from ragpipe.utils.errors import ParseError


class DocxParser(IDocumentParser):
    """Reads paragraphs in order, then table rows as ``cell | cell`` lines."""

    mime_types = (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    )
    extensions = (".docx",)

    def parse(self, data: bytes, filename: str) -> ParsedDocument:
        try:
            doc = DocxDocument(io.BytesIO(data))
        except (zipfile.BadZipFile, PackageNotFoundError, KeyError, ValueError) as exc:
            raise ParseError(f"Cannot open DOCX {filename}: {exc}") from exc

        parts = [p.text.strip() for p in doc.paragraphs if p.text and p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [c.text.strip() for c in row.cells if c.text and c.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))

        core = doc.core_properties
        return ParsedDocument(
            content="\n\n".join(parts),
            metadata=DocumentMetadata(
                title=core.title or None,
                file_name=filename,
                file_type=self.mime_types[0],
                file_size=len(data),
                language=core.language or None,
                extra={"author": core.author} if core.author else {},
            ),
        )
