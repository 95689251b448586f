"""CSV parser rendering each row as ``header: value`` pairs."""

from __future__ import annotations

import csv
import io

from ragpipe.interfaces.document_parser import IDocumentParser
from ragpipe.models.document import DocumentMetadata, ParsedDocument
from ragpipe.services.ingestion.parsers.text_parser import decode_text
from ragpipe.utils.errors import ParseError


class CSVParser(IDocumentParser):
    """Turns a CSV table into one line of text per row.

    Output layout::

        CSV Data: people.csv

        Headers: name, age

        name: Ada | age: 36
    """

    mime_types = ("text/csv", "application/csv")
    extensions = (".csv",)

    def parse(self, data: bytes, filename: str) -> ParsedDocument:
        text, _ = decode_text(data)
        metadata = DocumentMetadata(
            title=filename[:-4] if filename.lower().endswith(".csv") else filename,
            file_name=filename,
            file_type="text/csv",
            file_size=len(data),
        )
        try:
            table = list(csv.reader(io.StringIO(text)))
        except csv.Error as exc:
            raise ParseError(f"Malformed CSV in {filename}: {exc}") from exc

        if not table:
            return ParsedDocument(content="", metadata=metadata)

        header = [h.strip() for h in table[0]]
        rows = []
        for values in table[1:]:
            if not any(v.strip() for v in values):
                continue
            cells = [
                f"{h}: {values[i].strip() if i < len(values) else ''}"
                for i, h in enumerate(header)
            ]
            rows.append(" | ".join(cells))

        content = f"CSV Data: {filename}\n\nHeaders: {', '.join(header)}\n\n" + "\n".join(rows)
        return ParsedDocument(
            content=content,
            metadata=metadata.model_copy(update={"extra": {"row_count": len(rows)}}),
        )
