"""Dict-backed document store for tests and one-shot CLI runs."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from ragpipe.interfaces.document_store import IDocumentStore
from ragpipe.models.document import ChunkRecord, Document, DocumentStatus, can_transition
from ragpipe.utils.errors import DocumentStoreError

logger = structlog.get_logger(logger_name=__name__)


class InMemoryDocumentStore(IDocumentStore):
    """Keeps documents and chunk records in process memory."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        # document_id -> chunk_id -> record
        self._chunks: dict[str, dict[str, ChunkRecord]] = {}

    async def create_document(self, document: Document) -> Document:
        if document.id in self._documents:
            raise DocumentStoreError(f"Document {document.id} already exists", "memory")
        self._documents[document.id] = document
        return document

    async def get_document(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunks_count: int | None = None,
    ) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise DocumentStoreError(f"Document {document_id} not found", "memory")
        if not can_transition(document.status, status):
            raise DocumentStoreError(
                f"Illegal status transition {document.status.value} -> {status.value}",
                "memory",
            )
        document.status = status
        document.embedding_status = status
        if chunks_count is not None:
            document.chunks_count = chunks_count
        if status in (DocumentStatus.COMPLETED, DocumentStatus.PARTIAL):
            document.processed_at = datetime.now(tz=timezone.utc)
        return document

    async def upsert_chunks(self, chunks: list[ChunkRecord]) -> int:
        for chunk in chunks:
            self._chunks.setdefault(chunk.document_id, {})[chunk.id] = chunk
        return len(chunks)

    async def list_chunks(self, document_id: str) -> list[ChunkRecord]:
        records = self._chunks.get(document_id, {}).values()
        return sorted(records, key=lambda c: c.chunk_index)

    async def delete_chunks(self, document_id: str) -> int:
        removed = self._chunks.pop(document_id, {})
        return len(removed)

    async def delete_document(self, document_id: str) -> bool:
        self._chunks.pop(document_id, None)
        return self._documents.pop(document_id, None) is not None

    async def list_documents(self, user_id: str | None = None) -> list[Document]:
        return [d for d in self._documents.values() if user_id is None or d.user_id == user_id]
