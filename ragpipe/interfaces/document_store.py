"""Abstract base class for document and chunk persistence.

The document store is the pipeline's collaborator for Document and Chunk
records.  It is deliberately thin: schema and migrations belong to the
implementation, the pipeline only needs CRUD.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragpipe.models.document import ChunkRecord, Document, DocumentStatus


# Concrete implementations (ragpipe/providers/storage/):
#   InMemoryDocumentStore - dict-backed, for tests and one-shot CLI runs
#   SQLiteDocumentStore   - aiosqlite, JSON metadata columns
class IDocumentStore(ABC):
    """Contract for persisting documents and their chunk records."""

    async def initialize(self) -> None:  # noqa: B027
        """Create tables / open connections.  Default: nothing to do."""

    async def close(self) -> None:  # noqa: B027
        """Release connections.  Default: nothing to do."""

    @abstractmethod
    async def create_document(self, document: Document) -> Document:
        """Insert a new document record."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document, or ``None`` when it does not exist."""

    @abstractmethod
    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunks_count: int | None = None,
    ) -> Document:
        """Move the document to *status*.

        Raises
        ------
        ragpipe.utils.errors.DocumentStoreError
            If the document is missing or the transition is not allowed.
        """

    @abstractmethod
    async def upsert_chunks(self, chunks: list[ChunkRecord]) -> int:
        """Create or replace chunk records; return how many were written."""

    @abstractmethod
    async def list_chunks(self, document_id: str) -> list[ChunkRecord]:
        """Return the document's chunk records ordered by ``chunk_index``."""

    @abstractmethod
    async def delete_chunks(self, document_id: str) -> int:
        """Delete every chunk record of the document; return the count."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Delete the document record; return ``True`` if it existed."""

    @abstractmethod
    async def list_documents(self, user_id: str | None = None) -> list[Document]:
        """Return documents, optionally restricted to one user."""
