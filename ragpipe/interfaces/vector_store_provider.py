"""Abstract base class for vector-store service providers.

Defines the contract for storing, searching and deleting embedded chunks.
Implementations wrap an in-process exact store, ChromaDB, Qdrant, Pinecone
or Weaviate; the adapter pattern keeps the retrieval layer independent of the
chosen backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragpipe.models.rag import SearchFilter, VectorRecord, VectorSearchResult, VectorStoreStats
from ragpipe.utils.errors import VectorStoreError


# Concrete implementations (ragpipe/providers/vector_store/):
#   InMemoryVectorStore - exact cosine over every matching record
#   ChromaDBProvider    - local persistent HNSW index (approximate)
#   QdrantVectorStore   - Qdrant collection via qdrant-client (approximate)
#   PineconeVectorStore - Pinecone serverless index (approximate)
#   WeaviateVectorStore - Weaviate collection via weaviate-client v4 (approximate)
class IVectorStoreProvider(ABC):
    """Contract for vector stores used by the RAG pipeline.

    Every implementation guarantees:

    * ``search`` returns at most ``top_k`` rows, sorted by descending
      score, and only rows passing the :class:`SearchFilter`.  Recall is
      backend-dependent (exact in memory, approximate elsewhere).
    * ``upsert`` is create-or-replace per record id.
    * ``delete(document_id)`` removes every record of that document or
      raises :class:`~ragpipe.utils.errors.VectorStoreError`; it never
      reports success while records remain.
    * Embedding length is validated against :meth:`get_dimension`.
    """

    async def initialize(self) -> None:  # noqa: B027
        """Open connections / create collections.  Default: nothing to do."""

    async def close(self) -> None:  # noqa: B027
        """Release connections.  Default: nothing to do."""

    @abstractmethod
    async def upsert(self, records: list[VectorRecord]) -> int:
        """Create or replace *records*.

        Returns
        -------
        int
            Number of records written.

        Raises
        ------
        ragpipe.utils.errors.VectorStoreError
            On dimension mismatch or backend failure.
        """

    @abstractmethod
    async def search(
        self,
        query_embedding: list[float],
        top_k: int,
        search_filter: SearchFilter | None = None,
    ) -> list[VectorSearchResult]:
        """Return up to *top_k* nearest records, best first.

        Parameters
        ----------
        query_embedding:
            Query vector of length :meth:`get_dimension`.
        top_k:
            Maximum number of rows to return.
        search_filter:
            Tenant and optional document-id predicates.

        Raises
        ------
        ragpipe.utils.errors.VectorStoreError
            On dimension mismatch or backend failure.
        """

    @abstractmethod
    async def delete(self, document_id: str) -> int:
        """Delete every record of *document_id*; return how many were removed."""

    @abstractmethod
    async def delete_chunk(self, chunk_id: str) -> bool:
        """Delete one record by id; return ``True`` if it existed."""

    @abstractmethod
    async def get_stats(self) -> VectorStoreStats:
        """Return the total vector count and configured dimension."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the embedding length this store accepts."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the registry discriminant, e.g. ``"memory"`` or ``"qdrant"``."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _check_dimension(self, embedding: list[float], what: str) -> None:
        if len(embedding) != self.get_dimension():
            raise VectorStoreError(
                f"{what} has dimension {len(embedding)}, store expects {self.get_dimension()}",
                provider_name=self.get_provider_name(),
            )
