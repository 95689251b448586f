"""Abstract base class for result rerankers.

The retriever calls a reranker between threshold filtering and top-K
truncation when ``rerank_enabled`` is set.  The default
:class:`~ragpipe.services.retrieval.reranker.NoopReranker` keeps the
vector store's order; a cross-encoder can slot in behind this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragpipe.models.rag import VectorSearchResult


class IReranker(ABC):
    """Contract for reordering search results against the query."""

    @abstractmethod
    async def rerank(
        self,
        query: str,
        results: list[VectorSearchResult],
        top_k: int,
    ) -> list[VectorSearchResult]:
        """Return at most *top_k* of *results* in the new order.

        Implementations must be stable: results they score equally keep
        their relative input order.
        """

    @abstractmethod
    def get_name(self) -> str:
        """Return the reranker's identifier (model name or ``"noop"``)."""
