"""Default reranker."""

from __future__ import annotations

from ragpipe.interfaces.reranker import IReranker
from ragpipe.models.rag import VectorSearchResult


class NoopReranker(IReranker):
    """Keeps the vector store's order and truncates to *top_k*."""

    async def rerank(
        self,
        query: str,
        results: list[VectorSearchResult],
        top_k: int,
    ) -> list[VectorSearchResult]:
        return list(results[:top_k])

    def get_name(self) -> str:
        return "noop"
