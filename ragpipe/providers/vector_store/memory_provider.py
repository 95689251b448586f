"""In-process vector store with exact cosine search.

Keeps every record in a dict keyed by record id (so upsert is
create-or-replace) and scores all filter-matching records against the query
with numpy.  Search is exact: it sees every candidate, unlike the HNSW-based
backends.  Suitable for tests, the CLI, and corpora that fit in memory.
"""

from __future__ import annotations

import numpy as np
import structlog

from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.models.rag import SearchFilter, VectorRecord, VectorSearchResult, VectorStoreStats
from ragpipe.utils.vector_math import cosine_scores

logger = structlog.get_logger(logger_name=__name__)


class InMemoryVectorStore(IVectorStoreProvider):
    """Exact cosine-similarity store held in process memory."""

    def __init__(self, dimension: int) -> None:
        self._dimension = dimension
        # dict preserves insertion order, which is the tie-break order.
        self._records: dict[str, VectorRecord] = {}

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(self, records: list[VectorRecord]) -> int:
        for record in records:
            self._check_dimension(record.embedding, f"Record {record.id}")
        for record in records:
            self._records[record.id] = record
        logger.debug("memory_upsert", count=len(records), total=len(self._records))
        return len(records)

    async def search(
        self,
        query_embedding: list[float],
        top_k: int,
        search_filter: SearchFilter | None = None,
    ) -> list[VectorSearchResult]:
        self._check_dimension(query_embedding, "Query embedding")
        if top_k <= 0:
            return []

        candidates = [
            r
            for r in self._records.values()
            if search_filter is None or search_filter.matches(r.metadata, r.document_id)
        ]
        if not candidates:
            return []

        matrix = np.asarray([r.embedding for r in candidates], dtype=np.float64)
        scores = cosine_scores(query_embedding, matrix)
        # Stable sort on negated scores: ties keep insertion order.
        order = np.argsort(-scores, kind="stable")[:top_k]

        return [
            VectorSearchResult(
                id=candidates[i].id,
                document_id=candidates[i].document_id,
                chunk_index=candidates[i].chunk_index,
                content=candidates[i].content,
                score=float(scores[i]),
                metadata=dict(candidates[i].metadata),
            )
            for i in order
        ]

    async def delete(self, document_id: str) -> int:
        doomed = [rid for rid, r in self._records.items() if r.document_id == document_id]
        for rid in doomed:
            del self._records[rid]
        logger.info("memory_delete_document", document_id=document_id, deleted_count=len(doomed))
        return len(doomed)

    async def delete_chunk(self, chunk_id: str) -> bool:
        return self._records.pop(chunk_id, None) is not None

    async def get_stats(self) -> VectorStoreStats:
        return VectorStoreStats(total_vectors=len(self._records), dimension=self._dimension)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "memory"
