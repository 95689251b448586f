"""Similarity retrieval: embed -> search -> threshold -> rerank -> top-K."""

from __future__ import annotations

import time

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ragpipe.config.rag_config import RagConfig
from ragpipe.interfaces.embedding_provider import IEmbeddingProvider
from ragpipe.interfaces.reranker import IReranker
from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.models.rag import RetrievalResult, RetrievedChunk, SearchFilter, VectorSearchResult
from ragpipe.services.retrieval.reranker import NoopReranker

logger = structlog.get_logger(logger_name=__name__)

# Candidates fetched per requested result, leaving room for threshold filtering.
_CANDIDATE_FACTOR = 2
# Chunks scanned per document by get_document_context.
_DOCUMENT_CONTEXT_TOP_K = 10
_CHARS_PER_TOKEN = 4


class RetrievalOptions(BaseModel):
    """Per-call retrieval options; ``None`` fields use the configured value."""

    model_config = ConfigDict(frozen=True)

    query: str
    user_id: str
    document_ids: list[str] | None = None
    top_k: int | None = Field(default=None, ge=1)
    similarity_threshold: float | None = Field(default=None, ge=-1.0, le=1.0)
    use_rag: bool = True


class Retriever:
    """Finds the chunks most similar to a query.

    Parameters
    ----------
    reranker:
        Consulted between threshold filtering and truncation when
        ``config.rerank_enabled`` is set.  Defaults to :class:`NoopReranker`.
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        embedding_provider: IEmbeddingProvider,
        config: RagConfig,
        reranker: IReranker | None = None,
    ) -> None:
        self._vector_store = vector_store
        self._embedding_provider = embedding_provider
        self._config = config
        self._reranker = reranker or NoopReranker()

    async def retrieve(self, options: RetrievalOptions) -> RetrievalResult:
        """Run one retrieval.

        Raises
        ------
        EmbeddingError
            If the query cannot be embedded.
        VectorStoreError
            If the search fails.
        """
        started = time.perf_counter()
        if not options.use_rag:
            return RetrievalResult(query=options.query, latency_ms=_elapsed_ms(started))

        top_k = options.top_k or self._config.retrieval_top_k
        threshold = (
            options.similarity_threshold
            if options.similarity_threshold is not None
            else self._config.similarity_threshold
        )

        query_embedding = await self._embedding_provider.embed_single(options.query)
        candidates = await self._vector_store.search(
            query_embedding.embedding,
            top_k * _CANDIDATE_FACTOR,
            SearchFilter(user_id=options.user_id, document_ids=options.document_ids or None),
        )

        passing = [c for c in candidates if c.score >= threshold]
        if self._config.rerank_enabled:
            ranked = await self._reranker.rerank(options.query, passing, top_k)
            ranked = ranked[:top_k]
        else:
            ranked = passing[:top_k]

        chunks = [_to_chunk(r) for r in ranked]
        latency = _elapsed_ms(started)
        logger.info(
            "retrieval_complete",
            candidates=len(candidates),
            above_threshold=len(passing),
            returned=len(chunks),
            latency_ms=round(latency, 1),
        )
        return RetrievalResult(
            chunks=chunks,
            total_candidates=len(candidates),
            query=options.query,
            latency_ms=latency,
        )

    async def get_document_context(
        self,
        user_id: str,
        document_ids: list[str],
        max_tokens: int | None = None,
    ) -> str:
        """Concatenate stored chunks of *document_ids* within a token budget.

        Only chunks owned by *user_id* are read; ids belonging to another
        user contribute nothing.

        No query is involved: each document is scanned with a zero vector,
        so chunk order within a document follows the store's tie order.
        """
        budget = (max_tokens or self._config.max_context_tokens) * _CHARS_PER_TOKEN
        zero = [0.0] * self._vector_store.get_dimension()
        parts: list[str] = []
        used = 0
        for doc_id in document_ids:
            results = await self._vector_store.search(
                zero,
                _DOCUMENT_CONTEXT_TOP_K,
                SearchFilter(user_id=user_id, document_ids=[doc_id]),
            )
            for result in results:
                if used + len(result.content) > budget:
                    break
                parts.append(result.content)
                used += len(result.content)
        return "\n\n---\n\n".join(parts)


def _to_chunk(result: VectorSearchResult) -> RetrievedChunk:
    meta = result.metadata
    return RetrievedChunk(
        id=result.id,
        document_id=result.document_id,
        document_name=meta.get("document_name") or "Unknown",
        content=result.content,
        chunk_index=result.chunk_index,
        start_char=meta.get("start_char"),
        end_char=meta.get("end_char"),
        score=result.score,
        metadata=meta,
    )


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0
