"""Query orchestration: transform -> retrieve -> assemble.

A failing embedding provider or vector store never aborts a query: the
error is logged, retrieval is treated as empty, and the caller still gets
a prompt carrying the "no relevant context" marker plus ``degraded=True``.
"""

from __future__ import annotations

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ragpipe.models.rag import (
    Citation,
    QueryTransform,
    QueryTransformKind,
    RagContext,
    RetrievalResult,
    RetrievedChunk,
)
from ragpipe.services.retrieval.context_assembler import ContextAssembler
from ragpipe.services.retrieval.query_transformer import LLMGenerate, QueryTransformer
from ragpipe.services.retrieval.retriever import RetrievalOptions, Retriever
from ragpipe.utils.errors import EmbeddingError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)


class QueryOptions(RetrievalOptions):
    """Retrieval options plus query-transform and prompt settings."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    transform_query: QueryTransformKind = QueryTransformKind.ORIGINAL
    custom_system_prompt: str | None = None
    llm_generate: LLMGenerate | None = Field(default=None, exclude=True)
    sub_question_index: int = Field(default=0, ge=0)


class QueryResult(BaseModel):
    """Prompt-ready context plus how it was obtained."""

    model_config = ConfigDict(frozen=True)

    rag_context: RagContext
    transformed_query: str
    transform: QueryTransform
    retrieval: RetrievalResult
    degraded: bool = Field(default=False, description="True when retrieval failed.")
    error: str | None = None


class RetrieveResult(BaseModel):
    """Retrieval without prompt building."""

    model_config = ConfigDict(frozen=True)

    chunks: list[RetrievedChunk] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)


class RagQueryService:
    """Answers queries with retrieved context."""

    def __init__(
        self,
        retriever: Retriever,
        assembler: ContextAssembler,
        transformer: QueryTransformer | None = None,
    ) -> None:
        self._retriever = retriever
        self._assembler = assembler
        self._transformer = transformer or QueryTransformer()

    async def query(self, options: QueryOptions) -> QueryResult:
        """Transform, retrieve and build the RAG prompt for *options.query*."""
        transform = await self._transformer.transform(
            options.query,
            options.transform_query,
            llm_generate=options.llm_generate,
            sub_question_index=options.sub_question_index,
        )
        retrieval_options = RetrievalOptions(
            query=transform.query,
            user_id=options.user_id,
            document_ids=options.document_ids,
            top_k=options.top_k,
            similarity_threshold=options.similarity_threshold,
            use_rag=options.use_rag,
        )

        error: str | None = None
        try:
            retrieval = await self._retriever.retrieve(retrieval_options)
        except (EmbeddingError, VectorStoreError) as exc:
            error = str(exc)
            logger.warning("retrieval_degraded", error=error, query=options.query[:80])
            retrieval = RetrievalResult(query=transform.query)

        rag_context = self._assembler.build_rag_prompt(
            options.query, retrieval, options.custom_system_prompt
        )
        return QueryResult(
            rag_context=rag_context,
            transformed_query=transform.query,
            transform=transform,
            retrieval=retrieval,
            degraded=error is not None,
            error=error,
        )

    async def retrieve(self, options: RetrievalOptions) -> RetrieveResult:
        """Retrieve chunks and their citations; errors propagate."""
        result = await self._retriever.retrieve(options)
        return RetrieveResult(
            chunks=result.chunks,
            citations=[
                Citation(
                    chunk_id=c.id,
                    document_id=c.document_id,
                    document_name=c.document_name,
                    score=c.score,
                    content=c.content,
                    start_char=c.start_char,
                    end_char=c.end_char,
                )
                for c in result.chunks
            ],
        )

    async def find_relevant_documents(
        self, user_id: str, query: str, top_k: int = 5
    ) -> list[RetrievedChunk]:
        result = await self._retriever.retrieve(
            RetrievalOptions(query=query, user_id=user_id, top_k=top_k)
        )
        return result.chunks
