"""Unit tests for RagQueryService orchestration and degraded mode."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from ragpipe.config.rag_config import RagConfig
from ragpipe.models.rag import QueryTransformKind
from ragpipe.services.retrieval.context_assembler import NO_CONTEXT_MARKER, ContextAssembler
from ragpipe.services.retrieval.query_service import QueryOptions, RagQueryService
from ragpipe.services.retrieval.retriever import RetrievalOptions, Retriever
from ragpipe.utils.errors import EmbeddingError, VectorStoreError
from tests.conftest import (
    EMBEDDING_DIM,
    BrokenVectorStore,
    FailingEmbeddingProvider,
    FixedScoreVectorStore,
    MockEmbeddingProvider,
    make_search_row,
)


def _service(
    provider=None, rows=None, store=None
) -> tuple[RagQueryService, MockEmbeddingProvider]:
    config = RagConfig(
        embedding_dimension=EMBEDDING_DIM,
        vector_dimension=EMBEDDING_DIM,
        similarity_threshold=0.7,
    )
    provider = provider or MockEmbeddingProvider()
    if store is None:
        store = FixedScoreVectorStore(
            rows if rows is not None else [make_search_row(0, 0.9), make_search_row(1, 0.5)]
        )
    retriever = Retriever(store, provider, config)
    return RagQueryService(retriever, ContextAssembler(config)), provider


class TestQuery:
    @pytest.mark.asyncio
    async def test_builds_prompt_from_retrieved_chunks(self) -> None:
        service, _ = _service()

        result = await service.query(QueryOptions(query="what?", user_id="user-1"))

        assert not result.degraded
        assert len(result.retrieval.chunks) == 1
        assert result.rag_context.context == "[1]\nChunk 0 content."
        assert result.rag_context.citations[0].chunk_id == "doc-1-chunk-0"

    @pytest.mark.asyncio
    async def test_hyde_without_generator_retrieves_with_original_query(self) -> None:
        service, _ = _service()
        retrieve = AsyncMock(wraps=service._retriever.retrieve)
        service._retriever.retrieve = retrieve

        result = await service.query(
            QueryOptions(query="original?", user_id="user-1", transform_query="hyde")
        )

        assert result.transform.fallback is True
        assert result.transform.requested is QueryTransformKind.HYDE
        assert result.transformed_query == "original?"
        sent: RetrievalOptions = retrieve.await_args.args[0]
        assert sent.query == "original?"
        assert len(result.retrieval.chunks) == 1

    @pytest.mark.asyncio
    async def test_hyde_document_drives_retrieval(self) -> None:
        service, _ = _service()
        generate = AsyncMock(return_value="A hypothetical answer.")

        result = await service.query(
            QueryOptions(
                query="original?",
                user_id="user-1",
                transform_query=QueryTransformKind.HYDE,
                llm_generate=generate,
            )
        )

        assert result.transformed_query == "A hypothetical answer."
        assert result.retrieval.query == "A hypothetical answer."

    @pytest.mark.asyncio
    async def test_retrieval_failure_degrades_to_no_context(self) -> None:
        service, _ = _service(provider=FailingEmbeddingProvider())

        result = await service.query(QueryOptions(query="what?", user_id="user-1"))

        assert result.degraded is True
        assert "embedding backend down" in result.error
        assert result.retrieval.chunks == []
        assert NO_CONTEXT_MARKER in result.rag_context.prompt

    @pytest.mark.asyncio
    async def test_vector_store_failure_degrades_to_no_context(self) -> None:
        service, _ = _service(store=BrokenVectorStore(fail_search=True))

        result = await service.query(QueryOptions(query="what?", user_id="user-1"))

        assert result.degraded is True
        assert "index unavailable" in result.error
        assert result.retrieval.chunks == []
        assert result.rag_context.citations == []
        assert NO_CONTEXT_MARKER in result.rag_context.prompt

    @pytest.mark.asyncio
    async def test_custom_system_prompt(self) -> None:
        service, _ = _service()
        result = await service.query(
            QueryOptions(query="q", user_id="user-1", custom_system_prompt="Be brief.")
        )
        assert result.rag_context.prompt.startswith("Be brief.")


class TestRetrieveAndFind:
    @pytest.mark.asyncio
    async def test_retrieve_returns_chunks_with_citations(self) -> None:
        service, _ = _service()

        result = await service.retrieve(RetrievalOptions(query="q", user_id="user-1"))

        assert [c.id for c in result.chunks] == ["doc-1-chunk-0"]
        assert result.citations[0].start_char == 0
        assert result.citations[0].document_name == "Handbook"

    @pytest.mark.asyncio
    async def test_retrieve_propagates_errors(self) -> None:
        service, _ = _service(provider=FailingEmbeddingProvider())
        with pytest.raises(EmbeddingError):
            await service.retrieve(RetrievalOptions(query="q", user_id="user-1"))

    @pytest.mark.asyncio
    async def test_retrieve_propagates_vector_store_errors(self) -> None:
        service, _ = _service(store=BrokenVectorStore(fail_search=True))
        with pytest.raises(VectorStoreError, match="index unavailable"):
            await service.retrieve(RetrievalOptions(query="q", user_id="user-1"))

    @pytest.mark.asyncio
    async def test_find_relevant_documents(self) -> None:
        rows = [make_search_row(i, 0.95 - i * 0.01) for i in range(6)]
        service, _ = _service(rows=rows)

        chunks = await service.find_relevant_documents("user-1", "q", top_k=2)

        assert [c.chunk_index for c in chunks] == [0, 1]
