"""Unit tests for the Retriever: thresholding, top-K, filters and reranking."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ragpipe.config.rag_config import RagConfig
from ragpipe.interfaces.reranker import IReranker
from ragpipe.models.rag import VectorRecord, VectorSearchResult
from ragpipe.providers.vector_store.memory_provider import InMemoryVectorStore
from ragpipe.services.retrieval.retriever import RetrievalOptions, Retriever
from ragpipe.utils.errors import EmbeddingError
from tests.conftest import (
    EMBEDDING_DIM,
    FailingEmbeddingProvider,
    FixedScoreVectorStore,
    MockEmbeddingProvider,
    make_search_row,
)


def _config(**overrides) -> RagConfig:
    base = {
        "embedding_dimension": EMBEDDING_DIM,
        "vector_dimension": EMBEDDING_DIM,
        "similarity_threshold": 0.7,
        "retrieval_top_k": 5,
    }
    base.update(overrides)
    return RagConfig(**base)


class _ReversingReranker(IReranker):
    def __init__(self) -> None:
        self.seen: list[str] = []

    async def rerank(self, query, results, top_k):
        self.seen = [r.id for r in results]
        return list(reversed(results))[:top_k]

    def get_name(self) -> str:
        return "reverse"


class TestRetrieve:
    """Candidates pass through threshold, optional rerank and truncation."""

    @pytest.mark.asyncio
    async def test_threshold_keeps_first_two_in_order(self) -> None:
        store = FixedScoreVectorStore(
            [make_search_row(0, 0.9), make_search_row(1, 0.75), make_search_row(2, 0.5)]
        )
        retriever = Retriever(store, MockEmbeddingProvider(), _config())

        result = await retriever.retrieve(RetrievalOptions(query="q", user_id="user-1"))

        assert [c.score for c in result.chunks] == [0.9, 0.75]
        assert [c.id for c in result.chunks] == ["doc-1-chunk-0", "doc-1-chunk-1"]
        assert result.total_candidates == 3
        assert result.query == "q"

    @pytest.mark.asyncio
    async def test_fetches_twice_top_k_with_tenant_filter(self) -> None:
        store = FixedScoreVectorStore([make_search_row(i, 0.95 - i * 0.01) for i in range(8)])
        retriever = Retriever(store, MockEmbeddingProvider(), _config())

        result = await retriever.retrieve(
            RetrievalOptions(query="q", user_id="user-1", document_ids=["doc-1"], top_k=3)
        )

        assert len(result.chunks) == 3
        assert store.last_top_k == 6
        assert store.last_filter.user_id == "user-1"
        assert store.last_filter.document_ids == ["doc-1"]

    @pytest.mark.asyncio
    async def test_per_call_threshold_overrides_config(self) -> None:
        store = FixedScoreVectorStore(
            [make_search_row(0, 0.9), make_search_row(1, 0.75), make_search_row(2, 0.5)]
        )
        retriever = Retriever(store, MockEmbeddingProvider(), _config())

        result = await retriever.retrieve(
            RetrievalOptions(query="q", user_id="user-1", similarity_threshold=0.0)
        )

        assert len(result.chunks) == 3

    @pytest.mark.asyncio
    async def test_score_equal_to_threshold_passes(self) -> None:
        store = FixedScoreVectorStore([make_search_row(0, 0.7)])
        retriever = Retriever(store, MockEmbeddingProvider(), _config())

        result = await retriever.retrieve(RetrievalOptions(query="q", user_id="user-1"))

        assert len(result.chunks) == 1

    @pytest.mark.asyncio
    async def test_chunk_fields_come_from_metadata(self) -> None:
        store = FixedScoreVectorStore([make_search_row(2, 0.8, document_name="Guide")])
        retriever = Retriever(store, MockEmbeddingProvider(), _config())

        chunk = (await retriever.retrieve(RetrievalOptions(query="q", user_id="user-1"))).chunks[0]

        assert chunk.document_name == "Guide"
        assert (chunk.start_char, chunk.end_char) == (200, 250)
        assert chunk.chunk_index == 2

    @pytest.mark.asyncio
    async def test_missing_document_name_defaults_to_unknown(self) -> None:
        row = VectorSearchResult(id="x-chunk-0", document_id="x", content="c", score=0.9)
        retriever = Retriever(FixedScoreVectorStore([row]), MockEmbeddingProvider(), _config())

        chunk = (await retriever.retrieve(RetrievalOptions(query="q", user_id="u"))).chunks[0]

        assert chunk.document_name == "Unknown"

    @pytest.mark.asyncio
    async def test_use_rag_false_skips_search(self) -> None:
        provider = MockEmbeddingProvider()
        store = FixedScoreVectorStore([make_search_row(0, 0.9)])
        retriever = Retriever(store, provider, _config())

        result = await retriever.retrieve(
            RetrievalOptions(query="q", user_id="user-1", use_rag=False)
        )

        assert result.chunks == []
        assert provider.calls == []
        assert store.last_top_k is None

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self) -> None:
        retriever = Retriever(
            FixedScoreVectorStore([]), FailingEmbeddingProvider(), _config()
        )
        with pytest.raises(EmbeddingError):
            await retriever.retrieve(RetrievalOptions(query="q", user_id="u"))

    def test_invalid_options_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetrievalOptions(query="q", user_id="u", top_k=0)
        with pytest.raises(ValidationError):
            RetrievalOptions(query="q", user_id="u", similarity_threshold=1.5)


class TestRerank:
    """The reranker only runs when enabled, and only on passing candidates."""

    @pytest.mark.asyncio
    async def test_reranker_applied_when_enabled(self) -> None:
        rows = [make_search_row(i, s) for i, s in enumerate([0.9, 0.8, 0.75, 0.2])]
        reranker = _ReversingReranker()
        retriever = Retriever(
            FixedScoreVectorStore(rows),
            MockEmbeddingProvider(),
            _config(rerank_enabled=True),
            reranker,
        )

        result = await retriever.retrieve(
            RetrievalOptions(query="q", user_id="user-1", top_k=2)
        )

        assert reranker.seen == ["doc-1-chunk-0", "doc-1-chunk-1", "doc-1-chunk-2"]
        assert [c.chunk_index for c in result.chunks] == [2, 1]

    @pytest.mark.asyncio
    async def test_reranker_ignored_when_disabled(self) -> None:
        rows = [make_search_row(i, s) for i, s in enumerate([0.9, 0.8])]
        reranker = _ReversingReranker()
        retriever = Retriever(
            FixedScoreVectorStore(rows), MockEmbeddingProvider(), _config(), reranker
        )

        result = await retriever.retrieve(RetrievalOptions(query="q", user_id="user-1"))

        assert reranker.seen == []
        assert [c.chunk_index for c in result.chunks] == [0, 1]


class TestDocumentContext:
    """get_document_context concatenates stored chunks within a budget."""

    @staticmethod
    async def _store_with(
        contents: dict[str, list[str]], owners: dict[str, str] | None = None
    ) -> InMemoryVectorStore:
        store = InMemoryVectorStore(EMBEDDING_DIM)
        provider = MockEmbeddingProvider()
        records = []
        for doc_id, texts in contents.items():
            for i, text in enumerate(texts):
                vector = (await provider.embed_single(text)).embedding
                records.append(
                    VectorRecord(
                        id=VectorRecord.make_id(doc_id, i),
                        document_id=doc_id,
                        chunk_index=i,
                        embedding=vector,
                        content=text,
                        metadata={"user_id": (owners or {}).get(doc_id, "u")},
                    )
                )
        await store.upsert(records)
        return store

    @pytest.mark.asyncio
    async def test_joins_documents_in_order(self) -> None:
        store = await self._store_with({"a": ["A one", "A two"], "b": ["B one"]})
        retriever = Retriever(store, MockEmbeddingProvider(), _config())

        context = await retriever.get_document_context("u", ["a", "b"])

        assert context == "A one\n\n---\n\nA two\n\n---\n\nB one"

    @pytest.mark.asyncio
    async def test_stops_at_budget(self) -> None:
        store = await self._store_with({"a": ["x" * 30, "y" * 30, "z" * 30]})
        retriever = Retriever(store, MockEmbeddingProvider(), _config())

        context = await retriever.get_document_context("u", ["a"], max_tokens=16)

        assert context == "x" * 30 + "\n\n---\n\n" + "y" * 30

    @pytest.mark.asyncio
    async def test_other_users_documents_are_excluded(self) -> None:
        store = await self._store_with(
            {"mine": ["Mine one"], "theirs": ["Secret one", "Secret two"]},
            owners={"theirs": "someone-else"},
        )
        retriever = Retriever(store, MockEmbeddingProvider(), _config())

        context = await retriever.get_document_context("u", ["theirs", "mine"])

        assert context == "Mine one"
        assert await retriever.get_document_context("u", ["theirs"]) == ""
