"""Unit tests for the in-memory vector store and the store registry."""

from __future__ import annotations

import math
from unittest.mock import patch

import pytest

from ragpipe.config.settings import Settings
from ragpipe.models.rag import SearchFilter, VectorRecord
from ragpipe.providers.vector_store.memory_provider import InMemoryVectorStore
from ragpipe.providers.vector_store.registry import build_vector_store
from ragpipe.utils.errors import (
    ConfigurationError,
    ProviderUnavailableError,
    VectorStoreError,
)
from tests.conftest import _hash_to_vector

_DIM = 8


def _record(doc: str, index: int, user: str = "user-1", vector: list[float] | None = None) -> VectorRecord:
    return VectorRecord(
        id=VectorRecord.make_id(doc, index),
        document_id=doc,
        chunk_index=index,
        embedding=vector or _hash_to_vector(f"{doc}:{index}", _DIM),
        content=f"{doc} chunk {index}",
        metadata={"user_id": user, "document_name": doc.upper()},
    )


def _records() -> list[VectorRecord]:
    return [_record("doc-a", i) for i in range(4)] + [
        _record("doc-b", i, user="user-2") for i in range(3)
    ]


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class TestInMemoryVectorStore:
    """Exact cosine search with filters, upsert semantics and deletion."""

    @pytest.mark.asyncio
    async def test_search_respects_top_k_and_orders_by_score(self) -> None:
        store = InMemoryVectorStore(_DIM)
        await store.upsert(_records())

        results = await store.search(_hash_to_vector("anything", _DIM), top_k=3)

        assert len(results) == 3
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_exact_embedding_scores_highest(self) -> None:
        store = InMemoryVectorStore(_DIM)
        records = _records()
        await store.upsert(records)
        target = records[2]

        results = await store.search(target.embedding, top_k=len(records))

        assert results[0].id == target.id
        assert math.isclose(results[0].score, 1.0, abs_tol=1e-9)

    @pytest.mark.asyncio
    async def test_delete_removes_every_record_of_document(self) -> None:
        store = InMemoryVectorStore(_DIM)
        await store.upsert(_records())
        before = (await store.get_stats()).total_vectors

        deleted = await store.delete("doc-a")

        assert deleted == 4
        assert (await store.get_stats()).total_vectors == before - 4
        remaining = await store.search(
            _hash_to_vector("q", _DIM), top_k=10, search_filter=SearchFilter(document_ids=["doc-a"])
        )
        assert remaining == []

    @pytest.mark.asyncio
    async def test_user_filter_isolates_tenants(self) -> None:
        store = InMemoryVectorStore(_DIM)
        await store.upsert(_records())

        results = await store.search(
            _hash_to_vector("q", _DIM), top_k=10, search_filter=SearchFilter(user_id="user-2")
        )

        assert {r.document_id for r in results} == {"doc-b"}
        assert all(r.metadata["user_id"] == "user-2" for r in results)

    @pytest.mark.asyncio
    async def test_upsert_replaces_by_id(self) -> None:
        store = InMemoryVectorStore(_DIM)
        await store.upsert([_record("doc-a", 0)])
        replacement = _record("doc-a", 0).model_copy(update={"content": "rewritten"})
        await store.upsert([replacement])

        results = await store.search(replacement.embedding, top_k=5)

        assert len(results) == 1
        assert results[0].content == "rewritten"

    @pytest.mark.asyncio
    async def test_ties_keep_insertion_order(self) -> None:
        store = InMemoryVectorStore(_DIM)
        same = [1.0] + [0.0] * (_DIM - 1)
        await store.upsert([_record("doc-t", i, vector=same) for i in range(5)])

        results = await store.search(same, top_k=5)

        assert [r.chunk_index for r in results] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self) -> None:
        store = InMemoryVectorStore(_DIM)
        with pytest.raises(VectorStoreError):
            await store.upsert([_record("doc-a", 0, vector=[1.0, 0.0])])
        with pytest.raises(VectorStoreError):
            await store.search([1.0], top_k=1)

    @pytest.mark.asyncio
    async def test_delete_chunk(self) -> None:
        store = InMemoryVectorStore(_DIM)
        await store.upsert(_records())
        assert await store.delete_chunk("doc-a-chunk-1") is True
        assert await store.delete_chunk("doc-a-chunk-1") is False
        assert (await store.get_stats()).total_vectors == 6


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestVectorStoreRegistry:
    """Names resolve once; unknown names fail fast."""

    def test_memory_is_default(self) -> None:
        store = build_vector_store(Settings(_env_file=None), 12)
        assert isinstance(store, InMemoryVectorStore)
        assert store.get_dimension() == 12

    @pytest.mark.parametrize("name", ["faiss", "milvus", ""])
    def test_unknown_names_raise(self, name: str) -> None:
        with pytest.raises(ConfigurationError):
            build_vector_store(Settings(_env_file=None, vector_store=name), 12)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"vector_store": "qdrant", "qdrant_url": ""},
            {"vector_store": "pinecone", "pinecone_api_key": ""},
            {"vector_store": "weaviate", "weaviate_url": ""},
        ],
    )
    def test_missing_connection_setting_raises(self, overrides: dict) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            build_vector_store(Settings(_env_file=None, **overrides), 12)
        assert exc_info.value.provider_name == overrides["vector_store"]

    @pytest.mark.parametrize(
        ("overrides", "library"),
        [
            ({"vector_store": "chroma"}, "chromadb"),
            ({"vector_store": "qdrant"}, "qdrant_client"),
            ({"vector_store": "pinecone", "pinecone_api_key": "pc-test"}, "pinecone"),
            ({"vector_store": "weaviate", "weaviate_url": "http://weaviate:8080"}, "weaviate"),
        ],
    )
    def test_missing_client_library_raises(self, overrides: dict, library: str) -> None:
        settings = Settings(_env_file=None, **overrides)
        with patch("importlib.util.find_spec", return_value=None):
            with pytest.raises(ProviderUnavailableError, match=library):
                build_vector_store(settings, 12)

    def test_qdrant_store_built_from_settings(self) -> None:
        pytest.importorskip("qdrant_client")
        settings = Settings(
            _env_file=None,
            vector_store="qdrant",
            qdrant_url="http://qdrant.internal:6333",
            qdrant_collection="handbook",
        )

        store = build_vector_store(settings, 12)

        assert store.get_provider_name() == "qdrant"
        assert store.get_dimension() == 12
        assert store._collection == "handbook"
