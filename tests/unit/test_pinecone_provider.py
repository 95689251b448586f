"""Unit tests for the Pinecone vector store provider.

The SDK client and index are replaced with mocks; skipped when the optional
``pinecone`` extra is not installed.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

pytest.importorskip("pinecone")

from ragpipe.models.rag import SearchFilter, VectorRecord  # noqa: E402
from ragpipe.providers.vector_store.pinecone_provider import PineconeVectorStore  # noqa: E402
from ragpipe.utils.errors import VectorStoreError  # noqa: E402

_DIM = 4


def _record(doc: str, index: int, user: str = "user-1") -> VectorRecord:
    return VectorRecord(
        id=VectorRecord.make_id(doc, index),
        document_id=doc,
        chunk_index=index,
        embedding=[1.0, 0.0, 0.0, float(index)],
        content=f"{doc} chunk {index}",
        metadata={"user_id": user, "document_name": doc, "tags": ["a", "b"], "page": None},
    )


def _client(existing: list[str] | None = None, dimension: int = _DIM) -> MagicMock:
    client = MagicMock()
    client.list_indexes.return_value.names.return_value = existing or []
    client.describe_index.return_value = SimpleNamespace(dimension=dimension)
    return client


@pytest_asyncio.fixture
async def client():
    return _client()


@pytest_asyncio.fixture
async def store(client):
    provider = PineconeVectorStore(_DIM, index_name="chunks", namespace="team-a", client=client)
    await provider.initialize()
    return provider


class TestInitialize:
    @pytest.mark.asyncio
    async def test_creates_missing_cosine_index(self, client, store) -> None:
        kwargs = client.create_index.call_args.kwargs
        assert kwargs["name"] == "chunks"
        assert kwargs["dimension"] == _DIM
        assert kwargs["metric"] == "cosine"
        client.Index.assert_called_once_with("chunks")

    @pytest.mark.asyncio
    async def test_existing_index_is_not_recreated(self) -> None:
        client = _client(existing=["chunks"])
        await PineconeVectorStore(_DIM, index_name="chunks", client=client).initialize()
        client.create_index.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_dimension_mismatch(self) -> None:
        client = _client(existing=["chunks"], dimension=1536)
        with pytest.raises(VectorStoreError, match="1536-dim"):
            await PineconeVectorStore(_DIM, index_name="chunks", client=client).initialize()

    @pytest.mark.asyncio
    async def test_sdk_failure_is_wrapped(self) -> None:
        client = _client()
        client.list_indexes.side_effect = RuntimeError("unauthorized")
        with pytest.raises(VectorStoreError) as exc_info:
            await PineconeVectorStore(_DIM, client=client).initialize()
        assert exc_info.value.provider_name == "pinecone"

    @pytest.mark.asyncio
    async def test_use_before_initialize_raises(self) -> None:
        with pytest.raises(VectorStoreError):
            await PineconeVectorStore(_DIM, client=_client()).get_stats()


class TestUpsertAndSearch:
    @pytest.mark.asyncio
    async def test_upsert_flattens_metadata_into_namespace(self, client, store) -> None:
        assert await store.upsert([_record("doc-a", 0), _record("doc-a", 1)]) == 2

        index = client.Index.return_value
        kwargs = index.upsert.call_args.kwargs
        assert kwargs["namespace"] == "team-a"
        first = kwargs["vectors"][0]
        assert first["id"] == "doc-a-chunk-0"
        assert first["values"] == [1.0, 0.0, 0.0, 0.0]
        assert first["metadata"]["content"] == "doc-a chunk 0"
        assert first["metadata"]["document_id"] == "doc-a"
        assert first["metadata"]["json:tags"] == '["a", "b"]'
        assert "page" not in first["metadata"]

    @pytest.mark.asyncio
    async def test_upsert_pages_large_batches(self, client, store) -> None:
        await store.upsert([_record("doc-a", i) for i in range(250)])
        sizes = [len(c.kwargs["vectors"]) for c in client.Index.return_value.upsert.call_args_list]
        assert sizes == [100, 100, 50]

    @pytest.mark.asyncio
    async def test_search_translates_filter_and_restores_metadata(self, client, store) -> None:
        index = client.Index.return_value
        index.query.return_value = SimpleNamespace(
            matches=[
                SimpleNamespace(
                    id="doc-a-chunk-1",
                    score=0.42,
                    metadata={
                        "document_id": "doc-a",
                        "chunk_index": 1.0,
                        "content": "second",
                        "json:tags": '["a"]',
                    },
                ),
                SimpleNamespace(
                    id="doc-a-chunk-0",
                    score=0.91,
                    metadata={"document_id": "doc-a", "chunk_index": 0.0, "content": "first"},
                ),
            ]
        )

        results = await store.search(
            [1.0, 0.0, 0.0, 0.0],
            top_k=2,
            search_filter=SearchFilter(user_id="user-1", document_ids=["doc-a"]),
        )

        kwargs = index.query.call_args.kwargs
        assert kwargs["filter"] == {"user_id": {"$eq": "user-1"}, "document_id": {"$in": ["doc-a"]}}
        assert kwargs["top_k"] == 2
        assert kwargs["include_metadata"] is True
        assert [r.id for r in results] == ["doc-a-chunk-0", "doc-a-chunk-1"]
        assert results[1].chunk_index == 1
        assert results[1].content == "second"
        assert results[1].metadata["tags"] == ["a"]
        assert "content" not in results[1].metadata

    @pytest.mark.asyncio
    async def test_search_without_filter_omits_it(self, client, store) -> None:
        client.Index.return_value.query.return_value = SimpleNamespace(matches=[])
        assert await store.search([0.0] * _DIM, top_k=3) == []
        assert "filter" not in client.Index.return_value.query.call_args.kwargs

    @pytest.mark.asyncio
    async def test_query_failure_is_wrapped(self, client, store) -> None:
        client.Index.return_value.query.side_effect = RuntimeError("503")
        with pytest.raises(VectorStoreError, match="503"):
            await store.search([0.0] * _DIM, top_k=3)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_lists_by_id_prefix(self, client, store) -> None:
        index = client.Index.return_value
        index.list.side_effect = [
            iter([["doc-a-chunk-0", "doc-a-chunk-1"], ["doc-a-chunk-2"]]),
            iter([]),
        ]

        assert await store.delete("doc-a") == 3

        assert index.list.call_args.kwargs == {"prefix": "doc-a-chunk-", "namespace": "team-a"}
        index.delete.assert_called_once_with(
            ids=["doc-a-chunk-0", "doc-a-chunk-1", "doc-a-chunk-2"], namespace="team-a"
        )

    @pytest.mark.asyncio
    async def test_lagging_listing_does_not_double_count(self, client, store) -> None:
        index = client.Index.return_value
        index.list.side_effect = [iter([["doc-a-chunk-0"]]), iter([["doc-a-chunk-0"]]), iter([])]
        assert await store.delete("doc-a") == 1

    @pytest.mark.asyncio
    async def test_vectors_that_never_disappear_raise(self, client, store) -> None:
        index = client.Index.return_value
        index.list.side_effect = lambda **kwargs: iter([["doc-a-chunk-0"]])
        with pytest.raises(VectorStoreError, match="remain after"):
            await store.delete("doc-a")

    @pytest.mark.asyncio
    async def test_delete_chunk(self, client, store) -> None:
        index = client.Index.return_value
        index.fetch.return_value = SimpleNamespace(vectors={"doc-a-chunk-0": object()})
        assert await store.delete_chunk("doc-a-chunk-0") is True
        index.delete.assert_called_once_with(ids=["doc-a-chunk-0"], namespace="team-a")

        index.fetch.return_value = SimpleNamespace(vectors={})
        assert await store.delete_chunk("doc-a-chunk-9") is False


class TestStats:
    @pytest.mark.asyncio
    async def test_namespace_count(self, client, store) -> None:
        client.Index.return_value.describe_index_stats.return_value = SimpleNamespace(
            total_vector_count=50,
            namespaces={"team-a": SimpleNamespace(vector_count=7)},
        )
        stats = await store.get_stats()
        assert stats.total_vectors == 7
        assert stats.dimension == _DIM

    @pytest.mark.asyncio
    async def test_default_namespace_uses_total(self) -> None:
        client = _client()
        client.Index.return_value.describe_index_stats.return_value = SimpleNamespace(
            total_vector_count=50, namespaces={}
        )
        store = PineconeVectorStore(_DIM, client=client)
        await store.initialize()
        assert (await store.get_stats()).total_vectors == 50
