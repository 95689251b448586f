"""Unit tests for the ChromaDB vector store provider.

Runs against a real ``PersistentClient`` in a temporary directory; skipped
when the optional ``chromadb`` extra is not installed.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

pytest.importorskip("chromadb")

from ragpipe.models.rag import SearchFilter, VectorRecord  # noqa: E402
from ragpipe.providers.vector_store.chromadb_provider import ChromaDBProvider  # noqa: E402
from ragpipe.utils.errors import VectorStoreError  # noqa: E402

_DIM = 4


def _record(doc: str, index: int, vector: list[float], user: str = "user-1") -> VectorRecord:
    return VectorRecord(
        id=VectorRecord.make_id(doc, index),
        document_id=doc,
        chunk_index=index,
        embedding=vector,
        content=f"{doc} chunk {index}",
        metadata={"user_id": user, "document_name": doc, "tags": ["a", "b"]},
    )


@pytest_asyncio.fixture
async def provider(tmp_path):
    store = ChromaDBProvider(
        dimension=_DIM,
        persist_directory=str(tmp_path / "chroma"),
        collection_name="test_collection",
    )
    await store.initialize()
    return store


class TestChromaDBProvider:
    def test_get_provider_name(self, tmp_path) -> None:
        store = ChromaDBProvider(dimension=_DIM, persist_directory=str(tmp_path / "c"))
        assert store.get_provider_name() == "chroma"

    @pytest.mark.asyncio
    async def test_use_before_initialize_raises(self, tmp_path) -> None:
        store = ChromaDBProvider(dimension=_DIM, persist_directory=str(tmp_path / "c"))
        with pytest.raises(VectorStoreError):
            await store.get_stats()

    @pytest.mark.asyncio
    async def test_upsert_and_search(self, provider) -> None:
        await provider.upsert(
            [
                _record("doc-a", 0, [1.0, 0.0, 0.0, 0.0]),
                _record("doc-a", 1, [0.0, 1.0, 0.0, 0.0]),
                _record("doc-b", 0, [0.9, 0.1, 0.0, 0.0], user="user-2"),
            ]
        )

        results = await provider.search(
            [1.0, 0.0, 0.0, 0.0], top_k=5, search_filter=SearchFilter(user_id="user-1")
        )

        assert [r.id for r in results] == ["doc-a-chunk-0", "doc-a-chunk-1"]
        assert results[0].score == pytest.approx(1.0, abs=1e-4)
        assert results[0].metadata["tags"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_search_empty_store(self, provider) -> None:
        assert await provider.search([1.0, 0.0, 0.0, 0.0], top_k=3) == []

    @pytest.mark.asyncio
    async def test_delete_document(self, provider) -> None:
        await provider.upsert(
            [_record("doc-a", i, [1.0, float(i), 0.0, 0.0]) for i in range(3)]
            + [_record("doc-b", 0, [0.0, 0.0, 1.0, 0.0])]
        )

        assert await provider.delete("doc-a") == 3
        stats = await provider.get_stats()
        assert stats.total_vectors == 1
        assert await provider.search(
            [1.0, 0.0, 0.0, 0.0], top_k=5, search_filter=SearchFilter(document_ids=["doc-a"])
        ) == []

    def test_translate_filter_combines_clauses(self) -> None:
        where = ChromaDBProvider._translate_filter(
            SearchFilter(user_id="u", document_ids=["d1", "d2"])
        )
        assert where == {"$and": [{"user_id": "u"}, {"document_id": {"$in": ["d1", "d2"]}}]}
