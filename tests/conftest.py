"""Shared pytest fixtures for the ragpipe test suite."""

from __future__ import annotations

import hashlib
import struct
from pathlib import Path

import pytest

from ragpipe.config.rag_config import RagConfig
from ragpipe.interfaces.embedding_provider import IEmbeddingProvider
from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.models.rag import (
    EmbeddingResult,
    SearchFilter,
    VectorRecord,
    VectorSearchResult,
    VectorStoreStats,
)
from ragpipe.providers.storage.memory_document_store import InMemoryDocumentStore
from ragpipe.providers.vector_store.memory_provider import InMemoryVectorStore
from ragpipe.utils.errors import EmbeddingError, VectorStoreError

# ---------------------------------------------------------------------------
# Embedding fixtures
# ---------------------------------------------------------------------------

EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length vector by hashing *text*.

    Uses SHA-256 to hash the text, then unpacks bytes into floats and
    normalises to unit length.  Same text, same vector.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # Unsigned ints keep every value finite (raw float bytes can be NaN).
    values = [v / 2**32 - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic hash-based embedding provider.

    Records the size of every backend call in ``calls``.  Texts listed in
    ``fail_on`` make the sub-batch containing them raise ``EmbeddingError``.
    """

    def __init__(
        self,
        dim: int = EMBEDDING_DIM,
        max_batch_size: int = 16,
        fail_on: set[str] | None = None,
    ) -> None:
        self._dim = dim
        self._max_batch_size = max_batch_size
        self.fail_on = fail_on or set()
        self.calls: list[int] = []

    async def _embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        self.calls.append(len(texts))
        if any(t in self.fail_on for t in texts):
            raise EmbeddingError("scripted failure", provider_name="mock")
        return [
            EmbeddingResult(
                embedding=_hash_to_vector(t, self._dim),
                tokens_used=len(t.split()),
                model="mock-model",
                provider="mock",
            )
            for t in texts
        ]

    def get_dimension(self) -> int:
        return self._dim

    def get_max_batch_size(self) -> int:
        return self._max_batch_size

    def get_provider_name(self) -> str:
        return "mock"

    def get_model_name(self) -> str:
        return "mock-model"

    def is_available(self) -> bool:
        return True


class FailingEmbeddingProvider(MockEmbeddingProvider):
    """Every backend call fails."""

    async def _embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        self.calls.append(len(texts))
        raise EmbeddingError("embedding backend down", provider_name="mock")


# ---------------------------------------------------------------------------
# Vector store fixtures
# ---------------------------------------------------------------------------


class FixedScoreVectorStore(IVectorStoreProvider):
    """Returns pre-scripted search rows regardless of the query vector.

    Rows come back in the given order (callers supply them best-first);
    ``last_top_k`` and ``last_filter`` capture the most recent search.
    """

    def __init__(self, rows: list[VectorSearchResult], dim: int = EMBEDDING_DIM) -> None:
        self._rows = rows
        self._dim = dim
        self.last_top_k: int | None = None
        self.last_filter: SearchFilter | None = None

    async def upsert(self, records: list[VectorRecord]) -> int:
        return len(records)

    async def search(
        self,
        query_embedding: list[float],
        top_k: int,
        search_filter: SearchFilter | None = None,
    ) -> list[VectorSearchResult]:
        self.last_top_k = top_k
        self.last_filter = search_filter
        return self._rows[:top_k]

    async def delete(self, document_id: str) -> int:
        return 0

    async def delete_chunk(self, chunk_id: str) -> bool:
        return False

    async def get_stats(self) -> VectorStoreStats:
        return VectorStoreStats(total_vectors=len(self._rows), dimension=self._dim)

    def get_dimension(self) -> int:
        return self._dim

    def get_provider_name(self) -> str:
        return "fixed"


class BrokenVectorStore(InMemoryVectorStore):
    """In-memory store with scripted failures.

    Upsert calls whose 1-based number is in ``fail_upserts`` raise
    ``VectorStoreError`` after writing their records, the way a backend can
    fail part-way through a page.  ``fail_search`` makes every search raise.
    """

    def __init__(
        self,
        dim: int = EMBEDDING_DIM,
        fail_upserts: set[int] | None = None,
        fail_search: bool = False,
    ) -> None:
        super().__init__(dim)
        self.fail_upserts = fail_upserts or set()
        self.fail_search = fail_search
        self.upsert_calls = 0

    async def upsert(self, records: list[VectorRecord]) -> int:
        self.upsert_calls += 1
        written = await super().upsert(records)
        if self.upsert_calls in self.fail_upserts:
            raise VectorStoreError("index unavailable", provider_name="broken")
        return written

    async def search(
        self,
        query_embedding: list[float],
        top_k: int,
        search_filter: SearchFilter | None = None,
    ) -> list[VectorSearchResult]:
        if self.fail_search:
            raise VectorStoreError("index unavailable", provider_name="broken")
        return await super().search(query_embedding, top_k, search_filter)


def make_search_row(
    index: int,
    score: float,
    document_id: str = "doc-1",
    content: str | None = None,
    document_name: str = "Handbook",
) -> VectorSearchResult:
    return VectorSearchResult(
        id=VectorRecord.make_id(document_id, index),
        document_id=document_id,
        chunk_index=index,
        content=content if content is not None else f"Chunk {index} content.",
        score=score,
        metadata={
            "document_name": document_name,
            "user_id": "user-1",
            "start_char": index * 100,
            "end_char": index * 100 + 50,
        },
    )


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def rag_config() -> RagConfig:
    """Small-dimension config with deterministic defaults."""
    return RagConfig(
        embedding_provider="mock",
        embedding_dimension=EMBEDDING_DIM,
        vector_dimension=EMBEDDING_DIM,
        chunk_size=200,
        chunk_overlap=40,
        min_chunk_size=20,
        similarity_threshold=0.0,
        ingestion_batch_size=4,
    )


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=EMBEDDING_DIM)


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def sqlite_path(tmp_path: Path) -> Path:
    return tmp_path / "db" / "ragpipe.db"


@pytest.fixture
def sample_text() -> str:
    """Multi-paragraph prose with abbreviations and varied sentence lengths."""
    return (
        "Retrieval-augmented generation pairs a search index with a language model. "
        "Documents are split into chunks, embedded, and stored for later lookup.\n\n"
        "Dr. Smith reviewed the ingestion pipeline in detail. She found that chunk "
        "offsets must always point back into the source text, e.g. for citations.\n\n"
        "Query time is simpler. The question is embedded, the nearest chunks are "
        "fetched, and a prompt is assembled under a token budget.\n\n"
        "Short closing note."
    )
