"""RAG pipeline data models.

Defines Pydantic v2 models for chunks, embedding results, vector records,
search results, retrieval output, citations, and the assembled prompt
context.  All models use frozen config so that a value handed from one
pipeline stage to the next cannot be mutated behind its back.

Pipeline overview:

    1. CHUNKING: a parsed document is split into :class:`TextChunk` spans
       carrying character offsets into the source text.
    2. EMBEDDING: each chunk becomes an :class:`EmbeddingResult`; batched
       calls return an :class:`EmbeddingBatchResult` with per-sub-batch
       failures recorded rather than raised.
    3. STORAGE: chunks + embeddings become :class:`VectorRecord` objects
       keyed ``{document_id}-chunk-{index}``.
    4. RETRIEVAL: the vector store returns :class:`VectorSearchResult`
       rows which the retriever converts to :class:`RetrievedChunk`.
    5. ASSEMBLY: retrieved chunks become a numbered or inline-cited
       context and a :class:`RagContext` prompt artifact.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------

class ChunkingStrategy(str, Enum):
    """How the chunker splits text."""

    FIXED = "fixed"
    PARAGRAPH = "paragraph"
    SENTENCE = "sentence"
    SEMANTIC = "semantic"


class TextChunk(BaseModel):
    """A contiguous span of a source document.

    ``content`` is always ``source[start_char:end_char]``; offsets come from
    locating the span in the source text, never from summing lengths.
    """

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="The chunk's textual content.")
    index: int = Field(ge=0, description="Zero-based position in the chunk sequence.")
    start_char: int = Field(ge=0, description="Offset of the first character in the source.")
    end_char: int = Field(ge=0, description="Offset one past the last character in the source.")
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Embedding
# ---------------------------------------------------------------------------

class EmbeddingResult(BaseModel):
    """One embedding vector plus the accounting the provider reported."""

    model_config = ConfigDict(frozen=True)

    embedding: list[float] = Field(description="Dense vector of the provider's dimension.")
    tokens_used: int = Field(default=0, ge=0, description="Tokens billed for this input.")
    model: str = Field(default="", description="Model that produced the vector.")
    provider: str = Field(default="", description="Provider discriminant, e.g. 'openai'.")


class EmbeddingBatchFailure(BaseModel):
    """A sub-batch that failed inside :meth:`IEmbeddingProvider.embed`."""

    model_config = ConfigDict(frozen=True)

    batch_index: int = Field(ge=0, description="Zero-based sub-batch number.")
    start: int = Field(ge=0, description="Input position of the sub-batch's first text.")
    size: int = Field(ge=0, description="Number of inputs in the sub-batch.")
    error: str = Field(description="Human-readable failure reason.")


class EmbeddingBatchResult(BaseModel):
    """Positional embedding output with per-sub-batch failures.

    ``results[i]`` corresponds to the i-th input text and is ``None`` when
    the sub-batch containing it failed.
    """

    model_config = ConfigDict(frozen=True)

    results: list[EmbeddingResult | None] = Field(default_factory=list)
    errors: list[EmbeddingBatchFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r is not None)

    @property
    def failed_indices(self) -> list[int]:
        return [i for i, r in enumerate(self.results) if r is None]

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Vector store
# ---------------------------------------------------------------------------

class VectorRecord(BaseModel):
    """An embedded chunk as persisted in a vector store."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable id, '{document_id}-chunk-{chunk_index}'.")
    document_id: str
    chunk_index: int = Field(ge=0)
    embedding: list[float]
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @staticmethod
    def make_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}-chunk-{chunk_index}"


class SearchFilter(BaseModel):
    """Tenant and document predicates applied by every vector store."""

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    document_ids: list[str] | None = None

    def matches(self, metadata: dict[str, Any], document_id: str) -> bool:
        """Return True when a record with *metadata* passes this filter."""
        if self.user_id is not None and metadata.get("user_id") != self.user_id:
            return False
        if self.document_ids and document_id not in self.document_ids:
            return False
        return True


class VectorSearchResult(BaseModel):
    """One row returned by :meth:`IVectorStoreProvider.search`."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    chunk_index: int = 0
    content: str = ""
    score: float = Field(description="Cosine similarity in [-1, 1]; higher is closer.")
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorStoreStats(BaseModel):
    """Snapshot of a vector store's size."""

    model_config = ConfigDict(frozen=True)

    total_vectors: int = Field(default=0, ge=0)
    dimension: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------

class RetrievedChunk(BaseModel):
    """A chunk surfaced by the retriever, with its similarity score."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    document_name: str = "Unknown"
    content: str
    chunk_index: int = 0
    start_char: int | None = None
    end_char: int | None = None
    score: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)


class RetrievalResult(BaseModel):
    """Ranked retrieval output; ``len(chunks)`` never exceeds the requested top-K."""

    model_config = ConfigDict(frozen=True)

    chunks: list[RetrievedChunk] = Field(default_factory=list)
    total_candidates: int = Field(
        default=0, ge=0, description="Rows the store returned before threshold filtering."
    )
    query: str = ""
    latency_ms: float = Field(default=0.0, ge=0.0)


class Citation(BaseModel):
    """Provenance pointer from assembled context back to its chunk."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    document_name: str
    score: float = 0.0
    content: str = ""
    start_char: int | None = None
    end_char: int | None = None


class RagContextMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    retrieval_time_ms: float = 0.0
    chunks_used: int = 0
    total_tokens: int = 0


class RagContext(BaseModel):
    """The prompt artifact handed to a downstream language model."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    context: str
    citations: list[Citation] = Field(default_factory=list)
    metadata: RagContextMetadata = Field(default_factory=RagContextMetadata)


class AssembledContext(BaseModel):
    """Output of :meth:`ContextAssembler.build_context`."""

    model_config = ConfigDict(frozen=True)

    context: str
    citations: list[Citation] = Field(default_factory=list)
    chunks_used: int = 0
    total_tokens: int = 0


# ---------------------------------------------------------------------------
# Query transformation
# ---------------------------------------------------------------------------

class QueryTransformKind(str, Enum):
    ORIGINAL = "original"
    EXPANDED = "expanded"
    HYDE = "hyde"
    SUBQUESTION = "subquestion"


class QueryTransform(BaseModel):
    """Result of rewriting a query before embedding.

    ``fallback`` is True when the requested kind could not run (no
    generation callback, or the callback failed) and the original query was
    used instead; ``requested`` records what the caller asked for.
    """

    model_config = ConfigDict(frozen=True)

    kind: QueryTransformKind
    query: str
    requested: QueryTransformKind
    fallback: bool = False
    sub_questions: list[str] = Field(default_factory=list)
