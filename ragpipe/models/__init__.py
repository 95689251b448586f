"""Pydantic data models for ragpipe."""

from ragpipe.models.document import (
    ChunkRecord,
    Document,
    DocumentMetadata,
    DocumentStatus,
    IngestionProgress,
    IngestionResult,
    IngestionStatus,
    ParsedDocument,
    can_transition,
)
from ragpipe.models.rag import (
    AssembledContext,
    ChunkingStrategy,
    Citation,
    EmbeddingBatchFailure,
    EmbeddingBatchResult,
    EmbeddingResult,
    QueryTransform,
    QueryTransformKind,
    RagContext,
    RagContextMetadata,
    RetrievalResult,
    RetrievedChunk,
    SearchFilter,
    TextChunk,
    VectorRecord,
    VectorSearchResult,
    VectorStoreStats,
)

__all__ = [
    "AssembledContext",
    "ChunkRecord",
    "ChunkingStrategy",
    "Citation",
    "Document",
    "DocumentMetadata",
    "DocumentStatus",
    "EmbeddingBatchFailure",
    "EmbeddingBatchResult",
    "EmbeddingResult",
    "IngestionProgress",
    "IngestionResult",
    "IngestionStatus",
    "ParsedDocument",
    "QueryTransform",
    "QueryTransformKind",
    "RagContext",
    "RagContextMetadata",
    "RetrievalResult",
    "RetrievedChunk",
    "SearchFilter",
    "TextChunk",
    "VectorRecord",
    "VectorSearchResult",
    "VectorStoreStats",
    "can_transition",
]
