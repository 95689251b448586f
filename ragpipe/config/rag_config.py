"""Immutable pipeline configuration consumed by the services.

:class:`RagConfig` is the subset of :class:`~ragpipe.config.settings.Settings`
the chunker, retriever and context assembler actually read.  Services take a
``RagConfig`` rather than ``Settings`` so they never touch the environment.

Sizes for the ``paragraph`` and ``sentence`` strategies are measured in
characters; the ``fixed`` strategy counts words.  Token budgets use the
4-characters-per-token estimate from
:func:`ragpipe.services.retrieval.context_assembler.estimate_tokens`.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ragpipe.models.rag import ChunkingStrategy

CitationFormat = Literal["numbered", "inline"]


class ChunkingOptions(BaseModel):
    """Options for one chunking run."""

    model_config = ConfigDict(frozen=True)

    strategy: ChunkingStrategy = ChunkingStrategy.PARAGRAPH
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    min_chunk_size: int = Field(default=100, ge=0)

    @model_validator(mode="after")
    def _overlap_below_size(self) -> ChunkingOptions:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self


class RagConfig(BaseModel):
    """Pipeline-wide RAG options."""

    model_config = ConfigDict(frozen=True)

    # Embedding backend
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = Field(default=1536, gt=0)

    # Chunker
    chunking_strategy: ChunkingStrategy = ChunkingStrategy.PARAGRAPH
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    min_chunk_size: int = Field(default=100, ge=0)

    # Retriever
    retrieval_top_k: int = Field(default=5, gt=0)
    similarity_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    rerank_enabled: bool = False
    rerank_model: str | None = None

    # Vector store
    vector_store: str = "memory"
    vector_dimension: int = Field(default=1536, gt=0)

    # Context assembler
    max_context_tokens: int = Field(default=4000, gt=0)
    include_citations: bool = True
    citation_format: CitationFormat = "numbered"

    # Ingestion
    ingestion_batch_size: int = Field(default=100, gt=0)

    @model_validator(mode="after")
    def _consistent(self) -> RagConfig:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        if self.vector_dimension != self.embedding_dimension:
            raise ValueError(
                f"vector_dimension ({self.vector_dimension}) must equal "
                f"embedding_dimension ({self.embedding_dimension})"
            )
        return self

    def chunking_options(self) -> ChunkingOptions:
        """Return the default :class:`ChunkingOptions` for this config."""
        return ChunkingOptions(
            strategy=self.chunking_strategy,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_chunk_size=self.min_chunk_size,
        )
