"""Application settings loaded from environment variables via pydantic-settings.

Settings are read from two sources, highest priority first:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123`` or
     ``RAGPIPE_CHUNK_SIZE=800`` for the ``RAGPIPE_``-prefixed pipeline options.
  2. A ``.env`` file in the working directory.

Backend credentials (API keys, URLs, collection names) are passed through
to the providers unchanged; the pipeline itself never inspects them.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ragpipe.config.rag_config import CitationFormat, RagConfig
from ragpipe.models.rag import ChunkingStrategy


class Settings(BaseSettings):
    """ragpipe settings.

    Environment variables override defaults.  Loaded from .env when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RAGPIPE_",
        extra="ignore",
        populate_by_name=True,
    )

    # === Embedding ===
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536

    # === Chunking ===
    chunking_strategy: ChunkingStrategy = ChunkingStrategy.PARAGRAPH
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100

    # === Retrieval ===
    retrieval_top_k: int = 5
    similarity_threshold: float = 0.7
    rerank_enabled: bool = False
    rerank_model: str | None = None

    # === Vector store ===
    # "memory" is the in-process exact store; None dimension = embedding_dimension.
    vector_store: str = "memory"
    vector_dimension: int | None = None

    # === Context assembly ===
    max_context_tokens: int = 4000
    include_citations: bool = True
    citation_format: CitationFormat = "numbered"

    # === Ingestion ===
    ingestion_batch_size: int = 100

    # === Backend credentials (unprefixed, conventional names) ===
    openai_api_key: str = Field(default="", validation_alias=AliasChoices("OPENAI_API_KEY"))
    openai_base_url: str = Field(default="", validation_alias=AliasChoices("OPENAI_BASE_URL"))
    cohere_api_key: str = Field(default="", validation_alias=AliasChoices("COHERE_API_KEY"))
    qdrant_url: str = Field(
        default="http://localhost:6333", validation_alias=AliasChoices("QDRANT_URL")
    )
    qdrant_api_key: str = Field(default="", validation_alias=AliasChoices("QDRANT_API_KEY"))
    qdrant_collection: str = "ragpipe_chunks"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "ragpipe_chunks"
    pinecone_api_key: str = Field(default="", validation_alias=AliasChoices("PINECONE_API_KEY"))
    pinecone_index: str = "ragpipe-chunks"
    pinecone_namespace: str = ""
    pinecone_cloud: str = "aws"
    pinecone_region: str = "us-east-1"
    weaviate_url: str = Field(default="", validation_alias=AliasChoices("WEAVIATE_URL"))
    weaviate_api_key: str = Field(default="", validation_alias=AliasChoices("WEAVIATE_API_KEY"))
    weaviate_collection: str = "RagpipeChunks"

    # === Document storage ===
    # "memory" keeps documents in-process; "sqlite" persists to document_db_path.
    document_store: str = "memory"
    document_db_path: str = "data/ragpipe.db"

    # === App ===
    app_env: str = Field(default="development", validation_alias=AliasChoices("APP_ENV"))
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))

    def to_rag_config(self) -> RagConfig:
        """Return the immutable :class:`RagConfig` view of these settings.

        Raises
        ------
        pydantic.ValidationError
            If the combined options are inconsistent (e.g. overlap >= size).
        """
        return RagConfig(
            embedding_provider=self.embedding_provider,
            embedding_model=self.embedding_model,
            embedding_dimension=self.embedding_dimension,
            chunking_strategy=self.chunking_strategy,
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_chunk_size=self.min_chunk_size,
            retrieval_top_k=self.retrieval_top_k,
            similarity_threshold=self.similarity_threshold,
            rerank_enabled=self.rerank_enabled,
            rerank_model=self.rerank_model,
            vector_store=self.vector_store,
            vector_dimension=self.vector_dimension or self.embedding_dimension,
            max_context_tokens=self.max_context_tokens,
            include_citations=self.include_citations,
            citation_format=self.citation_format,
            ingestion_batch_size=self.ingestion_batch_size,
        )
