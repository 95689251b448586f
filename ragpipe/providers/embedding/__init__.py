"""Embedding provider implementations.

Three implementations of IEmbeddingProvider, selected by discriminant:
    openai -- OpenAIEmbeddingProvider, text-embedding-3-small (1536 dims),
              2048 texts per call.
    cohere -- CohereEmbeddingProvider, embed-english-v3.0 (1024 dims),
              96 texts per call.
    local  -- FastEmbedEmbeddingProvider, ONNX on CPU (384 dims default),
              32 texts per call.
"""

from ragpipe.providers.embedding.cohere_embedding_provider import CohereEmbeddingProvider
from ragpipe.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from ragpipe.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragpipe.providers.embedding.registry import (
    EMBEDDING_PROVIDERS,
    CapabilityCheck,
    build_embedding_provider,
    check_embedding_capability,
)

__all__ = [
    "EMBEDDING_PROVIDERS",
    "CapabilityCheck",
    "CohereEmbeddingProvider",
    "FastEmbedEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "build_embedding_provider",
    "check_embedding_capability",
]
