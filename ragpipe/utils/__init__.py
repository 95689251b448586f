"""Utility modules for ragpipe.

- **errors** -- exception hierarchy rooted at RagPipeError.
- **logging** -- structlog setup with console/JSON renderers.
- **vector_math** -- numpy cosine-similarity helpers.
"""

from ragpipe.utils.errors import (
    ConfigurationError,
    DocumentStoreError,
    EmbeddingBatchError,
    EmbeddingError,
    IngestionCancelledError,
    ParseError,
    ProviderUnavailableError,
    RagPipeError,
    RateLimitError,
    VectorStoreError,
)
from ragpipe.utils.logging import configure_logging, get_logger
from ragpipe.utils.vector_math import cosine_similarity

__all__ = [
    "ConfigurationError",
    "DocumentStoreError",
    "EmbeddingBatchError",
    "EmbeddingError",
    "IngestionCancelledError",
    "ParseError",
    "ProviderUnavailableError",
    "RagPipeError",
    "RateLimitError",
    "VectorStoreError",
    "configure_logging",
    "cosine_similarity",
    "get_logger",
]
