"""Local ONNX-based embedding provider using fastembed.

Wraps the ``fastembed`` library to implement :class:`IEmbeddingProvider`
with ONNX Runtime on CPU; no API key and no PyTorch.  The model is loaded
lazily on first use (the first run downloads weights), but the library's
presence is checked at construction.
"""

from __future__ import annotations

import asyncio
import importlib.util

import structlog

from ragpipe.config.settings import Settings
from ragpipe.interfaces.embedding_provider import IEmbeddingProvider
from ragpipe.models.rag import EmbeddingResult
from ragpipe.utils.errors import ConfigurationError, EmbeddingError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

# Known model dimensions for fastembed-supported models.
_MODEL_DIMENSIONS: dict[str, int] = {
    "BAAI/bge-small-en-v1.5": 384,
    "BAAI/bge-base-en-v1.5": 768,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "intfloat/multilingual-e5-large": 1024,
}

_DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"
_LOCAL_BATCH_LIMIT = 32


def fastembed_installed() -> bool:
    """Return ``True`` if the fastembed package can be imported."""
    return importlib.util.find_spec("fastembed") is not None


class FastEmbedEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by fastembed (ONNX Runtime).

    Raises
    ------
    ProviderUnavailableError
        At construction when fastembed is not installed.
    ConfigurationError
        When the configured dimension does not match the model.
    """

    def __init__(self, settings: Settings, model: str | None = None) -> None:
        if not fastembed_installed():
            raise ProviderUnavailableError(
                "fastembed is not installed; install ragpipe[local] to use the local provider",
                provider_name="local",
            )
        requested = model or settings.embedding_model
        self._model_name = requested if requested in _MODEL_DIMENSIONS else _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS[self._model_name]
        if settings.embedding_dimension != self._dimension:
            raise ConfigurationError(
                f"Model {self._model_name} produces {self._dimension}-dim vectors, "
                f"configured dimension is {settings.embedding_dimension}",
                provider_name="local",
            )
        self._model = None  # Lazy-loaded

    def _load_model(self) -> None:
        if self._model is not None:
            return
        from fastembed import TextEmbedding

        logger.info("loading_fastembed_model", model=self._model_name)
        try:
            self._model = TextEmbedding(model_name=self._model_name)
        except Exception as exc:
            raise EmbeddingError(
                message=f"Failed to load fastembed model '{self._model_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("fastembed_model_loaded", model=self._model_name, dimension=self._dimension)

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        self._load_model()
        # fastembed yields numpy arrays
        return [vector.tolist() for vector in self._model.embed(texts)]

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def _embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        try:
            vectors = await asyncio.to_thread(self._embed_sync, texts)
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(
                message=f"fastembed embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return [
            EmbeddingResult(
                embedding=vector,
                tokens_used=0,
                model=self._model_name,
                provider=self.get_provider_name(),
            )
            for vector in vectors
        ]

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_batch_size(self) -> int:
        return _LOCAL_BATCH_LIMIT

    def get_provider_name(self) -> str:
        return "local"

    def get_model_name(self) -> str:
        return self._model_name

    def is_available(self) -> bool:
        return fastembed_installed()
