"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible services (TogetherAI, Fireworks)
via a custom ``base_url``.
"""

from __future__ import annotations

import openai
import structlog

from ragpipe.config.settings import Settings
from ragpipe.interfaces.embedding_provider import IEmbeddingProvider
from ragpipe.models.rag import EmbeddingResult
from ragpipe.utils.errors import ConfigurationError, EmbeddingError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}

# Models that accept the ``dimensions`` request parameter (Matryoshka
# truncation), so a smaller configured dimension can be honoured.
_SHORTENABLE_MODELS = frozenset({"text-embedding-3-small", "text-embedding-3-large"})


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Raises
    ------
    ConfigurationError
        At construction when no API key is configured, or when the
        configured dimension cannot be produced by the model.
    """

    def __init__(self, settings: Settings, model: str | None = None) -> None:
        if not settings.openai_api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is required for the openai embedding provider",
                provider_name="openai",
            )

        self._model = model or settings.embedding_model
        native = _MODEL_DIMENSIONS.get(self._model)
        self._dimension = settings.embedding_dimension
        self._request_dimensions: int | None = None
        if native is not None and native != self._dimension:
            if self._model not in _SHORTENABLE_MODELS or self._dimension > native:
                raise ConfigurationError(
                    f"Model {self._model} produces {native}-dim vectors, "
                    f"configured dimension is {self._dimension}",
                    provider_name="openai",
                )
            self._request_dimensions = self._dimension

        client_kwargs: dict = {"api_key": settings.openai_api_key}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def _embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        kwargs: dict = {"input": texts, "model": self._model}
        if self._request_dimensions is not None:
            kwargs["dimensions"] = self._request_dimensions

        try:
            response = await self._client.embeddings.create(**kwargs)
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"OpenAI rate limit: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"OpenAI embeddings API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        total_tokens = response.usage.total_tokens if response.usage else 0
        per_item = total_tokens // len(texts) if texts else 0
        logger.info(
            "openai_embedding_batch",
            model=self._model,
            batch_size=len(texts),
            tokens=total_tokens,
        )
        ordered = sorted(response.data, key=lambda item: item.index)
        return [
            EmbeddingResult(
                embedding=list(item.embedding),
                tokens_used=per_item,
                model=self._model,
                provider=self.get_provider_name(),
            )
            for item in ordered
        ]

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_batch_size(self) -> int:
        return _OPENAI_BATCH_LIMIT

    def get_provider_name(self) -> str:
        return "openai"

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        return True

    async def close(self) -> None:
        await self._client.close()
