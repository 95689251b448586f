"""Cohere embedding provider adapter (REST via httpx).

Calls ``POST /v1/embed`` directly; Cohere caps each call at 96 texts.
Documents are embedded with ``input_type=search_document`` and queries
(:meth:`embed_single`) with ``input_type=search_query``, as Cohere's v3
models expect asymmetric inputs.
"""

from __future__ import annotations

import httpx
import structlog

from ragpipe.config.settings import Settings
from ragpipe.interfaces.embedding_provider import IEmbeddingProvider
from ragpipe.models.rag import EmbeddingResult
from ragpipe.utils.errors import ConfigurationError, EmbeddingError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_COHERE_BATCH_LIMIT = 96
_COHERE_EMBED_URL = "https://api.cohere.ai/v1/embed"
_DEFAULT_MODEL = "embed-english-v3.0"

_MODEL_DIMENSIONS: dict[str, int] = {
    "embed-english-v3.0": 1024,
    "embed-multilingual-v3.0": 1024,
    "embed-english-light-v3.0": 384,
    "embed-multilingual-light-v3.0": 384,
}


class CohereEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the Cohere embed API."""

    def __init__(
        self,
        settings: Settings,
        model: str | None = None,
        client: httpx.AsyncClient | None = None,
        endpoint: str = _COHERE_EMBED_URL,
    ) -> None:
        if not settings.cohere_api_key:
            raise ConfigurationError(
                "COHERE_API_KEY is required for the cohere embedding provider",
                provider_name="cohere",
            )
        requested = model or settings.embedding_model
        self._model = requested if requested in _MODEL_DIMENSIONS else _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS[self._model]
        if settings.embedding_dimension != self._dimension:
            raise ConfigurationError(
                f"Model {self._model} produces {self._dimension}-dim vectors, "
                f"configured dimension is {settings.embedding_dimension}",
                provider_name="cohere",
            )
        self._endpoint = endpoint
        self._client = client or httpx.AsyncClient(
            timeout=30.0,
            headers={"Authorization": f"Bearer {settings.cohere_api_key}"},
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def _embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        return await self._request(texts, input_type="search_document")

    async def embed_single(self, text: str) -> EmbeddingResult:
        results = await self._request([text], input_type="search_query")
        if not results:
            raise EmbeddingError(
                message="Cohere returned no embedding for the query",
                provider_name=self.get_provider_name(),
            )
        return results[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_batch_size(self) -> int:
        return _COHERE_BATCH_LIMIT

    def get_provider_name(self) -> str:
        return "cohere"

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        return True

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request(self, texts: list[str], input_type: str) -> list[EmbeddingResult]:
        payload = {"model": self._model, "texts": texts, "input_type": input_type}
        try:
            response = await self._client.post(self._endpoint, json=payload)
        except httpx.HTTPError as exc:
            raise EmbeddingError(
                message=f"Cohere request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if response.status_code == 429:
            raise RateLimitError(
                message="Cohere rate limit exceeded",
                provider_name=self.get_provider_name(),
            )
        if response.status_code >= 400:
            raise EmbeddingError(
                message=f"Cohere embed returned HTTP {response.status_code}: {response.text[:200]}",
                provider_name=self.get_provider_name(),
            )

        data = response.json()
        embeddings = data.get("embeddings") or []
        billed = data.get("meta", {}).get("billed_units", {}).get("input_tokens", 0)
        per_item = billed // len(texts) if texts else 0
        logger.info(
            "cohere_embedding_batch",
            model=self._model,
            batch_size=len(texts),
            input_type=input_type,
        )
        return [
            EmbeddingResult(
                embedding=list(vector),
                tokens_used=per_item,
                model=self._model,
                provider=self.get_provider_name(),
            )
            for vector in embeddings
        ]
