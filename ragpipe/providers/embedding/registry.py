"""String-keyed registry of embedding providers.

The registry is closed: every discriminant the configuration may name is
listed here.  A name is resolved once, when the container is built, and an
unknown or unusable name raises :class:`ConfigurationError` immediately.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from ragpipe.config.settings import Settings
from ragpipe.interfaces.embedding_provider import IEmbeddingProvider
from ragpipe.providers.embedding.cohere_embedding_provider import CohereEmbeddingProvider
from ragpipe.providers.embedding.fastembed_embedding_provider import (
    FastEmbedEmbeddingProvider,
    fastembed_installed,
)
from ragpipe.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragpipe.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

EmbeddingFactory = Callable[[Settings], IEmbeddingProvider]


@dataclass(frozen=True)
class CapabilityCheck:
    """Whether a provider could be constructed with the current settings."""

    name: str
    available: bool
    reason: str = ""


EMBEDDING_PROVIDERS: dict[str, EmbeddingFactory] = {
    "openai": OpenAIEmbeddingProvider,
    "cohere": CohereEmbeddingProvider,
    "local": FastEmbedEmbeddingProvider,
}

# Names users commonly configure that have no embedding backend.
_KNOWN_WITHOUT_EMBEDDINGS = {"anthropic": "Anthropic does not offer an embeddings API"}


def check_embedding_capability(name: str, settings: Settings) -> CapabilityCheck:
    """Report whether provider *name* can work, without constructing it."""
    if name in _KNOWN_WITHOUT_EMBEDDINGS:
        return CapabilityCheck(name, False, _KNOWN_WITHOUT_EMBEDDINGS[name])
    if name not in EMBEDDING_PROVIDERS:
        return CapabilityCheck(name, False, f"unknown embedding provider '{name}'")
    if name == "openai" and not settings.openai_api_key:
        return CapabilityCheck(name, False, "OPENAI_API_KEY is not set")
    if name == "cohere" and not settings.cohere_api_key:
        return CapabilityCheck(name, False, "COHERE_API_KEY is not set")
    if name == "local" and not fastembed_installed():
        return CapabilityCheck(name, False, "fastembed is not installed")
    return CapabilityCheck(name, True)


def build_embedding_provider(settings: Settings) -> IEmbeddingProvider:
    """Construct the provider named by ``settings.embedding_provider``.

    Raises
    ------
    ConfigurationError
        If the name is unknown, or the provider cannot run (missing key,
        missing runtime, dimension mismatch).
    """
    name = settings.embedding_provider
    check = check_embedding_capability(name, settings)
    if not check.available:
        raise ConfigurationError(
            f"Embedding provider '{name}' is unavailable: {check.reason}",
            provider_name=name,
        )

    provider = EMBEDDING_PROVIDERS[name](settings)
    logger.info(
        "embedding_provider_ready",
        provider=provider.get_provider_name(),
        model=provider.get_model_name(),
        dimension=provider.get_dimension(),
        max_batch_size=provider.get_max_batch_size(),
    )
    return provider
