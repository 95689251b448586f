"""Custom exception hierarchy for ragpipe.

All application exceptions inherit from :class:`RagPipeError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "openai", "cohere", "qdrant") caused the failure.

The hierarchy is organized by pipeline stage:

    RagPipeError  (base -- catch-all for any ragpipe error)
    +-- ParseError               (document cannot be converted to text)
    +-- ConfigurationError       (construction time: bad option, unknown name)
    |   +-- ProviderUnavailableError (backend runtime/library not present)
    +-- EmbeddingError           (an embedding call failed)
    |   +-- EmbeddingBatchError  (one sub-batch of a larger request failed)
    |   +-- RateLimitError       (provider rate-limit exceeded)
    +-- VectorStoreError         (connectivity, auth or dimension mismatch)
    +-- DocumentStoreError       (chunk/document persistence failure)
    +-- IngestionCancelledError  (cancellation observed between batches)

``ConfigurationError`` is only raised while building providers and stores;
nothing in the request path raises it, so a running pipeline never fails on
configuration.
"""


class RagPipeError(Exception):
    """Base exception for all ragpipe errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ParseError(RagPipeError):
    """Raised when a document is unsupported, corrupt, or cannot be decoded."""

    def __init__(
        self,
        message: str = "Document could not be parsed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionCancelledError(RagPipeError):
    """Raised when an ingestion run observes its cancellation signal."""

    def __init__(
        self,
        message: str = "Ingestion was cancelled",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(RagPipeError):
    """Raised when configuration is invalid or missing at construction time."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(ConfigurationError):
    """Raised when a backend's runtime or client library is not present.

    Subclasses :class:`ConfigurationError` because it is detected while
    constructing a provider, never mid-request.
    """

    def __init__(
        self,
        message: str = "Provider runtime is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding errors
# ---------------------------------------------------------------------------

class EmbeddingError(RagPipeError):
    """Raised when an embedding API call fails."""

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingBatchError(EmbeddingError):
    """Raised (or recorded) when one sub-batch of an embedding request fails.

    ``batch_index`` is the zero-based position of the failed sub-batch.
    """

    def __init__(
        self,
        message: str = "Embedding sub-batch failed",
        provider_name: str | None = None,
        batch_index: int = 0,
    ) -> None:
        self._batch_index = batch_index
        super().__init__(message=message, provider_name=provider_name)

    @property
    def batch_index(self) -> int:
        return self._batch_index


class RateLimitError(EmbeddingError):
    """Raised when a provider rejects a call because of rate limiting."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class VectorStoreError(RagPipeError):
    """Raised on vector-store connectivity, auth, or dimension failures."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentStoreError(RagPipeError):
    """Raised when the document/chunk persistence layer fails."""

    def __init__(
        self,
        message: str = "Document store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
