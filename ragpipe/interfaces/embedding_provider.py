"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations wrap OpenAI, Cohere, or a local FastEmbed ONNX model; the
adapter pattern keeps them interchangeable behind this interface.

Batching lives here rather than in each provider: a concrete provider only
implements :meth:`IEmbeddingProvider._embed_batch` (one backend call of at
most :meth:`get_max_batch_size` texts) and inherits the splitting,
ordering, and per-sub-batch failure bookkeeping of :meth:`embed`.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

import structlog

from ragpipe.models.rag import EmbeddingBatchFailure, EmbeddingBatchResult, EmbeddingResult
from ragpipe.utils.errors import EmbeddingBatchError, EmbeddingError

logger = structlog.get_logger(logger_name=__name__)


# Concrete implementations:
#   OpenAIEmbeddingProvider    - text-embedding-3-small/large (max batch 2048)
#   CohereEmbeddingProvider    - embed-english-v3.0 over REST (max batch 96)
#   FastEmbedEmbeddingProvider - local ONNX model (max batch 32)
# Located in: ragpipe/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the RAG pipeline.

    Embeddings are consumed by
    :class:`~ragpipe.interfaces.vector_store_provider.IVectorStoreProvider`
    for indexing and query-time similarity search.  Providers must fail at
    construction (``ConfigurationError``) when their backend cannot work at
    all, so that no per-call path ever discovers a configuration problem.
    """

    # ------------------------------------------------------------------
    # Abstract backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Embed at most :meth:`get_max_batch_size` texts in one backend call.

        Returns
        -------
        list[EmbeddingResult]
            One result per input, in input order.

        Raises
        ------
        ragpipe.utils.errors.EmbeddingError
            If the backend call fails.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Constant for the provider's lifetime; must match the vector store's
        dimension.
        """

    @abstractmethod
    def get_max_batch_size(self) -> int:
        """Return the maximum number of texts the backend accepts per call."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the registry discriminant for this provider, e.g. ``"openai"``."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the backend model identifier."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and its runtime present."""

    async def close(self) -> None:  # noqa: B027
        """Release HTTP clients.  Default: nothing to do."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> EmbeddingBatchResult:
        """Embed *texts*, splitting into sub-batches the backend accepts.

        Sub-batches run sequentially in submission order.  A failed
        sub-batch is recorded in ``errors`` with its batch index and its
        positions in ``results`` are left ``None``; the remaining
        sub-batches still run.

        Parameters
        ----------
        texts:
            Input strings.  An empty list returns an empty result without
            calling the backend.

        Returns
        -------
        EmbeddingBatchResult
            ``results`` aligned 1:1 with *texts*.
        """
        if not texts:
            return EmbeddingBatchResult()

        batch_size = self.get_max_batch_size()
        n_batches = math.ceil(len(texts) / batch_size)
        results: list[EmbeddingResult | None] = [None] * len(texts)
        errors: list[EmbeddingBatchFailure] = []

        for batch_index in range(n_batches):
            start = batch_index * batch_size
            batch = texts[start : start + batch_size]
            try:
                embedded = await self._embed_batch(batch)
                if len(embedded) != len(batch):
                    raise EmbeddingBatchError(
                        f"Backend returned {len(embedded)} vectors for {len(batch)} inputs",
                        provider_name=self.get_provider_name(),
                        batch_index=batch_index,
                    )
            except EmbeddingError as exc:
                logger.warning(
                    "embedding_batch_failed",
                    provider=self.get_provider_name(),
                    batch_index=batch_index,
                    batch_size=len(batch),
                    error=str(exc),
                )
                errors.append(
                    EmbeddingBatchFailure(
                        batch_index=batch_index,
                        start=start,
                        size=len(batch),
                        error=str(exc),
                    )
                )
                continue

            results[start : start + len(batch)] = embedded

        if n_batches > 1:
            logger.debug(
                "embedding_batches_complete",
                provider=self.get_provider_name(),
                batches=n_batches,
                failed=len(errors),
                total_texts=len(texts),
            )
        return EmbeddingBatchResult(results=results, errors=errors)

    async def embed_single(self, text: str) -> EmbeddingResult:
        """Embed a single text (e.g. a search query).

        Raises
        ------
        ragpipe.utils.errors.EmbeddingError
            If the backend call fails.
        """
        results = await self._embed_batch([text])
        if not results:
            raise EmbeddingError(
                "Backend returned no vector for a single input",
                provider_name=self.get_provider_name(),
            )
        return results[0]
