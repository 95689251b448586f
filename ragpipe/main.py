"""ragpipe composition root.

:class:`RagContainer` wires every provider and service from one
:class:`~ragpipe.config.settings.Settings` instance.  It is built once per
process, started explicitly, passed by reference to whatever needs it, and
shut down explicitly (or via ``async with``).  Backend names are resolved
here, so an unknown provider or store fails at construction rather than on
first use.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from ragpipe.config.rag_config import RagConfig
from ragpipe.config.settings import Settings
from ragpipe.interfaces.document_store import IDocumentStore
from ragpipe.interfaces.embedding_provider import IEmbeddingProvider
from ragpipe.interfaces.reranker import IReranker
from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.providers.embedding.registry import build_embedding_provider
from ragpipe.providers.storage import build_document_store
from ragpipe.providers.vector_store.registry import build_vector_store
from ragpipe.services.ingestion.chunker import TextChunker
from ragpipe.services.ingestion.ingestion_service import IngestionService
from ragpipe.services.ingestion.parsers.registry import ParserRegistry
from ragpipe.services.ingestion.progress_tracker import ProgressTracker
from ragpipe.services.retrieval.context_assembler import ContextAssembler
from ragpipe.services.retrieval.query_service import RagQueryService
from ragpipe.services.retrieval.query_transformer import QueryTransformer
from ragpipe.services.retrieval.retriever import Retriever
from ragpipe.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class RagContainer:
    """Owns the process-wide providers and the services built on them.

    Parameters
    ----------
    config:
        Validated pipeline configuration.
    embedding_provider, vector_store, document_store:
        Constructed backends; the container takes ownership and closes
        them on :meth:`shutdown`.
    reranker:
        Optional reranker used when ``config.rerank_enabled`` is set.
    """

    def __init__(
        self,
        config: RagConfig,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        document_store: IDocumentStore,
        reranker: IReranker | None = None,
    ) -> None:
        if vector_store.get_dimension() != embedding_provider.get_dimension():
            raise ConfigurationError(
                f"Vector store dimension {vector_store.get_dimension()} does not match "
                f"embedding dimension {embedding_provider.get_dimension()}"
            )
        self.config = config
        self.embedding_provider = embedding_provider
        self.vector_store = vector_store
        self.document_store = document_store
        self.progress = ProgressTracker()
        self.chunker = TextChunker(config.chunking_options())
        self.ingestion = IngestionService(
            config=config,
            embedding_provider=embedding_provider,
            vector_store=vector_store,
            document_store=document_store,
            chunker=self.chunker,
            parsers=ParserRegistry(),
            progress=self.progress,
        )
        self.retriever = Retriever(vector_store, embedding_provider, config, reranker)
        self.assembler = ContextAssembler(config)
        self.query = RagQueryService(self.retriever, self.assembler, QueryTransformer())
        self._started = False

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RagContainer:
        """Resolve every backend named in *settings*.

        Raises
        ------
        ConfigurationError
            On invalid options, unknown backend names, missing credentials,
            or an unavailable local runtime.
        """
        settings = settings or Settings()
        try:
            config = settings.to_rag_config()
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

        embedding_provider = build_embedding_provider(settings)
        vector_store = build_vector_store(settings, config.vector_dimension)
        document_store = build_document_store(settings)
        return cls(config, embedding_provider, vector_store, document_store)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open backend connections; calling twice is a no-op."""
        if self._started:
            return
        await self.vector_store.initialize()
        await self.document_store.initialize()
        self._started = True
        logger.info(
            "container_started",
            embedding=self.embedding_provider.get_provider_name(),
            model=self.embedding_provider.get_model_name(),
            vector_store=self.vector_store.get_provider_name(),
            dimension=self.config.vector_dimension,
        )

    async def shutdown(self) -> None:
        """Close backends in reverse start order."""
        await self.document_store.close()
        await self.vector_store.close()
        await self.embedding_provider.close()
        self._started = False
        logger.info("container_shutdown")

    async def __aenter__(self) -> RagContainer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()
