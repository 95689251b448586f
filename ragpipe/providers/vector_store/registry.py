"""String-keyed registry of vector stores.

``memory`` is the in-process exact store (the default).  ``chroma``,
``qdrant``, ``pinecone`` and ``weaviate`` delegate to external indexes; each
needs its optional extra (``pip install ragpipe[qdrant]`` and so on), and
its client library is imported only when that store is selected.
"""

from __future__ import annotations

import importlib.util
from collections.abc import Callable

import structlog

from ragpipe.config.settings import Settings
from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.providers.vector_store.memory_provider import InMemoryVectorStore
from ragpipe.utils.errors import ConfigurationError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

VectorStoreFactory = Callable[[Settings, int], IVectorStoreProvider]


def _build_memory(settings: Settings, dimension: int) -> IVectorStoreProvider:
    return InMemoryVectorStore(dimension=dimension)


def _require_library(module: str, extra: str) -> None:
    if importlib.util.find_spec(module) is None:
        raise ProviderUnavailableError(
            f"{module} is not installed; install ragpipe[{extra}] to use the {extra} store",
            provider_name=extra,
        )


def _build_chroma(settings: Settings, dimension: int) -> IVectorStoreProvider:
    _require_library("chromadb", "chroma")
    # Deferred: importing chromadb is slow and touches telemetry settings.
    from ragpipe.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(
        dimension=dimension,
        persist_directory=settings.chromadb_persist_dir,
        collection_name=settings.chromadb_collection,
    )


def _build_qdrant(settings: Settings, dimension: int) -> IVectorStoreProvider:
    if not settings.qdrant_url:
        raise ConfigurationError("QDRANT_URL is required for the qdrant store", "qdrant")
    _require_library("qdrant_client", "qdrant")
    from ragpipe.providers.vector_store.qdrant_provider import QdrantVectorStore

    return QdrantVectorStore(
        dimension=dimension,
        url=settings.qdrant_url,
        collection_name=settings.qdrant_collection,
        api_key=settings.qdrant_api_key,
    )


def _build_pinecone(settings: Settings, dimension: int) -> IVectorStoreProvider:
    if not settings.pinecone_api_key:
        raise ConfigurationError(
            "PINECONE_API_KEY is required for the pinecone store", "pinecone"
        )
    _require_library("pinecone", "pinecone")
    from ragpipe.providers.vector_store.pinecone_provider import PineconeVectorStore

    return PineconeVectorStore(
        dimension=dimension,
        api_key=settings.pinecone_api_key,
        index_name=settings.pinecone_index,
        namespace=settings.pinecone_namespace,
        cloud=settings.pinecone_cloud,
        region=settings.pinecone_region,
    )


def _build_weaviate(settings: Settings, dimension: int) -> IVectorStoreProvider:
    if not settings.weaviate_url:
        raise ConfigurationError("WEAVIATE_URL is required for the weaviate store", "weaviate")
    _require_library("weaviate", "weaviate")
    from ragpipe.providers.vector_store.weaviate_provider import WeaviateVectorStore

    return WeaviateVectorStore(
        dimension=dimension,
        url=settings.weaviate_url,
        collection_name=settings.weaviate_collection,
        api_key=settings.weaviate_api_key,
    )


VECTOR_STORES: dict[str, VectorStoreFactory] = {
    "memory": _build_memory,
    "chroma": _build_chroma,
    "qdrant": _build_qdrant,
    "pinecone": _build_pinecone,
    "weaviate": _build_weaviate,
}


def build_vector_store(settings: Settings, dimension: int) -> IVectorStoreProvider:
    """Construct the store named by ``settings.vector_store``.

    Raises
    ------
    ConfigurationError
        If the name is unknown, a required URL or key is unset, or the
        backend library is missing.
    """
    name = settings.vector_store
    factory = VECTOR_STORES.get(name)
    if factory is None:
        raise ConfigurationError(
            f"Unknown vector store '{name}'; expected one of {sorted(VECTOR_STORES)}",
            provider_name=name,
        )
    store = factory(settings, dimension)
    logger.info("vector_store_ready", store=store.get_provider_name(), dimension=dimension)
    return store
