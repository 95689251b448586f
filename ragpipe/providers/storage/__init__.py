"""Document and chunk persistence backends."""

from __future__ import annotations

from ragpipe.config.settings import Settings
from ragpipe.interfaces.document_store import IDocumentStore
from ragpipe.providers.storage.memory_document_store import InMemoryDocumentStore
from ragpipe.providers.storage.sqlite_document_store import SQLiteDocumentStore
from ragpipe.utils.errors import ConfigurationError

DOCUMENT_STORES = ("memory", "sqlite")


def build_document_store(settings: Settings) -> IDocumentStore:
    """Construct the store named by ``settings.document_store``."""
    if settings.document_store == "memory":
        return InMemoryDocumentStore()
    if settings.document_store == "sqlite":
        return SQLiteDocumentStore(settings.document_db_path)
    raise ConfigurationError(
        f"Unknown document store '{settings.document_store}'; "
        f"expected one of {list(DOCUMENT_STORES)}",
        provider_name=settings.document_store,
    )


__all__ = [
    "DOCUMENT_STORES",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "build_document_store",
]
