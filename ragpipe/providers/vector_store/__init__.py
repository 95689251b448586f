"""Vector store implementations.

Only the in-memory store is re-exported here.  The ChromaDB, Qdrant,
Pinecone and Weaviate adapters depend on optional client libraries, so the
registry imports them only when one of them is selected.
"""

from ragpipe.providers.vector_store.memory_provider import InMemoryVectorStore
from ragpipe.providers.vector_store.registry import VECTOR_STORES, build_vector_store

__all__ = ["VECTOR_STORES", "InMemoryVectorStore", "build_vector_store"]
