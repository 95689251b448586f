"""Public interface definitions for every pluggable backend.

Embedding services, vector stores, document parsers, document storage and
rerankers are accessed only through the abstract base classes in this
package.  Concrete adapters are chosen by string discriminant in the
registries under ``ragpipe/providers/`` and injected by
:class:`ragpipe.main.RagContainer`.

CONCRETE PROVIDER MAP:
    Interface              ->  Concrete implementations
    ---------------------------------------------------------------
    IEmbeddingProvider     ->  OpenAIEmbeddingProvider, CohereEmbeddingProvider,
                               FastEmbedEmbeddingProvider
    IVectorStoreProvider   ->  InMemoryVectorStore, ChromaDBProvider,
                               QdrantVectorStore, PineconeVectorStore,
                               WeaviateVectorStore
    IDocumentParser        ->  TextParser, MarkdownParser, CSVParser, HTMLParser,
                               PDFParser, DocxParser
    IDocumentStore         ->  InMemoryDocumentStore, SQLiteDocumentStore
    IReranker              ->  NoopReranker
"""

from ragpipe.interfaces.document_parser import IDocumentParser
from ragpipe.interfaces.document_store import IDocumentStore
from ragpipe.interfaces.embedding_provider import IEmbeddingProvider
from ragpipe.interfaces.reranker import IReranker
from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IDocumentParser",
    "IDocumentStore",
    "IEmbeddingProvider",
    "IReranker",
    "IVectorStoreProvider",
]
