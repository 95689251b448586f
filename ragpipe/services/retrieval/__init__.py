"""Retrieval: query transforms, similarity search and context assembly."""

from ragpipe.services.retrieval.context_assembler import (
    ContextAssembler,
    estimate_tokens,
    format_chunk_for_display,
    truncate_context,
)
from ragpipe.services.retrieval.query_service import (
    QueryOptions,
    QueryResult,
    RagQueryService,
    RetrieveResult,
)
from ragpipe.services.retrieval.query_transformer import QueryTransformer
from ragpipe.services.retrieval.reranker import NoopReranker
from ragpipe.services.retrieval.retriever import RetrievalOptions, Retriever

__all__ = [
    "ContextAssembler",
    "NoopReranker",
    "QueryOptions",
    "QueryResult",
    "QueryTransformer",
    "RagQueryService",
    "RetrievalOptions",
    "RetrieveResult",
    "Retriever",
    "estimate_tokens",
    "format_chunk_for_display",
    "truncate_context",
]
