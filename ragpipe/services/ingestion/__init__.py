"""Ingestion: parsing, chunking, batched embedding and storage."""

from ragpipe.services.ingestion.chunker import (
    TextChunker,
    calculate_chunk_quality,
    chunk_by_language,
)
from ragpipe.services.ingestion.ingestion_service import IngestionOptions, IngestionService
from ragpipe.services.ingestion.progress_tracker import ProgressTracker

__all__ = [
    "IngestionOptions",
    "IngestionService",
    "ProgressTracker",
    "TextChunker",
    "calculate_chunk_quality",
    "chunk_by_language",
]
