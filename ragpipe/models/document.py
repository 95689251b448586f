"""Document lifecycle models for the ingestion pipeline.

A :class:`Document` is the ingested source; it exclusively owns its
:class:`ChunkRecord` rows and the vector records derived from them.
Status moves forward only (pending -> processing -> completed/partial/
failed); the one backward edge is a retry from failed or partial back to
processing, which ``reprocess`` uses.

Unlike the frozen RAG models, :class:`Document` is mutable because the
document store updates it in place as ingestion advances.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatus(str, Enum):
    """Processing state of an ingested document."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


# Allowed status edges.  Terminal states may only go back to PROCESSING
# (retry); everything else is forward-only.
_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.PROCESSING, DocumentStatus.FAILED}),
    DocumentStatus.PROCESSING: frozenset(
        {DocumentStatus.COMPLETED, DocumentStatus.PARTIAL, DocumentStatus.FAILED}
    ),
    DocumentStatus.COMPLETED: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.PARTIAL: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.FAILED: frozenset({DocumentStatus.PROCESSING}),
}


def can_transition(old: DocumentStatus, new: DocumentStatus) -> bool:
    """Return True when moving a document from *old* to *new* is allowed.

    ``COMPLETED -> PROCESSING`` is permitted because reprocessing with new
    chunking options deletes and recreates every chunk.
    """
    if old == new:
        return True
    return new in _TRANSITIONS[old]


class DocumentMetadata(BaseModel):
    """Metadata a parser extracts alongside the plain text."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    file_name: str = ""
    file_type: str = "text/plain"
    file_size: int = Field(default=0, ge=0)
    page_count: int | None = None
    language: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class ParsedDocument(BaseModel):
    """Plain text plus metadata, as produced by a document parser."""

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: DocumentMetadata


class Document(BaseModel):
    """Persisted document record."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    user_id: str
    name: str
    type: str = "text/plain"
    size: int = 0
    content: str = ""
    status: DocumentStatus = DocumentStatus.PENDING
    embedding_status: DocumentStatus = DocumentStatus.PENDING
    chunks_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    processed_at: datetime | None = None


class ChunkRecord(BaseModel):
    """Persisted chunk row, one per embedded :class:`~ragpipe.models.rag.TextChunk`."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    chunk_index: int = Field(ge=0)
    content: str
    start_char: int = Field(ge=0)
    end_char: int = Field(ge=0)
    quality_score: float = Field(default=0.0, ge=0.0, le=100.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class IngestionStatus(str, Enum):
    """Overall outcome of one ingestion call."""

    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class IngestionResult(BaseModel):
    """Summary of a single ingestion or reprocess run."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Id of the document; empty when parsing failed.")
    chunks_count: int = Field(default=0, ge=0, description="Chunks embedded and stored.")
    status: IngestionStatus
    errors: list[str] = Field(default_factory=list)
    elapsed_seconds: float = Field(default=0.0, ge=0.0)


class IngestionProgress(BaseModel):
    """Per-document progress snapshot broadcast by the progress tracker."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    status: DocumentStatus = DocumentStatus.PENDING
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    message: str = ""
    chunks_processed: int = 0
    total_chunks: int = 0
