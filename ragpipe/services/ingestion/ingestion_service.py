"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **parse -> chunk -> embed -> upsert -> persist**.

The :class:`IngestionService` coordinates its collaborators (parser
registry, chunker, embedding provider, vector store, document store)
without any of them knowing about each other.  All of them are injected,
so providers can be swapped (e.g. OpenAI -> local FastEmbed) without
changing this class.

Chunks are embedded and upserted in batches of ``ingestion_batch_size``.
A failed batch is recorded and skipped, never retried here; whatever was
already committed stays committed, and the document ends ``partial``.
Cancellation is cooperative and only observed between batches, so an
in-flight embedding call always completes or fails on its own.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncIterable
from pathlib import Path
from typing import Any, BinaryIO, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ragpipe.config.rag_config import ChunkingOptions, RagConfig
from ragpipe.interfaces.document_store import IDocumentStore
from ragpipe.interfaces.embedding_provider import IEmbeddingProvider
from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.models.document import (
    ChunkRecord,
    Document,
    DocumentStatus,
    IngestionProgress,
    IngestionResult,
    IngestionStatus,
    ParsedDocument,
)
from ragpipe.models.rag import ChunkingStrategy, TextChunk, VectorRecord
from ragpipe.services.ingestion.chunker import TextChunker, calculate_chunk_quality
from ragpipe.services.ingestion.parsers.registry import ParserRegistry
from ragpipe.services.ingestion.progress_tracker import ProgressTracker
from ragpipe.utils.errors import (
    DocumentStoreError,
    EmbeddingError,
    IngestionCancelledError,
    ParseError,
    VectorStoreError,
)

logger = structlog.get_logger(logger_name=__name__)

#: Anything :meth:`IngestionService.ingest_document` accepts as input.
DocumentSource = Union[str, Path, bytes, AsyncIterable[bytes], BinaryIO]

_NOT_FOUND = "Document not found or has no content"
_NO_CONTENT = "No content to chunk"


class IngestionOptions(BaseModel):
    """Per-call ingestion options."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    filename: str | None = Field(
        default=None,
        description="Name used to pick the parser; required for bytes and stream sources.",
    )
    chunking: ChunkingOptions | None = Field(
        default=None, description="Overrides the configured chunking options."
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Merged into the document's metadata."
    )


class IngestionService:
    """Runs documents through parse -> chunk -> embed -> upsert -> persist.

    Parameters
    ----------
    config:
        Pipeline configuration (batch size, default chunking options).
    embedding_provider:
        Generates embedding vectors for chunk text.
    vector_store:
        Stores embedded chunks for similarity search.
    document_store:
        Persists Document and Chunk records.
    chunker:
        Splits text; defaults to a :class:`TextChunker` built from *config*.
    parsers:
        Resolves a filename to a parser; defaults to :class:`ParserRegistry`.
    progress:
        Receives a snapshot after every stage and batch.
    """

    def __init__(
        self,
        config: RagConfig,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        document_store: IDocumentStore,
        chunker: TextChunker | None = None,
        parsers: ParserRegistry | None = None,
        progress: ProgressTracker | None = None,
    ) -> None:
        self._config = config
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._document_store = document_store
        self._chunker = chunker or TextChunker(config.chunking_options())
        self._parsers = parsers or ParserRegistry()
        self._progress = progress or ProgressTracker()

    @property
    def progress(self) -> ProgressTracker:
        return self._progress

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_document(
        self,
        source: DocumentSource,
        user_id: str,
        options: IngestionOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> IngestionResult:
        """Ingest one document for *user_id*.

        Parameters
        ----------
        source:
            A file path, raw bytes, an async byte iterator, or a binary file
            object.  Non-path sources need ``options.filename``.
        cancel_event:
            When set, ingestion stops before the next batch and the
            document ends ``partial`` (or ``failed`` if nothing was stored).

        Returns
        -------
        IngestionResult
            ``failed`` with an empty ``document_id`` when parsing fails.
        """
        start = time.monotonic()
        options = options or IngestionOptions()

        try:
            parsed = await self._parse(source, options)
        except ParseError as exc:
            logger.warning("ingestion_parse_failed", error=str(exc))
            return IngestionResult(
                document_id="",
                status=IngestionStatus.FAILED,
                errors=[str(exc)],
                elapsed_seconds=round(time.monotonic() - start, 3),
            )

        meta = parsed.metadata
        document = Document(
            id=str(uuid.uuid4()),
            user_id=user_id,
            name=meta.title or meta.file_name or "Untitled",
            type=meta.file_type,
            size=meta.file_size,
            content=parsed.content,
            metadata={
                **meta.model_dump(exclude={"extra"}, exclude_none=True),
                **meta.extra,
                **options.metadata,
            },
        )
        await self._document_store.create_document(document)
        await self._document_store.update_status(document.id, DocumentStatus.PROCESSING)
        logger.info(
            "ingestion_started",
            document_id=document.id,
            name=document.name,
            size=document.size,
        )
        return await self._process(document, options.chunking, cancel_event, start)

    async def reprocess_document(
        self,
        document_id: str,
        chunking_options: ChunkingOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> IngestionResult:
        """Delete a document's vectors and chunks, then rerun from stored content."""
        start = time.monotonic()
        document = await self._document_store.get_document(document_id)
        if document is None or not document.content:
            return IngestionResult(
                document_id=document_id,
                status=IngestionStatus.FAILED,
                errors=[_NOT_FOUND],
            )

        removed = await self._vector_store.delete(document_id)
        await self._document_store.delete_chunks(document_id)
        document = await self._document_store.update_status(
            document_id, DocumentStatus.PROCESSING, chunks_count=0
        )
        logger.info("reprocess_started", document_id=document_id, removed_vectors=removed)
        return await self._process(document, chunking_options, cancel_event, start)

    async def delete_document(self, document_id: str) -> bool:
        """Remove vectors, chunk records and the document; True if it existed."""
        removed = await self._vector_store.delete(document_id)
        chunks = await self._document_store.delete_chunks(document_id)
        existed = await self._document_store.delete_document(document_id)
        self._progress.forget(document_id)
        logger.info(
            "document_deleted",
            document_id=document_id,
            vectors=removed,
            chunks=chunks,
            existed=existed,
        )
        return existed

    def get_progress(self, document_id: str) -> IngestionProgress | None:
        return self._progress.get(document_id)

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    async def _parse(self, source: DocumentSource, options: IngestionOptions) -> ParsedDocument:
        if isinstance(source, (str, Path)):
            return await self._parsers.parse_file(source)
        if not options.filename:
            raise ParseError("A filename is required to ingest bytes or a stream")
        if isinstance(source, bytes):
            return self._parsers.parse_bytes(source, options.filename)
        return await self._parsers.parse_stream(source, options.filename)

    async def _process(
        self,
        document: Document,
        chunking: ChunkingOptions | None,
        cancel_event: asyncio.Event | None,
        start: float,
    ) -> IngestionResult:
        doc_id = document.id
        await self._progress.update(doc_id, DocumentStatus.PROCESSING, 0.0, "Chunking")

        chunks = await self._chunk(document.content, chunking)
        if not chunks:
            return await self._finish(doc_id, 0, [_NO_CONTENT], start, total_chunks=0)

        errors: list[str] = []
        stored = 0
        batch_size = self._config.ingestion_batch_size
        total_batches = -(-len(chunks) // batch_size)

        try:
            for batch_no in range(total_batches):
                self._check_cancelled(cancel_event, batch_no, total_batches)
                batch = chunks[batch_no * batch_size : (batch_no + 1) * batch_size]
                stored += await self._embed_and_store(document, batch, batch_no, errors)
                done = min((batch_no + 1) * batch_size, len(chunks))
                await self._progress.update(
                    doc_id,
                    DocumentStatus.PROCESSING,
                    100.0 * (batch_no + 1) / total_batches,
                    f"Embedded batch {batch_no + 1}/{total_batches}",
                    chunks_processed=done,
                    total_chunks=len(chunks),
                )
        except IngestionCancelledError as exc:
            logger.info("ingestion_cancelled", document_id=doc_id, stored_chunks=stored)
            errors.append(str(exc))

        return await self._finish(doc_id, stored, errors, start, total_chunks=len(chunks))

    async def _chunk(self, content: str, chunking: ChunkingOptions | None) -> list[TextChunk]:
        opts = chunking or self._chunker.options
        if opts.strategy is not ChunkingStrategy.SEMANTIC:
            return self._chunker.chunk(content, opts)
        try:
            return await self._chunker.achunk(content, opts, embed_fn=self._embed_vectors)
        except EmbeddingError as exc:
            logger.warning("semantic_chunking_failed", error=str(exc), fallback="paragraph")
            return self._chunker.chunk(content, opts)

    async def _embed_vectors(self, texts: list[str]) -> list[list[float]]:
        """Embedding function handed to the semantic chunker."""
        result = await self._embedding_provider.embed(texts)
        if not result.ok:
            raise EmbeddingError(
                result.errors[0].error,
                provider_name=self._embedding_provider.get_provider_name(),
            )
        return [r.embedding for r in result.results if r is not None]

    async def _embed_and_store(
        self,
        document: Document,
        batch: list[TextChunk],
        batch_no: int,
        errors: list[str],
    ) -> int:
        """Embed one batch, upsert its vectors and persist its chunk records.

        Failures are appended to *errors*; returns the number of chunks that
        reached both stores.
        """
        label = f"Batch {batch_no + 1}"
        try:
            embedded = await self._embedding_provider.embed([c.content for c in batch])
        except EmbeddingError as exc:
            logger.warning("ingestion_batch_embed_failed", batch=batch_no, error=str(exc))
            errors.append(f"{label} embedding failed: {exc}")
            return 0

        for failure in embedded.errors:
            errors.append(
                f"{label} embedding failed for chunks "
                f"{failure.start}-{failure.start + failure.size - 1}: {failure.error}"
            )

        records: list[VectorRecord] = []
        chunk_records: list[ChunkRecord] = []
        for chunk, result in zip(batch, embedded.results):
            if result is None:
                continue
            quality = calculate_chunk_quality(chunk.content)
            metadata = {
                "start_char": chunk.start_char,
                "end_char": chunk.end_char,
                "quality_score": quality,
                "document_name": document.name,
                "user_id": document.user_id,
            }
            record_id = VectorRecord.make_id(document.id, chunk.index)
            records.append(
                VectorRecord(
                    id=record_id,
                    document_id=document.id,
                    chunk_index=chunk.index,
                    embedding=result.embedding,
                    content=chunk.content,
                    metadata=metadata,
                )
            )
            chunk_records.append(
                ChunkRecord(
                    id=record_id,
                    document_id=document.id,
                    chunk_index=chunk.index,
                    content=chunk.content,
                    start_char=chunk.start_char,
                    end_char=chunk.end_char,
                    quality_score=quality,
                    metadata={**chunk.metadata, **metadata},
                )
            )

        if not records:
            return 0

        try:
            await self._vector_store.upsert(records)
            await self._document_store.upsert_chunks(chunk_records)
        except (VectorStoreError, DocumentStoreError) as exc:
            logger.error("ingestion_batch_store_failed", batch=batch_no, error=str(exc))
            errors.append(f"{label} storage failed: {exc}")
            await self._rollback_vectors(records, batch_no, label, errors)
            return 0
        return len(records)

    async def _rollback_vectors(
        self,
        records: list[VectorRecord],
        batch_no: int,
        label: str,
        errors: list[str],
    ) -> None:
        """Remove a failed batch's vectors so no chunk is searchable without a record."""
        removed = 0
        for record in records:
            try:
                if await self._vector_store.delete_chunk(record.id):
                    removed += 1
            except VectorStoreError as exc:
                logger.error(
                    "ingestion_batch_rollback_failed",
                    batch=batch_no,
                    chunk_id=record.id,
                    error=str(exc),
                )
                errors.append(f"{label} rollback failed for {record.id}: {exc}")
        logger.warning("ingestion_batch_rolled_back", batch=batch_no, removed=removed)

    async def _finish(
        self,
        document_id: str,
        stored: int,
        errors: list[str],
        start: float,
        total_chunks: int,
    ) -> IngestionResult:
        if stored == 0:
            status = IngestionStatus.FAILED
        elif errors:
            status = IngestionStatus.PARTIAL
        else:
            status = IngestionStatus.COMPLETED

        doc_status = DocumentStatus(status.value)
        await self._document_store.update_status(document_id, doc_status, chunks_count=stored)
        await self._progress.update(
            document_id,
            doc_status,
            100.0,
            errors[-1] if errors else "Done",
            chunks_processed=stored,
            total_chunks=total_chunks,
        )

        result = IngestionResult(
            document_id=document_id,
            chunks_count=stored,
            status=status,
            errors=errors,
            elapsed_seconds=round(time.monotonic() - start, 3),
        )
        log = logger.info if status is IngestionStatus.COMPLETED else logger.warning
        log(
            "ingestion_complete",
            document_id=document_id,
            status=status.value,
            chunks=stored,
            errors=len(errors),
            time_s=result.elapsed_seconds,
        )
        return result

    @staticmethod
    def _check_cancelled(
        cancel_event: asyncio.Event | None, batch_no: int, total_batches: int
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise IngestionCancelledError(
                f"Ingestion cancelled before batch {batch_no + 1}/{total_batches}"
            )
