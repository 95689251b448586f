"""Ingestion progress tracking with callback-based listener notification.

Keeps the latest :class:`~ragpipe.models.document.IngestionProgress`
snapshot for each document and broadcasts every update to registered
listeners.  Listeners are keyed by document id; a listener registered
without one receives updates for every document (the CLI uses this to
print progress before it knows the new document's id).

Both sync and async callbacks are supported.  A listener that raises is
logged and skipped; progress reporting never fails an ingestion.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import structlog

from ragpipe.models.document import DocumentStatus, IngestionProgress

logger = structlog.get_logger(logger_name=__name__)

ProgressListener = Callable[[IngestionProgress], Any]

_ALL = "*"


class ProgressTracker:
    """Tracks and broadcasts per-document ingestion progress."""

    def __init__(self) -> None:
        self._snapshots: dict[str, IngestionProgress] = {}
        self._listeners: dict[str, list[ProgressListener]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(
        self,
        document_id: str,
        status: DocumentStatus,
        progress: float,
        message: str = "",
        chunks_processed: int = 0,
        total_chunks: int = 0,
    ) -> IngestionProgress:
        """Record a snapshot and notify listeners; *progress* is clamped to 0-100."""
        snapshot = IngestionProgress(
            document_id=document_id,
            status=status,
            progress=max(0.0, min(100.0, progress)),
            message=message,
            chunks_processed=chunks_processed,
            total_chunks=total_chunks,
        )
        self._snapshots[document_id] = snapshot

        logger.debug(
            "progress_update",
            document_id=document_id,
            status=status.value,
            progress=round(snapshot.progress, 1),
            message=message,
        )
        await self._notify_listeners(snapshot)
        return snapshot

    def get(self, document_id: str) -> IngestionProgress | None:
        return self._snapshots.get(document_id)

    def forget(self, document_id: str) -> None:
        """Drop the snapshot and listeners of a deleted document."""
        self._snapshots.pop(document_id, None)
        self._listeners.pop(document_id, None)

    def register_listener(
        self, callback: ProgressListener, document_id: str | None = None
    ) -> None:
        listeners = self._listeners.setdefault(document_id or _ALL, [])
        if callback not in listeners:
            listeners.append(callback)

    def unregister_listener(
        self, callback: ProgressListener, document_id: str | None = None
    ) -> None:
        listeners = self._listeners.get(document_id or _ALL, [])
        if callback in listeners:
            listeners.remove(callback)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, snapshot: IngestionProgress) -> None:
        listeners = [
            *self._listeners.get(snapshot.document_id, []),
            *self._listeners.get(_ALL, []),
        ]
        for callback in listeners:
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                logger.warning(
                    "listener_callback_error",
                    document_id=snapshot.document_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
