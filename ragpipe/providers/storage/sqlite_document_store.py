"""SQLite-backed document store.

Persists Document and Chunk records to a local SQLite database (default
``data/ragpipe.db``) using ``aiosqlite`` for async I/O.  Metadata columns
hold JSON text.  Chunks reference their document with ``ON DELETE CASCADE``
so removing a document can never orphan chunk rows.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from ragpipe.interfaces.document_store import IDocumentStore
from ragpipe.models.document import ChunkRecord, Document, DocumentStatus, can_transition
from ragpipe.utils.errors import DocumentStoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/ragpipe.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id               TEXT PRIMARY KEY,
    user_id          TEXT NOT NULL,
    name             TEXT NOT NULL,
    type             TEXT NOT NULL,
    size             INTEGER NOT NULL DEFAULT 0,
    content          TEXT NOT NULL DEFAULT '',
    status           TEXT NOT NULL,
    embedding_status TEXT NOT NULL,
    chunks_count     INTEGER NOT NULL DEFAULT 0,
    metadata         TEXT NOT NULL DEFAULT '{}',
    created_at       TEXT NOT NULL,
    processed_at     TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    id            TEXT PRIMARY KEY,
    document_id   TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index   INTEGER NOT NULL,
    content       TEXT NOT NULL,
    start_char    INTEGER NOT NULL,
    end_char      INTEGER NOT NULL,
    quality_score REAL NOT NULL DEFAULT 0,
    metadata      TEXT NOT NULL DEFAULT '{}'
);
""",
    "CREATE INDEX IF NOT EXISTS idx_documents_user ON documents(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);",
]

_INSERT_DOCUMENT_SQL = """\
INSERT INTO documents (id, user_id, name, type, size, content, status,
                       embedding_status, chunks_count, metadata, created_at, processed_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPSERT_CHUNK_SQL = """\
INSERT INTO chunks (id, document_id, chunk_index, content, start_char, end_char,
                    quality_score, metadata)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
    chunk_index   = excluded.chunk_index,
    content       = excluded.content,
    start_char    = excluded.start_char,
    end_char      = excluded.end_char,
    quality_score = excluded.quality_score,
    metadata      = excluded.metadata;
"""


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed document and chunk persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(self, document: Document) -> Document:
        try:
            async with self._connect() as db:
                await db.execute(
                    _INSERT_DOCUMENT_SQL,
                    (
                        document.id,
                        document.user_id,
                        document.name,
                        document.type,
                        document.size,
                        document.content,
                        document.status.value,
                        document.embedding_status.value,
                        document.chunks_count,
                        json.dumps(document.metadata, default=str),
                        document.created_at.isoformat(),
                        document.processed_at.isoformat() if document.processed_at else None,
                    ),
                )
                await db.commit()
        except aiosqlite.IntegrityError as exc:
            raise DocumentStoreError(f"Document {document.id} already exists", "sqlite") from exc
        return document

    async def get_document(self, document_id: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
        return self._row_to_document(dict(row)) if row else None

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunks_count: int | None = None,
    ) -> Document:
        document = await self.get_document(document_id)
        if document is None:
            raise DocumentStoreError(f"Document {document_id} not found", "sqlite")
        if not can_transition(document.status, status):
            raise DocumentStoreError(
                f"Illegal status transition {document.status.value} -> {status.value}",
                "sqlite",
            )

        document.status = status
        document.embedding_status = status
        if chunks_count is not None:
            document.chunks_count = chunks_count
        if status in (DocumentStatus.COMPLETED, DocumentStatus.PARTIAL):
            document.processed_at = datetime.now(tz=timezone.utc)

        async with self._connect() as db:
            await db.execute(
                "UPDATE documents SET status = ?, embedding_status = ?, chunks_count = ?, "
                "processed_at = ? WHERE id = ?",
                (
                    document.status.value,
                    document.embedding_status.value,
                    document.chunks_count,
                    document.processed_at.isoformat() if document.processed_at else None,
                    document_id,
                ),
            )
            await db.commit()
        return document

    async def delete_document(self, document_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
            return cursor.rowcount > 0

    async def list_documents(self, user_id: str | None = None) -> list[Document]:
        async with self._connect() as db:
            if user_id is None:
                cursor = await db.execute("SELECT * FROM documents ORDER BY created_at")
            else:
                cursor = await db.execute(
                    "SELECT * FROM documents WHERE user_id = ? ORDER BY created_at", (user_id,)
                )
            rows = await cursor.fetchall()
        return [self._row_to_document(dict(r)) for r in rows]

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def upsert_chunks(self, chunks: list[ChunkRecord]) -> int:
        if not chunks:
            return 0
        rows = [
            (
                c.id,
                c.document_id,
                c.chunk_index,
                c.content,
                c.start_char,
                c.end_char,
                c.quality_score,
                json.dumps(c.metadata, default=str),
            )
            for c in chunks
        ]
        try:
            async with self._connect() as db:
                await db.executemany(_UPSERT_CHUNK_SQL, rows)
                await db.commit()
        except aiosqlite.IntegrityError as exc:
            raise DocumentStoreError(f"Chunk upsert failed: {exc}", "sqlite") from exc
        return len(chunks)

    async def list_chunks(self, document_id: str) -> list[ChunkRecord]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_chunk(dict(r)) for r in rows]

    async def delete_chunks(self, document_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            await db.commit()
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect(self) -> _Connection:
        return _Connection(self._db_path)

    @staticmethod
    def _row_to_document(row: dict[str, Any]) -> Document:
        return Document(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            type=row["type"],
            size=row["size"],
            content=row["content"],
            status=DocumentStatus(row["status"]),
            embedding_status=DocumentStatus(row["embedding_status"]),
            chunks_count=row["chunks_count"],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
            processed_at=(
                datetime.fromisoformat(row["processed_at"]) if row["processed_at"] else None
            ),
        )

    @staticmethod
    def _row_to_chunk(row: dict[str, Any]) -> ChunkRecord:
        return ChunkRecord(
            id=row["id"],
            document_id=row["document_id"],
            chunk_index=row["chunk_index"],
            content=row["content"],
            start_char=row["start_char"],
            end_char=row["end_char"],
            quality_score=row["quality_score"],
            metadata=json.loads(row["metadata"] or "{}"),
        )


class _Connection:
    """``async with`` wrapper: opens aiosqlite with Row factory and FK checks on."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._db: aiosqlite.Connection | None = None

    async def __aenter__(self) -> aiosqlite.Connection:
        self._db = await aiosqlite.connect(str(self._path))
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        return self._db

    async def __aexit__(self, *exc_info: object) -> None:
        if self._db is not None:
            await self._db.close()
