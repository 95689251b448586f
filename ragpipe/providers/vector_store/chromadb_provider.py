"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Uses the cosine space of Chroma's HNSW index, so search is approximate; the
score reported is ``1 - distance`` (cosine similarity).  Fully local, no
external service.
"""

from __future__ import annotations

import os
from typing import Any

# ChromaDB's PostHog telemetry breaks on some posthog versions; turn it off
# before chromadb is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.models.rag import SearchFilter, VectorRecord, VectorSearchResult, VectorStoreStats
from ragpipe.providers.vector_store.metadata import flatten_metadata, restore_metadata
from ragpipe.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 5000
_MAX_DELETE_ROUNDS = 5


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Keeps ChromaDB from loading its default ONNX model.

    ragpipe always passes pre-computed embeddings, so Chroma's built-in
    embedding is never invoked.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("ragpipe passes pre-computed embeddings to ChromaDB")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store backed by ChromaDB with local persistence."""

    def __init__(
        self,
        dimension: int,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "ragpipe_chunks",
        client: Any | None = None,
    ) -> None:
        self._dimension = dimension
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collection: Any | None = None

    async def initialize(self) -> None:
        try:
            self._collection = self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            # Collection persisted with a different embedding function.
            self._collection = self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        self._validate_stored_dimension()

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(self, records: list[VectorRecord]) -> int:
        for record in records:
            self._check_dimension(record.embedding, f"Record {record.id}")
        if not records:
            return 0

        collection = self._require_collection()
        try:
            for start in range(0, len(records), _PAGE_SIZE):
                batch = records[start : start + _PAGE_SIZE]
                collection.upsert(
                    ids=[r.id for r in batch],
                    embeddings=[r.embedding for r in batch],
                    documents=[r.content for r in batch],
                    metadatas=[flatten_metadata(r) for r in batch],
                )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_upsert", count=len(records))
        return len(records)

    async def search(
        self,
        query_embedding: list[float],
        top_k: int,
        search_filter: SearchFilter | None = None,
    ) -> list[VectorSearchResult]:
        self._check_dimension(query_embedding, "Query embedding")
        collection = self._require_collection()
        try:
            total = collection.count()
            if total == 0 or top_k <= 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [query_embedding],
                "n_results": min(top_k, total),
                "include": ["documents", "metadatas", "distances"],
            }
            where = self._translate_filter(search_filter)
            if where:
                kwargs["where"] = where
            raw = collection.query(**kwargs)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = raw["ids"][0] if raw.get("ids") else []
        documents = raw["documents"][0] if raw.get("documents") else [""] * len(ids)
        metadatas = raw["metadatas"][0] if raw.get("metadatas") else [{}] * len(ids)
        distances = raw["distances"][0] if raw.get("distances") else [1.0] * len(ids)

        results = [
            VectorSearchResult(
                id=rid,
                document_id=str(meta.get("document_id", "")),
                chunk_index=int(meta.get("chunk_index", 0)),
                content=doc or "",
                score=1.0 - float(distance),
                metadata=restore_metadata(meta),
            )
            for rid, doc, meta, distance in zip(ids, documents, metadatas, distances, strict=True)
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    async def delete(self, document_id: str) -> int:
        """Delete every record of *document_id*, re-checking until none remain."""
        collection = self._require_collection()
        deleted = 0
        try:
            for _ in range(_MAX_DELETE_ROUNDS):
                page = collection.get(
                    where={"document_id": document_id}, limit=_PAGE_SIZE, include=[]
                )
                ids = page["ids"] or []
                if not ids:
                    logger.info(
                        "chromadb_delete_document",
                        document_id=document_id,
                        deleted_count=deleted,
                    )
                    return deleted
                collection.delete(ids=ids)
                deleted += len(ids)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete failed for {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        remaining = collection.get(where={"document_id": document_id}, limit=1, include=[])
        if remaining["ids"]:
            raise VectorStoreError(
                message=f"Records for {document_id} remain after {_MAX_DELETE_ROUNDS} delete rounds",
                provider_name=self.get_provider_name(),
            )
        return deleted

    async def delete_chunk(self, chunk_id: str) -> bool:
        collection = self._require_collection()
        try:
            existing = collection.get(ids=[chunk_id], include=[])
            if not existing["ids"]:
                return False
            collection.delete(ids=[chunk_id])
            return True
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete_chunk failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_stats(self) -> VectorStoreStats:
        collection = self._require_collection()
        try:
            return VectorStoreStats(total_vectors=collection.count(), dimension=self._dimension)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB get_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "chroma"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise VectorStoreError(
                message="ChromaDB collection used before initialize()",
                provider_name=self.get_provider_name(),
            )
        return self._collection

    def _validate_stored_dimension(self) -> None:
        """Fail fast when the persisted corpus was built with another dimension."""
        collection = self._require_collection()
        if collection.count() == 0:
            return
        sample = collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return
        stored = len(embeddings[0])
        if stored != self._dimension:
            raise VectorStoreError(
                message=(
                    f"Collection {self._collection_name} holds {stored}-dim vectors, "
                    f"configured dimension is {self._dimension}"
                ),
                provider_name=self.get_provider_name(),
            )

    @staticmethod
    def _translate_filter(search_filter: SearchFilter | None) -> dict[str, Any] | None:
        """Translate a :class:`SearchFilter` into a Chroma ``where`` clause."""
        if search_filter is None:
            return None
        clauses: list[dict[str, Any]] = []
        if search_filter.user_id is not None:
            clauses.append({"user_id": search_filter.user_id})
        if search_filter.document_ids:
            clauses.append({"document_id": {"$in": list(search_filter.document_ids)}})
        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
