"""Qdrant vector store adapter built on qdrant-client's ``AsyncQdrantClient``.

Qdrant point ids must be unsigned ints or UUIDs, so each record id
``{document_id}-chunk-{index}`` is mapped to a deterministic UUIDv5 and the
original id is kept in the payload under ``record_id``.

Search is approximate (HNSW).  Qdrant's ``Cosine`` distance reports cosine
similarity directly as the score.  The client is injectable; tests pass
``AsyncQdrantClient(location=":memory:")``.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable
from typing import Any, TypeVar

import structlog
from qdrant_client import AsyncQdrantClient, models

from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.models.rag import SearchFilter, VectorRecord, VectorSearchResult, VectorStoreStats
from ragpipe.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

_UPSERT_PAGE = 256
_MAX_DELETE_ROUNDS = 5
# Namespace for record-id -> point-id mapping; fixed so ids stay stable.
_POINT_NAMESPACE = uuid.UUID("6f1d2c1e-8a3b-4d8e-9c55-2f0b7e4a9d31")
_INDEXED_FIELDS = ("user_id", "document_id")


def point_id(record_id: str) -> str:
    """Return the Qdrant point UUID for a ragpipe record id."""
    return str(uuid.uuid5(_POINT_NAMESPACE, record_id))


class QdrantVectorStore(IVectorStoreProvider):
    """Vector store backed by a Qdrant collection."""

    def __init__(
        self,
        dimension: int,
        url: str = "http://localhost:6333",
        collection_name: str = "ragpipe_chunks",
        api_key: str = "",
        client: AsyncQdrantClient | None = None,
    ) -> None:
        self._dimension = dimension
        self._collection = collection_name
        self._client = client or AsyncQdrantClient(
            url=url, api_key=api_key or None, timeout=30
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the collection (and payload indexes) when it is missing."""
        exists = await self._call(
            "collection_exists", self._client.collection_exists(self._collection)
        )
        if not exists:
            await self._call(
                "create_collection",
                self._client.create_collection(
                    collection_name=self._collection,
                    vectors_config=models.VectorParams(
                        size=self._dimension, distance=models.Distance.COSINE
                    ),
                ),
            )
            for field in _INDEXED_FIELDS:
                await self._call(
                    "create_payload_index",
                    self._client.create_payload_index(
                        collection_name=self._collection,
                        field_name=field,
                        field_schema=models.PayloadSchemaType.KEYWORD,
                    ),
                )
            logger.info("qdrant_collection_created", collection=self._collection)
            return

        info = await self._call("get_collection", self._client.get_collection(self._collection))
        stored = getattr(info.config.params.vectors, "size", None)
        if stored is not None and int(stored) != self._dimension:
            raise VectorStoreError(
                message=(
                    f"Collection {self._collection} has {stored}-dim vectors, "
                    f"configured dimension is {self._dimension}"
                ),
                provider_name=self.get_provider_name(),
            )

    async def close(self) -> None:
        await self._client.close()

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(self, records: list[VectorRecord]) -> int:
        for record in records:
            self._check_dimension(record.embedding, f"Record {record.id}")

        for start in range(0, len(records), _UPSERT_PAGE):
            points = [
                models.PointStruct(
                    id=point_id(r.id),
                    vector=r.embedding,
                    payload={
                        **r.metadata,
                        "record_id": r.id,
                        "document_id": r.document_id,
                        "chunk_index": r.chunk_index,
                        "content": r.content,
                    },
                )
                for r in records[start : start + _UPSERT_PAGE]
            ]
            await self._call(
                "upsert",
                self._client.upsert(
                    collection_name=self._collection, points=points, wait=True
                ),
            )
        logger.info("qdrant_upsert", count=len(records))
        return len(records)

    async def search(
        self,
        query_embedding: list[float],
        top_k: int,
        search_filter: SearchFilter | None = None,
    ) -> list[VectorSearchResult]:
        self._check_dimension(query_embedding, "Query embedding")
        if top_k <= 0:
            return []

        response = await self._call(
            "query_points",
            self._client.query_points(
                collection_name=self._collection,
                query=query_embedding,
                limit=top_k,
                query_filter=self._translate_filter(search_filter),
                with_payload=True,
            ),
        )
        results = []
        for hit in response.points:
            payload = dict(hit.payload or {})
            record_id = payload.pop("record_id", str(hit.id))
            content = payload.pop("content", "")
            results.append(
                VectorSearchResult(
                    id=record_id,
                    document_id=str(payload.get("document_id", "")),
                    chunk_index=int(payload.get("chunk_index", 0)),
                    content=content,
                    score=float(hit.score),
                    metadata=payload,
                )
            )
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    async def delete(self, document_id: str) -> int:
        """Delete by payload filter, then re-count until no points remain."""
        doc_filter = models.Filter(
            must=[
                models.FieldCondition(
                    key="document_id", match=models.MatchValue(value=document_id)
                )
            ]
        )
        before = await self._count(doc_filter)
        for _ in range(_MAX_DELETE_ROUNDS):
            await self._call(
                "delete",
                self._client.delete(
                    collection_name=self._collection,
                    points_selector=models.FilterSelector(filter=doc_filter),
                    wait=True,
                ),
            )
            if await self._count(doc_filter) == 0:
                logger.info("qdrant_delete_document", document_id=document_id, deleted_count=before)
                return before
        raise VectorStoreError(
            message=f"Points for {document_id} remain after {_MAX_DELETE_ROUNDS} delete rounds",
            provider_name=self.get_provider_name(),
        )

    async def delete_chunk(self, chunk_id: str) -> bool:
        pid = point_id(chunk_id)
        found = await self._call(
            "retrieve",
            self._client.retrieve(
                collection_name=self._collection,
                ids=[pid],
                with_payload=False,
                with_vectors=False,
            ),
        )
        if not found:
            return False
        await self._call(
            "delete",
            self._client.delete(
                collection_name=self._collection,
                points_selector=models.PointIdsList(points=[pid]),
                wait=True,
            ),
        )
        return True

    async def get_stats(self) -> VectorStoreStats:
        total = await self._count(None)
        return VectorStoreStats(total_vectors=total, dimension=self._dimension)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "qdrant"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _count(self, qfilter: models.Filter | None) -> int:
        result = await self._call(
            "count",
            self._client.count(
                collection_name=self._collection, count_filter=qfilter, exact=True
            ),
        )
        return int(result.count)

    async def _call(self, operation: str, pending: Awaitable[_T]) -> _T:
        """Await a client call, wrapping any client failure in VectorStoreError."""
        try:
            return await pending
        except Exception as exc:
            raise VectorStoreError(
                message=f"Qdrant {operation} on {self._collection} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    @staticmethod
    def _translate_filter(search_filter: SearchFilter | None) -> models.Filter | None:
        if search_filter is None:
            return None
        must: list[Any] = []
        if search_filter.user_id is not None:
            must.append(
                models.FieldCondition(
                    key="user_id", match=models.MatchValue(value=search_filter.user_id)
                )
            )
        if search_filter.document_ids:
            must.append(
                models.FieldCondition(
                    key="document_id",
                    match=models.MatchAny(any=list(search_filter.document_ids)),
                )
            )
        return models.Filter(must=must) if must else None
