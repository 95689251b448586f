"""Weaviate vector store adapter (weaviate-client v4).

Vectors are supplied by ragpipe (the collection has no vectorizer) and the
HNSW index uses cosine distance; the score reported is ``1 - distance``.
Weaviate object ids must be UUIDs, so each record id is mapped with
``generate_uuid5`` and kept in the ``record_id`` property.  Free-form record
metadata is stored as one JSON text property.

The collection schema does not record a vector dimension, so unlike the
other stores a dimension mismatch with existing data is not detected at
startup.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import urlparse

import structlog
import weaviate
from weaviate.classes.config import (
    Configure,
    DataType,
    Property,
    Tokenization,
    VectorDistances,
)
from weaviate.classes.data import DataObject
from weaviate.classes.init import Auth
from weaviate.classes.query import Filter, MetadataQuery
from weaviate.util import generate_uuid5

from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.models.rag import SearchFilter, VectorRecord, VectorSearchResult, VectorStoreStats
from ragpipe.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_INSERT_PAGE = 500
_MAX_DELETE_ROUNDS = 5

_PROPERTIES = [
    Property(name="record_id", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
    Property(name="document_id", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
    Property(name="user_id", data_type=DataType.TEXT, tokenization=Tokenization.FIELD),
    Property(name="chunk_index", data_type=DataType.INT),
    Property(name="content", data_type=DataType.TEXT),
    Property(name="metadata_json", data_type=DataType.TEXT, skip_vectorization=True),
]


class WeaviateVectorStore(IVectorStoreProvider):
    """Vector store backed by a Weaviate collection."""

    def __init__(
        self,
        dimension: int,
        url: str = "http://localhost:8080",
        collection_name: str = "RagpipeChunks",
        api_key: str = "",
        client: Any | None = None,
    ) -> None:
        self._dimension = dimension
        self._url = url
        self._api_key = api_key
        self._collection_name = collection_name
        self._client = client
        self._collection: Any | None = None

    async def initialize(self) -> None:
        """Connect, then create the collection when it is missing."""
        try:
            if self._client is None:
                self._client = self._connect()
            if not self._client.collections.exists(self._collection_name):
                self._client.collections.create(
                    name=self._collection_name,
                    vectorizer_config=Configure.Vectorizer.none(),
                    vector_index_config=Configure.VectorIndex.hnsw(
                        distance_metric=VectorDistances.COSINE
                    ),
                    properties=_PROPERTIES,
                )
                logger.info("weaviate_collection_created", collection=self._collection_name)
            self._collection = self._client.collections.get(self._collection_name)
        except Exception as exc:
            raise VectorStoreError(
                message=f"Weaviate initialize failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()

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
            for start in range(0, len(records), _INSERT_PAGE):
                objects = [
                    DataObject(
                        uuid=generate_uuid5(r.id),
                        properties=self._record_to_properties(r),
                        vector=r.embedding,
                    )
                    for r in records[start : start + _INSERT_PAGE]
                ]
                response = collection.data.insert_many(objects)
                if response.has_errors:
                    first = next(iter(response.errors.values()))
                    raise VectorStoreError(
                        message=(
                            f"Weaviate rejected {len(response.errors)} objects: "
                            f"{first.message}"
                        ),
                        provider_name=self.get_provider_name(),
                    )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"Weaviate upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("weaviate_upsert", count=len(records))
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

        try:
            response = self._require_collection().query.near_vector(
                near_vector=query_embedding,
                limit=top_k,
                filters=self._translate_filter(search_filter),
                return_metadata=MetadataQuery(distance=True),
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"Weaviate query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        results = []
        for obj in response.objects:
            props = obj.properties
            metadata = json.loads(props.get("metadata_json") or "{}")
            distance = obj.metadata.distance if obj.metadata.distance is not None else 1.0
            results.append(
                VectorSearchResult(
                    id=props.get("record_id") or str(obj.uuid),
                    document_id=str(props.get("document_id", "")),
                    chunk_index=int(props.get("chunk_index") or 0),
                    content=props.get("content") or "",
                    score=1.0 - float(distance),
                    metadata=metadata,
                )
            )
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    async def delete(self, document_id: str) -> int:
        """Delete by property filter, then re-count until no objects remain."""
        collection = self._require_collection()
        where = Filter.by_property("document_id").equal(document_id)
        deleted = 0
        try:
            for _ in range(_MAX_DELETE_ROUNDS):
                if self._count(where) == 0:
                    logger.info(
                        "weaviate_delete_document",
                        document_id=document_id,
                        deleted_count=deleted,
                    )
                    return deleted
                deleted += collection.data.delete_many(where=where).successful
        except Exception as exc:
            raise VectorStoreError(
                message=f"Weaviate delete failed for {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        raise VectorStoreError(
            message=f"Objects for {document_id} remain after {_MAX_DELETE_ROUNDS} delete rounds",
            provider_name=self.get_provider_name(),
        )

    async def delete_chunk(self, chunk_id: str) -> bool:
        collection = self._require_collection()
        object_id = generate_uuid5(chunk_id)
        try:
            if collection.query.fetch_object_by_id(object_id) is None:
                return False
            collection.data.delete_by_id(object_id)
            return True
        except Exception as exc:
            raise VectorStoreError(
                message=f"Weaviate delete_chunk failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_stats(self) -> VectorStoreStats:
        try:
            total = self._count(None)
        except Exception as exc:
            raise VectorStoreError(
                message=f"Weaviate get_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return VectorStoreStats(total_vectors=total, dimension=self._dimension)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "weaviate"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect(self) -> Any:
        if self._api_key:
            return weaviate.connect_to_weaviate_cloud(
                cluster_url=self._url, auth_credentials=Auth.api_key(self._api_key)
            )
        parsed = urlparse(self._url)
        return weaviate.connect_to_local(
            host=parsed.hostname or "localhost", port=parsed.port or 8080
        )

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise VectorStoreError(
                message="Weaviate collection used before initialize()",
                provider_name=self.get_provider_name(),
            )
        return self._collection

    def _count(self, where: Any | None) -> int:
        result = self._require_collection().aggregate.over_all(filters=where, total_count=True)
        return int(result.total_count or 0)

    @staticmethod
    def _record_to_properties(record: VectorRecord) -> dict[str, Any]:
        return {
            "record_id": record.id,
            "document_id": record.document_id,
            "user_id": str(record.metadata.get("user_id") or ""),
            "chunk_index": record.chunk_index,
            "content": record.content,
            "metadata_json": json.dumps(record.metadata, default=str),
        }

    @staticmethod
    def _translate_filter(search_filter: SearchFilter | None) -> Any | None:
        """Translate a :class:`SearchFilter` into a Weaviate filter."""
        if search_filter is None:
            return None
        clauses = []
        if search_filter.user_id is not None:
            clauses.append(Filter.by_property("user_id").equal(search_filter.user_id))
        if search_filter.document_ids:
            clauses.append(
                Filter.by_property("document_id").contains_any(list(search_filter.document_ids))
            )
        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return clauses[0] & clauses[1]
