"""Pinecone vector store adapter.

Wraps the ``pinecone`` SDK's serverless index.  The index is created with the
cosine metric, so match scores are cosine similarity.  Chunk text travels in
the vector metadata under ``content`` (truncated to stay inside Pinecone's
per-vector metadata limit).

Serverless indexes cannot delete by metadata filter, so document deletion
lists ids by the ``{document_id}-chunk-`` prefix and deletes those.  Reads
are eventually consistent; deletion re-lists until nothing remains.
"""

from __future__ import annotations

from typing import Any

import structlog
from pinecone import Pinecone, ServerlessSpec

from ragpipe.interfaces.vector_store_provider import IVectorStoreProvider
from ragpipe.models.rag import SearchFilter, VectorRecord, VectorSearchResult, VectorStoreStats
from ragpipe.providers.vector_store.metadata import flatten_metadata, restore_metadata
from ragpipe.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

# Pinecone caps requests at 2MB; 100 vectors is the documented safe page.
_UPSERT_PAGE = 100
_MAX_DELETE_ROUNDS = 5
_MAX_CONTENT_CHARS = 10_000


class PineconeVectorStore(IVectorStoreProvider):
    """Vector store backed by a Pinecone serverless index."""

    def __init__(
        self,
        dimension: int,
        api_key: str = "",
        index_name: str = "ragpipe-chunks",
        namespace: str = "",
        cloud: str = "aws",
        region: str = "us-east-1",
        client: Any | None = None,
    ) -> None:
        self._dimension = dimension
        self._index_name = index_name
        self._namespace = namespace
        self._spec = ServerlessSpec(cloud=cloud, region=region)
        self._client = client or Pinecone(api_key=api_key)
        self._index: Any | None = None

    async def initialize(self) -> None:
        """Create the index when missing and check its dimension otherwise."""
        try:
            if self._index_name not in self._client.list_indexes().names():
                self._client.create_index(
                    name=self._index_name,
                    dimension=self._dimension,
                    metric="cosine",
                    spec=self._spec,
                )
                logger.info("pinecone_index_created", index=self._index_name)
            else:
                stored = self._client.describe_index(self._index_name).dimension
                if stored is not None and int(stored) != self._dimension:
                    raise VectorStoreError(
                        message=(
                            f"Index {self._index_name} has {stored}-dim vectors, "
                            f"configured dimension is {self._dimension}"
                        ),
                        provider_name=self.get_provider_name(),
                    )
            self._index = self._client.Index(self._index_name)
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"Pinecone initialize failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(self, records: list[VectorRecord]) -> int:
        for record in records:
            self._check_dimension(record.embedding, f"Record {record.id}")
        if not records:
            return 0

        index = self._require_index()
        try:
            for start in range(0, len(records), _UPSERT_PAGE):
                index.upsert(
                    vectors=[
                        {
                            "id": r.id,
                            "values": r.embedding,
                            "metadata": {
                                **flatten_metadata(r),
                                "content": r.content[:_MAX_CONTENT_CHARS],
                            },
                        }
                        for r in records[start : start + _UPSERT_PAGE]
                    ],
                    namespace=self._namespace,
                )
        except Exception as exc:
            raise VectorStoreError(
                message=f"Pinecone upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("pinecone_upsert", count=len(records))
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

        kwargs: dict[str, Any] = {
            "vector": query_embedding,
            "top_k": top_k,
            "include_metadata": True,
            "namespace": self._namespace,
        }
        metadata_filter = self._translate_filter(search_filter)
        if metadata_filter:
            kwargs["filter"] = metadata_filter
        try:
            response = self._require_index().query(**kwargs)
        except Exception as exc:
            raise VectorStoreError(
                message=f"Pinecone query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        results = []
        for match in response.matches:
            meta = restore_metadata(match.metadata)
            content = meta.pop("content", "")
            results.append(
                VectorSearchResult(
                    id=match.id,
                    document_id=str(meta.get("document_id", "")),
                    chunk_index=int(meta.get("chunk_index", 0)),
                    content=content,
                    score=float(match.score),
                    metadata=meta,
                )
            )
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    async def delete(self, document_id: str) -> int:
        """Delete every vector of *document_id*, re-listing until none remain."""
        index = self._require_index()
        # Record ids are "{document_id}-chunk-{index}".
        prefix = f"{document_id}-chunk-"
        seen: set[str] = set()
        try:
            for _ in range(_MAX_DELETE_ROUNDS):
                ids = [
                    vid
                    for page in index.list(prefix=prefix, namespace=self._namespace)
                    for vid in page
                ]
                if not ids:
                    logger.info(
                        "pinecone_delete_document",
                        document_id=document_id,
                        deleted_count=len(seen),
                    )
                    return len(seen)
                for start in range(0, len(ids), _UPSERT_PAGE):
                    index.delete(ids=ids[start : start + _UPSERT_PAGE], namespace=self._namespace)
                # A lagging listing can repeat ids already deleted.
                seen.update(ids)
        except Exception as exc:
            raise VectorStoreError(
                message=f"Pinecone delete failed for {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        raise VectorStoreError(
            message=f"Vectors for {document_id} remain after {_MAX_DELETE_ROUNDS} delete rounds",
            provider_name=self.get_provider_name(),
        )

    async def delete_chunk(self, chunk_id: str) -> bool:
        index = self._require_index()
        try:
            existing = index.fetch(ids=[chunk_id], namespace=self._namespace)
            if chunk_id not in (existing.vectors or {}):
                return False
            index.delete(ids=[chunk_id], namespace=self._namespace)
            return True
        except Exception as exc:
            raise VectorStoreError(
                message=f"Pinecone delete_chunk failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_stats(self) -> VectorStoreStats:
        try:
            stats = self._require_index().describe_index_stats()
        except Exception as exc:
            raise VectorStoreError(
                message=f"Pinecone get_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if self._namespace:
            summary = (stats.namespaces or {}).get(self._namespace)
            total = summary.vector_count if summary is not None else 0
        else:
            total = stats.total_vector_count
        return VectorStoreStats(total_vectors=int(total or 0), dimension=self._dimension)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "pinecone"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_index(self) -> Any:
        if self._index is None:
            raise VectorStoreError(
                message="Pinecone index used before initialize()",
                provider_name=self.get_provider_name(),
            )
        return self._index

    @staticmethod
    def _translate_filter(search_filter: SearchFilter | None) -> dict[str, Any] | None:
        """Translate a :class:`SearchFilter` into a Pinecone metadata filter."""
        if search_filter is None:
            return None
        clauses: dict[str, Any] = {}
        if search_filter.user_id is not None:
            clauses["user_id"] = {"$eq": search_filter.user_id}
        if search_filter.document_ids:
            clauses["document_id"] = {"$in": list(search_filter.document_ids)}
        return clauses or None
