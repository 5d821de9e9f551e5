"""Adapter: Qdrant-based VectorStore implementing VectorStorePort."""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, PointIdsList, PointStruct, VectorParams

from ..config.runtime import RuntimeSettings
from ..domain.filter_compiler import compile_filter
from ..errors import (
    CollectionAlreadyExistsError,
    CollectionNotFoundError,
    QdrantKitError,
    StorageError,
)
from ..models.collection import (
    CollectionConfig,
    DistanceMetric,
    SearchParams,
    SearchResult,
    VectorRecord,
)
from ..observability import log_operation

T = TypeVar("T")

# Payload key holding the caller's record id; point ids are uuid5 of it.
RECORD_ID_KEY = "_record_id"

_TO_QDRANT_DISTANCE = {
    DistanceMetric.cosine: Distance.COSINE,
    DistanceMetric.euclidean: Distance.EUCLID,
    DistanceMetric.dot_product: Distance.DOT,
    DistanceMetric.manhattan: Distance.MANHATTAN,
}
_FROM_QDRANT_DISTANCE = {v: k for k, v in _TO_QDRANT_DISTANCE.items()}


class QdrantVectorStore:
    """Concrete VectorStorePort backed by Qdrant.

    ``qdrant_location=":memory:"`` runs Qdrant in-process, which is what the
    tests use.
    """

    def __init__(self, settings: RuntimeSettings) -> None:
        self._settings = settings
        self._client: AsyncQdrantClient | None = None

    def _get_client(self) -> AsyncQdrantClient:
        if self._client is None:
            s = self._settings
            kwargs: dict[str, Any] = {}
            if s.qdrant_location:
                kwargs["location"] = s.qdrant_location
            else:
                if s.qdrant_url:
                    kwargs["url"] = s.qdrant_url
                else:
                    kwargs["host"] = s.qdrant_host
                    kwargs["port"] = s.qdrant_port
                if s.qdrant_api_key is not None:
                    kwargs["api_key"] = s.qdrant_api_key.get_secret_value()
                kwargs["timeout"] = int(s.request_timeout_seconds)
            self._client = AsyncQdrantClient(**kwargs)
        return self._client

    def _point_id(self, record_id: str) -> str:
        return str(uuid.uuid5(self._settings.record_id_namespace, record_id))

    async def _call(
        self,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        collection: str | None = None,
    ) -> T:
        """Run one backend call, log its latency and normalize failures to StorageError."""
        extra = {"collection": collection} if collection else None
        start = time.perf_counter()
        try:
            result = await fn()
        except QdrantKitError as e:
            log_operation(operation, (time.perf_counter() - start) * 1000, error=str(e), extra=extra)
            raise
        except Exception as e:
            log_operation(operation, (time.perf_counter() - start) * 1000, error=str(e), extra=extra)
            raise StorageError(f"{operation} failed: {e}") from e
        log_operation(operation, (time.perf_counter() - start) * 1000, extra=extra)
        return result

    async def _require_collection(self, name: str) -> None:
        if not await self.collection_exists(name):
            raise CollectionNotFoundError(name)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def collection_exists(self, name: str) -> bool:
        client = self._get_client()
        return await self._call(
            "collection_exists",
            lambda: client.collection_exists(collection_name=name),
            collection=name,
        )

    async def create_collection(self, config: CollectionConfig) -> None:
        if await self.collection_exists(config.name):
            raise CollectionAlreadyExistsError(config.name)
        client = self._get_client()
        await self._call(
            "create_collection",
            lambda: client.create_collection(
                collection_name=config.name,
                vectors_config=VectorParams(
                    size=config.dimension,
                    distance=_TO_QDRANT_DISTANCE[config.distance_metric],
                ),
            ),
            collection=config.name,
        )

    async def delete_collection(self, name: str) -> None:
        await self._require_collection(name)
        client = self._get_client()
        await self._call(
            "delete_collection",
            lambda: client.delete_collection(collection_name=name),
            collection=name,
        )

    async def list_collections(self) -> list[str]:
        client = self._get_client()
        response = await self._call("list_collections", client.get_collections)
        return sorted(c.name for c in response.collections)

    async def get_collection_info(self, name: str) -> CollectionConfig | None:
        if not await self.collection_exists(name):
            return None
        client = self._get_client()
        info = await self._call(
            "get_collection_info",
            lambda: client.get_collection(collection_name=name),
            collection=name,
        )
        vectors = info.config.params.vectors
        if isinstance(vectors, dict):
            # Named vectors: report the default (unnamed) one, else the first.
            vectors = vectors.get("") or next(iter(vectors.values()))
        return CollectionConfig(
            name=name,
            dimension=vectors.size,
            distance_metric=_FROM_QDRANT_DISTANCE.get(vectors.distance, DistanceMetric.cosine),
        )

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def store_vector(self, collection: str, record: VectorRecord) -> None:
        await self._require_collection(collection)
        payload = dict(record.metadata)
        payload[RECORD_ID_KEY] = record.id
        point = PointStruct(id=self._point_id(record.id), vector=record.embedding, payload=payload)
        client = self._get_client()
        await self._call(
            "store_vector",
            lambda: client.upsert(collection_name=collection, points=[point]),
            collection=collection,
        )

    async def get_vector(self, collection: str, record_id: str) -> VectorRecord | None:
        await self._require_collection(collection)
        client = self._get_client()
        points = await self._call(
            "get_vector",
            lambda: client.retrieve(
                collection_name=collection,
                ids=[self._point_id(record_id)],
                with_payload=True,
                with_vectors=True,
            ),
            collection=collection,
        )
        if not points:
            return None
        return self._to_record(points[0].payload, points[0].vector, fallback_id=record_id)

    async def delete_vector(self, collection: str, record_id: str) -> None:
        await self._require_collection(collection)
        client = self._get_client()
        await self._call(
            "delete_vector",
            lambda: client.delete(
                collection_name=collection,
                points_selector=PointIdsList(points=[self._point_id(record_id)]),
            ),
            collection=collection,
        )

    async def search(
        self,
        collection: str,
        query_vector: list[float],
        params: SearchParams,
    ) -> list[SearchResult]:
        await self._require_collection(collection)
        query_filter = params.query_filter or compile_filter(params.filters)
        client = self._get_client()
        response = await self._call(
            "search",
            lambda: client.query_points(
                collection_name=collection,
                query=query_vector,
                query_filter=query_filter,
                limit=params.limit,
                offset=params.offset,
                score_threshold=params.score_threshold,
                with_payload=True,
                with_vectors=params.include_vectors,
            ),
            collection=collection,
        )
        return [
            SearchResult(
                record=self._to_record(hit.payload, hit.vector, fallback_id=str(hit.id)),
                score=hit.score,
            )
            for hit in response.points
        ]

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health_check(self) -> dict[str, Any]:
        names = await self.list_collections()
        return {
            "status": "ok",
            "backend": "local" if self._settings.qdrant_location else "remote",
            "collections": len(names),
        }

    @staticmethod
    def _to_record(payload: dict | None, vector: Any, fallback_id: str) -> VectorRecord:
        metadata = dict(payload or {})
        record_id = metadata.pop(RECORD_ID_KEY, fallback_id)
        if isinstance(vector, dict):
            vector = vector.get("") or next(iter(vector.values()), None)
        return VectorRecord(id=str(record_id), embedding=list(vector or []), metadata=metadata)
