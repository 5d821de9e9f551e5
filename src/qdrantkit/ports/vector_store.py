"""Port: async vector store used by the migration manager and the MCP tools."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ..models.collection import CollectionConfig, SearchParams, SearchResult, VectorRecord


@runtime_checkable
class VectorStorePort(Protocol):
    """Collection admin plus record read/write against one backend.

    Record operations on a missing collection raise ``CollectionNotFoundError``;
    any other backend failure raises ``StorageError``.
    """

    # --- collections ---

    async def create_collection(self, config: CollectionConfig) -> None: ...

    async def delete_collection(self, name: str) -> None: ...

    async def list_collections(self) -> list[str]: ...

    async def get_collection_info(self, name: str) -> CollectionConfig | None: ...

    async def collection_exists(self, name: str) -> bool: ...

    # --- records ---

    async def store_vector(self, collection: str, record: VectorRecord) -> None: ...

    async def get_vector(self, collection: str, record_id: str) -> VectorRecord | None: ...

    async def delete_vector(self, collection: str, record_id: str) -> None: ...

    async def search(
        self,
        collection: str,
        query_vector: list[float],
        params: SearchParams,
    ) -> list[SearchResult]: ...

    # --- health ---

    async def health_check(self) -> dict[str, Any]: ...
