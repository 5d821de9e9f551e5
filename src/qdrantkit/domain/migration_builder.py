"""Fluent construction of a ``SchemaMigration``.

Setters return the builder for chaining and may be called in any order;
changes and contracts keep call order. ``build()`` never validates - the
migration manager does that when applying.
"""

from __future__ import annotations

from datetime import datetime, timezone

from packaging.version import Version

from ..models.collection import CollectionConfig, DistanceMetric
from ..models.migration import (
    AddIndex,
    CollectionChange,
    Contract,
    CreateCollection,
    DeleteCollection,
    IndexType,
    MigrationMetadata,
    RemoveIndex,
    RenameCollection,
    SchemaMigration,
    UpdateCollection,
    parse_version,
)


class MigrationBuilder:
    """Accumulates migration settings, then freezes them with ``build()``."""

    def __init__(self, version: str | Version, name: str) -> None:
        self._version = parse_version(version)
        self._name = name
        self._author = "unknown"
        self._created_at = datetime.now(timezone.utc)
        self._description = ""
        self._dependencies: list[Version] = []
        self._reversible = True
        self._breaking_change = False
        self._changes: list[CollectionChange] = []
        self._contracts: list[Contract] = []

    # --- metadata ---

    def author(self, author: str) -> MigrationBuilder:
        self._author = author
        return self

    def description(self, description: str) -> MigrationBuilder:
        self._description = description
        return self

    def depends_on(self, *versions: str | Version) -> MigrationBuilder:
        self._dependencies.extend(parse_version(v) for v in versions)
        return self

    def breaking_change(self) -> MigrationBuilder:
        self._breaking_change = True
        return self

    def non_reversible(self) -> MigrationBuilder:
        self._reversible = False
        return self

    # --- changes ---

    def add_change(self, change: CollectionChange) -> MigrationBuilder:
        self._changes.append(change)
        return self

    def create_collection(self, config: CollectionConfig) -> MigrationBuilder:
        return self.add_change(CreateCollection(config=config))

    def delete_collection(self, name: str) -> MigrationBuilder:
        return self.add_change(DeleteCollection(name=name))

    def update_collection(
        self,
        name: str,
        dimension_change: int | None = None,
        distance_metric_change: DistanceMetric | None = None,
    ) -> MigrationBuilder:
        return self.add_change(
            UpdateCollection(
                name=name,
                dimension_change=dimension_change,
                distance_metric_change=distance_metric_change,
            )
        )

    def rename_collection(self, old_name: str, new_name: str) -> MigrationBuilder:
        return self.add_change(RenameCollection(old_name=old_name, new_name=new_name))

    def add_index(self, collection: str, field: str, index_type: IndexType) -> MigrationBuilder:
        return self.add_change(AddIndex(collection=collection, field=field, index_type=index_type))

    def remove_index(self, collection: str, field: str) -> MigrationBuilder:
        return self.add_change(RemoveIndex(collection=collection, field=field))

    # --- contracts ---

    def add_contract(self, contract: Contract) -> MigrationBuilder:
        self._contracts.append(contract)
        return self

    def build(self) -> SchemaMigration:
        return SchemaMigration(
            version=self._version,
            name=self._name,
            collection_changes=tuple(self._changes),
            metadata=MigrationMetadata(
                author=self._author,
                created_at=self._created_at,
                description=self._description,
                dependencies=tuple(self._dependencies),
                reversible=self._reversible,
                breaking_change=self._breaking_change,
            ),
            contracts=tuple(self._contracts),
        )
