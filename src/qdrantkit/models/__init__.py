"""Pydantic models for collections, records and schema migrations."""

from .collection import (
    CollectionConfig,
    DistanceMetric,
    SearchParams,
    SearchResult,
    VectorRecord,
    placeholder_vector,
)
from .migration import (
    AddIndex,
    ChangeAction,
    ChangeResult,
    CollectionChange,
    Contract,
    CreateCollection,
    DeleteCollection,
    IndexType,
    Interaction,
    MigrationMetadata,
    MigrationResult,
    RemoveIndex,
    RenameCollection,
    ResponseStatus,
    SchemaMigration,
    UpdateCollection,
    VectorOperation,
    VectorRequest,
    VectorResponse,
    parse_version,
)

__all__ = [
    "AddIndex",
    "ChangeAction",
    "ChangeResult",
    "CollectionChange",
    "CollectionConfig",
    "Contract",
    "CreateCollection",
    "DeleteCollection",
    "DistanceMetric",
    "IndexType",
    "Interaction",
    "MigrationMetadata",
    "MigrationResult",
    "RemoveIndex",
    "RenameCollection",
    "ResponseStatus",
    "SchemaMigration",
    "SearchParams",
    "SearchResult",
    "UpdateCollection",
    "VectorOperation",
    "VectorRecord",
    "VectorRequest",
    "VectorResponse",
    "parse_version",
    "placeholder_vector",
]
