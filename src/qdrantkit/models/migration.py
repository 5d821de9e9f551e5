"""Schema migration models.

A ``SchemaMigration`` is frozen once built and serializes to plain JSON
(``model_dump(mode="json")``) so it can be stored as a history record payload.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from packaging.version import InvalidVersion, Version
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    WithJsonSchema,
)

from .collection import CollectionConfig, DistanceMetric


def parse_version(value: str | Version) -> Version:
    """Parse a ``major.minor.patch`` semantic version."""
    if isinstance(value, Version):
        version = value
    else:
        try:
            version = Version(str(value).strip())
        except InvalidVersion as e:
            raise ValueError(f"invalid semantic version {value!r}") from e
    if len(version.release) != 3:
        raise ValueError(f"version must be major.minor.patch, got {value!r}")
    return version


SemVer = Annotated[
    Version,
    PlainValidator(parse_version),
    PlainSerializer(str, return_type=str),
    WithJsonSchema({"type": "string", "examples": ["1.0.0"]}),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Collection changes
# ---------------------------------------------------------------------------


class IndexType(str, Enum):
    """Payload index kinds."""

    text = "text"
    numeric = "numeric"
    keyword = "keyword"
    geo = "geo"
    boolean = "boolean"


class _Change(BaseModel):
    model_config = ConfigDict(frozen=True)


class CreateCollection(_Change):
    kind: Literal["create_collection"] = "create_collection"
    config: CollectionConfig


class DeleteCollection(_Change):
    kind: Literal["delete_collection"] = "delete_collection"
    name: str = Field(..., min_length=1)


class UpdateCollection(_Change):
    """In-place config change. Qdrant cannot do this; always fails at apply time."""

    kind: Literal["update_collection"] = "update_collection"
    name: str = Field(..., min_length=1)
    dimension_change: int | None = Field(default=None, gt=0)
    distance_metric_change: DistanceMetric | None = None


class RenameCollection(_Change):
    """Rename. Qdrant cannot do this; always fails at apply time."""

    kind: Literal["rename_collection"] = "rename_collection"
    old_name: str = Field(..., min_length=1)
    new_name: str = Field(..., min_length=1)


class AddIndex(_Change):
    kind: Literal["add_index"] = "add_index"
    collection: str = Field(..., min_length=1)
    field: str = Field(..., min_length=1)
    index_type: IndexType


class RemoveIndex(_Change):
    kind: Literal["remove_index"] = "remove_index"
    collection: str = Field(..., min_length=1)
    field: str = Field(..., min_length=1)


CollectionChange = Annotated[
    Union[
        CreateCollection,
        DeleteCollection,
        UpdateCollection,
        RenameCollection,
        AddIndex,
        RemoveIndex,
    ],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


class VectorOperation(str, Enum):
    """Backend operations an interaction can exercise."""

    store_vector = "store_vector"
    get_vector = "get_vector"
    search_similar = "search_similar"
    delete_vector = "delete_vector"
    create_collection = "create_collection"
    delete_collection = "delete_collection"
    list_collections = "list_collections"


class ResponseStatus(str, Enum):
    """Outcome class of an interaction."""

    success = "success"
    error = "error"
    not_found = "not_found"


class VectorRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    operation: VectorOperation
    collection: str = Field(default="", description="Target collection (unused by list_collections)")
    parameters: dict[str, Any] = Field(default_factory=dict, description="Operation parameters")


class VectorResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: ResponseStatus
    data: Any | None = Field(default=None, description="Expected response body")
    error: str | None = Field(default=None, description="Expected error text")


class Interaction(BaseModel):
    """One expected request/response pair of a consumer contract."""

    model_config = ConfigDict(frozen=True)

    description: str
    request: VectorRequest
    response: VectorResponse


class Contract(BaseModel):
    """Consumer-driven contract validated before a migration is applied."""

    model_config = ConfigDict(frozen=True)

    consumer: str = Field(..., min_length=1, description="Service relying on the collections")
    provider: str = Field(default="qdrant-adapter", description="Provider name")
    contract_path: str = Field(default="", description="Where the rendered Pact file lives")
    interactions: tuple[Interaction, ...] = Field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


class MigrationMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    author: str = "unknown"
    created_at: datetime = Field(default_factory=_utcnow)
    description: str = ""
    dependencies: tuple[SemVer, ...] = Field(default_factory=tuple)
    reversible: bool = True
    breaking_change: bool = False


class SchemaMigration(BaseModel):
    """A versioned, ordered set of collection changes plus metadata and contracts."""

    model_config = ConfigDict(frozen=True)

    version: SemVer
    name: str
    collection_changes: tuple[CollectionChange, ...] = Field(default_factory=tuple)
    metadata: MigrationMetadata = Field(default_factory=MigrationMetadata)
    contracts: tuple[Contract, ...] = Field(default_factory=tuple)

    @property
    def version_key(self) -> str:
        """History record key for this migration."""
        return str(self.version)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SchemaMigration:
        return cls.model_validate(payload)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ChangeAction(str, Enum):
    collection_created = "collection_created"
    collection_deleted = "collection_deleted"
    collection_updated = "collection_updated"
    collection_renamed = "collection_renamed"
    index_added = "index_added"
    index_removed = "index_removed"


class ChangeResult(BaseModel):
    """Outcome of one applied collection change."""

    action: ChangeAction
    collection: str
    new_name: str | None = None
    field: str | None = None
    index_type: IndexType | None = None


class MigrationResult(BaseModel):
    """Returned by ``apply_migration`` on success."""

    version: SemVer
    applied_changes: list[ChangeResult] = Field(default_factory=list)
    contract_validation_passed: bool = True
