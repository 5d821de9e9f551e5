"""Collection and vector record models shared by the port and its adapters."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from qdrant_client.models import Filter


class DistanceMetric(str, Enum):
    """Similarity metric of a collection."""

    cosine = "cosine"
    euclidean = "euclidean"
    dot_product = "dot_product"
    manhattan = "manhattan"

    @classmethod
    def parse(cls, value: str | DistanceMetric) -> DistanceMetric:
        """Accept enum values plus common spellings ('Cosine', 'DotProduct', 'dot')."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        aliases = {
            "dotproduct": cls.dot_product,
            "dot": cls.dot_product,
            "euclid": cls.euclidean,
        }
        if key in aliases:
            return aliases[key]
        return cls(key)


class CollectionConfig(BaseModel):
    """Name, dimensionality and distance metric of a collection."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Collection name")
    dimension: int = Field(..., gt=0, description="Vector dimension")
    distance_metric: DistanceMetric = Field(default=DistanceMetric.cosine, description="Similarity metric")


class VectorRecord(BaseModel):
    """A stored vector with its id and metadata payload."""

    id: str = Field(..., min_length=1, description="Record identifier")
    embedding: list[float] = Field(default_factory=list, description="Vector values")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Payload stored alongside the vector")


class SearchParams(BaseModel):
    """Options for a similarity search.

    ``filters`` is a raw filter expression map compiled by the filter compiler;
    ``query_filter`` takes an already compiled query and wins when both are set.
    """

    limit: int = Field(default=10, ge=1, description="Maximum results")
    offset: int = Field(default=0, ge=0, description="Ranked results to skip, for paging")
    score_threshold: float | None = Field(default=None, description="Minimum score to return")
    filters: dict[str, Any] = Field(default_factory=dict, description="Filter expression map")
    query_filter: Filter | None = Field(default=None, description="Pre-compiled backend filter")
    include_vectors: bool = Field(default=False, description="Return embeddings with results")


class SearchResult(BaseModel):
    """A single ranked search hit."""

    record: VectorRecord
    score: float = Field(..., description="Similarity score")


def placeholder_vector(dimension: int) -> list[float]:
    """Unit vector along the first axis; valid under every distance metric."""
    return [1.0] + [0.0] * (dimension - 1)
