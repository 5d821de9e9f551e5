"""Qdrant filter compilation and contract-gated schema migrations."""

from .domain import MigrationBuilder, build_complex_filter, build_range_filter, compile_filter
from .models import CollectionConfig, DistanceMetric, SchemaMigration
from .services import SchemaMigrationManager

__version__ = "0.1.0"
__all__ = [
    "CollectionConfig",
    "DistanceMetric",
    "MigrationBuilder",
    "SchemaMigration",
    "SchemaMigrationManager",
    "build_complex_filter",
    "build_range_filter",
    "compile_filter",
]
