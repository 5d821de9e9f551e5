"""Pure domain logic: filter expressions, filter compiler, migration builder."""

from .filter_compiler import build_complex_filter, build_range_filter, compile_filter
from .filters import FieldExpression, FilterOp, parse_expression
from .migration_builder import MigrationBuilder

__all__ = [
    "FieldExpression",
    "FilterOp",
    "MigrationBuilder",
    "build_complex_filter",
    "build_range_filter",
    "compile_filter",
    "parse_expression",
]
