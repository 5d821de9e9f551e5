"""Filter compiler: filter expression map -> Qdrant ``Filter``.

Three entry points:

* ``compile_filter`` - flat ``{field: value | {op: ...}}`` map, ANDed.
* ``build_complex_filter`` - explicit MUST / SHOULD / MUST-NOT equality pairs.
* ``build_range_filter`` - strict numeric range on one field.

All of them are pure and return ``None`` when no condition survives, meaning
"no filter".

Float equality is truncated to an integer match (Qdrant matches integers and
keywords, not floats). Use a range for exact float filtering.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from qdrant_client.models import (
    FieldCondition,
    Filter,
    IsEmptyCondition,
    IsNullCondition,
    MatchValue,
    MinShould,
    PayloadField,
    Range,
)

from ..errors import FilterNotImplementedError, FilterValidationError
from ..observability import get_logger
from .filters import (
    EqualsExpr,
    ExistsExpr,
    FieldExpression,
    FilterOp,
    InExpr,
    NotEqualsExpr,
    RangeExpr,
    UnrecognizedExpr,
    is_scalar,
    parse_expression,
)

logger = get_logger("filters")


def match_condition(field: str, value: Any) -> FieldCondition:
    """Equality leaf for a scalar value."""
    if isinstance(value, float):
        if not math.isfinite(value):
            raise FilterValidationError(field, f"cannot match on non-finite value {value!r}")
        value = int(value)
    elif not isinstance(value, (bool, int, str)):
        raise FilterValidationError(field, f"cannot match on value {value!r}")
    return FieldCondition(key=field, match=MatchValue(value=value))


def _missing_conditions(field: str) -> list:
    payload_field = PayloadField(key=field)
    return [IsEmptyCondition(is_empty=payload_field), IsNullCondition(is_null=payload_field)]


def _compile_expression(expr: FieldExpression) -> Any | None:
    """Return the leaf condition for one expression, or ``None`` to skip it."""
    if isinstance(expr, EqualsExpr):
        return match_condition(expr.field, expr.value)
    if isinstance(expr, RangeExpr):
        return FieldCondition(
            key=expr.field,
            range=Range(gte=expr.gte, gt=expr.gt, lte=expr.lte, lt=expr.lt),
        )
    if isinstance(expr, InExpr):
        return Filter(should=[match_condition(expr.field, v) for v in expr.values])
    if isinstance(expr, ExistsExpr):
        if expr.exists:
            return Filter(must_not=_missing_conditions(expr.field))
        return Filter(should=_missing_conditions(expr.field))
    if isinstance(expr, NotEqualsExpr):
        raise FilterNotImplementedError(expr.field, FilterOp.ne.value)
    if isinstance(expr, UnrecognizedExpr):
        logger.debug("Skipping unrecognized filter value for field %s: %r", expr.field, expr.raw)
        return None
    raise TypeError(f"Unsupported filter expression type: {type(expr)!r}")


def compile_filter(
    filters: Mapping[str, Any] | None,
    *,
    skip_invalid: bool = False,
) -> Filter | None:
    """Compile a flat filter map into a conjunctive Qdrant filter.

    Args:
        filters: ``{field: scalar | operator object}``.
        skip_invalid: drop fields whose operator object is malformed instead of
            raising. ``$ne`` is always rejected regardless.

    Returns:
        A ``Filter`` with one MUST leaf per usable field, or ``None``.

    Raises:
        FilterValidationError: a malformed operator object (unless skipped).
        FilterNotImplementedError: ``$ne`` was used.
    """
    if not filters:
        return None

    must = []
    for field, value in filters.items():
        try:
            condition = _compile_expression(parse_expression(field, value))
        except FilterValidationError as e:
            if not skip_invalid:
                raise
            logger.warning("Skipping malformed filter: %s", e)
            continue
        if condition is not None:
            must.append(condition)

    if not must:
        return None
    return Filter(must=must)


def _equality_leaves(group: str, pairs: Iterable[tuple[str, Any]]) -> list[FieldCondition]:
    leaves = []
    for field, value in pairs:
        if not is_scalar(value):
            raise FilterValidationError(field, f"{group} condition needs a scalar value, got {value!r}")
        leaves.append(match_condition(field, value))
    return leaves


def build_complex_filter(
    must: Iterable[tuple[str, Any]] = (),
    should: Iterable[tuple[str, Any]] = (),
    must_not: Iterable[tuple[str, Any]] = (),
    *,
    min_should: int | None = None,
) -> Filter | None:
    """Compose equality pairs into MUST / SHOULD / MUST-NOT groups.

    ``min_should=None`` keeps Qdrant's default for SHOULD (at least one must
    hold); an integer requires at least that many SHOULD leaves to match.
    """
    must_leaves = _equality_leaves("must", must)
    should_leaves = _equality_leaves("should", should)
    must_not_leaves = _equality_leaves("must_not", must_not)

    if not (must_leaves or should_leaves or must_not_leaves):
        return None

    if min_should is not None and should_leaves:
        if min_should < 1:
            raise FilterValidationError("min_should", f"must be >= 1, got {min_should}")
        return Filter(
            must=must_leaves or None,
            min_should=MinShould(conditions=should_leaves, min_count=min_should),
            must_not=must_not_leaves or None,
        )
    return Filter(
        must=must_leaves or None,
        should=should_leaves or None,
        must_not=must_not_leaves or None,
    )


def build_range_filter(field: str, gt: float | None = None, lt: float | None = None) -> Filter | None:
    """Numeric range with strict bounds (``gt`` < value < ``lt``)."""
    if gt is None and lt is None:
        return None
    return Filter(must=[FieldCondition(key=field, range=Range(gt=gt, lt=lt))])
