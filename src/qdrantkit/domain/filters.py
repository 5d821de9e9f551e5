"""Typed filter expressions.

A filter map is ``{field: value}`` where value is a scalar (equality) or an
operator object. ``parse_expression`` turns each entry into one variant of the
closed ``FieldExpression`` union so the compiler can be exhaustive.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field

from ..errors import FilterNotImplementedError, FilterValidationError

Scalar = Union[bool, int, float, str]


class FilterOp(str, Enum):
    """Supported operator keys."""

    gte = "$gte"
    lte = "$lte"
    gt = "$gt"
    lt = "$lt"
    in_ = "$in"
    exists = "$exists"
    ne = "$ne"


RANGE_OPS = frozenset({FilterOp.gte.value, FilterOp.lte.value, FilterOp.gt.value, FilterOp.lt.value})
_KNOWN_OPS = frozenset(op.value for op in FilterOp)


class EqualsExpr(BaseModel):
    """field == value"""

    field: str
    value: Scalar


class RangeExpr(BaseModel):
    """Bounds on a numeric field; ``None`` means open."""

    field: str
    gte: float | None = None
    gt: float | None = None
    lte: float | None = None
    lt: float | None = None


class InExpr(BaseModel):
    """field matches any of values"""

    field: str
    values: list[Scalar] = Field(..., min_length=1)


class ExistsExpr(BaseModel):
    """field present and non-null (exists=True) or absent/null (exists=False)"""

    field: str
    exists: bool


class NotEqualsExpr(BaseModel):
    """Declared but unsupported; the compiler rejects it."""

    field: str
    value: Any = None


class UnrecognizedExpr(BaseModel):
    """Value shape with no meaning as a filter (array, null, object without operators)."""

    field: str
    raw: Any = None


FieldExpression = Union[EqualsExpr, RangeExpr, InExpr, ExistsExpr, NotEqualsExpr, UnrecognizedExpr]


def is_scalar(value: Any) -> bool:
    return isinstance(value, (bool, int, float, str))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_expression(field: str, value: Any) -> FieldExpression:
    """Classify one filter map entry.

    Raises:
        FilterValidationError: the value is an operator object that is malformed.
        FilterNotImplementedError: ``$ne`` combined with other keys.
    """
    if is_scalar(value):
        return EqualsExpr(field=field, value=value)
    if not isinstance(value, dict):
        return UnrecognizedExpr(field=field, raw=value)

    keys = set(value)
    recognized = keys & _KNOWN_OPS
    if not recognized:
        return UnrecognizedExpr(field=field, raw=value)
    if FilterOp.ne.value in recognized and len(keys) > 1:
        raise FilterNotImplementedError(field, FilterOp.ne.value)
    unknown = keys - _KNOWN_OPS
    if unknown:
        raise FilterValidationError(field, f"unknown operator(s) {sorted(unknown)} next to {sorted(recognized)}")

    range_keys = recognized & RANGE_OPS
    other_keys = recognized - RANGE_OPS
    if (range_keys and other_keys) or len(other_keys) > 1:
        raise FilterValidationError(field, f"cannot combine operators {sorted(recognized)}")

    if range_keys:
        bounds: dict[str, float] = {}
        for op in range_keys:
            bound = value[op]
            if not _is_number(bound):
                raise FilterValidationError(field, f"{op} bound must be a number, got {bound!r}")
            if math.isnan(bound):
                raise FilterValidationError(field, f"{op} bound must not be NaN")
            bounds[op[1:]] = bound
        return RangeExpr(field=field, **bounds)

    (op,) = other_keys
    operand = value[op]
    if op == FilterOp.in_.value:
        if not isinstance(operand, list) or not operand:
            raise FilterValidationError(field, "$in requires a non-empty array")
        if not all(is_scalar(v) for v in operand):
            raise FilterValidationError(field, "$in elements must be strings, numbers or booleans")
        return InExpr(field=field, values=operand)
    if op == FilterOp.exists.value:
        if not isinstance(operand, bool):
            raise FilterValidationError(field, f"$exists requires a boolean, got {operand!r}")
        return ExistsExpr(field=field, exists=operand)
    return NotEqualsExpr(field=field, value=operand)
