"""Observability: structured logs (operation, latency_ms, error), in-process metrics stub."""

from __future__ import annotations

import logging
from typing import Any

_LOGGER = logging.getLogger("qdrantkit")

# Metrics stub: operations[name] = count, errors[name] = count
METRICS: dict[str, dict[str, int]] = {"operations": {}, "errors": {}}


def get_logger(name: str | None = None) -> logging.Logger:
    if name is None:
        return _LOGGER
    return _LOGGER.getChild(name)


def configure_logging(level: str = "INFO") -> None:
    """Attach a stderr handler to the package logger once and set its level."""
    _LOGGER.setLevel(level)
    if not _LOGGER.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        _LOGGER.addHandler(handler)


def log_operation(
    operation: str,
    latency_ms: float,
    error: str | None = None,
    extra: dict[str, Any] | None = None,
) -> None:
    """Emit structured log and update metrics stub."""
    payload: dict[str, Any] = {
        "operation": operation,
        "latency_ms": round(latency_ms, 2),
    }
    if error:
        payload["error"] = error
    if extra:
        payload.update(extra)
    if error:
        _LOGGER.error("backend_operation_failed", extra=payload)
    else:
        _LOGGER.debug("backend_operation", extra=payload)
    METRICS["operations"][operation] = METRICS["operations"].get(operation, 0) + 1
    if error:
        METRICS["errors"][operation] = METRICS["errors"].get(operation, 0) + 1


def metrics_snapshot() -> dict[str, dict[str, int]]:
    """Return current metrics (for the health tool)."""
    return {k: dict(v) for k, v in METRICS.items()}
