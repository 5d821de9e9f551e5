"""Structured operation logs and the in-process metrics stub."""

import logging

from qdrantkit.observability import get_logger, log_operation, metrics_snapshot


def test_child_loggers_share_package_root():
    assert get_logger().name == "qdrantkit"
    assert get_logger("migrations").name == "qdrantkit.migrations"


def test_success_is_debug_with_structured_fields(caplog):
    with caplog.at_level(logging.DEBUG, logger="qdrantkit"):
        log_operation("probe_ok", 1.23456, extra={"collection": "docs"})
    (record,) = [r for r in caplog.records if getattr(r, "operation", None) == "probe_ok"]
    assert record.levelno == logging.DEBUG
    assert record.getMessage() == "backend_operation"
    assert record.latency_ms == 1.23
    assert record.collection == "docs"


def test_failure_is_error_and_counted(caplog):
    before = metrics_snapshot()
    with caplog.at_level(logging.DEBUG, logger="qdrantkit"):
        log_operation("probe_fail", 5.0, error="boom")
    after = metrics_snapshot()
    assert after["operations"]["probe_fail"] == before["operations"].get("probe_fail", 0) + 1
    assert after["errors"]["probe_fail"] == before["errors"].get("probe_fail", 0) + 1
    (record,) = [r for r in caplog.records if getattr(r, "operation", None) == "probe_fail"]
    assert record.levelno == logging.ERROR
    assert record.error == "boom"


def test_snapshot_is_a_copy():
    snapshot = metrics_snapshot()
    snapshot["operations"]["injected"] = 99
    assert "injected" not in metrics_snapshot()["operations"]
