"""Tool registry for MCP servers.

Every tool returns a JSON string. Package errors come back as
``{"error": <type>, "detail": <message>}`` instead of failing the call.
"""

from __future__ import annotations

import json
import time
from typing import Any

from pydantic import ValidationError

from ..errors import QdrantKitError
from ..models.collection import SearchParams
from ..models.migration import SchemaMigration
from ..observability import get_logger, log_operation, metrics_snapshot

logger = get_logger("mcp")

_store = None
_manager = None


def _get_store():
    global _store
    if _store is None:
        from ..wiring import build_vector_store
        _store = build_vector_store()
    return _store


def _get_manager():
    global _manager
    if _manager is None:
        from ..wiring import build_migration_manager
        _manager = build_migration_manager(store=_get_store())
    return _manager


def _error(kind: str, detail: Any) -> str:
    return json.dumps({"error": kind, "detail": str(detail)})


def _parse_json_object(raw: str | None, name: str) -> dict:
    """Parse an optional JSON object argument; raises ValueError on bad input."""
    if not raw:
        return {}
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a JSON object")
    return value


# ---------------------------------------------------------------------------
# Data Plane tools
# ---------------------------------------------------------------------------
DATA_PLANE_ALLOWED_TOOLS = frozenset({"filter_compile", "vectors_search", "store_health"})


def register_data_plane_tools(mcp):
    """Register Data Plane tools (filter compilation, search, health)."""

    @mcp.tool()
    def filter_compile(filters_json: str, skip_invalid: bool = False) -> str:
        """Compile a filter expression map into a Qdrant filter (no backend call).

        Args:
            filters_json: JSON object, e.g. {"category": "tech", "price": {"$gte": 10}}
            skip_invalid: Drop malformed operator objects instead of failing

        Returns:
            JSON with "filter" (Qdrant filter object, or null for "no filter")
        """
        from ..domain.filter_compiler import compile_filter

        try:
            filters = _parse_json_object(filters_json, "filters_json")
            compiled = compile_filter(filters, skip_invalid=skip_invalid)
        except QdrantKitError as e:
            return _error(type(e).__name__, e)
        except ValueError as e:
            return _error("invalid_filters_json", e)
        body = compiled.model_dump(mode="json", exclude_none=True) if compiled is not None else None
        return json.dumps({"filter": body}, indent=2)

    @mcp.tool()
    async def vectors_search(
        collection: str,
        query_vector: list[float],
        limit: int = 10,
        filters_json: str | None = None,
        score_threshold: float | None = None,
    ) -> str:
        """Similarity search in a collection with an optional filter expression map.

        Args:
            collection: Collection to search
            query_vector: Query embedding; must match the collection dimension
            limit: Number of results (1-100, default 10)
            filters_json: Optional JSON filter expression map
            score_threshold: Optional minimum score

        Returns:
            JSON with results (id, score, metadata)
        """
        from .auth import require_data_scope
        require_data_scope()
        t0 = time.monotonic()
        try:
            params = SearchParams(
                limit=max(1, min(100, limit)),
                score_threshold=score_threshold,
                filters=_parse_json_object(filters_json, "filters_json"),
            )
            results = await _get_store().search(collection, query_vector, params)
        except QdrantKitError as e:
            return _error(type(e).__name__, e)
        except ValueError as e:
            return _error("invalid_request", e)
        log_operation(
            "tool.vectors_search",
            (time.monotonic() - t0) * 1000,
            extra={"collection": collection, "results_count": len(results)},
        )
        return json.dumps(
            {
                "results": [
                    {"id": r.record.id, "score": r.score, "metadata": r.record.metadata}
                    for r in results
                ]
            },
            indent=2,
        )

    @mcp.tool()
    async def store_health() -> str:
        """Liveness/readiness: backend reachable, plus in-process operation counters."""
        try:
            health = await _get_store().health_check()
        except QdrantKitError as e:
            return json.dumps({"ok": False, "error": str(e), "metrics": metrics_snapshot()})
        return json.dumps({"ok": True, **health, "metrics": metrics_snapshot()})


# ---------------------------------------------------------------------------
# Control Plane tools
# ---------------------------------------------------------------------------
CONTROL_PLANE_ALLOWED_TOOLS = frozenset({
    "migration_initialize",
    "migration_apply",
    "migration_rollback",
    "migration_history",
})


def register_control_plane_tools(mcp):
    """Register Control Plane (admin) tools for schema migrations."""

    @mcp.tool()
    async def migration_initialize() -> str:
        """Create the migration history collection if it does not exist yet."""
        from .auth import require_admin_scope
        require_admin_scope()
        manager = _get_manager()
        try:
            await manager.initialize()
        except QdrantKitError as e:
            return _error(type(e).__name__, e)
        return json.dumps({"initialized": manager.history_collection})

    @mcp.tool()
    async def migration_apply(migration_json: str) -> str:
        """Validate contracts and dependencies, apply the changes and record the migration.

        Args:
            migration_json: Serialized schema migration (same shape as history records)

        Returns:
            JSON with version, applied_changes, contract_validation_passed
        """
        from .auth import require_admin_scope
        require_admin_scope()
        try:
            migration = SchemaMigration.model_validate_json(migration_json)
        except ValidationError as e:
            return _error("invalid_migration", e)
        try:
            result = await _get_manager().apply_migration(migration)
        except QdrantKitError as e:
            return _error(type(e).__name__, e)
        return result.model_dump_json(indent=2)

    @mcp.tool()
    async def migration_rollback(version: str) -> str:
        """Reverse a recorded migration and remove it from history.

        Args:
            version: Semantic version of the migration, e.g. "1.2.0"
        """
        from .auth import require_admin_scope
        require_admin_scope()
        try:
            await _get_manager().rollback_migration(version)
        except QdrantKitError as e:
            return _error(type(e).__name__, e)
        except ValueError as e:
            return _error("invalid_version", e)
        return json.dumps({"rolled_back": version})

    @mcp.tool()
    async def migration_history() -> str:
        """List recorded migrations in ascending version order."""
        from .auth import require_admin_scope
        require_admin_scope()
        try:
            history = await _get_manager().get_migration_history()
        except QdrantKitError as e:
            return _error(type(e).__name__, e)
        return json.dumps(
            [
                {
                    "version": str(m.version),
                    "name": m.name,
                    "author": m.metadata.author,
                    "created_at": m.metadata.created_at.isoformat(),
                    "changes": len(m.collection_changes),
                    "reversible": m.metadata.reversible,
                }
                for m in history
            ],
            indent=2,
        )
