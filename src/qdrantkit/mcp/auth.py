"""MCP auth: each plane has a scope; a scope can demand an API key in the environment."""

from __future__ import annotations

import os

from ..config.runtime import RuntimeSettings, get_settings

# mode -> (settings flag that turns the check on, env var that must hold the key)
_SCOPES = {
    "admin": ("require_admin_key", "MCP_ADMIN_KEY"),
    "data": ("require_data_key", "MCP_DATA_KEY"),
}


def check_scope(mode: str, settings: RuntimeSettings | None = None) -> None:
    """Reject the call (PermissionError) when the plane's key is required but unset."""
    if mode not in _SCOPES:
        raise ValueError(f"Unknown mode: {mode!r}")
    flag, env_var = _SCOPES[mode]
    settings = settings or get_settings()
    if getattr(settings, flag) and not os.environ.get(env_var):
        plane = "Control Plane" if mode == "admin" else "Data Plane"
        raise PermissionError(f"{plane} requires {env_var} to be set")


def require_admin_scope() -> None:
    check_scope("admin")


def require_data_scope() -> None:
    check_scope("data")
