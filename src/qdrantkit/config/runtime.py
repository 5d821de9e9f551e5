"""Pydantic-based runtime settings.

Loads from environment variables (with optional .env file).
Invalid values fail fast when settings are first built.
"""

from __future__ import annotations

import uuid
from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings


class McpMode(str, Enum):
    data = "data"
    admin = "admin"


class RuntimeSettings(BaseSettings):
    """All configuration for the adapter, migrations and MCP surfaces."""

    model_config = {"env_prefix": "", "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # --- Server mode ---
    mcp_mode: McpMode = Field(
        default=McpMode.data,
        description="Which MCP plane to start: 'data' (filters/search) or 'admin' (migrations)",
    )

    # --- Qdrant ---
    qdrant_url: str | None = Field(default=None, description="Full Qdrant URL; overrides host/port")
    qdrant_host: str = Field(default="localhost", description="Qdrant server host")
    qdrant_port: int = Field(default=6333, description="Qdrant server port")
    qdrant_location: str | None = Field(
        default=None,
        description="Local mode location, e.g. ':memory:' for an in-process store",
    )
    qdrant_api_key: SecretStr | None = Field(default=None, description="API key for Qdrant Cloud")
    request_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")

    # --- Record IDs ---
    record_id_namespace: uuid.UUID = Field(
        default=uuid.UUID("6f1c2d3e-4b5a-4c7d-9e8f-0a1b2c3d4e5f"),
        description="UUID namespace for deterministic point ID generation",
    )

    # --- Migrations ---
    migration_collection: str = Field(
        default="_migrations",
        min_length=1,
        description="Reserved collection holding migration history",
    )
    history_vector_dimension: int = Field(
        default=256,
        ge=1,
        description="Dimension of the placeholder vectors stored with history records",
    )
    history_scan_limit: int = Field(
        default=1000,
        ge=1,
        description="Page size for history scans",
    )
    serialize_migrations: bool = Field(
        default=True,
        description="Hold one lock for validate+apply+record and rollback",
    )

    # --- Contracts ---
    pact_dir: str = Field(default="./pacts", description="Directory for rendered Pact files")
    write_pact_files: bool = Field(
        default=False,
        description="Write a Pact file for every contract that passes validation",
    )

    # --- Auth (optional: require key for production) ---
    require_admin_key: bool = Field(default=False, description="If True, Control Plane requires MCP_ADMIN_KEY env")
    require_data_key: bool = Field(default=False, description="If True, Data Plane requires MCP_DATA_KEY env")

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Root level for qdrantkit loggers")

    @field_validator("qdrant_port")
    @classmethod
    def _port_range(cls, v: int) -> int:
        if not (1 <= v <= 65535):
            raise ValueError(f"qdrant_port must be 1-65535, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"log_level must be a standard logging level, got {v!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> RuntimeSettings:
    """Return the singleton RuntimeSettings (cached after first call)."""
    return RuntimeSettings()
