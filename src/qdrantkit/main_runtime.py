"""Data Plane entrypoint: filter compilation and search over stdio.

Imports nothing from the CLI or the migration tooling, so it can serve as a
minimal container entrypoint.

Usage:
    python -m qdrantkit.main_runtime
    qdrantkit-data-plane
"""

from __future__ import annotations

from .config import get_settings
from .mcp.auth import check_scope
from .mcp.server import create_server
from .observability import configure_logging


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    check_scope("data", settings)
    create_server(mode="data").run(transport="stdio")


if __name__ == "__main__":
    main()
