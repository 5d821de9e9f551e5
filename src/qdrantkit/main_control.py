"""Control Plane entrypoint: schema migrations over stdio, for operators and CI.

Usage:
    python -m qdrantkit.main_control
    qdrantkit-control-plane
"""

from __future__ import annotations

from .config import get_settings
from .mcp.auth import check_scope
from .mcp.server import create_server
from .observability import configure_logging


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    check_scope("admin", settings)
    create_server(mode="admin").run(transport="stdio")


if __name__ == "__main__":
    main()
