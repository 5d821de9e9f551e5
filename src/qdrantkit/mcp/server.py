"""FastMCP server factory, one server per plane.

The data plane is safe to hand to an LLM: it compiles filters and searches.
The control plane changes collection schemas and is for operators only.
"""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from ..config.runtime import McpMode
from .tools import register_control_plane_tools, register_data_plane_tools

_PLANES = {
    McpMode.data: (
        "qdrantkit-data-plane",
        "Compile filter expressions and run filtered similarity searches.",
        register_data_plane_tools,
    ),
    McpMode.admin: (
        "qdrantkit-control-plane",
        "Apply, list and roll back schema migrations of vector collections.",
        register_control_plane_tools,
    ),
}


def create_server(mode: str | McpMode = McpMode.data) -> FastMCP:
    """Build a FastMCP server with only the given plane's tools registered."""
    try:
        plane = McpMode(mode)
    except ValueError:
        raise ValueError(f"Unknown MCP mode {mode!r}; expected 'data' or 'admin'") from None
    name, instructions, register = _PLANES[plane]
    server = FastMCP(name, instructions=instructions)
    register(server)
    return server
