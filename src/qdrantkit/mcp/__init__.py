"""MCP servers: data plane (filters, search) and control plane (migrations)."""
