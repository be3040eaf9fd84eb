"""MCP server: request dispatch over the secure stdio transport."""

from intercom_mcp.server.app import build_server, run_stdio_server, serve
from intercom_mcp.server.dispatcher import McpServer

__all__ = ["McpServer", "build_server", "run_stdio_server", "serve"]
