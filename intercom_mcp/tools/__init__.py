"""MCP tools served by intercom-mcp."""

from intercom_mcp.tools.base import Tool
from intercom_mcp.tools.intercom_tools import build_tool_registry
from intercom_mcp.tools.registry import ToolRegistry

__all__ = ["Tool", "ToolRegistry", "build_tool_registry"]
