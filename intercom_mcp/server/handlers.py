"""RPC handlers for MCP lifecycle and tool methods."""

from __future__ import annotations

from typing import Any

from loguru import logger

from intercom_mcp.server.error_boundary import RpcResult, invalid_params_result
from intercom_mcp.tools.registry import ToolRegistry
from intercom_mcp.utils.exceptions import NotFoundError, ValidationError, format_tool_error

PROTOCOL_VERSION = "2024-11-05"


async def try_handle_lifecycle_method(
    *,
    method: str,
    params: dict[str, Any],
    server_info: dict[str, Any],
) -> RpcResult | None:
    """Handle initialize/ping."""
    if method == "initialize":
        client_info = params.get("clientInfo") if isinstance(params.get("clientInfo"), dict) else {}
        logger.info(
            "Client connected: {} {}",
            client_info.get("name", "unknown"),
            client_info.get("version", ""),
        )
        return True, {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": server_info,
        }, None
    if method == "ping":
        return True, {}, None
    return None


async def try_handle_tools_method(
    *,
    method: str,
    params: dict[str, Any],
    registry: ToolRegistry,
) -> RpcResult | None:
    """Handle tools/list and tools/call.

    Unknown tools and invalid arguments propagate (the error boundary turns
    them into invalid-params errors); failures while a tool runs become a
    tool result with ``isError`` set.
    """
    if method == "tools/list":
        return True, {"tools": registry.get_definitions()}, None
    if method != "tools/call":
        return None

    name = params.get("name")
    if not isinstance(name, str) or not name:
        return invalid_params_result(method=method, message="params.name is required")
    arguments = params.get("arguments")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        return invalid_params_result(method=method, message="params.arguments must be an object")

    logger.info("Received call_tool request for tool: {}", name)
    try:
        text = await registry.execute(name, arguments)
    except (NotFoundError, ValidationError):
        raise
    except Exception as exc:
        logger.warning("Tool {} failed: {}", name, format_tool_error(name, exc, include_details=True))
        return True, {
            "content": [{"type": "text", "text": format_tool_error(name, exc)}],
            "isError": True,
        }, None
    return True, {"content": [{"type": "text", "text": text}], "isError": False}, None
