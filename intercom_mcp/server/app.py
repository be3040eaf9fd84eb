"""Wire the dispatcher to the stdio transport and run until the connection closes."""

from __future__ import annotations

import asyncio
import sys
from typing import Any

from loguru import logger

from intercom_mcp.config.schema import Config
from intercom_mcp.intercom.client import IntercomClient
from intercom_mcp.server.dispatcher import McpServer
from intercom_mcp.tools.intercom_tools import build_tool_registry
from intercom_mcp.transport.messages import JsonRpcMessage
from intercom_mcp.transport.stdio import SecureStdioTransport, open_stdin_reader
from intercom_mcp.utils.exceptions import HealthCheckFailedError, IntercomMcpError


def build_server(config: Config, *, http_transport: Any | None = None) -> McpServer:
    client = IntercomClient.from_config(config.intercom, transport=http_transport)
    return McpServer(build_tool_registry(client))


async def serve(
    server: McpServer,
    transport_factory: Any = SecureStdioTransport,
    **transport_kwargs: Any,
) -> SecureStdioTransport:
    """Run ``server`` on a new transport until it closes; returns the closed transport."""
    closed = asyncio.Event()
    transport: SecureStdioTransport

    async def on_message(message: JsonRpcMessage) -> None:
        reply = await server.handle_message(message)
        if reply is not None:
            await transport.send(reply)

    def on_error(error: Exception) -> None:
        if isinstance(error, HealthCheckFailedError):
            logger.error("Connection health check failed: {}", error.message)
        elif isinstance(error, IntercomMcpError):
            logger.warning("Transport error [{}]: {}", error.code, error.message)
        else:
            logger.error("Transport error: {}", error)

    transport = transport_factory(
        on_message=on_message,
        on_error=on_error,
        on_close=closed.set,
        **transport_kwargs,
    )
    await transport.start()
    logger.info("Intercom MCP server ready; tools: {}", ", ".join(server.registry.tool_names))
    await closed.wait()
    return transport


async def run_stdio_server(config: Config) -> None:
    """Serve MCP over the process stdin/stdout."""
    server = build_server(config)
    settings = config.transport
    # One extra byte so a record of exactly max+1 bytes reaches the size gate.
    reader = await open_stdin_reader(limit=settings.max_message_size + 1)
    await serve(server, settings=settings, reader=reader, writer=sys.stdout.buffer)
    logger.info("Transport closed, shutting down")
