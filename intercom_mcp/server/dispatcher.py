"""MCP request dispatcher: turns validated inbound messages into replies."""

from __future__ import annotations

import inspect
from functools import partial
from typing import Any, Awaitable, Callable, Iterable

from loguru import logger

from intercom_mcp import __version__
from intercom_mcp.server.error_boundary import (
    RpcResult,
    known_error_result,
    unhandled_exception_result,
    unknown_method_result,
)
from intercom_mcp.server.handlers import try_handle_lifecycle_method, try_handle_tools_method
from intercom_mcp.tools.registry import ToolRegistry
from intercom_mcp.transport.messages import INTERNAL_ERROR, JsonRpcMessage, make_error, make_result
from intercom_mcp.utils.exceptions import IntercomMcpError

SERVER_NAME = "mcp-server-for-intercom"

DispatchHandler = Callable[[], Awaitable[RpcResult | None] | RpcResult | None]


async def run_handler_pipeline(handlers: Iterable[DispatchHandler]) -> RpcResult | None:
    """Run handlers in order and return the first non-None result."""
    for handler in handlers:
        outcome = handler()
        result = await outcome if inspect.isawaitable(outcome) else outcome
        if result is not None:
            return result
    return None


class McpServer:
    """Dispatches requests to lifecycle and tool handlers.

    ``handle_message`` returns the reply to send, or None for notifications and
    inbound responses.
    """

    def __init__(self, registry: ToolRegistry, *, name: str = SERVER_NAME, version: str = __version__):
        self.registry = registry
        self.server_info = {"name": name, "version": version}

    async def dispatch(self, method: str, params: dict[str, Any]) -> RpcResult:
        handlers: tuple[DispatchHandler, ...] = (
            partial(try_handle_lifecycle_method, method=method, params=params, server_info=self.server_info),
            partial(try_handle_tools_method, method=method, params=params, registry=self.registry),
        )
        try:
            result = await run_handler_pipeline(handlers)
        except IntercomMcpError as exc:
            return known_error_result(method=method, exc=exc, log_warning=logger.warning)
        except Exception as exc:
            return unhandled_exception_result(method=method, exc=exc, log_exception=logger.exception)
        if result is None:
            return unknown_method_result(method=method)
        return result

    async def handle_message(self, message: JsonRpcMessage) -> JsonRpcMessage | None:
        if message.method is None:
            logger.debug("Ignoring inbound response id={}", message.id)
            return None

        ok, payload, error = await self.dispatch(message.method, message.params or {})

        if message.is_notification:
            if not ok:
                logger.debug("Notification {} not handled: {}", message.method, (error or {}).get("message"))
            return None
        if ok:
            return make_result(message.id, payload)
        error = error or {"code": INTERNAL_ERROR, "message": "unknown error"}
        return make_error(message.id, error["code"], error["message"], error.get("data"))
