"""Map failures raised while dispatching a request to JSON-RPC error payloads."""

from __future__ import annotations

from typing import Any, Callable

from intercom_mcp.transport.messages import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND
from intercom_mcp.utils.exceptions import (
    IntercomMcpError,
    NotFoundError,
    ValidationError,
    classify_exception,
    sanitize_error_message,
)


RpcResult = tuple[bool, Any | None, dict[str, Any] | None]


def rpc_error(code: int, message: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    """JSON-RPC error object."""
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return error


def unknown_method_result(*, method: str) -> RpcResult:
    """Build standardized unknown-method response."""
    return False, None, rpc_error(METHOD_NOT_FOUND, f"Method not found: {method}")


def invalid_params_result(*, method: str, message: str, details: dict[str, Any] | None = None) -> RpcResult:
    return False, None, rpc_error(INVALID_PARAMS, message, {"method": method, **(details or {})})


def known_error_result(
    *,
    method: str,
    exc: IntercomMcpError,
    log_warning: Callable[[str, Any, Any, Any], None],
) -> RpcResult:
    """Map IntercomMcpError: lookups and validation are the caller's fault, the rest is internal."""
    log_warning("RPC method {} failed with {}: {}", method, exc.code, exc.message)
    if isinstance(exc, NotFoundError):
        return invalid_params_result(method=method, message=exc.message, details=exc.details)
    if isinstance(exc, ValidationError):
        return invalid_params_result(method=method, message=exc.message, details=exc.details)
    return False, None, rpc_error(
        INTERNAL_ERROR,
        sanitize_error_message(exc.message),
        {"error_code": exc.code, "category": exc.category.value},
    )


def unhandled_exception_result(
    *,
    method: str,
    exc: Exception,
    log_exception: Callable[[str, Any, Any, Any], None],
) -> RpcResult:
    """Map unexpected exceptions to standardized internal-error responses."""
    code, category, _ = classify_exception(exc)
    sanitized = sanitize_error_message(str(exc))
    log_exception("RPC method {} failed with [{}]: {}", method, code, sanitized)
    return False, None, rpc_error(INTERNAL_ERROR, sanitized, {"error_code": code, "category": category.value})
