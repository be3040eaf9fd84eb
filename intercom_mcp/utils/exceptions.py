"""
Error types for intercom-mcp.

Every failure raised by this package is an ``IntercomMcpError`` carrying a
stable ``code`` and an ``ErrorCategory``. Transport errors map one-to-one onto
the ways an inbound or outbound message can be refused; ``IntercomApiError``
wraps REST failures. The helpers at the bottom turn arbitrary exceptions into
redacted, classified text for logs and tool results.
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError


class ErrorCategory(Enum):
    """Error categories for classification."""
    RECOVERABLE = "recoverable"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"


class IntercomMcpError(Exception):
    """Base exception for all intercom-mcp errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ValidationError(IntercomMcpError):
    """Input validation error."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", category=ErrorCategory.VALIDATION, details=details)


class NotFoundError(IntercomMcpError):
    """Resource not found error."""

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            code="NOT_FOUND",
            category=ErrorCategory.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class IntercomApiError(IntercomMcpError):
    """Intercom REST API failure."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        category = ErrorCategory.RETRYABLE if retryable else ErrorCategory.FATAL
        if status_code == 404:
            category = ErrorCategory.NOT_FOUND
        elif status_code in (401, 403):
            category = ErrorCategory.PERMISSION
        super().__init__(
            message,
            code="INTERCOM_API_ERROR",
            category=category,
            details={"status_code": status_code, "retryable": retryable},
        )
        self.status_code = status_code
        self.retryable = retryable


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


class TransportError(IntercomMcpError):
    """Base class for byte-stream transport failures."""


class MessageTooLargeError(TransportError):
    """Inbound or outbound payload exceeds the size ceiling."""

    def __init__(self, limit: int, size: int | None = None):
        super().__init__(
            f"Message size exceeds limit of {limit} bytes",
            code="MESSAGE_TOO_LARGE",
            category=ErrorCategory.VALIDATION,
            details={"limit": limit, "size": size},
        )


class RateLimitExceededError(TransportError):
    """Admission denied by the token bucket."""

    def __init__(self, capacity: int | None = None, window_ms: int | None = None):
        super().__init__(
            "Rate limit exceeded",
            code="RATE_LIMIT",
            category=ErrorCategory.RATE_LIMIT,
            details={"capacity": capacity, "window_ms": window_ms},
        )


class InvalidFormatError(TransportError):
    """Decode or schema failure on a message."""

    def __init__(self, reason: str):
        super().__init__(
            f"Invalid message format: {reason}",
            code="INVALID_FORMAT",
            category=ErrorCategory.VALIDATION,
            details={"reason": reason},
        )
        self.reason = reason


class NotConnectedError(TransportError):
    """Send attempted while the transport is closed."""

    def __init__(self) -> None:
        super().__init__(
            "Transport is not connected",
            code="NOT_CONNECTED",
            category=ErrorCategory.RECOVERABLE,
        )


class HealthCheckFailedError(TransportError):
    """Connection went stale; fatal to the current connection."""

    def __init__(self, idle_ms: float, timeout_ms: int):
        super().__init__(
            "Health check failed - connection timeout",
            code="HEALTH_CHECK_FAILED",
            category=ErrorCategory.FATAL,
            details={"idle_ms": round(idle_ms), "timeout_ms": timeout_ms},
        )


# Intercom access tokens are base64 "tok:" blobs; bearer headers and key=value
# pairs can leak through httpx error text.
_SECRET_PATTERNS = (
    re.compile(r"\b(access[_-]?token|api[_-]?key|token|secret|password|authorization)\b(\s*[=:]\s*)['\"]?[^\s'\",]+['\"]?", re.IGNORECASE),
    re.compile(r"\bbearer\s+[\w\-.~+/]+=*", re.IGNORECASE),
    re.compile(r"dG9rOj[\w+/=]+"),
    re.compile(r"\b[\w\-]{40,}\b"),
)


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Strip credentials from text bound for logs or the MCP client."""
    for pattern in _SECRET_PATTERNS:
        if pattern.groups:
            message = pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}{replacement}", message)
        else:
            message = pattern.sub(replacement, message)
    return message


def classify_exception(exc: BaseException) -> tuple[str, ErrorCategory, bool]:
    """Return ``(error_code, category, should_retry)`` for any exception."""
    if isinstance(exc, IntercomMcpError):
        return exc.code, exc.category, exc.category in (ErrorCategory.RETRYABLE, ErrorCategory.RATE_LIMIT)
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True
    if isinstance(exc, (ConnectionError, httpx.TransportError)):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True
    if isinstance(exc, PydanticValidationError):
        return "VALIDATION_ERROR", ErrorCategory.VALIDATION, False
    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.VALIDATION, False
    if isinstance(exc, (ValueError, KeyError, TypeError)):
        return "INVALID_VALUE", ErrorCategory.VALIDATION, False
    return "INTERNAL_ERROR", ErrorCategory.FATAL, False


def format_tool_error(tool_name: str, exc: BaseException, include_details: bool = False) -> str:
    """Text placed in an ``isError`` tool result (or a log line, with details)."""
    message = exc.message if isinstance(exc, IntercomMcpError) else sanitize_error_message(str(exc))
    if not include_details:
        return f"Error: {message}"
    code, category, _ = classify_exception(exc)
    return f"Error [{code}] ({category.value}) in {tool_name}: {message}"
