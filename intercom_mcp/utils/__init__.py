"""Utility helpers for intercom-mcp."""

from intercom_mcp.utils.exceptions import (
    ErrorCategory,
    IntercomMcpError,
    classify_exception,
    sanitize_error_message,
)

__all__ = ["ErrorCategory", "IntercomMcpError", "classify_exception", "sanitize_error_message"]
