"""Tests for intercom_mcp.utils.exceptions module."""

from __future__ import annotations

import asyncio

import pytest

from intercom_mcp.utils.exceptions import (
    ErrorCategory,
    HealthCheckFailedError,
    IntercomApiError,
    IntercomMcpError,
    InvalidFormatError,
    MessageTooLargeError,
    NotConnectedError,
    NotFoundError,
    RateLimitExceededError,
    TransportError,
    ValidationError,
    classify_exception,
    format_tool_error,
    sanitize_error_message,
)


class TestExceptionClasses:
    """Test custom exception classes."""

    def test_base_error_to_dict(self) -> None:
        exc = IntercomMcpError("test message", code="TEST_CODE")
        assert exc.to_dict() == {
            "error": "TEST_CODE",
            "message": "test message",
            "category": ErrorCategory.FATAL.value,
            "details": {},
        }
        assert str(exc) == "[TEST_CODE] test message"

    def test_validation_error_with_field(self) -> None:
        exc = ValidationError("Invalid input", field="startDate")
        assert exc.code == "VALIDATION_ERROR"
        assert exc.details == {"field": "startDate"}

    def test_not_found_error(self) -> None:
        exc = NotFoundError("Tool", "x")
        assert exc.category == ErrorCategory.NOT_FOUND
        assert "Tool not found: x" in str(exc)

    def test_intercom_api_error_category(self) -> None:
        assert IntercomApiError("x", status_code=404).category == ErrorCategory.NOT_FOUND
        assert IntercomApiError("x", status_code=401).category == ErrorCategory.PERMISSION
        assert IntercomApiError("x", status_code=503, retryable=True).category == ErrorCategory.RETRYABLE


class TestTransportErrors:
    @pytest.mark.parametrize(
        "exc,code,message",
        [
            (MessageTooLargeError(10, 11), "MESSAGE_TOO_LARGE", "Message size exceeds limit of 10 bytes"),
            (RateLimitExceededError(60, 60_000), "RATE_LIMIT", "Rate limit exceeded"),
            (InvalidFormatError("bad"), "INVALID_FORMAT", "Invalid message format: bad"),
            (NotConnectedError(), "NOT_CONNECTED", "Transport is not connected"),
            (HealthCheckFailedError(300_001, 300_000), "HEALTH_CHECK_FAILED", "Health check failed - connection timeout"),
        ],
    )
    def test_codes_and_messages(self, exc: TransportError, code: str, message: str) -> None:
        assert isinstance(exc, TransportError)
        assert exc.code == code
        assert exc.message == message

    def test_invalid_format_keeps_reason(self) -> None:
        assert InvalidFormatError("id: bad").reason == "id: bad"


class TestSanitize:
    def test_redacts_tokens(self) -> None:
        assert "abc123" not in sanitize_error_message("token=abc123 failed")
        assert "Bearer" not in sanitize_error_message("header Bearer dG9rOjEyMzQ1Ng==")

    def test_leaves_plain_text(self) -> None:
        assert sanitize_error_message("Conversation not found") == "Conversation not found"


class TestClassify:
    def test_known_errors(self) -> None:
        assert classify_exception(RateLimitExceededError()) == ("RATE_LIMIT", ErrorCategory.RATE_LIMIT, True)
        assert classify_exception(asyncio.TimeoutError())[0] == "TIMEOUT"
        assert classify_exception(ValueError("x"))[0] == "INVALID_VALUE"
        assert classify_exception(RuntimeError("boom"))[0] == "INTERNAL_ERROR"

    def test_format_tool_error(self) -> None:
        exc = IntercomApiError("API request failed with status 500: down", status_code=500)
        assert format_tool_error("t", exc) == "Error: API request failed with status 500: down"
        assert format_tool_error("t", exc, include_details=True).startswith("Error [INTERCOM_API_ERROR] (fatal)")
