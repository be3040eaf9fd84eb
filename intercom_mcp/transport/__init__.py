"""Byte-stream transport: framing, limits, validation and lifecycle."""

from intercom_mcp.transport.messages import (
    JsonRpcErrorObject,
    JsonRpcMessage,
    decode_message,
    encode_message,
    validate_message,
)
from intercom_mcp.transport.rate_limiter import TokenBucketLimiter
from intercom_mcp.transport.stdio import QueuedEntry, SecureStdioTransport, open_stdin_reader

__all__ = [
    "JsonRpcErrorObject",
    "JsonRpcMessage",
    "QueuedEntry",
    "SecureStdioTransport",
    "TokenBucketLimiter",
    "decode_message",
    "encode_message",
    "open_stdin_reader",
    "validate_message",
]
