"""JSON-RPC 2.0 message envelope: model, validation and wire encoding."""

from __future__ import annotations

import json
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from intercom_mcp.utils.exceptions import InvalidFormatError

JSONRPC_VERSION = "2.0"

MessageId = StrictInt | StrictFloat | StrictStr

# Standard JSON-RPC error codes.
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class JsonRpcErrorObject(BaseModel):
    """Error member of an error response."""

    model_config = ConfigDict(frozen=True)

    code: StrictInt | StrictFloat
    message: StrictStr
    data: Any = None


class JsonRpcMessage(BaseModel):
    """One request, notification, response or error response.

    Only fields that were actually present (or passed to the constructor) are
    serialized, so ``result: null`` survives a round trip while an absent
    ``result`` stays absent.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    jsonrpc: Literal["2.0"]
    id: MessageId | None = None
    method: StrictStr | None = None
    params: dict[str, Any] | None = None
    result: Any = None
    error: JsonRpcErrorObject | None = None

    @field_validator("method", "params", "error", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    @model_validator(mode="after")
    def _check_kind(self) -> "JsonRpcMessage":
        fields = self.model_fields_set
        has_result = "result" in fields
        has_error = "error" in fields
        if self.method is None and not has_result and not has_error:
            raise ValueError("message must carry one of method, result or error")
        if has_result and has_error:
            raise ValueError("message cannot carry both result and error")
        return self

    @property
    def is_request(self) -> bool:
        return self.method is not None

    @property
    def is_notification(self) -> bool:
        return self.method is not None and "id" not in self.model_fields_set

    @property
    def is_response(self) -> bool:
        return self.method is None

    def to_wire(self) -> dict[str, Any]:
        """Plain dict of populated fields, ready for ``json.dumps``."""
        return self.model_dump(mode="json", exclude_unset=True)


def _describe_first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ())) or "message"
    return f"{loc}: {first.get('msg', 'invalid value')}"


def validate_message(raw: Any) -> JsonRpcMessage:
    """Validate an already-decoded candidate against the envelope schema.

    Raises:
        InvalidFormatError: describing the first violation found.
    """
    if isinstance(raw, JsonRpcMessage):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidFormatError(f"expected a JSON object, got {type(raw).__name__}")
    try:
        return JsonRpcMessage.model_validate(dict(raw))
    except PydanticValidationError as exc:
        raise InvalidFormatError(_describe_first_error(exc)) from exc


def decode_message(data: bytes) -> JsonRpcMessage:
    """Decode one UTF-8 JSON record and validate it."""
    try:
        raw = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidFormatError(str(exc)) from exc
    return validate_message(raw)


def encode_message(message: JsonRpcMessage) -> bytes:
    """Compact JSON encoding of a validated message (no trailing newline)."""
    return json.dumps(message.to_wire(), separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def make_result(message_id: Any, result: Any) -> JsonRpcMessage:
    return JsonRpcMessage(jsonrpc=JSONRPC_VERSION, id=message_id, result=result)


def make_error(message_id: Any, code: int, message: str, data: Any = None) -> JsonRpcMessage:
    error = JsonRpcErrorObject(code=code, message=message, data=data) if data is not None else JsonRpcErrorObject(code=code, message=message)
    return JsonRpcMessage(jsonrpc=JSONRPC_VERSION, id=message_id, error=error)
