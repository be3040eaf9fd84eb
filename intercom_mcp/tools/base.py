"""Base class for MCP tools."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from intercom_mcp.utils.exceptions import ValidationError


def describe_validation_errors(exc: PydanticValidationError) -> list[str]:
    """Human-readable ``field: reason`` strings, camelCase field names as sent by the client."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


class Tool(ABC):
    """
    An operation exposed through ``tools/list`` and ``tools/call``.

    Subclasses describe their input with a JSON schema (``parameters``) and,
    optionally, a pydantic model (``args_model``) that performs the real
    validation and normalization.
    """

    args_model: ClassVar[type[BaseModel] | None] = None

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]: ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str: ...

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """Return a list of problems with ``params``; empty when valid."""
        if self.args_model is not None:
            try:
                self.args_model.model_validate(params)
            except PydanticValidationError as exc:
                return describe_validation_errors(exc)
            return []
        missing = [key for key in self.parameters.get("required", []) if key not in params]
        return [f"{key}: Field required" for key in missing]

    def parse_args(self, params: dict[str, Any]) -> Any:
        """Validate ``params`` with ``args_model``; raises ``ValidationError``."""
        if self.args_model is None:
            return params
        try:
            return self.args_model.model_validate(params)
        except PydanticValidationError as exc:
            raise ValidationError("Invalid arguments: " + "; ".join(describe_validation_errors(exc))) from exc

    def to_schema(self) -> dict[str, Any]:
        """Tool definition in MCP ``tools/list`` format."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameters,
        }
