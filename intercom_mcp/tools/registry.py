"""Tool registry: the set of tools served by ``tools/list`` and ``tools/call``."""

from typing import Any

from intercom_mcp.tools.base import Tool
from intercom_mcp.utils.exceptions import NotFoundError, ValidationError


class ToolRegistry:
    """
    Registry for MCP tools.

    Allows registration, lookup and validated execution of tools.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any tool with the same name."""
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        """Unregister a tool by name."""
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_definitions(self) -> list[dict[str, Any]]:
        """All tool definitions in MCP format, in registration order."""
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, params: dict[str, Any] | None) -> str:
        """
        Execute a tool by name with given parameters.

        Raises:
            NotFoundError: If the tool is not registered.
            ValidationError: If the parameters do not validate.
            Exception: Whatever the tool raises while running.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise NotFoundError("Tool", name)
        if not isinstance(params, dict):
            params = {}
        errors = tool.validate_params(params)
        if errors:
            raise ValidationError(f"Invalid arguments for tool '{name}': " + "; ".join(errors))
        return await tool.execute(**params)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
