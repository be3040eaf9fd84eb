"""Intercom search tools: conversations and tickets by date, customer and status."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from intercom_mcp.intercom.client import IntercomClient
from intercom_mcp.intercom.models import Ticket
from intercom_mcp.tools.arguments import (
    ListConversationsArgs,
    SearchConversationsByCustomerArgs,
    SearchTicketsByCustomerArgs,
    SearchTicketsByStatusArgs,
)
from intercom_mcp.tools.base import Tool
from intercom_mcp.tools.registry import ToolRegistry

_DATE_HINT = "in DD/MM/YYYY format (e.g., '15/01/2025')"

_CUSTOMER_PROPERTY = {"type": "string", "description": "Customer email or ID to search for"}
_START_DATE_PROPERTY = {"type": "string", "description": f"Optional start date {_DATE_HINT}"}
_END_DATE_PROPERTY = {"type": "string", "description": f"Optional end date {_DATE_HINT}"}


def render_tickets(tickets: list[Ticket]) -> str:
    return json.dumps({"result": [t.to_dict() for t in tickets]}, indent=2, ensure_ascii=False)


class IntercomTool(Tool):
    """Common plumbing: parse arguments, query Intercom, render tickets as JSON text."""

    def __init__(self, client: IntercomClient):
        self._client = client

    async def execute(self, **kwargs: Any) -> str:
        args = self.parse_args(kwargs)
        tickets = await self.run(args)
        logger.info("Tool {} returned {} tickets", self.name, len(tickets))
        return render_tickets(tickets)

    async def run(self, args: Any) -> list[Ticket]:
        raise NotImplementedError


class ListConversationsTool(IntercomTool):
    args_model = ListConversationsArgs

    @property
    def name(self) -> str:
        return "list_conversations"

    @property
    def description(self) -> str:
        return (
            "Retrieves Intercom conversations within a specific date range.\n\n"
            "Required: startDate, endDate (DD/MM/YYYY format, max 7-day range)\n"
            "Optional: keyword, exclude (for content filtering)\n\n"
            "Always ask for specific dates when user makes vague time references."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "required": ["startDate", "endDate"],
            "properties": {
                "startDate": {"type": "string", "description": f"Start date {_DATE_HINT}. Required."},
                "endDate": {"type": "string", "description": f"End date {_DATE_HINT}. Required."},
                "keyword": {"type": "string", "description": "Optional keyword to filter conversations by content."},
                "exclude": {"type": "string", "description": "Optional exclusion filter for conversation content."},
            },
        }

    async def run(self, args: ListConversationsArgs) -> list[Ticket]:
        start, end = args.window()
        return await self._client.list_conversations(start, end, args.keyword, args.exclude)


class SearchConversationsByCustomerTool(IntercomTool):
    args_model = SearchConversationsByCustomerArgs

    @property
    def name(self) -> str:
        return "search_conversations_by_customer"

    @property
    def description(self) -> str:
        return (
            "Searches for conversations by customer email or ID with optional date filtering.\n\n"
            "Required: customerIdentifier (email/ID)\n"
            "Optional: startDate, endDate (DD/MM/YYYY format)\n"
            "Optional: keywords (array of terms to filter by)\n\n"
            "Use when looking for conversation history with a specific customer."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "required": ["customerIdentifier"],
            "properties": {
                "customerIdentifier": _CUSTOMER_PROPERTY,
                "startDate": _START_DATE_PROPERTY,
                "endDate": _END_DATE_PROPERTY,
                "keywords": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Optional keywords to filter conversations by content",
                },
            },
        }

    async def run(self, args: SearchConversationsByCustomerArgs) -> list[Ticket]:
        start, end = args.window()
        return await self._client.search_conversations_by_customer(args.customer_identifier, start, end, args.keywords)


class SearchTicketsByStatusTool(IntercomTool):
    args_model = SearchTicketsByStatusArgs

    @property
    def name(self) -> str:
        return "search_tickets_by_status"

    @property
    def description(self) -> str:
        return (
            "Searches for tickets by status with optional date filtering.\n\n"
            "Required: status (one of: open, pending, resolved)\n"
            "Optional: startDate, endDate (DD/MM/YYYY format)\n\n"
            "Use when analyzing support workload or tracking issue resolution."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "required": ["status"],
            "properties": {
                "status": {
                    "type": "string",
                    "description": "Ticket status to search for (open, pending, or resolved)",
                    "enum": ["open", "pending", "resolved"],
                },
                "startDate": _START_DATE_PROPERTY,
                "endDate": _END_DATE_PROPERTY,
            },
        }

    async def run(self, args: SearchTicketsByStatusArgs) -> list[Ticket]:
        start, end = args.window()
        return await self._client.search_tickets_by_status(args.status, start, end)


class SearchTicketsByCustomerTool(IntercomTool):
    args_model = SearchTicketsByCustomerArgs

    @property
    def name(self) -> str:
        return "search_tickets_by_customer"

    @property
    def description(self) -> str:
        return (
            "Searches for tickets by customer email or ID with optional date filtering.\n\n"
            "Required: customerIdentifier (email/ID)\n"
            "Optional: startDate, endDate (DD/MM/YYYY format)\n\n"
            "Use when analyzing a customer's support history."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "required": ["customerIdentifier"],
            "properties": {
                "customerIdentifier": _CUSTOMER_PROPERTY,
                "startDate": _START_DATE_PROPERTY,
                "endDate": _END_DATE_PROPERTY,
            },
        }

    async def run(self, args: SearchTicketsByCustomerArgs) -> list[Ticket]:
        start, end = args.window()
        return await self._client.search_tickets_by_customer(args.customer_identifier, start, end)


def build_tool_registry(client: IntercomClient) -> ToolRegistry:
    """Registry holding every Intercom tool, bound to ``client``."""
    registry = ToolRegistry()
    for tool_cls in (
        SearchConversationsByCustomerTool,
        SearchTicketsByStatusTool,
        SearchTicketsByCustomerTool,
        ListConversationsTool,
    ):
        registry.register(tool_cls(client))
    return registry
