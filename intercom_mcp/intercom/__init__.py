"""Intercom REST API adapter."""

from intercom_mcp.intercom.client import IntercomClient
from intercom_mcp.intercom.models import ConversationMessage, Ticket

__all__ = ["IntercomClient", "ConversationMessage", "Ticket"]
