"""Normalized ticket/conversation records returned to MCP clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

Sender = Literal["customer", "support_agent", "system"]

_STATE_TO_STATUS = {
    "open": "open",
    "closed": "resolved",
    "snoozed": "pending",
}


@dataclass
class ConversationMessage:
    sender: Sender
    text: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.sender, "text": self.text, "timestamp": self.timestamp}


@dataclass
class Ticket:
    ticket_id: str
    subject: str
    status: str
    created_at: str
    conversation: list[ConversationMessage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "subject": self.subject,
            "status": self.status,
            "created_at": self.created_at,
            "conversation": [m.to_dict() for m in self.conversation],
        }


def unix_to_iso(value: Any) -> str:
    """Unix seconds -> ISO-8601 UTC with millisecond precision and a Z suffix."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        seconds = 0.0
    dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def map_state_to_status(state: str | None) -> str:
    """Intercom conversation state -> open / pending / resolved (unknown states pass through)."""
    state = state or ""
    return _STATE_TO_STATUS.get(state, state)


def determine_sender(author_type: str | None, part_type: str | None) -> Sender:
    if part_type == "note":
        return "system"
    if author_type == "user":
        return "customer"
    if author_type in ("admin", "bot"):
        return "support_agent"
    return "system"


def conversation_text(conversation: dict[str, Any]) -> str:
    """Lower-cased title + body used for keyword/exclude filtering."""
    source = conversation.get("source") or {}
    title = source.get("title") or ""
    body = source.get("body") or ""
    return f"{title} {body}".lower()


def conversation_to_ticket(conversation: dict[str, Any]) -> Ticket:
    source = conversation.get("source") or {}
    return Ticket(
        ticket_id=str(conversation.get("id", "")),
        subject=source.get("title") or source.get("body") or conversation.get("title") or "No subject",
        status=map_state_to_status(conversation.get("state")),
        created_at=unix_to_iso(conversation.get("created_at")),
    )


def ticket_from_ticket_payload(payload: dict[str, Any]) -> Ticket:
    """Map an Intercom ticket object (tickets API) to a Ticket."""
    attributes = payload.get("ticket_attributes") or {}
    subject = (
        attributes.get("_default_title_")
        or attributes.get("title")
        or payload.get("title")
        or "No subject"
    )
    state = payload.get("ticket_state") or payload.get("state")
    if isinstance(state, dict):
        state = state.get("category") or state.get("internal_label")
    return Ticket(
        ticket_id=str(payload.get("id", "")),
        subject=str(subject),
        status=map_ticket_state(state),
        created_at=unix_to_iso(payload.get("created_at")),
    )


_TICKET_STATE_TO_STATUS = {
    "submitted": "open",
    "in_progress": "open",
    "waiting_on_customer": "pending",
    "resolved": "resolved",
}

STATUS_TO_TICKET_STATES: dict[str, list[str]] = {
    "open": ["submitted", "in_progress"],
    "pending": ["waiting_on_customer"],
    "resolved": ["resolved"],
}


def map_ticket_state(state: str | None) -> str:
    state = state or ""
    return _TICKET_STATE_TO_STATUS.get(state, state)
