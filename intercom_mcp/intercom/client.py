"""Async HTTP client for the Intercom REST API."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx
from loguru import logger

from intercom_mcp.config.schema import IntercomConfig
from intercom_mcp.intercom.models import (
    STATUS_TO_TICKET_STATES,
    ConversationMessage,
    Ticket,
    conversation_text,
    conversation_to_ticket,
    determine_sender,
    ticket_from_ticket_payload,
    unix_to_iso,
)
from intercom_mcp.utils.exceptions import IntercomApiError, sanitize_error_message

# Intercom truncates conversation_parts at this count.
CONVERSATION_PARTS_LIMIT = 500


def _matches(text: str, keyword: str | None, exclude: str | None) -> bool:
    lowered = text.lower()
    if keyword and keyword.lower() not in lowered:
        return False
    if exclude and exclude.lower() in lowered:
        return False
    return True


def _next_cursor(pages: Any) -> str | None:
    """Extract ``starting_after`` from ``pages.next`` (URL string or cursor object)."""
    if not isinstance(pages, dict):
        return None
    nxt = pages.get("next")
    if isinstance(nxt, dict):
        cursor = nxt.get("starting_after")
        return str(cursor) if cursor else None
    if isinstance(nxt, str) and "starting_after=" in nxt:
        values = parse_qs(urlparse(nxt).query).get("starting_after")
        if values:
            return values[0]
        return nxt.split("starting_after=", 1)[1].split("&", 1)[0] or None
    return None


def _combine(filters: list[dict[str, Any]]) -> dict[str, Any]:
    if len(filters) == 1:
        return filters[0]
    return {"operator": "AND", "value": filters}


def _created_at_filters(start: datetime | None, end: datetime | None) -> list[dict[str, Any]]:
    filters: list[dict[str, Any]] = []
    if start is not None:
        filters.append({"field": "created_at", "operator": ">", "value": int(start.timestamp())})
    if end is not None:
        filters.append({"field": "created_at", "operator": "<", "value": int(end.timestamp())})
    return filters


class IntercomClient:
    """Thin adapter over the Intercom REST API: retries, pagination and field mapping."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        api_version: str = "2.9",
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        per_page: int = 150,
        concurrent_requests: int = 5,
        page_delay: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url or not base_url.strip():
            raise ValueError("Invalid API base URL: API base URL is required")
        if not access_token or not access_token.strip():
            raise ValueError("Invalid authentication token: Auth token is required")
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.per_page = per_page
        self.concurrent_requests = concurrent_requests
        self.page_delay = page_delay
        self._transport = transport

    @classmethod
    def from_config(cls, config: IntercomConfig, **kwargs: Any) -> "IntercomClient":
        return cls(
            config.api_base_url,
            config.access_token,
            api_version=config.api_version,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay_seconds,
            per_page=config.per_page,
            concurrent_requests=config.concurrent_requests,
            page_delay=config.page_delay_seconds,
            **kwargs,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Intercom-Version": self.api_version,
        }

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        detail = resp.reason_phrase
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            errors = body.get("errors")
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                detail = errors[0].get("message") or detail
            detail = body.get("message") or detail
        return f"API request failed with status {resp.status_code}: {detail}"

    def _retry_after(self, resp: httpx.Response) -> float:
        try:
            seconds = float(resp.headers.get("Retry-After", ""))
        except ValueError:
            return self.retry_delay
        return seconds if seconds > 0 else self.retry_delay

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        attempt = 0
        while True:
            cause: Exception | None = None
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.request(method, url, params=params, json=json_body, headers=self._headers())
            except httpx.TimeoutException as exc:
                cause = exc
                error = IntercomApiError(f"Intercom request timed out: {method} {path}", retryable=True)
            except httpx.RequestError as exc:
                cause = exc
                error = IntercomApiError(
                    f"Intercom request failed: {method} {path}: {sanitize_error_message(str(exc))}",
                    retryable=True,
                )
            else:
                if resp.status_code == 429 and attempt < self.max_retries:
                    delay = self._retry_after(resp)
                    logger.warning("Intercom rate limit on {} {}, retrying in {:.1f}s", method, path, delay)
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue
                if resp.status_code >= 400:
                    error = IntercomApiError(
                        self._error_message(resp),
                        status_code=resp.status_code,
                        retryable=resp.status_code >= 500 or resp.status_code == 429,
                    )
                else:
                    try:
                        body = resp.json()
                    except ValueError as exc:
                        raise IntercomApiError(
                            f"Intercom returned invalid JSON for {method} {path}",
                            status_code=resp.status_code,
                        ) from exc
                    return body if isinstance(body, dict) else {}

            if error.retryable and attempt < self.max_retries:
                delay = self.retry_delay * (2 ** attempt)
                logger.warning("Intercom {} {} failed ({}), retrying in {:.1f}s", method, path, error.message, delay)
                await asyncio.sleep(delay)
                attempt += 1
                continue
            if cause is not None:
                raise error from cause
            raise error

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def list_conversations(
        self,
        start: datetime,
        end: datetime,
        keyword: str | None = None,
        exclude: str | None = None,
    ) -> list[Ticket]:
        """Conversations created in ``[start, end)`` with full histories, keyword/exclude filtered."""
        start_ts, end_ts = start.timestamp(), end.timestamp()
        tickets: list[Ticket] = []
        starting_after: str | None = None
        page = 1

        logger.info("Retrieving conversations between {} and {}", start.isoformat(), end.isoformat())
        while True:
            params: dict[str, Any] = {"per_page": str(self.per_page)}
            if starting_after:
                params["starting_after"] = starting_after
            body = await self._request("GET", "conversations", params=params)
            conversations = body.get("conversations") or []
            if not conversations:
                break
            logger.debug("Retrieved page {} with {} conversations", page, len(conversations))

            for conversation in conversations:
                created_at = float(conversation.get("created_at") or 0)
                if not start_ts <= created_at < end_ts:
                    continue
                if not _matches(conversation_text(conversation), keyword, exclude):
                    continue
                tickets.append(conversation_to_ticket(conversation))

            starting_after = _next_cursor(body.get("pages"))
            if not starting_after:
                break
            page += 1
            await asyncio.sleep(self.page_delay)

        logger.info("Matched {} conversations", len(tickets))
        return await self.add_conversation_histories(tickets, keyword, exclude)

    async def get_conversation_history(
        self,
        conversation_id: str,
        keyword: str | None = None,
        exclude: str | None = None,
        *,
        allow_fallback: bool = True,
    ) -> list[ConversationMessage]:
        """Full message history of one conversation; tries the admin path once on 404."""
        try:
            body = await self._request(
                "GET",
                f"conversations/{conversation_id}",
                params={"view": "expanded", "display_as": "plaintext"},
            )
        except IntercomApiError as exc:
            if exc.status_code != 404 or not allow_fallback:
                raise
            logger.warning("Conversation {} not found (404), trying alternate URL format", conversation_id)
            alternate = await self._request("GET", f"admins/conversations/{conversation_id}")
            alternate_id = alternate.get("id")
            if not alternate_id:
                raise
            return await self.get_conversation_history(str(alternate_id), keyword, exclude, allow_fallback=False)
        return self._parse_history(conversation_id, body, keyword, exclude)

    @staticmethod
    def _parse_history(
        conversation_id: str,
        body: dict[str, Any],
        keyword: str | None,
        exclude: str | None,
    ) -> list[ConversationMessage]:
        messages: list[ConversationMessage] = []
        source = body.get("source") or {}
        initial = source.get("body")
        if initial and _matches(initial, keyword, exclude):
            messages.append(ConversationMessage("customer", initial, unix_to_iso(body.get("created_at"))))

        parts_block = body.get("conversation_parts") or {}
        for part in parts_block.get("conversation_parts") or []:
            text = part.get("body")
            if not text or not _matches(text, keyword, exclude):
                continue
            author = part.get("author") or {}
            messages.append(
                ConversationMessage(
                    determine_sender(author.get("type"), part.get("part_type")),
                    text,
                    unix_to_iso(part.get("created_at")),
                )
            )

        if parts_block.get("total_count") == CONVERSATION_PARTS_LIMIT:
            logger.warning(
                "Conversation {} reached the {} parts limit; older messages may be missing",
                conversation_id,
                CONVERSATION_PARTS_LIMIT,
            )
        return messages

    async def add_conversation_histories(
        self,
        tickets: list[Ticket],
        keyword: str | None = None,
        exclude: str | None = None,
    ) -> list[Ticket]:
        """Fill ``ticket.conversation`` concurrently; a failed fetch leaves it empty."""
        semaphore = asyncio.Semaphore(self.concurrent_requests)
        total = len(tickets)

        async def _fill(index: int, ticket: Ticket) -> Ticket:
            async with semaphore:
                try:
                    ticket.conversation = await self.get_conversation_history(ticket.ticket_id, keyword, exclude)
                except IntercomApiError as exc:
                    logger.warning("History for conversation {} unavailable: {}", ticket.ticket_id, exc.message)
                    ticket.conversation = []
            if index % 10 == 0 or index == total:
                logger.debug("Progress: {}/{} conversations", index, total)
            return ticket

        return list(await asyncio.gather(*(_fill(i, t) for i, t in enumerate(tickets, start=1))))

    # ------------------------------------------------------------------
    # Search endpoints
    # ------------------------------------------------------------------

    async def _search(self, path: str, key: str, query: dict[str, Any]) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        starting_after: str | None = None
        while True:
            pagination: dict[str, Any] = {"per_page": self.per_page}
            if starting_after:
                pagination["starting_after"] = starting_after
            body = await self._request("POST", path, json_body={"query": query, "pagination": pagination})
            items = body.get(key) or []
            results.extend(item for item in items if isinstance(item, dict))
            starting_after = _next_cursor(body.get("pages"))
            if not items or not starting_after:
                return results
            await asyncio.sleep(self.page_delay)

    async def search_conversations(self, query: dict[str, Any]) -> list[dict[str, Any]]:
        return await self._search("conversations/search", "conversations", query)

    async def search_tickets(self, query: dict[str, Any]) -> list[dict[str, Any]]:
        return await self._search("tickets/search", "tickets", query)

    async def find_contact_ids(self, identifier: str) -> list[str]:
        """Resolve an email or contact id to Intercom contact ids."""
        identifier = identifier.strip()
        field = "email" if "@" in identifier else "id"
        contacts = await self._search(
            "contacts/search",
            "data",
            {"field": field, "operator": "=", "value": identifier},
        )
        ids = [str(c["id"]) for c in contacts if c.get("id")]
        if not ids and field == "id":
            # Some workspaces only expose external ids; let the conversation search decide.
            ids = [identifier]
        return ids

    async def search_conversations_by_customer(
        self,
        identifier: str,
        start: datetime | None = None,
        end: datetime | None = None,
        keywords: list[str] | None = None,
    ) -> list[Ticket]:
        contact_ids = await self.find_contact_ids(identifier)
        if not contact_ids:
            logger.info("No Intercom contact found for customer identifier")
            return []
        filters = [{"field": "contact_ids", "operator": "IN", "value": contact_ids}]
        filters.extend(_created_at_filters(start, end))
        conversations = await self.search_conversations(_combine(filters))

        terms = [k.lower() for k in (keywords or []) if k and k.strip()]
        if terms:
            conversations = [c for c in conversations if any(t in conversation_text(c) for t in terms)]
        tickets = [conversation_to_ticket(c) for c in conversations]
        return await self.add_conversation_histories(tickets)

    async def search_tickets_by_status(
        self,
        status: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Ticket]:
        states = STATUS_TO_TICKET_STATES.get(status)
        if states is None:
            raise ValueError(f"Unknown ticket status: {status}")
        filters = [{"field": "state", "operator": "IN", "value": states}]
        filters.extend(_created_at_filters(start, end))
        payloads = await self.search_tickets(_combine(filters))
        return [self._ticket_with_parts(p) for p in payloads]

    async def search_tickets_by_customer(
        self,
        identifier: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Ticket]:
        contact_ids = await self.find_contact_ids(identifier)
        if not contact_ids:
            return []
        filters = [{"field": "contact_ids", "operator": "IN", "value": contact_ids}]
        filters.extend(_created_at_filters(start, end))
        payloads = await self.search_tickets(_combine(filters))
        return [self._ticket_with_parts(p) for p in payloads]

    @staticmethod
    def _ticket_with_parts(payload: dict[str, Any]) -> Ticket:
        ticket = ticket_from_ticket_payload(payload)
        parts_block = payload.get("ticket_parts") or {}
        for part in parts_block.get("ticket_parts") or []:
            text = part.get("body")
            if not text:
                continue
            author = part.get("author") or {}
            ticket.conversation.append(
                ConversationMessage(
                    determine_sender(author.get("type"), part.get("part_type")),
                    text,
                    unix_to_iso(part.get("created_at")),
                )
            )
        return ticket
