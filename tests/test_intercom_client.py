"""Tests for intercom_mcp.intercom.client against an in-process HTTP transport."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from intercom_mcp.config.schema import IntercomConfig
from intercom_mcp.intercom.client import IntercomClient, _next_cursor
from intercom_mcp.utils.exceptions import IntercomApiError

JAN_15 = datetime(2025, 1, 15, tzinfo=timezone.utc)
JAN_16 = datetime(2025, 1, 16, tzinfo=timezone.utc)
IN_RANGE = 1736900000  # 2025-01-15T00:13:20Z


def _client(handler, **kwargs) -> IntercomClient:
    kwargs.setdefault("retry_delay", 0)
    kwargs.setdefault("page_delay", 0)
    return IntercomClient("https://api.intercom.io", "tok-123", transport=httpx.MockTransport(handler), **kwargs)


def test_constructor_requires_url_and_token() -> None:
    with pytest.raises(ValueError, match="API base URL is required"):
        IntercomClient("", "tok")
    with pytest.raises(ValueError, match="Auth token is required"):
        IntercomClient("https://api.intercom.io", "  ")


def test_from_config_copies_settings() -> None:
    cfg = IntercomConfig(access_token="t", api_base_url="https://example.test/", max_retries=1, per_page=20)
    client = IntercomClient.from_config(cfg)
    assert client.base_url == "https://example.test"
    assert client.max_retries == 1
    assert client.per_page == 20


def test_next_cursor_shapes() -> None:
    assert _next_cursor({"next": {"starting_after": "abc"}}) == "abc"
    assert _next_cursor({"next": "https://api.intercom.io/conversations?per_page=5&starting_after=xyz"}) == "xyz"
    assert _next_cursor({"next": None}) is None
    assert _next_cursor(None) is None


# ---------------------------------------------------------------------------
# Retry behaviour
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_request_sends_auth_and_version_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    body = await _client(handler)._request("GET", "me")
    assert body == {"ok": True}
    assert seen[0].url == "https://api.intercom.io/me"
    assert seen[0].headers["Authorization"] == "Bearer tok-123"
    assert seen[0].headers["Intercom-Version"] == "2.9"


@pytest.mark.asyncio
async def test_server_errors_are_retried() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls < 3:
            return httpx.Response(503, json={"message": "busy"})
        return httpx.Response(200, json={"ok": True})

    assert await _client(handler)._request("GET", "me") == {"ok": True}
    assert calls == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_retries() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(500, json={"message": "down"})

    with pytest.raises(IntercomApiError) as excinfo:
        await _client(handler, max_retries=2)._request("GET", "me")
    assert calls == 3
    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "API request failed with status 500: down"


@pytest.mark.asyncio
async def test_client_errors_are_not_retried() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(401, json={"errors": [{"message": "Access Token Invalid"}]})

    with pytest.raises(IntercomApiError) as excinfo:
        await _client(handler)._request("GET", "me")
    assert calls == 1
    assert "status 401: Access Token Invalid" in excinfo.value.message


@pytest.mark.asyncio
async def test_rate_limited_request_waits_and_retries() -> None:
    statuses = [429, 200]

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        if status == 429:
            return httpx.Response(429, headers={"Retry-After": "0"})
        return httpx.Response(200, json={"ok": True})

    assert await _client(handler)._request("GET", "me") == {"ok": True}
    assert statuses == []


@pytest.mark.asyncio
async def test_network_errors_are_retried_then_raised() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(IntercomApiError) as excinfo:
        await _client(handler, max_retries=1)._request("GET", "me")
    assert calls == 2
    assert excinfo.value.retryable is True
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_invalid_json_body_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    with pytest.raises(IntercomApiError, match="invalid JSON"):
        await _client(handler)._request("GET", "me")


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


def _history(conversation_id: str, body: str) -> dict:
    return {
        "id": conversation_id,
        "created_at": IN_RANGE,
        "source": {"body": body},
        "conversation_parts": {
            "total_count": 2,
            "conversation_parts": [
                {"body": "Happy to help", "part_type": "comment", "author": {"type": "admin"}, "created_at": IN_RANGE + 60},
                {"body": "internal note", "part_type": "note", "author": {"type": "admin"}, "created_at": IN_RANGE + 120},
                {"body": None, "part_type": "assignment", "author": {"type": "bot"}, "created_at": IN_RANGE + 180},
            ],
        },
    }


@pytest.mark.asyncio
async def test_list_conversations_paginates_filters_and_fetches_history() -> None:
    list_params: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/conversations":
            params = dict(request.url.params)
            list_params.append(params)
            if "starting_after" not in params:
                return httpx.Response(200, json={
                    "conversations": [
                        {"id": "c1", "created_at": IN_RANGE, "state": "open", "source": {"title": "Refund", "body": "Need a refund"}},
                        {"id": "old", "created_at": IN_RANGE - 86_400 * 3, "state": "open", "source": {"body": "refund"}},
                    ],
                    "pages": {"next": {"starting_after": "cursor-2"}},
                })
            return httpx.Response(200, json={
                "conversations": [
                    {"id": "c2", "created_at": IN_RANGE + 10, "state": "closed", "source": {"body": "refund please, spam"}},
                    {"id": "c3", "created_at": IN_RANGE + 20, "state": "snoozed", "source": {"body": "login issue"}},
                ],
                "pages": {"next": None},
            })
        if path == "/conversations/c1":
            assert request.url.params["view"] == "expanded"
            assert request.url.params["display_as"] == "plaintext"
            return httpx.Response(200, json=_history("c1", "Need a refund"))
        return httpx.Response(404, json={"message": "unexpected"})

    tickets = await _client(handler).list_conversations(JAN_15, JAN_16, keyword="refund", exclude="spam")

    assert [p.get("starting_after") for p in list_params] == [None, "cursor-2"]
    assert [t.ticket_id for t in tickets] == ["c1"]
    ticket = tickets[0].to_dict()
    assert ticket["subject"] == "Refund"
    assert ticket["status"] == "open"
    assert ticket["created_at"] == "2025-01-15T00:13:20.000Z"
    # keyword filtering also applies to history messages
    assert [m["from"] for m in ticket["conversation"]] == ["customer"]


@pytest.mark.asyncio
async def test_history_maps_senders() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_history("c1", "Hello"))

    messages = await _client(handler).get_conversation_history("c1")
    assert [(m.sender, m.text) for m in messages] == [
        ("customer", "Hello"),
        ("support_agent", "Happy to help"),
        ("system", "internal note"),
    ]


@pytest.mark.asyncio
async def test_history_falls_back_to_admin_path_on_404() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/conversations/legacy":
            return httpx.Response(404, json={"message": "Resource Not Found"})
        if request.url.path == "/admins/conversations/legacy":
            return httpx.Response(200, json={"id": "real-1"})
        if request.url.path == "/conversations/real-1":
            return httpx.Response(200, json=_history("real-1", "From fallback"))
        return httpx.Response(500)

    messages = await _client(handler).get_conversation_history("legacy")
    assert messages[0].text == "From fallback"
    assert paths == ["/conversations/legacy", "/admins/conversations/legacy", "/conversations/real-1"]


@pytest.mark.asyncio
async def test_failed_history_leaves_conversation_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/conversations":
            return httpx.Response(200, json={
                "conversations": [{"id": "c1", "created_at": IN_RANGE, "state": "open", "source": {"body": "x"}}],
            })
        return httpx.Response(403, json={"message": "forbidden"})

    tickets = await _client(handler).list_conversations(JAN_15, JAN_16)
    assert len(tickets) == 1
    assert tickets[0].conversation == []


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_tickets_by_status_builds_query() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={
            "tickets": [{
                "id": "t1",
                "created_at": IN_RANGE,
                "ticket_state": "in_progress",
                "ticket_attributes": {"_default_title_": "Broken export"},
                "ticket_parts": {"ticket_parts": [{"body": "On it", "author": {"type": "admin"}, "created_at": IN_RANGE}]},
            }],
        })

    tickets = await _client(handler).search_tickets_by_status("open", JAN_15, None)

    query = bodies[0]["query"]
    assert query["operator"] == "AND"
    assert query["value"][0] == {"field": "state", "operator": "IN", "value": ["submitted", "in_progress"]}
    assert query["value"][1] == {"field": "created_at", "operator": ">", "value": int(JAN_15.timestamp())}
    assert bodies[0]["pagination"]["per_page"] == 150
    assert tickets[0].to_dict()["status"] == "open"
    assert tickets[0].subject == "Broken export"
    assert tickets[0].conversation[0].sender == "support_agent"


@pytest.mark.asyncio
async def test_search_tickets_by_status_rejects_unknown_status() -> None:
    with pytest.raises(ValueError):
        await _client(lambda r: httpx.Response(200, json={})).search_tickets_by_status("archived")


@pytest.mark.asyncio
async def test_find_contact_ids_by_email_and_id_fallback() -> None:
    queries: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        query = json.loads(request.content)["query"]
        queries.append(query)
        if query["field"] == "email":
            return httpx.Response(200, json={"data": [{"id": "contact-1"}]})
        return httpx.Response(200, json={"data": []})

    client = _client(handler)
    assert await client.find_contact_ids(" jane@example.com ") == ["contact-1"]
    assert await client.find_contact_ids("ext-42") == ["ext-42"]
    assert queries[0] == {"field": "email", "operator": "=", "value": "jane@example.com"}


@pytest.mark.asyncio
async def test_search_conversations_by_customer_without_contact(monkeypatch) -> None:
    client = _client(lambda r: httpx.Response(500))

    async def no_contacts(identifier: str) -> list[str]:
        return []

    monkeypatch.setattr(client, "find_contact_ids", no_contacts)
    assert await client.search_conversations_by_customer("nobody@example.com") == []


@pytest.mark.asyncio
async def test_search_conversations_by_customer_filters_keywords(monkeypatch) -> None:
    client = _client(lambda r: httpx.Response(500))
    captured: list[dict] = []

    async def contacts(identifier: str) -> list[str]:
        return ["contact-1"]

    async def search(query: dict) -> list[dict]:
        captured.append(query)
        return [
            {"id": "a", "created_at": IN_RANGE, "state": "open", "source": {"body": "Billing question"}},
            {"id": "b", "created_at": IN_RANGE, "state": "open", "source": {"body": "Feature request"}},
        ]

    async def histories(tickets, keyword=None, exclude=None):
        return tickets

    monkeypatch.setattr(client, "find_contact_ids", contacts)
    monkeypatch.setattr(client, "search_conversations", search)
    monkeypatch.setattr(client, "add_conversation_histories", histories)

    tickets = await client.search_conversations_by_customer("jane@example.com", keywords=["BILLING"])
    assert [t.ticket_id for t in tickets] == ["a"]
    assert captured[0] == {"field": "contact_ids", "operator": "IN", "value": ["contact-1"]}
