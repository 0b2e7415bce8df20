"""
End-to-end session lifecycle through the HTTP API.
"""
import pytest
from httpx import AsyncClient

from backend.app.core.security import Role

API = "/api/v1/outlet"


async def _create(client, headers, **body):
    resp = await client.post(f"{API}/sessions", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_vent_escalate_resolve_flow(client: AsyncClient, auth_headers, sink):
    """Owner vents, escalates to a manager, the manager reads and resolves, the thread locks."""
    owner = auth_headers("user-1")
    manager = auth_headers("mgr-1", Role.MANAGER)

    session = await _create(client, owner, category="workload")
    sid = session["id"]
    assert session["status"] == "open"
    assert session["visibility"] == "private"
    assert session["kind"] == "outlet"
    assert session["messageCount"] == 0

    resp = await client.post(f"{API}/sessions/{sid}/messages", json={"content": "My deadlines keep moving"}, headers=owner)
    assert resp.status_code == 200
    body = resp.json()
    assert body["userMessage"]["seq"] == 1
    assert body["userMessage"]["sender"] == "user"
    assert body["aiMessage"]["seq"] == 2
    assert body["aiMessage"]["sender"] == "ai"
    assert body["riskLevel"] == 0
    assert body["escalated"] is False

    # Private: the manager cannot see it yet
    resp = await client.get(f"{API}/sessions/{sid}", headers=manager)
    assert resp.status_code == 403

    resp = await client.post(
        f"{API}/sessions/{sid}/escalate",
        json={"toRole": "manager", "reason": "  I need help with my workload  "},
        headers=owner,
    )
    assert resp.status_code == 200
    escalation = resp.json()
    assert escalation["session"]["status"] == "escalated"
    assert escalation["escalation"]["escalatedToRole"] == "manager"
    assert escalation["escalation"]["reason"] == "I need help with my workload"
    assert escalation["escalation"]["escalatedByUserId"] == "user-1"
    assert escalation["escalation"]["automatic"] is False

    resp = await client.get(f"{API}/sessions/{sid}", headers=manager)
    assert resp.status_code == 200
    detail = resp.json()
    assert [m["seq"] for m in detail["messages"]] == [1, 2]

    resp = await client.post(f"{API}/sessions/{sid}/resolve", json={"resolutionNote": "Talked it through"}, headers=manager)
    assert resp.status_code == 200
    resolved = resp.json()
    assert resolved["status"] == "resolved"
    assert resolved["resolutionNote"] == "Talked it through"
    assert resolved["resolvedByUserId"] == "mgr-1"
    assert resolved["resolvedAt"] is not None

    resp = await client.post(f"{API}/sessions/{sid}/messages", json={"content": "one more thing"}, headers=owner)
    assert resp.status_code == 409
    assert resp.json()["error"] == "invalid_operation"

    # Escalation survives resolution as a read grant
    resp = await client.get(f"{API}/sessions/{sid}", headers=manager)
    assert resp.status_code == 200

    assert len(sink.sent) == 1
    assert sink.sent[0]["user_id"] == "user-1"
    assert sink.sent[0]["kind"] == "outlet_escalation"
    assert sink.sent[0]["title"] == "Your session was escalated"
    assert sink.sent[0]["body"] == "Reason: I need help with my workload"
    assert sink.sent[0]["severity"] == 1


@pytest.mark.asyncio
async def test_close_is_idempotent_and_terminal(client: AsyncClient, auth_headers):
    owner = auth_headers("user-1")
    sid = (await _create(client, owner))["id"]

    first = await client.post(f"{API}/sessions/{sid}/close", headers=owner)
    assert first.status_code == 200
    assert first.json()["status"] == "closed"

    second = await client.post(f"{API}/sessions/{sid}/close", headers=owner)
    assert second.status_code == 200
    assert second.json()["status"] == "closed"

    resp = await client.post(f"{API}/sessions/{sid}/messages", json={"content": "hello?"}, headers=owner)
    assert resp.status_code == 409

    resp = await client.post(f"{API}/sessions/{sid}/escalate", json={"toRole": "admin"}, headers=owner)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_resolved_session_cannot_be_closed(client: AsyncClient, auth_headers):
    owner = auth_headers("user-1")
    admin = auth_headers("admin-1", Role.ADMIN)
    sid = (await _create(client, owner, visibility="admin"))["id"]

    resp = await client.post(f"{API}/sessions/{sid}/resolve", headers=admin)
    assert resp.status_code == 200

    resp = await client.post(f"{API}/sessions/{sid}/close", headers=owner)
    assert resp.status_code == 409

    resp = await client.post(f"{API}/sessions/{sid}/resolve", headers=admin)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_staff_close_requires_read_access(client: AsyncClient, auth_headers):
    owner = auth_headers("user-1")
    manager = auth_headers("mgr-1", Role.MANAGER)
    private_sid = (await _create(client, owner))["id"]
    shared_sid = (await _create(client, owner, visibility="manager"))["id"]

    resp = await client.post(f"{API}/sessions/{private_sid}/close", headers=manager)
    assert resp.status_code == 403

    resp = await client.post(f"{API}/sessions/{shared_sid}/close", headers=manager)
    assert resp.status_code == 200
    assert resp.json()["status"] == "closed"


@pytest.mark.asyncio
async def test_mine_lists_own_sessions_newest_first(client: AsyncClient, auth_headers):
    owner = auth_headers("user-1")
    other = auth_headers("user-2")
    first = await _create(client, owner, category="first")
    second = await _create(client, owner, category="second")
    await _create(client, other, category="not mine")

    # Posting bumps updatedAt on the first session
    await client.post(f"{API}/sessions/{first['id']}/messages", json={"content": "update"}, headers=owner)

    resp = await client.get(f"{API}/sessions", headers=owner)
    assert resp.status_code == 200
    body = resp.json()
    assert body["scope"] == "mine"
    assert [s["id"] for s in body["sessions"]] == [first["id"], second["id"]]

    resp = await client.get(f"{API}/sessions", params={"limit": 1}, headers=owner)
    assert len(resp.json()["sessions"]) == 1


@pytest.mark.asyncio
async def test_unknown_session_is_not_found(client: AsyncClient, auth_headers):
    owner = auth_headers("user-1")
    resp = await client.get(f"{API}/sessions/does-not-exist", headers=owner)
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_input_limits(client: AsyncClient, auth_headers):
    owner = auth_headers("user-1")
    resp = await client.post(f"{API}/sessions", json={"category": "x" * 81}, headers=owner)
    assert resp.status_code == 422

    sid = (await _create(client, owner, category="  spaced  "))["id"]
    resp = await client.get(f"{API}/sessions/{sid}", headers=owner)
    assert resp.json()["session"]["category"] == "spaced"

    resp = await client.post(f"{API}/sessions/{sid}/messages", json={"content": "   "}, headers=owner)
    assert resp.status_code == 422

    resp = await client.post(f"{API}/sessions/{sid}/messages", json={"content": "x" * 4001}, headers=owner)
    assert resp.status_code == 422

    resp = await client.post(f"{API}/sessions/{sid}/escalate", json={"toRole": "manager", "assignedTo": "ab"}, headers=owner)
    assert resp.status_code == 422

    resp = await client.post(f"{API}/sessions/{sid}/escalate", json={"toRole": "user"}, headers=owner)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client: AsyncClient):
    resp = await client.get(f"{API}/sessions")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_auto_escalation_then_staff_resolution(client: AsyncClient, auth_headers):
    owner = auth_headers("user-1")
    admin = auth_headers("admin-1", Role.ADMIN)

    session = await _create(client, owner, visibility="private", kind="outlet")
    sid = session["id"]
    assert session["status"] == "open"
    assert session["riskLevel"] == 0

    resp = await client.post(f"{API}/sessions/{sid}/messages", json={"content": "I'm overwhelmed"}, headers=owner)
    assert resp.json()["riskLevel"] == 0
    detail = (await client.get(f"{API}/sessions/{sid}", headers=owner)).json()
    assert detail["session"]["status"] == "open"
    assert len(detail["messages"]) == 2

    assert (await client.get(f"{API}/sessions/{sid}", headers=admin)).status_code == 403

    resp = await client.post(f"{API}/sessions/{sid}/messages", json={"content": "I want to kill myself"}, headers=owner)
    assert resp.json()["riskLevel"] == 2

    resp = await client.get(f"{API}/sessions/{sid}", headers=admin)
    assert resp.status_code == 200
    assert resp.json()["session"]["status"] == "escalated"
    assert resp.json()["session"]["visibility"] == "private"

    ledger = (await client.get(f"{API}/sessions/{sid}/escalations", headers=admin)).json()["escalations"]
    assert [(e["escalatedToRole"], e["reason"]) for e in ledger] == [("admin", "auto-flag")]

    resp = await client.post(f"{API}/sessions/{sid}/resolve", json={"resolutionNote": "Connected with EAP"}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["status"] == "resolved"
    assert resp.json()["resolutionNote"] == "Connected with EAP"

    resp = await client.post(f"{API}/sessions/{sid}/messages", json={"content": "thanks"}, headers=owner)
    assert resp.status_code == 409
