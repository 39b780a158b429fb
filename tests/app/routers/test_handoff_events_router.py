"""Tests for the handoff events API."""

from uuid import uuid4

from fastapi.testclient import TestClient


def test_list_handoff_events(client: TestClient, setup_handoff_event):
    r = client.get("/handoff-events")
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 1
    assert body["items"][0]["id"] == str(setup_handoff_event.id)
    assert body["items"][0]["reason"] == "assistant_dispatch_failed"


def test_list_handoff_events_filters(client: TestClient, setup_handoff_event):
    r = client.get(
        "/handoff-events",
        params={"conversation_sid": setup_handoff_event.conversation_sid, "outcome": "degraded"},
    )
    assert r.json()["total"] == 1

    r = client.get("/handoff-events", params={"outcome": "fatal"})
    assert r.json()["total"] == 0


def test_list_handoff_events_rejects_unknown_outcome(client: TestClient):
    r = client.get("/handoff-events", params={"outcome": "bogus"})
    assert r.status_code == 422


def test_get_handoff_event(client: TestClient, setup_handoff_event):
    r = client.get(f"/handoff-events/{setup_handoff_event.id}")
    assert r.status_code == 200
    assert r.json()["action"] == "message_added"


def test_get_handoff_event_not_found(client: TestClient):
    r = client.get(f"/handoff-events/{uuid4()}")
    assert r.status_code == 404
