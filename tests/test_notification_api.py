"""API tests for notification endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from bookswap.core.config import SchedulerConfig, Settings
from bookswap.lending.catalog import InMemoryBookCatalog
from bookswap.web.app import create_app
from tests.conftest import BOOKS, headers


@pytest.fixture
def app():
    return create_app(settings=Settings(), book_catalog=InMemoryBookCatalog(BOOKS))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def _request_books(client: TestClient, *book_ids: str) -> list[dict]:
    created = []
    for book_id in book_ids:
        resp = client.post(
            "/api/requests",
            json={"book_id": book_id, "requester_name": "Bob"},
            headers=headers("u2"),
        )
        assert resp.status_code == 201
        created.append(resp.json())
    return created


class TestNotificationAPI:
    def test_request_creates_owner_notification(self, client: TestClient) -> None:
        _request_books(client, "b1")
        resp = client.get("/api/notifications", headers=headers("u1"))
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        assert data["unread_count"] == 1
        assert data["has_more"] is False
        n = data["notifications"][0]
        assert n["type"] == "request_sent"
        assert n["message"] == 'Bob wants to borrow "Dune"'
        assert n["read"] is False

    def test_approval_notifies_requester(self, client: TestClient) -> None:
        (created,) = _request_books(client, "b1")
        client.put(
            f"/api/requests/{created['id']}/status",
            json={"status": "approved"},
            headers=headers("u1"),
        )
        data = client.get("/api/notifications", headers=headers("u2")).json()
        assert [n["type"] for n in data["notifications"]] == ["request_approved"]
        assert data["notifications"][0]["data"]["request_id"] == created["id"]

    def test_failed_authorization_creates_nothing(self, client: TestClient) -> None:
        (created,) = _request_books(client, "b1")
        resp = client.put(
            f"/api/requests/{created['id']}/status",
            json={"status": "approved"},
            headers=headers("u2"),
        )
        assert resp.status_code == 403
        data = client.get("/api/notifications", headers=headers("u2")).json()
        assert data["total"] == 0

    def test_pagination(self, client: TestClient) -> None:
        _request_books(client, "b1", "b2")
        page = client.get("/api/notifications?page=1&limit=1", headers=headers("u1")).json()
        assert page["limit"] == 1
        assert page["total"] == 2
        assert page["has_more"] is True
        assert len(page["notifications"]) == 1

    def test_limit_above_max_rejected(self, client: TestClient) -> None:
        resp = client.get("/api/notifications?limit=1000", headers=headers("u1"))
        assert resp.status_code == 400

    def test_page_zero_rejected(self, client: TestClient) -> None:
        resp = client.get("/api/notifications?page=0", headers=headers("u1"))
        assert resp.status_code == 422

    def test_unread_count_and_mark_read(self, client: TestClient) -> None:
        _request_books(client, "b1", "b2")
        notes = client.get("/api/notifications", headers=headers("u1")).json()["notifications"]
        resp = client.put(f"/api/notifications/{notes[0]['id']}/read", headers=headers("u1"))
        assert resp.status_code == 200
        assert resp.json()["read"] is True
        count = client.get("/api/notifications/unread-count", headers=headers("u1")).json()
        assert count == {"unread_count": 1}
        unread = client.get(
            "/api/notifications?unread_only=true", headers=headers("u1")
        ).json()
        assert [n["id"] for n in unread["notifications"]] == [notes[1]["id"]]

    def test_mark_read_other_users_notification(self, client: TestClient) -> None:
        _request_books(client, "b1")
        note = client.get("/api/notifications", headers=headers("u1")).json()["notifications"][0]
        resp = client.put(f"/api/notifications/{note['id']}/read", headers=headers("u2"))
        assert resp.status_code == 403

    def test_mark_read_unknown(self, client: TestClient) -> None:
        resp = client.put("/api/notifications/nope/read", headers=headers("u1"))
        assert resp.status_code == 404

    def test_mark_all_read(self, client: TestClient) -> None:
        _request_books(client, "b1", "b2")
        resp = client.put("/api/notifications/read-all", headers=headers("u1"))
        assert resp.json() == {"updated": 2}
        count = client.get("/api/notifications/unread-count", headers=headers("u1")).json()
        assert count["unread_count"] == 0

    def test_delete_and_clear(self, client: TestClient) -> None:
        _request_books(client, "b1", "b2")
        notes = client.get("/api/notifications", headers=headers("u1")).json()["notifications"]
        resp = client.delete(f"/api/notifications/{notes[0]['id']}", headers=headers("u1"))
        assert resp.json() == {"id": notes[0]["id"], "deleted": True}
        resp = client.delete("/api/notifications", headers=headers("u1"))
        assert resp.json() == {"deleted": 1}
        assert client.get("/api/notifications", headers=headers("u1")).json()["total"] == 0

    def test_requires_identity(self, client: TestClient) -> None:
        assert client.get("/api/notifications").status_code == 401

    def test_offline_recipient_gets_deferred_intent(self, app, client: TestClient) -> None:
        _request_books(client, "b1")
        # The delivery task runs on the client's event loop; a follow-up
        # request gives it a chance to finish.
        client.get("/api/health")
        intents = app.state.deferred_delivery.intents_for("u1")
        assert len(intents) == 1
        assert intents[0].reason == "no_live_channel"


SCHEDULER_TOKEN = "s3cret"
SCHEDULER_HEADERS = {"X-Scheduler-Token": SCHEDULER_TOKEN}


class TestSchedulerTriggers:
    @pytest.fixture
    def client(self):
        settings = Settings(scheduler=SchedulerConfig(token=SCHEDULER_TOKEN))
        with TestClient(create_app(settings=settings)) as c:
            yield c

    def test_due_date_reminder(self, client: TestClient) -> None:
        resp = client.post(
            "/api/notifications/trigger/due-date",
            json={"borrower_id": "u2", "book_title": "Dune", "due_date": "2026-03-01"},
            headers=SCHEDULER_HEADERS,
        )
        assert resp.status_code == 201
        n = resp.json()
        assert n["type"] == "due_date_reminder"
        assert n["message"] == '"Dune" is due on 2026-03-01'
        data = client.get("/api/notifications", headers=headers("u2")).json()
        assert data["total"] == 1

    def test_overdue(self, client: TestClient) -> None:
        resp = client.post(
            "/api/notifications/trigger/overdue",
            json={
                "borrower_id": "u2",
                "book_title": "Dune",
                "due_date": "2026-03-01",
                "request_id": "r1",
            },
            headers=SCHEDULER_HEADERS,
        )
        assert resp.status_code == 201
        assert resp.json()["type"] == "book_overdue"
        assert resp.json()["data"]["request_id"] == "r1"

    def test_bad_due_date(self, client: TestClient) -> None:
        resp = client.post(
            "/api/notifications/trigger/due-date",
            json={"borrower_id": "u2", "book_title": "Dune", "due_date": "soon"},
            headers=SCHEDULER_HEADERS,
        )
        assert resp.status_code == 422

    def test_wrong_or_missing_token(self, client: TestClient) -> None:
        body = {"borrower_id": "u2", "book_title": "Dune", "due_date": "2026-03-01"}
        resp = client.post("/api/notifications/trigger/overdue", json=body)
        assert resp.status_code == 403
        resp = client.post(
            "/api/notifications/trigger/overdue",
            json=body,
            headers={"X-Scheduler-Token": "guess"},
        )
        assert resp.status_code == 403
        assert client.get("/api/notifications", headers=headers("u2")).json()["total"] == 0

    def test_triggers_closed_without_configured_token(self) -> None:
        body = {"borrower_id": "u1", "book_title": "pay me at evil.example", "due_date": "2026-03-01"}
        with TestClient(create_app(settings=Settings())) as client:
            for path in ("/api/notifications/trigger/overdue", "/api/notifications/trigger/due-date"):
                resp = client.post(path, json=body)
                assert resp.status_code == 503
                resp = client.post(path, json=body, headers={"X-Scheduler-Token": ""})
                assert resp.status_code == 503
            assert client.get("/api/notifications", headers=headers("u1")).json()["total"] == 0
