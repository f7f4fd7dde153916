"""WebSocket tests for the live notification channel."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from bookswap.core.config import Settings
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


def _borrow(client: TestClient, book_id: str = "b1") -> dict:
    resp = client.post(
        "/api/requests",
        json={"book_id": book_id, "requester_name": "Bob"},
        headers=headers("u2"),
    )
    assert resp.status_code == 201
    return resp.json()


class TestNotificationSocket:
    def test_register_message(self, app, client: TestClient) -> None:
        with client.websocket_connect("/ws/notifications", headers=headers("u1")) as ws:
            msg = ws.receive_json()
            assert msg["event"] == "registered"
            assert msg["user_id"] == "u1"
            assert msg["channel_id"]
            assert app.state.session_router.has_live_channel("u1")

    def test_query_param_identity(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/notifications?user_id=u7") as ws:
            assert ws.receive_json()["user_id"] == "u7"

    def test_missing_identity_is_refused(self, client: TestClient) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/notifications") as ws:
                ws.receive_json()
        assert exc_info.value.code == 1008

    def test_ping_pong(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/notifications", headers=headers("u1")) as ws:
            ws.receive_json()
            ws.send_text("ping")
            assert ws.receive_text() == "pong"

    def test_owner_receives_request_live(self, app, client: TestClient) -> None:
        with client.websocket_connect("/ws/notifications", headers=headers("u1")) as ws:
            ws.receive_json()
            created = _borrow(client)
            msg = ws.receive_json()
        assert msg["event"] == "notification"
        n = msg["notification"]
        assert n["type"] == "request_sent"
        assert n["data"]["request_id"] == created["id"]
        assert n["message"] == 'Bob wants to borrow "Dune"'
        # Delivered live, so nothing was deferred.
        assert app.state.deferred_delivery.intents_for("u1") == []

    def test_every_tab_receives(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/notifications", headers=headers("u1")) as tab1:
            tab1.receive_json()
            with client.websocket_connect("/ws/notifications", headers=headers("u1")) as tab2:
                tab2.receive_json()
                _borrow(client)
                first = tab1.receive_json()
                second = tab2.receive_json()
        assert first["notification"]["id"] == second["notification"]["id"]

    def test_requester_receives_decision(self, client: TestClient) -> None:
        created = _borrow(client)
        with client.websocket_connect("/ws/notifications", headers=headers("u2")) as ws:
            ws.receive_json()
            client.put(
                f"/api/requests/{created['id']}/status",
                json={"status": "rejected"},
                headers=headers("u1"),
            )
            msg = ws.receive_json()
        assert msg["notification"]["type"] == "request_rejected"

    def test_leave_unregisters(self, app, client: TestClient) -> None:
        with client.websocket_connect("/ws/notifications", headers=headers("u1")) as ws:
            ws.receive_json()
            ws.send_json({"action": "leave"})
            with pytest.raises(WebSocketDisconnect):
                ws.receive_text()
        assert not app.state.session_router.has_live_channel("u1")

    def test_notifications_missed_while_offline_are_in_history(
        self, client: TestClient
    ) -> None:
        _borrow(client)
        with client.websocket_connect("/ws/notifications", headers=headers("u1")) as ws:
            ws.receive_json()
        # Re-sync through the history endpoint after reconnecting.
        data = client.get("/api/notifications", headers=headers("u1")).json()
        assert data["unread_count"] == 1
