"""
Integration tests for the WebSocket runtime endpoint.

Tests /ws/runtime: initial state on connect, state pushes after each
dispatch, navigation pushes, and malformed frame handling.
"""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from backend.main import app


@pytest.fixture
def client(session):
    """Return a synchronous TestClient for WS testing."""
    return TestClient(app)


def send(ws, name, detail):
    ws.send_text(json.dumps({"type": name, "detail": detail}))


class TestWebSocketConnect:
    def test_initial_state_on_connect(self, client):
        with client.websocket_connect("/ws/runtime") as ws:
            first = json.loads(ws.receive_text())
            assert first["type"] == "state"
            assert first["state"]["currentView"] == "|home"
            assert first["state"]["rawCount"] == 1


class TestWebSocketEvents:
    def test_action_pushes_new_state(self, client):
        with client.websocket_connect("/ws/runtime") as ws:
            ws.receive_text()
            send(ws, "action", {"type": "Action", "params": {"name": "state:update", "key": "theme", "value": "dark"}})
            msg = json.loads(ws.receive_text())
            assert msg["type"] == "state"
            assert msg["state"]["values"] == {"theme": "dark"}
            assert msg["state"]["rawCount"] == 2

    def test_navigate_pushes_destination(self, client, session):
        with client.websocket_connect("/ws/runtime") as ws:
            ws.receive_text()
            send(ws, "navigate", {"to": "|about"})
            msg = json.loads(ws.receive_text())
            assert msg == {"type": "navigate", "to": "|about"}
        assert len(session.runtime) == 1

    def test_malformed_frames_skipped(self, client):
        with client.websocket_connect("/ws/runtime") as ws:
            ws.receive_text()
            ws.send_text("{not json")
            ws.send_text(json.dumps({"type": "click", "detail": {}}))
            send(ws, "state-mutate", {"name": "journal.add", "track": "t", "key": "k", "value": "v"})
            msg = json.loads(ws.receive_text())
            assert msg["type"] == "state"
            assert msg["state"]["journal"] == {"t": {"k": "v"}}

    def test_http_dispatch_reaches_open_socket(self, client):
        with client.websocket_connect("/ws/runtime") as ws:
            ws.receive_text()
            client.post("/api/events", json={"name": "state-mutate", "detail": {"name": "journal.add", "key": "k"}})
            msg = json.loads(ws.receive_text())
            assert msg["state"]["journal"] == {"default": {"k": ""}}

    def test_disconnect_unsubscribes(self, client, session):
        with client.websocket_connect("/ws/runtime") as ws:
            ws.receive_text()
        assert len(session.navigations) == 0
