import base64
import json

import pytest
from fastapi.testclient import TestClient

from trivia_server.app import create_app
from trivia_server.config import Settings
from trivia_server.coordinator import LobbyCoordinator
from trivia_server.storage import JsonRepository


class FakeConnection:
    """In-memory stand-in for a websocket; records everything sent to it."""

    def __init__(self, connection_id, authenticated_user_id=None):
        self.connection_id = connection_id
        self.authenticated_user_id = authenticated_user_id
        self.is_open = True
        self.fail_sends = False
        self.sent = []

    async def send_json(self, payload):
        if self.fail_sends:
            raise RuntimeError("socket is closed")
        self.sent.append(payload)

    def types(self):
        return [m["type"] for m in self.sent]

    def drain(self):
        messages, self.sent = self.sent, []
        return messages


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def repository():
    return JsonRepository()


@pytest.fixture
def coordinator(repository):
    return LobbyCoordinator(repository)


@pytest.fixture
def make_connection():
    counter = {"n": 0}

    def _make(connection_id=None, authenticated_user_id=None):
        counter["n"] += 1
        return FakeConnection(connection_id or f"conn-{counter['n']}", authenticated_user_id)

    return _make


@pytest.fixture
def send():
    async def _send(coordinator, connection, **payload):
        await coordinator.handle_message(connection, json.dumps(payload))

    return _send


@pytest.fixture
def app(tmp_path):
    return create_app(Settings(data_file=tmp_path / "trivia.json"))


@pytest.fixture
def client(app):
    # One shared portal, so every websocket runs on the same event loop
    with TestClient(app) as test_client:
        yield test_client


def basic_token(username, password):
    return base64.b64encode(f"{username}:{password}".encode()).decode()


@pytest.fixture
def register_user(client):
    def _register(username, password="correct-horse", display_name=None):
        res = client.post(
            "/api/auth/register",
            json={"username": username, "password": password, "displayName": display_name or username.title()},
        )
        assert res.status_code == 201, res.text
        return res.json()["user"]

    return _register


@pytest.fixture
def auth_token():
    return basic_token
