"""
tests.conftest
~~~~~~~~~~~~~~

Shared fixtures. Every test gets its own RoomManager / ChatStore /
ConnectionManager so no state leaks between tests, and the SoundCloud
client never touches the network.
"""
from __future__ import annotations

from typing import Callable, List
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import WebSocket
from fastapi.testclient import TestClient

from syncroom.core.state import AppState
from syncroom.main import create_app
from syncroom.services.chat_store import ChatStore
from syncroom.services.connection_manager import ConnectionManager
from syncroom.services.room_manager import RoomManager
from syncroom.services.soundcloud_client import SoundCloudClient


def _offline(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json={"error": "network disabled in tests"})


@pytest.fixture()
def room_manager() -> RoomManager:
    return RoomManager()


@pytest.fixture()
def chat_store() -> ChatStore:
    return ChatStore()


@pytest.fixture()
def manager(room_manager: RoomManager, chat_store: ChatStore) -> ConnectionManager:
    return ConnectionManager(room_manager=room_manager, chat_store=chat_store)


@pytest.fixture()
def make_ws() -> Callable[[], AsyncMock]:
    """Factory of fake WebSockets recording everything sent to them."""

    def _make() -> AsyncMock:
        return AsyncMock(spec=WebSocket)

    return _make


def sent_events(ws: AsyncMock, name: str) -> List[dict]:
    """Payloads of every ``name`` event sent to a fake WebSocket."""
    frames = [call.args[0] for call in ws.send_json.call_args_list]
    return [frame["data"] for frame in frames if frame["event"] == name]


@pytest.fixture()
def app_state() -> AppState:
    soundcloud = SoundCloudClient(
        client_id="",
        http=httpx.AsyncClient(transport=httpx.MockTransport(_offline)),
    )
    return AppState(soundcloud=soundcloud)


@pytest.fixture()
def client(app_state: AppState) -> TestClient:
    with TestClient(create_app(app_state)) as c:
        yield c
