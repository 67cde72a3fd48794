"""Pytest configuration and fixtures."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import RoomRegistry
from connection import Connection


class FakeWebSocket:
    """Stands in for a Starlette WebSocket; records every frame sent to it."""

    def __init__(self, frames=None, fail=False, delay=0.0):
        self.sent = []
        self.frames = list(frames or [])
        self.fail = fail
        self.delay = delay
        self.closed = False
        self.on_send = None

    async def send_text(self, data: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("transport closed")
        if self.on_send:
            self.on_send()
        self.sent.append(json.loads(data))

    async def receive(self) -> dict:
        if self.frames:
            frame = self.frames.pop(0)
            if isinstance(frame, bytes):
                return {"type": "websocket.receive", "bytes": frame}
            return {"type": "websocket.receive", "text": frame}
        return {"type": "websocket.disconnect", "code": 1000}

    async def close(self) -> None:
        self.closed = True


def sent_types(connection: Connection) -> list[str]:
    return [message["type"] for message in connection.websocket.sent]


def join_frame(room_id: str, username: str) -> str:
    return json.dumps({"type": "join", "roomId": room_id, "username": username})


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def make_connection():
    """Factory for connections backed by a FakeWebSocket."""

    def factory(**kwargs) -> Connection:
        send_timeout = kwargs.pop("send_timeout", 1.0)
        return Connection(FakeWebSocket(**kwargs), send_timeout=send_timeout)

    return factory


@pytest.fixture
def client(registry: RoomRegistry):
    """Test client running the app lifespan against a fresh registry."""
    app = create_app(registry=registry)
    with TestClient(app) as test_client:
        yield test_client
