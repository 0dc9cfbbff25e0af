"""
Pytest fixtures for Burnthread backend tests
"""

import os
import pytest
from typing import AsyncGenerator, List, Optional

# Set test environment before imports
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "100000")
os.environ.setdefault("RATE_LIMIT_BURST", "100000")

from httpx import AsyncClient, ASGITransport
from starlette.websockets import WebSocketState

from burnthread.main import app, configure_state
from burnthread.services.coordinator import ThreadCoordinator
from burnthread.services.store import MemoryStore
from burnthread.services.websocket import WebSocketManager


class FakeWebSocket:
    """Records every frame the server sends to it"""

    def __init__(self):
        self.client_state = WebSocketState.CONNECTED
        self.sent: List[dict] = []

    async def accept(self):
        return None

    async def send_json(self, message):
        self.sent.append(message)

    def events(self, name: Optional[str] = None) -> List[dict]:
        return [frame for frame in self.sent if name is None or frame["type"] == name]

    def types(self) -> List[str]:
        return [frame["type"] for frame in self.sent]


@pytest.fixture
async def store() -> AsyncGenerator[MemoryStore, None]:
    memory_store = MemoryStore()
    yield memory_store
    await memory_store.close()


@pytest.fixture
def manager() -> WebSocketManager:
    return WebSocketManager()


@pytest.fixture
def coordinator(store, manager) -> ThreadCoordinator:
    return ThreadCoordinator(store, manager)


@pytest.fixture
def make_socket(manager):
    """Factory for connected fake sockets registered with the manager"""
    async def _make() -> FakeWebSocket:
        websocket = FakeWebSocket()
        await manager.connect(websocket)
        return websocket

    return _make


@pytest.fixture
async def client(store) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing endpoints against an in-memory store."""
    configure_state(app, store)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac
