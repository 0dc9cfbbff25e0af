# Burnthread thread lifecycle services
from burnthread.services.coordinator import ThreadCoordinator
from burnthread.services.store import EphemeralStore, MemoryStore, build_store
from burnthread.services.websocket import WebSocketManager

__all__ = ["ThreadCoordinator", "EphemeralStore", "MemoryStore", "build_store", "WebSocketManager"]
