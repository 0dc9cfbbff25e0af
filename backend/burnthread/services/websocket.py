"""
WebSocket connection manager
Tracks broadcast groups (one per thread) and fans events out to them
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Set
from dataclasses import dataclass, field
from time import monotonic

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from burnthread.security_limits import WS_SEND_TIMEOUT_SECONDS

logger = logging.getLogger("burnthread.websocket")


@dataclass
class Connection:
    """Represents an active WebSocket connection"""
    websocket: WebSocket
    thread_id: Optional[str] = None
    message_timestamps: Deque[float] = field(default_factory=deque)


class WebSocketManager:
    """
    Manages WebSocket connections and thread broadcast groups

    - No user identification; connections join groups by thread id
    - A connection belongs to at most one group; joining another leaves it
    - Group state is never authoritative thread state
    """

    def __init__(self, send_timeout: float = WS_SEND_TIMEOUT_SECONDS):
        self._connections: Dict[WebSocket, Connection] = {}
        # Thread ID -> connections joined to it
        self._groups: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()
        self._send_timeout = send_timeout

    async def connect(self, websocket: WebSocket) -> Connection:
        """Accept and register a new connection"""
        await websocket.accept()

        async with self._lock:
            connection = Connection(websocket=websocket)
            self._connections[websocket] = connection

        return connection

    async def disconnect(self, websocket: WebSocket):
        """Remove a connection and its group membership"""
        async with self._lock:
            connection = self._connections.pop(websocket, None)
            if connection and connection.thread_id:
                self._leave_group(websocket, connection.thread_id)

    async def join_thread(self, websocket: WebSocket, thread_id: str) -> Optional[str]:
        """Join a thread's group, leaving any previous one. Returns the group left."""
        async with self._lock:
            connection = self._connections.get(websocket)
            if not connection:
                return None

            previous = connection.thread_id
            if previous and previous != thread_id:
                self._leave_group(websocket, previous)

            connection.thread_id = thread_id
            self._groups.setdefault(thread_id, set()).add(websocket)

        return previous if previous != thread_id else None

    def _leave_group(self, websocket: WebSocket, thread_id: str):
        members = self._groups.get(thread_id)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self._groups[thread_id]

    async def broadcast_to_thread(
        self,
        thread_id: str,
        message: dict,
        exclude: Optional[WebSocket] = None,
    ):
        """
        Send a message to every connection in a thread's group
        Payloads are forwarded as-is (content stays ciphertext)
        """
        async with self._lock:
            members = self._groups.get(thread_id, set()).copy()

        dead_connections: List[WebSocket] = []
        for websocket in members:
            if websocket is exclude:
                continue
            if not await self.send(websocket, message):
                dead_connections.append(websocket)

        for ws in dead_connections:
            await self.disconnect(ws)

    async def close_thread(self, thread_id: str):
        """Drop a destroyed thread's group; sockets stay connected"""
        async with self._lock:
            members = self._groups.pop(thread_id, set())
            for websocket in members:
                connection = self._connections.get(websocket)
                if connection and connection.thread_id == thread_id:
                    connection.thread_id = None

    async def send_personal(self, websocket: WebSocket, message: dict):
        """Send a message to a specific connection"""
        if not await self.send(websocket, message):
            await self.disconnect(websocket)

    async def send(self, websocket: WebSocket, message: dict) -> bool:
        """Send one frame within the send timeout; False when the socket failed"""
        try:
            if websocket.client_state == WebSocketState.CONNECTED:
                await asyncio.wait_for(websocket.send_json(message), timeout=self._send_timeout)
            return True
        except Exception as exc:
            logger.debug(f"Send failed: {type(exc).__name__}")
            return False

    async def current_thread(self, websocket: WebSocket) -> Optional[str]:
        async with self._lock:
            connection = self._connections.get(websocket)
            return connection.thread_id if connection else None

    async def allow_incoming_message(
        self,
        websocket: WebSocket,
        *,
        max_messages: int,
        window_seconds: int,
    ) -> bool:
        """
        Sliding-window per-connection message rate guard.

        Returns True if message is allowed, False if over limit.
        """
        now = monotonic()
        cutoff = now - float(window_seconds)

        async with self._lock:
            connection = self._connections.get(websocket)
            if not connection:
                return False

            while connection.message_timestamps and connection.message_timestamps[0] < cutoff:
                connection.message_timestamps.popleft()

            if len(connection.message_timestamps) >= max_messages:
                return False

            connection.message_timestamps.append(now)
            return True

    async def snapshot_connections(self) -> List[WebSocket]:
        async with self._lock:
            return list(self._connections.keys())

    def group_members(self, thread_id: str) -> Set[WebSocket]:
        return set(self._groups.get(thread_id, set()))

    @property
    def connection_count(self) -> int:
        """Get total number of active connections"""
        return len(self._connections)

    def get_stats(self) -> dict:
        """Get WebSocket manager statistics"""
        return {
            "total_connections": self.connection_count,
            "threads_with_members": len(self._groups),
        }
