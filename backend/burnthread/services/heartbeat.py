"""
WebSocket heartbeat to detect dead connections
"""

import asyncio
import logging

from starlette.websockets import WebSocketState

from burnthread.schemas.events import server_event
from burnthread.services.websocket import WebSocketManager

logger = logging.getLogger("burnthread.heartbeat")


async def send_heartbeat_round(manager: WebSocketManager) -> int:
    """Ping every connection once; returns how many dead ones were removed"""
    connections = await manager.snapshot_connections()

    dead = []
    for ws in connections:
        # Each send is bounded by the manager timeout; a stalled socket counts as dead
        if ws.client_state != WebSocketState.CONNECTED:
            dead.append(ws)
        elif not await manager.send(ws, server_event("heartbeat")):
            dead.append(ws)

    if dead:
        logger.info(f"Removing {len(dead)} dead connections")

    for ws in dead:
        await manager.disconnect(ws)

    return len(dead)


async def send_heartbeats(manager: WebSocketManager, interval_seconds: int = 30):
    """Send periodic pings to all connections"""
    while True:
        await asyncio.sleep(interval_seconds)

        try:
            await send_heartbeat_round(manager)
        except Exception as e:
            logger.error(f"Heartbeat task error: {type(e).__name__}")


def start_heartbeat_task(manager: WebSocketManager, interval_seconds: int = 30) -> asyncio.Task:
    """Start the heartbeat background task"""
    task = asyncio.create_task(send_heartbeats(manager, interval_seconds))
    logger.info("Heartbeat task started")
    return task
