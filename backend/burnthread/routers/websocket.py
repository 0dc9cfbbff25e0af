"""
WebSocket endpoint for real-time thread sessions
Message content is ciphertext - the server is a blind relay
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from burnthread.schemas.events import SendMessage, error_event, parse_client_event
from burnthread.security_limits import MAX_WS_MESSAGES_PER_WINDOW, WS_RATE_WINDOW_SECONDS
from burnthread.services.coordinator import ThreadCoordinator

router = APIRouter()
logger = logging.getLogger("burnthread.websocket")


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Main WebSocket endpoint

    Client -> server frames ({"type": ..., camelCase fields}):
    - join-thread {threadId}
    - register-participant {threadId, userId}
    - send-message {threadId, message, senderId}
    - mark-read {threadId, userId, messageId}
    - add-reaction {threadId, messageId, emoji, userId}
    - user-typing {threadId, userId}
    - ping

    Server -> client frames ({"type": ..., "data": {...}}):
    - new-message, thread-update, message-read, message-reaction,
      user-typing, thread-deleted {reason}, error {message}, pong, heartbeat
    """
    coordinator: ThreadCoordinator = websocket.app.state.coordinator
    manager = coordinator.manager

    await manager.connect(websocket)
    logger.info(f"WebSocket connected. Total: {manager.connection_count}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            await handle_frame(websocket, decode_frame(message), coordinator)

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected normally")
    except Exception as exc:
        # Log error but don't expose details
        logger.warning(f"WebSocket error: {type(exc).__name__}")
    finally:
        await coordinator.disconnect(websocket)
        logger.info(f"WebSocket cleaned up. Total: {manager.connection_count}")


def decode_frame(message: dict) -> Any:
    """JSON payload of a text or binary frame, or None when it is not JSON"""
    raw = message.get("text")
    if raw is None:
        raw = message.get("bytes") or b""
    try:
        return json.loads(raw)
    except ValueError:
        return None


async def handle_frame(websocket: WebSocket, data, coordinator: ThreadCoordinator):
    """Validate one client frame and hand it to the coordinator"""
    manager = coordinator.manager

    if not isinstance(data, dict):
        await manager.send_personal(websocket, error_event("Invalid event"))
        return

    try:
        event = parse_client_event(data)
    except ValidationError:
        await manager.send_personal(websocket, error_event(f"Invalid event: {str(data.get('type'))[:32]}"))
        return

    if isinstance(event, SendMessage):
        allowed = await manager.allow_incoming_message(
            websocket,
            max_messages=MAX_WS_MESSAGES_PER_WINDOW,
            window_seconds=WS_RATE_WINDOW_SECONDS,
        )
        if not allowed:
            await manager.send_personal(websocket, error_event("rate_limited"))
            return

    await coordinator.dispatch(websocket, event)
