"""
Thread control-plane endpoints
Thread bodies are ciphertext - the server only stores and forwards them
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from burnthread.config import settings
from burnthread.dependencies.state import get_coordinator
from burnthread.schemas.events import DeletionReason
from burnthread.schemas.thread import ThreadCreate
from burnthread.services import lifecycle
from burnthread.services.coordinator import ThreadCoordinator
from burnthread.services.store import StoreError

router = APIRouter()
logger = logging.getLogger("burnthread.threads")


def failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def build_invite_url(request: Request, thread_id: str) -> str:
    base = settings.PUBLIC_BASE_URL.strip() or str(request.base_url)
    return f"{base.rstrip('/')}/thread/{thread_id}"


async def read_thread_create(request: Request) -> ThreadCreate:
    """Parse the optional create body; anything unreadable means defaults"""
    try:
        payload = await request.json()
    except ValueError:
        return ThreadCreate()

    if not isinstance(payload, dict):
        return ThreadCreate()

    try:
        return ThreadCreate.model_validate(payload)
    except ValidationError:
        return ThreadCreate()


@router.post("/thread")
async def create_thread(
    request: Request,
    coordinator: ThreadCoordinator = Depends(get_coordinator),
):
    """
    Create a thread that self-destructs after timerHours (default 24,
    clamped to 1..168) or once both participants read everything.
    """
    body = await read_thread_create(request)

    try:
        thread = await coordinator.create_thread(body.timer_hours)
    except StoreError as exc:
        logger.error(f"Create thread failed: {type(exc).__name__}")
        return failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create thread")

    return {
        "success": True,
        "threadId": thread.id,
        "inviteUrl": build_invite_url(request, thread.id),
        "expiresIn": lifecycle.ttl_seconds(thread.timer_hours) * 1000,
    }


@router.get("/thread/{thread_id}")
async def get_thread(
    thread_id: str,
    coordinator: ThreadCoordinator = Depends(get_coordinator),
):
    """Get a thread snapshot with the milliseconds left before expiry"""
    try:
        found = await coordinator.read_thread(thread_id)
    except StoreError as exc:
        logger.error(f"Get thread failed: {type(exc).__name__}")
        return failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to get thread")

    if found is None:
        return failure(status.HTTP_404_NOT_FOUND, "Thread not found or expired")

    thread, remaining_seconds = found
    payload = thread.to_wire()
    payload["timeLeft"] = int(remaining_seconds * 1000)
    return {"success": True, "thread": payload}


@router.delete("/thread/{thread_id}")
async def delete_thread(
    thread_id: str,
    coordinator: ThreadCoordinator = Depends(get_coordinator),
):
    """Delete a thread now; succeeds whether or not it still existed"""
    try:
        await coordinator.delete_thread(thread_id, DeletionReason.MANUAL)
    except StoreError as exc:
        logger.error(f"Delete thread failed: {type(exc).__name__}")
        return failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to delete thread")

    return {"success": True}
