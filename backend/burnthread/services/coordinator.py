"""
Real-time session coordinator

Every state change is a read-modify-write against the store made while
holding that thread's lock, and its broadcasts are sent before the lock is
released. Mutators of one thread are therefore serialized and all members
see that thread's events in the same order. Different threads proceed
independently.
"""

import logging
import secrets
from typing import Optional, Tuple

from fastapi import WebSocket
from pydantic import ValidationError

from burnthread.logging_config import log_thread_created, log_thread_deleted, short_id
from burnthread.schemas.events import (
    MESSAGE_REACTION,
    MESSAGE_READ,
    NEW_MESSAGE,
    PONG,
    THREAD_UPDATE,
    USER_TYPING,
    AddReaction,
    ClientEvent,
    DeletionReason,
    JoinThread,
    MarkRead,
    Ping,
    RegisterParticipant,
    SendMessage,
    UserTyping,
    error_event,
    server_event,
    thread_deleted_event,
)
from burnthread.schemas.thread import Message, Reaction, Thread
from burnthread.services import lifecycle
from burnthread.services.locks import KeyedLock
from burnthread.services.store import EphemeralStore, StoreError
from burnthread.services.telemetry import increment_counter
from burnthread.services.websocket import WebSocketManager

logger = logging.getLogger("burnthread.coordinator")

THREAD_NOT_FOUND = "Thread not found"


class ThreadCoordinator:
    def __init__(self, store: EphemeralStore, manager: WebSocketManager):
        self._store = store
        self._manager = manager
        self._locks = KeyedLock()
        store.on_expire(self.handle_expired)

    @property
    def store(self) -> EphemeralStore:
        return self._store

    @property
    def manager(self) -> WebSocketManager:
        return self._manager

    # Control plane

    async def create_thread(self, timer_hours: Optional[int] = None) -> Thread:
        thread = Thread(
            id=secrets.token_hex(16),
            timer_hours=lifecycle.clamp_timer_hours(timer_hours),
        )
        await self._store.put(thread.id, thread.serialize(), lifecycle.thread_ttl_seconds(thread))

        increment_counter("threads_created_total")
        log_thread_created(thread.id, thread.timer_hours)
        return thread

    async def read_thread(self, thread_id: str) -> Optional[Tuple[Thread, float]]:
        """Snapshot plus remaining seconds; None when absent"""
        thread = await self._load(thread_id)
        if thread is None:
            return None
        remaining = await self._store.remaining_ttl(thread_id)
        if remaining is None:
            return None
        return thread, remaining

    async def delete_thread(
        self, thread_id: str, reason: DeletionReason = DeletionReason.MANUAL
    ) -> bool:
        async with self._locks.hold(thread_id):
            return await self._destroy(thread_id, reason)

    # Real-time operations

    async def dispatch(self, websocket: WebSocket, event: ClientEvent):
        """Run one client event; store failures become a scoped error event"""
        try:
            if isinstance(event, JoinThread):
                await self.join(websocket, event.thread_id)
            elif isinstance(event, RegisterParticipant):
                await self.register_participant(websocket, event.thread_id, event.user_id)
            elif isinstance(event, SendMessage):
                await self.send_message(websocket, event.thread_id, event.message, event.sender_id)
            elif isinstance(event, MarkRead):
                await self.mark_read(event.thread_id, event.user_id, event.message_id)
            elif isinstance(event, AddReaction):
                await self.add_reaction(event.thread_id, event.message_id, event.emoji, event.user_id)
            elif isinstance(event, UserTyping):
                await self.user_typing(websocket, event.thread_id, event.user_id)
            elif isinstance(event, Ping):
                await self._manager.send_personal(websocket, server_event(PONG))
            else:
                raise TypeError(f"Unhandled event type: {type(event).__name__}")
        except StoreError as exc:
            logger.error(f"Store failure handling {event.type}: {type(exc).__name__}")
            await self._manager.send_personal(websocket, error_event("Temporarily unavailable"))

    async def join(self, websocket: WebSocket, thread_id: str):
        await self._manager.join_thread(websocket, thread_id)
        logger.debug(f"Connection joined thread {short_id(thread_id)}")

    async def register_participant(self, websocket: WebSocket, thread_id: str, user_id: str):
        async with self._locks.hold(thread_id):
            thread = await self._load(thread_id)
            if thread is None:
                await self._manager.send_personal(websocket, error_event(THREAD_NOT_FOUND))
                return

            if user_id in thread.participants:
                return

            if not lifecycle.can_register(thread, user_id):
                await self._manager.send_personal(websocket, error_event("Thread is full"))
                return

            thread.participants.append(user_id)
            if not await self._commit(thread):
                await self._manager.send_personal(websocket, error_event(THREAD_NOT_FOUND))

    async def send_message(self, websocket: WebSocket, thread_id: str, content: str, sender_id: str):
        async with self._locks.hold(thread_id):
            thread = await self._load(thread_id)
            if thread is None:
                await self._manager.send_personal(websocket, error_event(THREAD_NOT_FOUND))
                return

            message = Message(id=secrets.token_hex(8), content=content, sender_id=sender_id)
            thread.messages.append(message)

            if not await self._commit(thread, server_event(NEW_MESSAGE, message.to_wire())):
                await self._manager.send_personal(websocket, error_event(THREAD_NOT_FOUND))
                return

            increment_counter("messages_sent_total")

    async def mark_read(self, thread_id: str, user_id: str, message_id: str):
        async with self._locks.hold(thread_id):
            thread = await self._load(thread_id)
            if thread is None:
                return

            message = thread.find_message(message_id)
            if message is None:
                return

            if user_id not in message.read_by:
                message.read_by.append(user_id)

            await self._commit(
                thread,
                server_event(MESSAGE_READ, {"messageId": message_id, "userId": user_id}),
            )

    async def add_reaction(self, thread_id: str, message_id: str, emoji: str, user_id: str):
        async with self._locks.hold(thread_id):
            thread = await self._load(thread_id)
            if thread is None:
                return

            message = thread.find_message(message_id)
            if message is None:
                return

            toggle_reaction(message, emoji, user_id)

            if not await self._store.replace(
                thread.id, thread.serialize(), lifecycle.thread_ttl_seconds(thread)
            ):
                return

            await self._manager.broadcast_to_thread(
                thread.id,
                server_event(
                    MESSAGE_REACTION,
                    {
                        "messageId": message_id,
                        "emoji": emoji,
                        "userId": user_id,
                        "reactions": [reaction.to_wire() for reaction in message.reactions],
                    },
                ),
            )

    async def user_typing(self, websocket: WebSocket, thread_id: str, user_id: str):
        """Ephemeral; never touches the store"""
        await self._manager.broadcast_to_thread(
            thread_id,
            server_event(USER_TYPING, {"userId": user_id}),
            exclude=websocket,
        )

    async def disconnect(self, websocket: WebSocket):
        await self._manager.disconnect(websocket)

    async def handle_expired(self, thread_id: str):
        """Store expiry notification; the value is already gone"""
        async with self._locks.hold(thread_id):
            await self._announce_deleted(thread_id, DeletionReason.TIMER_EXPIRED)

    # Internals (callers hold the thread lock)

    async def _load(self, thread_id: str) -> Optional[Thread]:
        raw = await self._store.get(thread_id)
        if raw is None:
            return None
        try:
            return Thread.deserialize(raw)
        except ValidationError:
            logger.error(f"Discarding unreadable state for thread {short_id(thread_id)}")
            return None

    async def _commit(self, thread: Thread, *events: dict) -> bool:
        """
        Persist a mutated thread and broadcast events followed by its state,
        or destroy it when the lifecycle rules say so. In the destroy case
        the state broadcast is replaced by thread-deleted.

        Returns False when the thread vanished underneath the mutation.
        """
        reason = lifecycle.deletion_reason(thread)
        if reason is not None:
            if not await self._store.delete(thread.id):
                return False
            for event in events:
                await self._manager.broadcast_to_thread(thread.id, event)
            await self._announce_deleted(thread.id, reason)
            return True

        written = await self._store.replace(
            thread.id, thread.serialize(), lifecycle.thread_ttl_seconds(thread)
        )
        if not written:
            return False

        for event in events:
            await self._manager.broadcast_to_thread(thread.id, event)
        await self._manager.broadcast_to_thread(
            thread.id, server_event(THREAD_UPDATE, thread.to_wire())
        )
        return True

    async def _destroy(self, thread_id: str, reason: DeletionReason) -> bool:
        removed = await self._store.delete(thread_id)
        if removed:
            await self._announce_deleted(thread_id, reason)
        return removed

    async def _announce_deleted(self, thread_id: str, reason: DeletionReason):
        await self._manager.broadcast_to_thread(thread_id, thread_deleted_event(reason))
        await self._manager.close_thread(thread_id)
        increment_counter(f"threads_deleted_{reason.name.lower()}_total")
        log_thread_deleted(thread_id, reason.value)


def toggle_reaction(message: Message, emoji: str, user_id: str) -> bool:
    """Add the (emoji, user) reaction or remove it if present; True when added"""
    for reaction in message.reactions:
        if reaction.emoji == emoji and reaction.user_id == user_id:
            message.reactions.remove(reaction)
            return False
    message.reactions.append(Reaction(emoji=emoji, user_id=user_id))
    return True
