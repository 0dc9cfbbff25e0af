"""
Real-time event schemas

Client frames are a closed tagged union keyed on "type". Server frames are
{"type": <event name>, "data": <payload>}.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from burnthread.schemas.thread import CamelModel
from burnthread.security_limits import (
    MAX_EMOJI_CHARS,
    MAX_MESSAGE_CONTENT_CHARS,
    MAX_THREAD_ID_CHARS,
    MAX_USER_ID_CHARS,
)

ThreadId = Annotated[str, Field(min_length=1, max_length=MAX_THREAD_ID_CHARS)]
UserId = Annotated[str, Field(min_length=1, max_length=MAX_USER_ID_CHARS)]


class JoinThread(CamelModel):
    type: Literal["join-thread"]
    thread_id: ThreadId


class RegisterParticipant(CamelModel):
    type: Literal["register-participant"]
    thread_id: ThreadId
    user_id: UserId


class SendMessage(CamelModel):
    type: Literal["send-message"]
    thread_id: ThreadId
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_CONTENT_CHARS)
    sender_id: UserId


class MarkRead(CamelModel):
    type: Literal["mark-read"]
    thread_id: ThreadId
    user_id: UserId
    message_id: str = Field(..., min_length=1, max_length=MAX_THREAD_ID_CHARS)


class AddReaction(CamelModel):
    type: Literal["add-reaction"]
    thread_id: ThreadId
    message_id: str = Field(..., min_length=1, max_length=MAX_THREAD_ID_CHARS)
    emoji: str = Field(..., min_length=1, max_length=MAX_EMOJI_CHARS)
    user_id: UserId


class UserTyping(CamelModel):
    type: Literal["user-typing"]
    thread_id: ThreadId
    user_id: UserId


class Ping(CamelModel):
    type: Literal["ping"]


ClientEvent = Annotated[
    Union[JoinThread, RegisterParticipant, SendMessage, MarkRead, AddReaction, UserTyping, Ping],
    Field(discriminator="type"),
]

client_event_adapter = TypeAdapter(ClientEvent)


def parse_client_event(data: dict) -> ClientEvent:
    """Validate a raw client frame. Raises pydantic.ValidationError."""
    return client_event_adapter.validate_python(data)


class DeletionReason(str, Enum):
    TIMER_EXPIRED = "timer-expired"
    BOTH_READ = "both-read"
    MANUAL = "manual"


# Server -> client event names
NEW_MESSAGE = "new-message"
THREAD_UPDATE = "thread-update"
MESSAGE_READ = "message-read"
MESSAGE_REACTION = "message-reaction"
USER_TYPING = "user-typing"
THREAD_DELETED = "thread-deleted"
ERROR = "error"
PONG = "pong"


def server_event(name: str, data: Optional[dict] = None) -> dict:
    return {"type": name, "data": data if data is not None else {}}


def error_event(message: str) -> dict:
    return server_event(ERROR, {"message": message})


def thread_deleted_event(reason: DeletionReason) -> dict:
    return server_event(THREAD_DELETED, {"reason": reason.value})
