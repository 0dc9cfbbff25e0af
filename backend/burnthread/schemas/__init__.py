# Burnthread Pydantic Schemas
from burnthread.schemas.thread import Message, Reaction, Thread, ThreadCreate
from burnthread.schemas.events import ClientEvent, DeletionReason, parse_client_event

__all__ = [
    "Message", "Reaction", "Thread", "ThreadCreate",
    "ClientEvent", "DeletionReason", "parse_client_event",
]
