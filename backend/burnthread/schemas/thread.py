"""
Thread schemas - server only sees ciphertext blobs

Stored and broadcast representations use camelCase field names; Python code
uses the snake_case attributes.
"""

import time
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Reaction(CamelModel):
    emoji: str
    user_id: str
    timestamp: int = Field(default_factory=now_ms)


class Message(CamelModel):
    """A single ciphertext message and its receipts"""
    id: str
    content: str                # Ciphertext, never interpreted
    sender_id: str
    timestamp: int = Field(default_factory=now_ms)
    read_by: List[str] = Field(default_factory=list)
    reactions: List[Reaction] = Field(default_factory=list)


class Thread(CamelModel):
    """Persisted thread state; existence in the store means the thread is alive"""
    id: str
    created_at: int = Field(default_factory=now_ms)
    timer_hours: int
    participants: List[str] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)

    def find_message(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def serialize(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def deserialize(cls, raw: str) -> "Thread":
        return cls.model_validate_json(raw)


class ThreadCreate(CamelModel):
    """Create request; malformed timers fall back to the default, never rejected"""
    timer_hours: Optional[int] = None

    @field_validator("timer_hours", mode="before")
    @classmethod
    def coerce_timer_hours(cls, value: Any) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None
