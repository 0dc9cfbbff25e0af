"""
Thread lifecycle rules

Pure decisions over a Thread snapshot. Timer expiry is owned by the store's
TTL; this module only decides the both-read auto-delete and the TTL window.
"""

from typing import Any, Optional

from burnthread.schemas.events import DeletionReason
from burnthread.schemas.thread import Thread

MIN_TIMER_HOURS = 1
MAX_TIMER_HOURS = 168
DEFAULT_TIMER_HOURS = 24
MAX_PARTICIPANTS = 2


def clamp_timer_hours(timer_hours: Optional[Any]) -> int:
    """Clamp a requested timer into [1, 168]; missing values use the default"""
    if timer_hours is None:
        return DEFAULT_TIMER_HOURS
    return min(max(MIN_TIMER_HOURS, int(timer_hours)), MAX_TIMER_HOURS)


def ttl_seconds(timer_hours: int) -> int:
    return timer_hours * 3600


def thread_ttl_seconds(thread: Thread) -> int:
    """Every write re-arms the thread's full original window"""
    return ttl_seconds(thread.timer_hours)


def can_register(thread: Thread, user_id: str) -> bool:
    return user_id not in thread.participants and len(thread.participants) < MAX_PARTICIPANTS


def all_read(thread: Thread) -> bool:
    """
    True when two participants exist, there is at least one message, and
    every message was read by exactly the current participant set.
    """
    if len(thread.participants) != MAX_PARTICIPANTS or not thread.messages:
        return False

    participants = set(thread.participants)
    return all(set(message.read_by) == participants for message in thread.messages)


def deletion_reason(thread: Thread) -> Optional[DeletionReason]:
    """Return why the thread should be destroyed now, or None"""
    if all_read(thread):
        return DeletionReason.BOTH_READ
    return None
