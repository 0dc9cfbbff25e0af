"""
Ephemeral key-value store

One logical namespace keyed by thread id. Every value carries a TTL; when it
fires the store removes the value and notifies its expiry listeners once.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Set

from burnthread.logging_config import log_store_fallback
from burnthread.services.telemetry import increment_counter

logger = logging.getLogger("burnthread.store")

ExpiryListener = Callable[[str], Awaitable[None]]


class StoreError(Exception):
    """Base class for store failures surfaced to callers"""


class StoreUnavailableError(StoreError):
    """The backing service could not be reached or failed mid-operation"""


class EphemeralStore(ABC):
    backend_name = "abstract"

    def __init__(self):
        self._expiry_listeners: List[ExpiryListener] = []

    def on_expire(self, listener: ExpiryListener) -> None:
        """Register a coroutine called with the key of every expired value"""
        self._expiry_listeners.append(listener)

    async def _notify_expired(self, key: str) -> None:
        for listener in self._expiry_listeners:
            try:
                await listener(key)
            except Exception:
                logger.exception("Expiry listener failed")

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def ping(self) -> bool:
        return True

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: float) -> None:
        """Store value, replacing any previous value and its pending expiry"""

    @abstractmethod
    async def replace(self, key: str, value: str, ttl_seconds: float) -> bool:
        """Like put, but only when key is currently present; returns whether it wrote"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Current value or None when absent or expired"""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove key immediately; returns whether a value was removed"""

    @abstractmethod
    async def remaining_ttl(self, key: str) -> Optional[float]:
        """Seconds until expiry, or None when absent"""


@dataclass
class _Entry:
    value: str
    deadline: float
    handle: asyncio.TimerHandle


class MemoryStore(EphemeralStore):
    """
    In-process store with one event loop timer per key

    All operations complete without suspending, so a get followed by a put
    from the same task cannot interleave with an expiry.
    """

    backend_name = "memory"

    def __init__(self):
        super().__init__()
        self._entries: Dict[str, _Entry] = {}
        self._pending: Set[asyncio.Task] = set()

    async def put(self, key: str, value: str, ttl_seconds: float) -> None:
        loop = asyncio.get_running_loop()
        self._cancel(key)
        handle = loop.call_later(ttl_seconds, self._expire, key)
        self._entries[key] = _Entry(value=value, deadline=loop.time() + ttl_seconds, handle=handle)

    async def replace(self, key: str, value: str, ttl_seconds: float) -> bool:
        if key not in self._entries:
            return False
        await self.put(key, value, ttl_seconds)
        return True

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        return entry.value if entry else None

    async def delete(self, key: str) -> bool:
        return self._cancel(key)

    async def remaining_ttl(self, key: str) -> Optional[float]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return max(0.0, entry.deadline - asyncio.get_running_loop().time())

    async def close(self) -> None:
        for key in list(self._entries):
            self._cancel(key)
        for task in list(self._pending):
            task.cancel()

    def _cancel(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        entry.handle.cancel()
        return True

    def _expire(self, key: str) -> None:
        if self._entries.pop(key, None) is None:
            return
        task = asyncio.get_running_loop().create_task(self._notify_expired(key))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def __len__(self) -> int:
        return len(self._entries)


class FallbackStore(EphemeralStore):
    """
    Routes to a durable store until it fails, then to the in-process store

    The switch is permanent for the life of the process. Values written to the
    durable store before the switch are not migrated.
    """

    def __init__(self, primary: EphemeralStore, fallback: EphemeralStore):
        super().__init__()
        self._primary = primary
        self._fallback = fallback
        self._active = primary
        primary.on_expire(self._notify_expired)
        fallback.on_expire(self._notify_expired)

    @property
    def backend_name(self) -> str:
        return self._active.backend_name

    @property
    def degraded(self) -> bool:
        return self._active is self._fallback

    async def start(self) -> None:
        try:
            await self._primary.start()
        except StoreUnavailableError as exc:
            self._fall_back(exc)
        await self._fallback.start()

    async def close(self) -> None:
        await self._primary.close()
        await self._fallback.close()

    async def ping(self) -> bool:
        return await self._call("ping")

    async def put(self, key: str, value: str, ttl_seconds: float) -> None:
        await self._call("put", key, value, ttl_seconds)

    async def replace(self, key: str, value: str, ttl_seconds: float) -> bool:
        return await self._call("replace", key, value, ttl_seconds)

    async def get(self, key: str) -> Optional[str]:
        return await self._call("get", key)

    async def delete(self, key: str) -> bool:
        return await self._call("delete", key)

    async def remaining_ttl(self, key: str) -> Optional[float]:
        return await self._call("remaining_ttl", key)

    async def _call(self, operation: str, *args):
        store = self._active
        try:
            return await getattr(store, operation)(*args)
        except StoreUnavailableError as exc:
            if store is self._fallback:
                raise
            self._fall_back(exc)
            return await getattr(self._fallback, operation)(*args)

    def _fall_back(self, exc: Exception) -> None:
        if self._active is self._fallback:
            return
        cause = exc.__cause__ or exc
        log_store_fallback(self._primary.backend_name, type(cause).__name__)
        increment_counter("store_fallbacks_total")
        self._active = self._fallback


def build_store(active_settings) -> EphemeralStore:
    """Select the store implementation from configuration"""
    if active_settings.STORE_BACKEND == "postgres":
        from burnthread.services.postgres_store import PostgresStore

        primary = PostgresStore(
            active_settings.DATABASE_URL,
            sweep_interval=active_settings.STORE_SWEEP_INTERVAL_SECONDS,
        )
        return FallbackStore(primary, MemoryStore())
    return MemoryStore()
