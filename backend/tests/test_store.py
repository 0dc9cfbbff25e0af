"""
Tests for the in-process store and the fallback wrapper
"""

import asyncio

import pytest

from burnthread.services.store import (
    EphemeralStore,
    FallbackStore,
    MemoryStore,
    StoreUnavailableError,
    build_store,
)
from burnthread.services.telemetry import get_counter


class Recorder:
    def __init__(self):
        self.keys = []

    async def __call__(self, key):
        self.keys.append(key)


class BrokenStore(EphemeralStore):
    """Durable store stand-in whose backend is down"""

    backend_name = "broken"

    def __init__(self, fail_on_start=False):
        super().__init__()
        self.fail_on_start = fail_on_start
        self.calls = 0

    async def start(self):
        if self.fail_on_start:
            raise StoreUnavailableError("down")

    async def _fail(self, *_args):
        self.calls += 1
        raise StoreUnavailableError("down") from ConnectionRefusedError()

    put = replace = get = delete = remaining_ttl = ping = _fail


@pytest.mark.asyncio
async def test_put_get_delete(store: MemoryStore):
    await store.put("abc", "value", 60)

    assert await store.get("abc") == "value"
    assert await store.delete("abc") is True
    assert await store.get("abc") is None
    assert await store.delete("abc") is False


@pytest.mark.asyncio
async def test_put_replaces_value(store: MemoryStore):
    await store.put("abc", "one", 60)
    await store.put("abc", "two", 60)

    assert await store.get("abc") == "two"
    assert len(store) == 1


@pytest.mark.asyncio
async def test_replace_only_writes_present_keys(store: MemoryStore):
    assert await store.replace("missing", "value", 60) is False
    assert await store.get("missing") is None

    await store.put("abc", "one", 60)
    assert await store.replace("abc", "two", 60) is True
    assert await store.get("abc") == "two"


@pytest.mark.asyncio
async def test_remaining_ttl_tracks_deadline(store: MemoryStore):
    await store.put("abc", "value", 3600)

    remaining = await store.remaining_ttl("abc")
    assert 3590 < remaining <= 3600
    assert await store.remaining_ttl("missing") is None


@pytest.mark.asyncio
async def test_expiry_removes_value_and_notifies_once(store: MemoryStore):
    recorder = Recorder()
    store.on_expire(recorder)

    await store.put("abc", "value", 0.02)
    await asyncio.sleep(0.1)

    assert await store.get("abc") is None
    assert recorder.keys == ["abc"]


@pytest.mark.asyncio
async def test_put_rearms_expiry(store: MemoryStore):
    recorder = Recorder()
    store.on_expire(recorder)

    await store.put("abc", "value", 0.02)
    await store.put("abc", "value", 60)
    await asyncio.sleep(0.1)

    assert await store.get("abc") == "value"
    assert recorder.keys == []


@pytest.mark.asyncio
async def test_delete_cancels_expiry(store: MemoryStore):
    recorder = Recorder()
    store.on_expire(recorder)

    await store.put("abc", "value", 0.02)
    assert await store.delete("abc") is True
    await asyncio.sleep(0.1)

    assert recorder.keys == []


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others(store: MemoryStore):
    recorder = Recorder()

    async def explode(_key):
        raise RuntimeError("listener bug")

    store.on_expire(explode)
    store.on_expire(recorder)

    await store.put("abc", "value", 0.01)
    await asyncio.sleep(0.1)

    assert recorder.keys == ["abc"]


@pytest.mark.asyncio
async def test_fallback_switches_to_memory_on_failure():
    primary = BrokenStore()
    fallback = MemoryStore()
    wrapped = FallbackStore(primary, fallback)
    before = get_counter("store_fallbacks_total")

    assert wrapped.backend_name == "broken"
    await wrapped.put("abc", "value", 60)

    assert wrapped.degraded is True
    assert wrapped.backend_name == "memory"
    assert await wrapped.get("abc") == "value"
    assert primary.calls == 1
    assert get_counter("store_fallbacks_total") == before + 1

    await wrapped.close()


@pytest.mark.asyncio
async def test_fallback_at_startup_when_primary_cannot_connect():
    wrapped = FallbackStore(BrokenStore(fail_on_start=True), MemoryStore())

    await wrapped.start()

    assert wrapped.degraded is True
    assert await wrapped.ping() is True
    await wrapped.close()


@pytest.mark.asyncio
async def test_fallback_forwards_expiry_notifications():
    fallback = MemoryStore()
    wrapped = FallbackStore(BrokenStore(fail_on_start=True), fallback)
    recorder = Recorder()
    wrapped.on_expire(recorder)

    await wrapped.start()
    await wrapped.put("abc", "value", 0.01)
    await asyncio.sleep(0.1)

    assert recorder.keys == ["abc"]
    await wrapped.close()


def test_build_store_selects_backend_from_settings():
    class FakeSettings:
        STORE_BACKEND = "memory"
        DATABASE_URL = ""
        STORE_SWEEP_INTERVAL_SECONDS = 1.0

    assert isinstance(build_store(FakeSettings()), MemoryStore)

    FakeSettings.STORE_BACKEND = "postgres"
    durable = build_store(FakeSettings())
    assert isinstance(durable, FallbackStore)
    assert durable.backend_name == "postgres"
