import pytest

from burnthread.services.postgres_store import PostgresStore, _affected_rows
from burnthread.services.store import StoreUnavailableError


class FakeAcquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, _exc_type, _exc, _tb):
        return False


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.closed = False

    def acquire(self):
        return FakeAcquire(self.conn)

    async def close(self):
        self.closed = True


class FakeConn:
    def __init__(self, *, fetchval_value=None, execute_result="OK", rows=None, error=None):
        self._fetchval_value = fetchval_value
        self._execute_result = execute_result
        self._rows = rows or []
        self._error = error
        self.calls = []

    async def fetchval(self, query, *args):
        self.calls.append((" ".join(query.split()), args))
        if self._error:
            raise self._error
        return self._fetchval_value

    async def fetch(self, query, *args):
        self.calls.append((" ".join(query.split()), args))
        if self._error:
            raise self._error
        return self._rows

    async def execute(self, query, *args):
        self.calls.append((" ".join(query.split()), args))
        if self._error:
            raise self._error
        return self._execute_result


def make_store(conn) -> PostgresStore:
    return PostgresStore("postgresql://unused", pool=FakePool(conn))


@pytest.mark.asyncio
async def test_get_filters_expired_rows():
    conn = FakeConn(fetchval_value='{"id": "abc"}')
    store = make_store(conn)

    assert await store.get("abc") == '{"id": "abc"}'
    query, args = conn.calls[-1]
    assert "expires_at > NOW()" in query
    assert args == ("abc",)


@pytest.mark.asyncio
async def test_put_upserts_with_ttl_seconds():
    conn = FakeConn(execute_result="INSERT 0 1")
    store = make_store(conn)

    await store.put("abc", "value", 7200)

    query, args = conn.calls[-1]
    assert "ON CONFLICT (key) DO UPDATE" in query
    assert args == ("abc", "value", 7200.0)


@pytest.mark.asyncio
@pytest.mark.parametrize("status, expected", [("DELETE 1", True), ("DELETE 0", False)])
async def test_delete_reports_whether_a_row_was_removed(status, expected):
    store = make_store(FakeConn(execute_result=status))
    assert await store.delete("abc") is expected


@pytest.mark.asyncio
@pytest.mark.parametrize("status, expected", [("UPDATE 1", True), ("UPDATE 0", False)])
async def test_replace_only_updates_live_rows(status, expected):
    conn = FakeConn(execute_result=status)
    store = make_store(conn)

    assert await store.replace("abc", "value", 60) is expected
    assert "expires_at > NOW()" in conn.calls[-1][0]


@pytest.mark.asyncio
async def test_remaining_ttl_handles_absent_and_present():
    assert await make_store(FakeConn(fetchval_value=None)).remaining_ttl("abc") is None
    assert await make_store(FakeConn(fetchval_value=12.5)).remaining_ttl("abc") == 12.5


@pytest.mark.asyncio
async def test_sweep_notifies_each_expired_key_once():
    conn = FakeConn(rows=[{"key": "one"}, {"key": "two"}])
    store = make_store(conn)
    expired = []

    async def listener(key):
        expired.append(key)

    store.on_expire(listener)

    assert await store.sweep_expired() == 2
    assert expired == ["one", "two"]
    assert "RETURNING key" in conn.calls[-1][0]


@pytest.mark.asyncio
async def test_backend_errors_become_store_unavailable():
    store = make_store(FakeConn(error=ConnectionRefusedError("refused")))

    with pytest.raises(StoreUnavailableError):
        await store.get("abc")


@pytest.mark.asyncio
async def test_operations_before_start_are_unavailable():
    store = PostgresStore("postgresql://unused")

    with pytest.raises(StoreUnavailableError):
        await store.get("abc")


@pytest.mark.asyncio
async def test_close_releases_pool():
    pool = FakePool(FakeConn())
    store = PostgresStore("postgresql://unused", pool=pool)

    await store.close()

    assert pool.closed is True


def test_affected_rows_parses_command_status():
    assert _affected_rows("DELETE 3") == 3
    assert _affected_rows("UPDATE 0") == 0
    assert _affected_rows("") == 0
    assert _affected_rows("OK") == 0
