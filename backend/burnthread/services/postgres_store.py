"""
Durable ephemeral store backed by PostgreSQL

Reads never return expired rows. A background sweep deletes due rows with
DELETE ... RETURNING, so each expiry is reported by exactly one sweeper.
"""

import asyncio
import logging
from typing import Optional

import asyncpg

from burnthread.database import open_pool
from burnthread.services.store import EphemeralStore, StoreUnavailableError
from burnthread.services.telemetry import increment_counter

logger = logging.getLogger("burnthread.store.postgres")

_BACKEND_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class PostgresStore(EphemeralStore):
    backend_name = "postgres"

    def __init__(self, dsn: str, *, sweep_interval: float = 1.0, pool=None):
        super().__init__()
        self._dsn = dsn
        self._sweep_interval = sweep_interval
        self._pool = pool
        self._sweeper: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._pool is None:
            try:
                self._pool = await open_pool(self._dsn)
            except _BACKEND_ERRORS as exc:
                raise StoreUnavailableError("Could not open database pool") from exc
        self._sweeper = asyncio.create_task(self._sweep_forever())
        logger.info("Store expiry sweeper started")

    async def close(self) -> None:
        if self._sweeper:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        if self._pool:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> bool:
        await self._fetchval("SELECT 1")
        return True

    async def put(self, key: str, value: str, ttl_seconds: float) -> None:
        await self._execute(
            """
            INSERT INTO ephemeral_entries (key, value, expires_at, updated_at)
            VALUES ($1, $2, NOW() + ($3 * INTERVAL '1 second'), NOW())
            ON CONFLICT (key) DO UPDATE
            SET value = EXCLUDED.value,
                expires_at = EXCLUDED.expires_at,
                updated_at = NOW()
            """,
            key,
            value,
            float(ttl_seconds),
        )

    async def replace(self, key: str, value: str, ttl_seconds: float) -> bool:
        result = await self._execute(
            """
            UPDATE ephemeral_entries
            SET value = $2,
                expires_at = NOW() + ($3 * INTERVAL '1 second'),
                updated_at = NOW()
            WHERE key = $1
              AND expires_at > NOW()
            """,
            key,
            value,
            float(ttl_seconds),
        )
        return _affected_rows(result) > 0

    async def get(self, key: str) -> Optional[str]:
        return await self._fetchval(
            """
            SELECT value
            FROM ephemeral_entries
            WHERE key = $1
              AND expires_at > NOW()
            """,
            key,
        )

    async def delete(self, key: str) -> bool:
        # Expired-but-unswept rows belong to the sweeper, not to callers.
        result = await self._execute(
            "DELETE FROM ephemeral_entries WHERE key = $1 AND expires_at > NOW()",
            key,
        )
        return _affected_rows(result) > 0

    async def remaining_ttl(self, key: str) -> Optional[float]:
        remaining = await self._fetchval(
            """
            SELECT EXTRACT(EPOCH FROM (expires_at - NOW()))
            FROM ephemeral_entries
            WHERE key = $1
              AND expires_at > NOW()
            """,
            key,
        )
        if remaining is None:
            return None
        return max(0.0, float(remaining))

    async def sweep_expired(self) -> int:
        """Delete due rows and notify listeners; returns how many expired"""
        rows = await self._fetch(
            """
            DELETE FROM ephemeral_entries
            WHERE expires_at <= NOW()
            RETURNING key
            """
        )
        for row in rows:
            await self._notify_expired(row["key"])
        if rows:
            increment_counter("store_expired_total", len(rows))
        return len(rows)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep_expired()
            except Exception as exc:
                logger.error("store_sweep_failed type=%s", type(exc).__name__)
                increment_counter("store_sweep_failures_total")

    def _require_pool(self):
        if self._pool is None:
            raise StoreUnavailableError("Database not initialized")
        return self._pool

    async def _execute(self, query: str, *args) -> str:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.execute(query, *args)
        except _BACKEND_ERRORS as exc:
            raise StoreUnavailableError("Store operation failed") from exc

    async def _fetchval(self, query: str, *args):
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchval(query, *args)
        except _BACKEND_ERRORS as exc:
            raise StoreUnavailableError("Store operation failed") from exc

    async def _fetch(self, query: str, *args):
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except _BACKEND_ERRORS as exc:
            raise StoreUnavailableError("Store operation failed") from exc


def _affected_rows(status: str) -> int:
    """Parse asyncpg command status such as 'DELETE 1' or 'UPDATE 0'"""
    if not status:
        return 0
    try:
        return int(status.split()[-1])
    except ValueError:
        return 0
