"""
Async database connection management using asyncpg
"""

import asyncpg


async def open_pool(dsn: str) -> asyncpg.Pool:
    """Create a connection pool and ensure the schema exists"""
    pool = await asyncpg.create_pool(
        dsn, min_size=2, max_size=20, command_timeout=10
    )

    async with pool.acquire() as conn:
        await _init_schema(conn)

    return pool


async def _init_schema(conn: asyncpg.Connection):
    """Single key/value table with per-row expiry."""
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS ephemeral_entries (
            key VARCHAR(64) PRIMARY KEY,
            value TEXT NOT NULL,
            expires_at TIMESTAMP WITH TIME ZONE NOT NULL,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        )
    """
    )

    await conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_ephemeral_entries_expires_at
            ON ephemeral_entries(expires_at)
    """
    )
