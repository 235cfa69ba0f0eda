"""asyncpg connection pool for the Postgres-backed record store.

The pool is optional: it is only created when ``DATABASE_URL`` is set.
Without it the engine runs on the in-memory store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import asyncpg

from src.config import Settings, get_settings

logger = logging.getLogger("vibehealth.db")

# Module-level connection pool, initialized once at app startup
_pool: asyncpg.Pool | None = None

RECORDS_DDL = """
CREATE TABLE IF NOT EXISTS syncable_records (
    record_id       TEXT PRIMARY KEY,
    kind            TEXT NOT NULL,
    payload         JSONB NOT NULL,
    is_dirty        BOOLEAN NOT NULL DEFAULT TRUE,
    updated_at      TIMESTAMPTZ NOT NULL,
    last_synced_at  TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS syncable_records_dirty_idx
    ON syncable_records (updated_at) WHERE is_dirty;
"""


async def init_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Create the asyncpg connection pool and ensure the schema exists."""
    global _pool
    s = settings or get_settings()
    if not s.database_url:
        raise RuntimeError("DATABASE_URL is not configured")
    _pool = await asyncpg.create_pool(
        s.database_url,
        min_size=1,
        max_size=s.database_pool_size,
        command_timeout=30,
    )
    async with _pool.acquire() as conn:
        await conn.execute(RECORDS_DDL)
    logger.info("Database pool initialized (max=%d)", s.database_pool_size)
    return _pool


async def close_pool() -> None:
    """Drain the pool. Call at app shutdown."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool not initialized; call init_pool() first")
    return _pool


@asynccontextmanager
async def get_connection() -> AsyncGenerator[asyncpg.Connection, None]:
    """Acquire a pooled connection inside a transaction."""
    pool = get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def execute(query: str, *args: Any) -> str:
    """Execute a single statement and return its status string."""
    async with get_connection() as conn:
        return await conn.execute(query, *args)


async def fetch(query: str, *args: Any) -> list[asyncpg.Record]:
    async with get_connection() as conn:
        return await conn.fetch(query, *args)


async def fetchrow(query: str, *args: Any) -> asyncpg.Record | None:
    async with get_connection() as conn:
        return await conn.fetchrow(query, *args)


async def fetchval(query: str, *args: Any) -> Any:
    async with get_connection() as conn:
        return await conn.fetchval(query, *args)
