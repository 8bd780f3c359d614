"""
Database connection pool.

Story groups and stories are read and written through the tree storage
adapter (engine.tree.postgres_storage). Everything else goes through
connection(). Never use pool.acquire() directly outside these two places.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import asyncpg

from backend import config
from engine.tree.postgres_storage import register_json_codecs

pool: asyncpg.Pool | None = None


async def init_pool() -> None:
    """
    Initialize the connection pool.
    Called once at application startup.
    """
    global pool
    pool = await asyncpg.create_pool(
        dsn=config.settings.DATABASE_URL,
        min_size=config.settings.DB_POOL_MIN_SIZE,
        max_size=config.settings.DB_POOL_MAX_SIZE,
        command_timeout=60,
        init=register_json_codecs,
    )


async def close_pool() -> None:
    """
    Close the connection pool.
    Called at application shutdown.
    """
    global pool
    if pool is not None:
        await pool.close()
        pool = None


def get_pool() -> asyncpg.Pool:
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return pool


@asynccontextmanager
async def connection():
    """
    Acquire a connection inside a transaction.

    Usage:
        async with connection() as conn:
            row = await conn.fetchrow("SELECT * FROM bot_responses WHERE id = $1", response_id)

    Yields:
        asyncpg.Connection
    """
    async with get_pool().acquire() as conn:
        async with conn.transaction():
            yield conn
