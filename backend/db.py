"""
Connection pool for the documents table.

Every connection is scoped through the app.couple_id setting that the
documents RLS policy reads (alembic migration 001):

  couple_conn(couple_id)  sees one couple's planner
  system_conn()           empty setting, sees every couple; maintenance only

Never use pool.acquire() directly outside this module.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from uuid import UUID

import asyncpg

from backend import config

pool: asyncpg.Pool | None = None


async def init_pool() -> None:
    """Called once at application startup."""
    global pool
    settings = config.settings
    pool = await asyncpg.create_pool(
        dsn=settings.DATABASE_URL,
        min_size=settings.DB_POOL_MIN_SIZE,
        max_size=settings.DB_POOL_MAX_SIZE,
        command_timeout=settings.DB_COMMAND_TIMEOUT_SECONDS,
        server_settings={"application_name": "relsync"},
        init=_init_connection,
    )


async def close_pool() -> None:
    global pool
    if pool is not None:
        await pool.close()
        pool = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    # documents.data round-trips as plain dicts, which is what engine records are
    await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


@asynccontextmanager
async def _scoped_conn(scope: str):
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")

    async with pool.acquire() as conn:
        async with conn.transaction():
            # is_local=true: the setting dies with the transaction, never leaks to the next borrower
            await conn.execute("SELECT set_config('app.couple_id', $1, true)", scope)
            yield conn


@asynccontextmanager
async def couple_conn(couple_id: str | UUID):
    """
    A connection, inside a transaction, that can only see and modify
    documents belonging to couple_id.

    Usage:
        async with couple_conn(couple_id) as conn:
            row = await conn.fetchrow("SELECT data FROM documents WHERE ...")
    """
    if not str(couple_id):
        raise ValueError("couple_id is required; use system_conn() for unscoped access")
    async with _scoped_conn(str(couple_id)) as conn:
        yield conn


@asynccontextmanager
async def system_conn():
    """Unscoped connection for the scheduled repair task and test setup."""
    async with _scoped_conn("") as conn:
        yield conn
