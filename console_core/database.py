"""
Async connection pool for the console's Supabase Postgres reads.

Every read goes through SQLAlchemy Core on asyncpg. Row Level Security on the
database side remains the authorization boundary; nothing here widens or
narrows what the connection role may read.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .config import is_sql_echo_enabled

# Supabase's transaction pooler listens here and cannot hold prepared statements
SUPABASE_POOLER_PORT = ":6543/"

_ASYNC_SCHEMES = ("postgresql://", "postgres://")

_engine: AsyncEngine | None = None


def _get_database_url() -> str:
    """
    Read DATABASE_URL and switch it to the asyncpg driver.

    Supabase hands out postgresql:// (or legacy postgres://) URLs; both are
    rewritten to postgresql+asyncpg://. URLs that already name a driver are
    used as-is.
    """
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError(
            "DATABASE_URL environment variable must be set "
            "(Supabase Dashboard > Settings > Database > Connection string)"
        )

    for scheme in _ASYNC_SCHEMES:
        if database_url.startswith(scheme):
            return "postgresql+asyncpg://" + database_url[len(scheme):]
    return database_url


def _connect_args(database_url: str) -> dict:
    if SUPABASE_POOLER_PORT in database_url:
        return {"statement_cache_size": 0}
    return {}


def get_engine() -> AsyncEngine:
    """Get or create the shared engine."""
    global _engine
    if _engine is None:
        database_url = _get_database_url()
        _engine = create_async_engine(
            database_url,
            echo=is_sql_echo_enabled(),
            connect_args=_connect_args(database_url),
            # One event list load holds two connections at once
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
        )
    return _engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """
    Borrow a pooled connection for reads.

    Usage:
        async with get_connection() as conn:
            rows = (await conn.execute(build_event_query(scope))).mappings().all()
    """
    async with get_engine().connect() as conn:
        yield conn


async def close_engine() -> None:
    """Dispose of the pool. Called from the API lifespan on shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    return bool(os.environ.get("DATABASE_URL"))
