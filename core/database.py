"""Async SQLAlchemy database engine and session management.

Provides the async database layer with:
- Connection pooling (configurable pool_size/max_overflow)
- FastAPI dependency injection via get_session()
- Automatic session lifecycle (commit on success, rollback on error)
- Multi-database support (PostgreSQL via asyncpg, SQLite via aiosqlite)
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration from environment
# ---------------------------------------------------------------------------

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite+aiosqlite:///./library.db",
)
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
ECHO_SQL = os.getenv("DB_ECHO", "false").lower() == "true"
# Seconds a SQLite connection waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = float(os.getenv("DB_SQLITE_BUSY_TIMEOUT", "5"))
# Milliseconds a PostgreSQL statement waits on a row lock before failing
PG_LOCK_TIMEOUT_MS = int(os.getenv("DB_LOCK_TIMEOUT_MS", "5000"))


# ---------------------------------------------------------------------------
# Engine & session factory
# ---------------------------------------------------------------------------

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE clauses unless this is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_from_url(url: str, echo: bool = False) -> AsyncEngine:
    """Build an async engine with lock waits bounded for the target dialect."""
    if url.startswith("sqlite"):
        new_engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": SQLITE_BUSY_TIMEOUT},
        )
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return new_engine

    connect_args = {}
    if url.startswith("postgresql+asyncpg"):
        connect_args = {"server_settings": {"lock_timeout": str(PG_LOCK_TIMEOUT_MS)}}
    return create_async_engine(
        url,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        echo=echo,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay readable after commit."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = create_engine_from_url(DATABASE_URL, echo=ECHO_SQL)

async_session_factory = build_session_factory(engine)


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session with automatic commit/rollback.

    Usage in FastAPI routes::

        @router.get("/books")
        async def list_books(session: AsyncSession = Depends(get_session)):
            result = await session.execute(select(Book))
            return result.scalars().all()
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager variant for non-FastAPI code (scripts, tests, etc.)."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ---------------------------------------------------------------------------
# Lifecycle hooks
# ---------------------------------------------------------------------------

async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create tables from models (dev/test only)."""
    from core.models.base import Base
    import library.models.db_models  # noqa: F401

    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready on %s", target.url.render_as_string(hide_password=True))


async def close_db() -> None:
    """Dispose of the connection pool on shutdown."""
    await engine.dispose()
