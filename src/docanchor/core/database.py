"""Database engine, session factory and startup connection check."""

import asyncio

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from docanchor.core.retry import RetryExhausted, SleepFunc, fixed_delay, retry_async
from docanchor.services.exceptions import DatabaseUnavailableError

logger = structlog.get_logger()


def create_engine(db_url: str, pool_size: int = 20) -> AsyncEngine:
    """Create the async engine for ``db_url``.

    PostgreSQL (postgresql+psycopg://...) gets a bounded connection pool with
    pre-ping. SQLite URLs (sqlite+aiosqlite://...) are supported for local runs; an
    in-memory SQLite database shares one connection so every session sees the same
    data.
    """
    url = make_url(db_url)

    if url.get_backend_name() == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, echo=False, **kwargs)

    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=0,  # No overflow beyond pool_size
        pool_pre_ping=True,  # Verify connections before using
        echo=False,  # Don't log SQL queries (use structlog instead)
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy loading issues after commit
    )


async def ping(engine: AsyncEngine) -> None:
    """Run ``SELECT 1``; raises whatever the driver raises on failure."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def connect_with_retry(
    engine: AsyncEngine,
    max_attempts: int = 5,
    delay_seconds: float = 3.0,
    sleep: SleepFunc = asyncio.sleep,
) -> None:
    """Verify the database is reachable, retrying with a fixed delay.

    Raises:
        DatabaseUnavailableError: Still unreachable after ``max_attempts``.
    """
    try:
        await retry_async(
            lambda: ping(engine),
            max_attempts=max_attempts,
            delay=fixed_delay(delay_seconds),
            operation_name="database.connect",
            sleep=sleep,
        )
    except RetryExhausted as e:
        logger.error("database.unreachable", attempts=e.attempts, error=str(e.last_error))
        raise DatabaseUnavailableError(
            f"Database unreachable after {e.attempts} attempt(s): {e.last_error}"
        ) from e

    logger.info("database.connected", backend=engine.url.get_backend_name())


async def create_tables(engine: AsyncEngine) -> None:
    """Create missing tables from SQLModel metadata (local/SQLite runs and tests).

    Production PostgreSQL schemas are managed by Alembic.
    """
    import docanchor.models  # noqa: F401  (register tables on the metadata)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
