"""
Database Session Management

One async engine per process (API or worker) and a session per unit of
work: an HTTP request, a queue message, or a CLI run of a scheduled event.

Units of Work:
==============
    API         get_db()            commit when the handler returns, rollback on error
    Worker      Dispatcher          commit after the processor, rollback on error
    CLI         session_scope()     same rule, for --run of a scheduled event

Processors also commit mid-run (progress checkpoints, partial backup ids)
so pollers and reconciliation see a live job; see worker/processors.

Connections are tagged with ``application_name`` = ``{APP_NAME}-{APP_ENV}``
so API and worker sessions can be told apart in ``pg_stat_activity``.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from socialvault.config.settings import settings
from socialvault.shared.core.logging import logger


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DATABASE_POOL_SIZE,
    max_overflow=settings.DATABASE_MAX_OVERFLOW,
    # The worker can idle on a 20s long poll between messages
    pool_pre_ping=True,
    connect_args={
        "server_settings": {"application_name": f"{settings.APP_NAME}-{settings.APP_ENV}".lower()},
    },
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    # Job rows are read after commit when building responses and emails
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    Session that commits on normal exit and rolls back on error.

    Usage:
        async with session_scope() as session:
            await RetentionService(...).sweep_expired_guest_backups()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Services that must keep a write even though the request ends in an
    error response (expired backup deletion, reminder failure records)
    commit explicitly before raising.
    """
    async with session_scope() as session:
        yield session


async def current_schema_revision() -> Optional[str]:
    """Alembic revision applied to the database, or None before the first migration."""
    async with engine.connect() as conn:
        exists = await conn.scalar(text("SELECT to_regclass('alembic_version') IS NOT NULL"))
        if not exists:
            return None
        return await conn.scalar(text("SELECT version_num FROM alembic_version"))


async def init_db() -> None:
    """
    Verify connectivity on startup and report the schema revision.

    Raises:
        Exception: If the database is unreachable (prevents startup)
    """
    try:
        revision = await current_schema_revision()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    if revision is None:
        logger.warning("Database has no alembic revision; run `alembic upgrade head`")
    else:
        logger.info("Database connection established", schema_revision=revision)


async def close_db() -> None:
    """Dispose of the engine, closing all pooled connections."""
    await engine.dispose()
    logger.info("Database connection closed")
