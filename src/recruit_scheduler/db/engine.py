"""Async engine, session factory and the per-call session scope.

Production runs on Postgres through asyncpg. SQLite (aiosqlite) is accepted
for local runs and the test suite.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from recruit_scheduler.config import Settings


def _asyncpg_connect_args(statement_timeout: int, command_timeout: int) -> dict[str, Any]:
    # statement_timeout is enforced by the server, command_timeout by the driver
    return {
        "command_timeout": command_timeout,
        "server_settings": {"statement_timeout": str(statement_timeout)},
    }


def create_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
    echo: bool = False,
    statement_timeout: int = 30000,
    command_timeout: int = 30,
) -> AsyncEngine:
    """Create the engine behind every store call.

    Args:
        database_url: postgresql+asyncpg:// URL, or sqlite+aiosqlite:// for local runs
        pool_size: Connections kept open for the API and automation passes
        max_overflow: Extra connections allowed under burst load
        echo: Log emitted SQL
        statement_timeout: Server-side limit per statement, in milliseconds
        command_timeout: asyncpg limit per command, in seconds
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)

    return create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_timeout=30,
        echo=echo,
        connect_args=_asyncpg_connect_args(statement_timeout, command_timeout),
    )


def engine_from_settings(settings: Settings, **overrides: Any) -> AsyncEngine:
    """Create the engine configured by the ``RECRUIT_DB_*`` settings."""
    options: dict[str, Any] = {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "echo": settings.db_echo,
        "statement_timeout": settings.db_statement_timeout,
        "command_timeout": settings.db_command_timeout,
    }
    options.update(overrides)
    return create_engine(settings.database_url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Loaded attributes stay readable after commit; stores convert rows to
    # dataclasses once the session has closed
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def get_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Open one unit of work: commit when the block exits cleanly, roll back otherwise.

    Example:
        async with get_session(session_factory) as session:
            await TaskRepository(session).mark_reminder_sent(task_id)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
