"""Pytest configuration and fixtures for recruit_scheduler tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import JSON, Column, MetaData, String, Table, event
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from recruit_scheduler.db import SessionRunner
from recruit_scheduler.services import (
    AutomationDispatcher,
    AutomationRuleEngine,
    EntitySnapshot,
    NotificationSink,
    RuleSettingsStore,
    SchedulerService,
    TaskStore,
)

# Fixed evaluation time shared by the automation tests
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _create_sqlite_compatible_metadata():
    """Create a new metadata with SQLite-compatible column types.

    This creates a copy of the models metadata (plus the host application's
    entity tables) with JSONB replaced by JSON and PostgreSQL UUID replaced
    by String for SQLite compatibility.
    """
    # Import here to avoid circular imports
    from recruit_scheduler.db.entities import external_metadata
    from recruit_scheduler.db.models import Base
    from sqlalchemy import BigInteger, Integer

    new_metadata = MetaData()

    tables = list(Base.metadata.tables.items()) + list(external_metadata.tables.items())
    for table_name, table in tables:
        columns = []
        for col in table.columns:
            col_type = col.type
            # Replace PostgreSQL-specific types
            if isinstance(col_type, JSONB):
                col_type = JSON()
            elif isinstance(col_type, PG_UUID):
                col_type = String(36)
            elif isinstance(col_type, BigInteger) and col.primary_key:
                # SQLite needs INTEGER for autoincrement PKs
                col_type = Integer()

            # Force autoincrement for primary key integer columns
            autoincrement_value = (
                "auto" if col.primary_key and isinstance(col_type, Integer) else False
            )

            new_col = Column(
                col.name,
                col_type,
                *[c.copy() for c in col.constraints if not c._type_bound],
                primary_key=col.primary_key,
                nullable=col.nullable,
                default=col.default,
                server_default=col.server_default,
                autoincrement=autoincrement_value,
            )
            columns.append(new_col)

        Table(
            table_name,
            new_metadata,
            *columns,
        )

    return new_metadata


class FakeEntityLookup:
    """In-memory EntityLookup; set ``failures`` to make a listing raise."""

    def __init__(self) -> None:
        self.jobs: list[EntitySnapshot] = []
        self.candidates: list[EntitySnapshot] = []
        self.customers: list[EntitySnapshot] = []
        self.prospects: list[EntitySnapshot] = []
        self.failures: dict[str, Exception] = {}

    async def list_jobs(self) -> list[EntitySnapshot]:
        self._maybe_fail("jobs")
        return list(self.jobs)

    async def list_candidates(self) -> list[EntitySnapshot]:
        self._maybe_fail("candidates")
        return list(self.candidates)

    async def list_customers(self, prospects: bool) -> list[EntitySnapshot]:
        self._maybe_fail("prospects" if prospects else "customers")
        return list(self.prospects if prospects else self.customers)

    def _maybe_fail(self, name: str) -> None:
        if name in self.failures:
            raise self.failures[name]


@pytest.fixture
async def db_engine(tmp_path):
    """Create a per-test SQLite database engine for testing."""
    # Use a file-backed SQLite database so concurrent sessions get their own
    # connections (in-memory SQLite shares a single connection via StaticPool)
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create tables using SQLite-compatible metadata
    sqlite_metadata = _create_sqlite_compatible_metadata()

    async with engine.begin() as conn:
        await conn.run_sync(sqlite_metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a database session for testing."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def session_factory(db_engine):
    """Create a session factory for testing."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def runner(session_factory):
    """Create a SessionRunner with fast retries."""
    return SessionRunner(session_factory, timeout=5.0, retries=2, retry_delay=0)


@pytest.fixture
def mock_publisher():
    """Create a mock NotificationPublisher."""
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=True)
    publisher.publish_read = AsyncMock(return_value=True)
    publisher.start = AsyncMock()
    publisher.stop = AsyncMock()
    return publisher


@pytest.fixture
def store(runner):
    return TaskStore(runner)


@pytest.fixture
def sink(runner, mock_publisher):
    return NotificationSink(runner, publisher=mock_publisher)


@pytest.fixture
def scheduler(store):
    return SchedulerService(store)


@pytest.fixture
def rule_settings(runner):
    return RuleSettingsStore(runner)


@pytest.fixture
def entities():
    return FakeEntityLookup()


@pytest.fixture
def rule_engine(store, sink, entities):
    return AutomationRuleEngine(store, sink, entities, default_recipient="admin")


@pytest.fixture
def dispatcher(rule_engine, scheduler, rule_settings):
    return AutomationDispatcher(rule_engine, scheduler, rule_settings, rule_timeout=5.0)


@pytest.fixture
def now():
    return NOW
