"""Recruitment scheduler FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from recruit_scheduler.config import Settings
from recruit_scheduler.db import SessionRunner, create_session_factory, engine_from_settings
from recruit_scheduler.db.models import Base
from recruit_scheduler.errors import SchedulerError, ValidationError
from recruit_scheduler.routes import (
    config_router,
    notifications_router,
    scheduler_router,
    tasks_router,
)
from recruit_scheduler.services import (
    AutomationDispatcher,
    AutomationRuleEngine,
    DatabaseEntityLookup,
    EntityLookup,
    NotificationPublisher,
    NotificationSink,
    RuleSettingsStore,
    SchedulerService,
    TaskStore,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    entity_lookup: EntityLookup | None = None,
    publisher: NotificationPublisher | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings, read from the environment if omitted
        session_factory: Use an existing session factory instead of creating an
            engine from ``settings.database_url``. The caller owns its schema.
        entity_lookup: Source of jobs, candidates and customers for the
            automation rules, defaults to the host application's tables
        publisher: Notification publisher, defaults to one connected to
            ``settings.nats_url`` at startup
    """
    settings = settings or Settings()

    engine: AsyncEngine | None = None
    if session_factory is None:
        engine = engine_from_settings(settings)
        session_factory = create_session_factory(engine)
        logger.info(
            f"Database connection configured: {settings.database_url.split('@')[-1]}"
        )

    runner = SessionRunner(
        session_factory,
        timeout=settings.store_timeout,
        retries=settings.store_retries,
    )

    # Initialize core services
    owns_publisher = publisher is None
    publisher = publisher or NotificationPublisher()
    task_store = TaskStore(runner)
    notification_sink = NotificationSink(runner, publisher=publisher)
    scheduler = SchedulerService(task_store)
    rule_settings = RuleSettingsStore(runner)
    rule_engine = AutomationRuleEngine(
        task_store,
        notification_sink,
        entity_lookup or DatabaseEntityLookup(runner),
        default_recipient=settings.default_notification_user,
    )
    dispatcher = AutomationDispatcher(
        rule_engine,
        scheduler,
        rule_settings,
        rule_timeout=settings.rule_timeout,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Recruitment scheduler starting up")

        if engine:
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                logger.info("Database tables created/verified")
            except Exception as e:
                logger.error(f"Database initialization error: {e}")

        if owns_publisher and settings.realtime_enabled:
            await publisher.start(settings.nats_url)

        yield

        if owns_publisher:
            await publisher.stop()

        if engine:
            await engine.dispose()
            logger.info("Database connection closed")

        logger.info("Recruitment scheduler shutting down")

    scheduler_app = FastAPI(
        title="Recruitment Scheduler",
        description="Task scheduling, automation rules and notifications for recruiting",
        version="0.1.0",
        lifespan=lifespan,
    )

    @scheduler_app.exception_handler(SchedulerError)
    async def scheduler_error_handler(request: Request, exc: SchedulerError) -> JSONResponse:
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @scheduler_app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError(_describe_validation_errors(exc))
        return JSONResponse(error.to_dict(), status_code=error.status_code)

    # Store services in app.state for dependency injection
    scheduler_app.state.settings = settings
    scheduler_app.state.task_store = task_store
    scheduler_app.state.notification_sink = notification_sink
    scheduler_app.state.publisher = publisher
    scheduler_app.state.scheduler = scheduler
    scheduler_app.state.rule_settings = rule_settings
    scheduler_app.state.rule_engine = rule_engine
    scheduler_app.state.dispatcher = dispatcher

    # Include routers
    scheduler_app.include_router(config_router)
    scheduler_app.include_router(scheduler_router)
    scheduler_app.include_router(tasks_router)
    scheduler_app.include_router(notifications_router)

    return scheduler_app


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "invalid request"
