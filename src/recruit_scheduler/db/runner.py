"""Per-call session handling with timeout and bounded retry."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from recruit_scheduler.db.engine import get_session
from recruit_scheduler.errors import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures worth another attempt; everything else propagates unchanged
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    TimeoutError,
    OSError,
)


class SessionRunner:
    """Runs one store operation per session, committing on success.

    Each attempt is bounded by ``timeout`` seconds. Transient failures are
    retried up to ``retries`` extra times before surfacing as
    TransientStoreError. Validation, not-found and conflict errors are raised
    on the first attempt.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float = 10.0,
        retries: int = 2,
        retry_delay: float = 0.1,
    ) -> None:
        self.session_factory = session_factory
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay

    async def run(
        self,
        operation: Callable[[AsyncSession], Awaitable[T]],
        description: str = "store call",
    ) -> T:
        attempts = self.retries + 1
        last_error: BaseException | None = None

        for attempt in range(1, attempts + 1):
            try:
                async with asyncio.timeout(self.timeout):
                    async with get_session(self.session_factory) as session:
                        return await operation(session)
            except TRANSIENT_ERRORS as e:
                last_error = e
                logger.warning(
                    f"{description} failed (attempt {attempt}/{attempts}): "
                    f"{type(e).__name__}: {e}"
                )
                if attempt < attempts:
                    await asyncio.sleep(self.retry_delay * attempt)

        raise TransientStoreError(
            f"{description} failed after {attempts} attempts: {last_error}"
        )
