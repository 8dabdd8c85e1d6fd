"""Scheduled task repository for database operations."""

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import CursorResult, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_scheduler.db.models import ScheduledTaskModel, SchedulerLogModel
from recruit_scheduler.models.scheduled_task import (
    IntervalType,
    IntervalUnit,
    ScheduledTaskFilter,
    ScheduledTaskStatus,
    ScheduledTaskType,
)


class ScheduledTaskRepository:
    """Repository for scheduled task database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        task_type: ScheduledTaskType,
        scheduled_for: datetime,
        interval_type: IntervalType = IntervalType.NONE,
        interval_value: int | None = None,
        interval_unit: IntervalUnit | None = None,
        custom_schedule: str | None = None,
        config: dict[str, Any] | None = None,
        entity_id: str | None = None,
        entity_type: str | None = None,
        task_id: str | None = None,
    ) -> ScheduledTaskModel:
        """Create a new scheduled task in ``pending`` state.

        Args:
            task_type: Automation kind
            scheduled_for: The next (or only) due time
            interval_type: Recurrence mode
            interval_value: Number of interval units between runs
            interval_unit: Unit of interval_value
            custom_schedule: Cron expression for custom recurrence
            config: Serialized task config
            entity_id: Optional back-reference to a domain object
            entity_type: Type of the referenced domain object
            task_id: Optional specific task ID

        Returns:
            The created ScheduledTaskModel
        """
        model = ScheduledTaskModel(
            task_type=task_type,
            status=ScheduledTaskStatus.PENDING,
            scheduled_for=scheduled_for,
            interval_type=interval_type,
            interval_value=interval_value,
            interval_unit=interval_unit,
            custom_schedule=custom_schedule,
            config=config or {},
            entity_id=entity_id,
            entity_type=entity_type,
            run_count=0,
        )
        if task_id:
            model.id = task_id

        self.session.add(model)
        await self.session.flush()
        return model

    async def get(self, task_id: str) -> ScheduledTaskModel | None:
        result = await self.session.execute(
            select(ScheduledTaskModel).where(ScheduledTaskModel.id == task_id)
        )
        return result.scalar_one_or_none()

    async def list_filtered(self, filters: ScheduledTaskFilter) -> list[ScheduledTaskModel]:
        """List scheduled tasks matching a filter, earliest due first."""
        query = select(ScheduledTaskModel)
        if filters.status is not None:
            query = query.where(ScheduledTaskModel.status == filters.status)
        if filters.task_type is not None:
            query = query.where(ScheduledTaskModel.task_type == filters.task_type)
        if filters.entity_type is not None:
            query = query.where(ScheduledTaskModel.entity_type == filters.entity_type)
        if filters.entity_id is not None:
            query = query.where(ScheduledTaskModel.entity_id == filters.entity_id)
        if filters.from_date is not None:
            query = query.where(ScheduledTaskModel.scheduled_for >= filters.from_date)
        if filters.to_date is not None:
            query = query.where(ScheduledTaskModel.scheduled_for <= filters.to_date)

        result = await self.session.execute(
            query.order_by(
                ScheduledTaskModel.scheduled_for.asc(), ScheduledTaskModel.id.asc()
            )
            .limit(filters.limit)
            .offset(filters.offset)
        )
        return list(result.scalars().all())

    async def list_due(self, now: datetime) -> list[ScheduledTaskModel]:
        """Get pending tasks due at or before ``now``.

        Ordered by scheduled_for, ties broken by id so the order is stable
        across calls.
        """
        result = await self.session.execute(
            select(ScheduledTaskModel)
            .where(ScheduledTaskModel.status == ScheduledTaskStatus.PENDING)
            .where(ScheduledTaskModel.scheduled_for <= now)
            .order_by(
                ScheduledTaskModel.scheduled_for.asc(), ScheduledTaskModel.id.asc()
            )
        )
        return list(result.scalars().all())

    async def transition(
        self,
        task_id: str,
        expected: ScheduledTaskStatus | Sequence[ScheduledTaskStatus],
        **values: Any,
    ) -> ScheduledTaskModel | None:
        """Conditionally update a task that is still in an expected status.

        The status check and the write happen in one statement, so of two
        racing transitions from the same status only one succeeds.

        Args:
            task_id: The task ID to update
            expected: Status (or statuses) the task must currently have
            **values: Columns to set

        Returns:
            Updated ScheduledTaskModel, or None if the task is missing or
            no longer in an expected status
        """
        if isinstance(expected, ScheduledTaskStatus):
            expected = (expected,)

        values["updated_at"] = datetime.now(timezone.utc)

        result = await self.session.execute(
            update(ScheduledTaskModel)
            .where(ScheduledTaskModel.id == task_id)
            .where(ScheduledTaskModel.status.in_(list(expected)))
            .values(**values)
            .returning(ScheduledTaskModel)
        )
        return result.scalar_one_or_none()

    async def delete(self, task_id: str) -> bool:
        """Delete a scheduled task.

        Returns:
            True if a row was deleted, False if the task did not exist
        """
        result = await self.session.execute(
            delete(ScheduledTaskModel).where(ScheduledTaskModel.id == task_id)
        )
        return (cast(CursorResult[Any], result).rowcount or 0) > 0


class SchedulerLogRepository:
    """Repository for the scheduled task audit trail."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        task_id: str,
        task_type: str,
        action: str,
        status: str,
        details: dict[str, Any] | None = None,
    ) -> SchedulerLogModel:
        model = SchedulerLogModel(
            task_id=task_id,
            task_type=task_type,
            action=action,
            status=status,
            details=details,
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def list_for_task(
        self, task_id: str, limit: int = 100
    ) -> list[SchedulerLogModel]:
        """Get log entries for a task, oldest first."""
        result = await self.session.execute(
            select(SchedulerLogModel)
            .where(SchedulerLogModel.task_id == task_id)
            .order_by(SchedulerLogModel.log_id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())
