"""Scheduler service owning the lifecycle of scheduled tasks."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, NoReturn

from croniter import croniter
from pydantic import ValidationError as PydanticValidationError

from recruit_scheduler.errors import ConflictError, ValidationError
from recruit_scheduler.models.scheduled_task import (
    IntervalType,
    IntervalUnit,
    ScheduledTask,
    ScheduledTaskFilter,
    ScheduledTaskStatus,
    ScheduledTaskType,
    SchedulerLogEntry,
    TaskConfig,
    ensure_utc,
    parse_task_config,
)
from recruit_scheduler.services.task_store import TaskStore

logger = logging.getLogger(__name__)

_UNIT_DELTAS: dict[IntervalUnit, timedelta] = {
    IntervalUnit.MINUTES: timedelta(minutes=1),
    IntervalUnit.HOURS: timedelta(hours=1),
    IntervalUnit.DAYS: timedelta(days=1),
    IntervalUnit.WEEKS: timedelta(weeks=1),
}


def next_run_after(task: ScheduledTask) -> datetime | None:
    """Compute the next due time of a recurring task.

    The next time is derived from the previous ``scheduled_for``, never from
    the current time, so a late run does not shift later occurrences. A run
    that was late by more than one period leaves the next occurrence in the
    past and the task is picked up again on the next pass.

    Returns:
        The next due time, or None for non-recurring tasks
    """
    if task.interval_type == IntervalType.INTERVAL:
        if not task.interval_value or task.interval_unit is None:
            return None
        return task.scheduled_for + task.interval_value * _UNIT_DELTAS[task.interval_unit]
    if task.interval_type == IntervalType.CUSTOM:
        if not task.custom_schedule:
            return None
        return ensure_utc(
            croniter(task.custom_schedule, task.scheduled_for).get_next(datetime)
        )
    return None


def _coerce_enum(enum_cls: type, value: Any, name: str) -> Any:
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"invalid {name}: {value!r}") from None


class SchedulerService:
    """Manages scheduled tasks and their state machine.

    pending -> running -> completed | failed, and pending -> cancelled.
    A recurring task that completes goes back to pending with scheduled_for
    advanced by one period; the same row is reused for every occurrence.
    """

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    async def create_task(
        self,
        task_type: ScheduledTaskType | str | None,
        scheduled_for: datetime | None,
        interval_type: IntervalType | str | None = None,
        interval_value: int | None = None,
        interval_unit: IntervalUnit | str | None = None,
        custom_schedule: str | None = None,
        config: TaskConfig | dict[str, Any] | None = None,
        entity_id: str | None = None,
        entity_type: str | None = None,
    ) -> ScheduledTask:
        """Validate and create a scheduled task in ``pending`` state.

        Raises:
            ValidationError: if task_type or scheduled_for is missing, the
                recurrence fields are inconsistent, or config does not fit
                the task type
        """
        if task_type is None:
            raise ValidationError("taskType is required")
        if scheduled_for is None:
            raise ValidationError("scheduledFor is required")

        task_type = _coerce_enum(ScheduledTaskType, task_type, "taskType")
        interval_type = _coerce_enum(
            IntervalType, interval_type or IntervalType.NONE, "intervalType"
        )
        interval_unit = _coerce_enum(IntervalUnit, interval_unit, "intervalUnit")

        if interval_type == IntervalType.INTERVAL:
            if interval_value is None or interval_value <= 0:
                raise ValidationError("intervalValue must be a positive integer")
            if interval_unit is None:
                raise ValidationError("intervalUnit is required for interval schedules")
            custom_schedule = None
        elif interval_type == IntervalType.CUSTOM:
            if not custom_schedule or not croniter.is_valid(custom_schedule):
                raise ValidationError(
                    f"customSchedule is not a valid cron expression: {custom_schedule!r}"
                )
            interval_value = None
            interval_unit = None
        else:
            interval_value = None
            interval_unit = None
            custom_schedule = None

        if config is None or isinstance(config, dict):
            try:
                config = parse_task_config(task_type, config)
            except (PydanticValidationError, ValueError) as e:
                raise ValidationError(f"invalid config: {e}") from None
        elif config.kind != task_type.value:
            raise ValidationError(
                f"config kind '{config.kind}' does not match task type '{task_type.value}'"
            )

        return await self._store.create_scheduled_task(
            task_type=task_type,
            scheduled_for=ensure_utc(scheduled_for),
            interval_type=interval_type,
            interval_value=interval_value,
            interval_unit=interval_unit,
            custom_schedule=custom_schedule,
            config=config,
            entity_id=entity_id,
            entity_type=entity_type,
        )

    async def get_task(self, task_id: str) -> ScheduledTask:
        return await self._store.get_scheduled_task(task_id)

    async def list_tasks(
        self, filters: ScheduledTaskFilter | None = None
    ) -> list[ScheduledTask]:
        return await self._store.list_scheduled_tasks(filters)

    async def delete_task(self, task_id: str) -> bool:
        task = await self._store.get_scheduled_task(task_id)
        deleted = await self._store.delete_scheduled_task(task_id)
        # The audit trail outlives the task row
        await self._store.log_scheduler_action(
            task_id, task.task_type.value, action="delete", status=task.status.value
        )
        logger.info(f"Deleted scheduled task {task_id}")
        return deleted

    async def get_due_tasks(self, now: datetime | None = None) -> list[ScheduledTask]:
        """Get pending tasks with scheduled_for <= now, earliest first."""
        return await self._store.list_due_scheduled_tasks(now or datetime.now(timezone.utc))

    async def get_logs(self, task_id: str) -> list[SchedulerLogEntry]:
        await self._store.get_scheduled_task(task_id)
        return await self._store.list_scheduler_logs(task_id)

    async def cancel_task(self, task_id: str) -> bool:
        """Cancel a task that has not started yet.

        Raises:
            NotFoundError: if the task does not exist
            ConflictError: if the task already left ``pending``
        """
        updated = await self._store.transition_scheduled_task(
            task_id,
            ScheduledTaskStatus.PENDING,
            action="cancel",
            status=ScheduledTaskStatus.CANCELLED,
        )
        if updated is None:
            await self._reject(task_id, "cancel")
        logger.info(f"Cancelled scheduled task {task_id}")
        return True

    async def reschedule_task(self, task_id: str, scheduled_for: datetime) -> ScheduledTask:
        """Move the due time of a pending task."""
        scheduled_for = ensure_utc(scheduled_for)
        updated = await self._store.transition_scheduled_task(
            task_id,
            ScheduledTaskStatus.PENDING,
            action="reschedule",
            details={"scheduled_for": scheduled_for.isoformat()},
            scheduled_for=scheduled_for,
        )
        if updated is None:
            await self._reject(task_id, "reschedule")
        return updated

    async def start_task(self, task_id: str, now: datetime | None = None) -> ScheduledTask:
        """Move a pending task to running."""
        now = now or datetime.now(timezone.utc)
        updated = await self._store.transition_scheduled_task(
            task_id,
            ScheduledTaskStatus.PENDING,
            action="start",
            status=ScheduledTaskStatus.RUNNING,
            last_run_at=now,
        )
        if updated is None:
            await self._reject(task_id, "start")
        return updated

    async def complete_task(
        self,
        task_id: str,
        result: dict[str, Any] | None = None,
    ) -> ScheduledTask:
        """Finish a running task.

        Non-recurring tasks become ``completed``. Recurring tasks return to
        ``pending`` with scheduled_for advanced by one period.
        """
        task = await self._store.get_scheduled_task(task_id)
        if task.status != ScheduledTaskStatus.RUNNING:
            raise ConflictError(
                f"cannot complete scheduled task {task_id}: status is {task.status.value}"
            )

        next_run = next_run_after(task)
        values: dict[str, Any] = {
            "result": result,
            "error": None,
            "run_count": task.run_count + 1,
        }
        details: dict[str, Any] = {}
        if next_run is not None:
            values["status"] = ScheduledTaskStatus.PENDING
            values["scheduled_for"] = next_run
            details["next_scheduled_for"] = next_run.isoformat()
        else:
            values["status"] = ScheduledTaskStatus.COMPLETED

        updated = await self._store.transition_scheduled_task(
            task_id,
            ScheduledTaskStatus.RUNNING,
            action="complete",
            details=details or None,
            **values,
        )
        if updated is None:
            await self._reject(task_id, "complete")

        if next_run is not None:
            logger.info(
                f"Scheduled task {task_id} completed, next run at {next_run.isoformat()}"
            )
        else:
            logger.info(f"Scheduled task {task_id} completed")
        return updated

    async def fail_task(self, task_id: str, error: str) -> ScheduledTask:
        """Mark a running task as failed. Failed tasks are not retried here."""
        task = await self._store.get_scheduled_task(task_id)
        updated = await self._store.transition_scheduled_task(
            task_id,
            ScheduledTaskStatus.RUNNING,
            action="fail",
            details={"error": error},
            status=ScheduledTaskStatus.FAILED,
            error=error,
            run_count=task.run_count + 1,
        )
        if updated is None:
            await self._reject(task_id, "fail")
        logger.warning(f"Scheduled task {task_id} failed: {error}")
        return updated

    async def reset_task(self, task_id: str) -> ScheduledTask:
        """Return a running or failed task to ``pending`` at its current due time.

        Recovers tasks whose outcome could not be recorded, which otherwise
        stay ``running`` and stop recurring. The rule guards against duplicate
        open tasks, so re-running an automation task is safe.

        Raises:
            NotFoundError: if the task does not exist
            ConflictError: if the task is pending, completed or cancelled
        """
        updated = await self._store.transition_scheduled_task(
            task_id,
            (ScheduledTaskStatus.RUNNING, ScheduledTaskStatus.FAILED),
            action="reset",
            status=ScheduledTaskStatus.PENDING,
            error=None,
        )
        if updated is None:
            await self._reject(task_id, "reset")
        logger.info(f"Reset scheduled task {task_id} to pending")
        return updated

    async def _reject(self, task_id: str, action: str) -> NoReturn:
        """Raise the error explaining why a conditional transition matched nothing."""
        current = await self._store.get_scheduled_task(task_id)
        if action == "cancel" and current.status == ScheduledTaskStatus.RUNNING:
            raise ConflictError(f"scheduled task {task_id} has already started")
        raise ConflictError(
            f"cannot {action} scheduled task {task_id}: status is {current.status.value}"
        )
