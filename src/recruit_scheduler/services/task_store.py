"""Persistence of scheduled tasks, user tasks and the scheduler audit trail."""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from recruit_scheduler.db.models import (
    ScheduledTaskModel,
    SchedulerLogModel,
    TaskModel,
    parse_record_id,
)
from recruit_scheduler.db.repositories import (
    ScheduledTaskRepository,
    SchedulerLogRepository,
    TaskRepository,
)
from recruit_scheduler.db.runner import SessionRunner
from recruit_scheduler.errors import NotFoundError, ValidationError
from recruit_scheduler.models.scheduled_task import (
    IntervalType,
    IntervalUnit,
    ScheduledTask,
    ScheduledTaskFilter,
    ScheduledTaskStatus,
    ScheduledTaskType,
    SchedulerLogEntry,
    TaskConfig,
    dump_task_config,
    ensure_utc,
    ensure_utc_optional,
    parse_task_config,
)
from recruit_scheduler.models.task import (
    TASK_UPDATABLE_FIELDS,
    RelatedEntityType,
    Task,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
)

logger = logging.getLogger(__name__)

# Enum-typed task columns and the enum each accepts
_TASK_ENUM_FIELDS: dict[str, type] = {
    "priority": TaskPriority,
    "status": TaskStatus,
    "task_type": TaskType,
    "related_entity_type": RelatedEntityType,
}


def scheduled_model_to_dataclass(model: ScheduledTaskModel) -> ScheduledTask:
    """Convert a database model to a dataclass."""
    return ScheduledTask(
        id=model.id,
        task_type=model.task_type,
        status=model.status,
        scheduled_for=ensure_utc(model.scheduled_for),
        interval_type=model.interval_type,
        interval_value=model.interval_value,
        interval_unit=model.interval_unit,
        custom_schedule=model.custom_schedule,
        config=parse_task_config(model.task_type, model.config),
        entity_id=model.entity_id,
        entity_type=model.entity_type,
        created_at=ensure_utc(model.created_at),
        updated_at=ensure_utc(model.updated_at),
        last_run_at=ensure_utc_optional(model.last_run_at),
        run_count=model.run_count,
        result=model.result,
        error=model.error,
    )


def task_model_to_dataclass(model: TaskModel) -> Task:
    """Convert a database model to a dataclass."""
    return Task(
        id=model.id,
        title=model.title,
        description=model.description,
        due_date=ensure_utc(model.due_date),
        priority=model.priority,
        status=model.status,
        task_type=model.task_type,
        assigned_to=model.assigned_to,
        related_entity_type=model.related_entity_type,
        related_entity_id=model.related_entity_id,
        is_automated=model.is_automated,
        reminder_sent=model.reminder_sent,
        created_at=ensure_utc(model.created_at),
        updated_at=ensure_utc(model.updated_at),
        completed_at=ensure_utc_optional(model.completed_at),
    )


def _log_model_to_entry(model: SchedulerLogModel) -> SchedulerLogEntry:
    return SchedulerLogEntry(
        id=model.log_id,
        task_id=model.task_id,
        task_type=model.task_type,
        action=model.action,
        status=model.status,
        details=model.details,
        created_at=ensure_utc(model.created_at),
    )


def _coerce_task_values(values: dict[str, Any]) -> dict[str, Any]:
    """Turn raw enum strings into enum members and validate datetimes."""
    coerced = dict(values)
    for name, enum_cls in _TASK_ENUM_FIELDS.items():
        value = coerced.get(name)
        if value is None or isinstance(value, enum_cls):
            continue
        try:
            coerced[name] = enum_cls(value)
        except ValueError:
            raise ValidationError(f"invalid {name}: {value!r}") from None
    for name in ("due_date", "completed_at"):
        value = coerced.get(name)
        if value is None:
            continue
        if not isinstance(value, datetime):
            raise ValidationError(f"{name} must be a timestamp")
        coerced[name] = ensure_utc(value)
    return coerced


class TaskStore:
    """Owns ScheduledTask and Task persistence.

    Every public call runs in its own session through the SessionRunner, so
    each write is atomic per record and bounded by the store timeout.
    """

    def __init__(self, runner: SessionRunner) -> None:
        self._runner = runner

    # -- Scheduled tasks ---------------------------------------------------

    async def create_scheduled_task(
        self,
        task_type: ScheduledTaskType,
        scheduled_for: datetime,
        interval_type: IntervalType = IntervalType.NONE,
        interval_value: int | None = None,
        interval_unit: IntervalUnit | None = None,
        custom_schedule: str | None = None,
        config: TaskConfig | None = None,
        entity_id: str | None = None,
        entity_type: str | None = None,
    ) -> ScheduledTask:
        raw_config = dump_task_config(config) if config is not None else None

        async def op(session: AsyncSession) -> ScheduledTask:
            model = await ScheduledTaskRepository(session).create(
                task_type=task_type,
                scheduled_for=ensure_utc(scheduled_for),
                interval_type=interval_type,
                interval_value=interval_value,
                interval_unit=interval_unit,
                custom_schedule=custom_schedule,
                config=raw_config or {"kind": task_type.value},
                entity_id=entity_id,
                entity_type=entity_type,
            )
            await SchedulerLogRepository(session).add(
                task_id=model.id,
                task_type=task_type.value,
                action="create",
                status=ScheduledTaskStatus.PENDING.value,
                details={"scheduled_for": ensure_utc(scheduled_for).isoformat()},
            )
            return scheduled_model_to_dataclass(model)

        task = await self._runner.run(op, "create scheduled task")
        logger.info(
            f"Created scheduled task {task.id} ({task.task_type.value}) "
            f"for {task.scheduled_for.isoformat()}"
        )
        return task

    async def get_scheduled_task(self, task_id: str) -> ScheduledTask:
        task_id = parse_record_id(task_id, "scheduled task")

        async def op(session: AsyncSession) -> ScheduledTask:
            model = await ScheduledTaskRepository(session).get(task_id)
            if model is None:
                raise NotFoundError(f"scheduled task {task_id} not found")
            return scheduled_model_to_dataclass(model)

        return await self._runner.run(op, "get scheduled task")

    async def list_scheduled_tasks(
        self, filters: ScheduledTaskFilter | None = None
    ) -> list[ScheduledTask]:
        filters = filters or ScheduledTaskFilter()

        async def op(session: AsyncSession) -> list[ScheduledTask]:
            models = await ScheduledTaskRepository(session).list_filtered(filters)
            return [scheduled_model_to_dataclass(m) for m in models]

        return await self._runner.run(op, "list scheduled tasks")

    async def list_due_scheduled_tasks(self, now: datetime) -> list[ScheduledTask]:
        async def op(session: AsyncSession) -> list[ScheduledTask]:
            models = await ScheduledTaskRepository(session).list_due(ensure_utc(now))
            return [scheduled_model_to_dataclass(m) for m in models]

        return await self._runner.run(op, "list due scheduled tasks")

    async def delete_scheduled_task(self, task_id: str) -> bool:
        """Delete a scheduled task; raises NotFoundError if it does not exist."""
        task_id = parse_record_id(task_id, "scheduled task")

        async def op(session: AsyncSession) -> bool:
            deleted = await ScheduledTaskRepository(session).delete(task_id)
            if not deleted:
                raise NotFoundError(f"scheduled task {task_id} not found")
            return True

        return await self._runner.run(op, "delete scheduled task")

    async def transition_scheduled_task(
        self,
        task_id: str,
        expected: ScheduledTaskStatus | Sequence[ScheduledTaskStatus],
        action: str,
        details: dict[str, Any] | None = None,
        **values: Any,
    ) -> ScheduledTask | None:
        """Apply a conditional state change and record it in the audit trail.

        Returns:
            The updated task, or None when the task is missing or not in an
            expected status (nothing is written in that case)
        """
        task_id = parse_record_id(task_id, "scheduled task")

        async def op(session: AsyncSession) -> ScheduledTask | None:
            model = await ScheduledTaskRepository(session).transition(
                task_id, expected, **values
            )
            if model is None:
                return None
            await SchedulerLogRepository(session).add(
                task_id=model.id,
                task_type=model.task_type.value,
                action=action,
                status=model.status.value,
                details=details,
            )
            return scheduled_model_to_dataclass(model)

        return await self._runner.run(op, f"{action} scheduled task")

    async def log_scheduler_action(
        self,
        task_id: str,
        task_type: str,
        action: str,
        status: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append an audit entry outside of a state transition."""

        async def op(session: AsyncSession) -> None:
            await SchedulerLogRepository(session).add(
                task_id=task_id,
                task_type=task_type,
                action=action,
                status=status,
                details=details,
            )

        await self._runner.run(op, f"log {action} of scheduled task")

    async def list_scheduler_logs(self, task_id: str) -> list[SchedulerLogEntry]:
        task_id = parse_record_id(task_id, "scheduled task")

        async def op(session: AsyncSession) -> list[SchedulerLogEntry]:
            models = await SchedulerLogRepository(session).list_for_task(task_id)
            return [_log_model_to_entry(m) for m in models]

        return await self._runner.run(op, "list scheduler logs")

    # -- Tasks -------------------------------------------------------------

    async def create_task(
        self,
        title: str,
        due_date: datetime,
        priority: TaskPriority | str,
        task_type: TaskType | str,
        description: str = "",
        status: TaskStatus | str = TaskStatus.OPEN,
        assigned_to: str | None = None,
        related_entity_type: RelatedEntityType | str | None = None,
        related_entity_id: str | None = None,
        is_automated: bool = False,
        reminder_sent: bool = False,
        completed_at: datetime | None = None,
    ) -> Task:
        """Create a task, keeping completed_at consistent with status."""
        if not title or not title.strip():
            raise ValidationError("title is required")
        if due_date is None:
            raise ValidationError("due_date is required")

        values = _coerce_task_values(
            {
                "title": title,
                "due_date": due_date,
                "priority": priority,
                "task_type": task_type,
                "description": description or "",
                "status": status,
                "assigned_to": assigned_to,
                "related_entity_type": related_entity_type,
                "related_entity_id": related_entity_id,
                "is_automated": is_automated,
                "reminder_sent": reminder_sent,
                "completed_at": completed_at,
            }
        )
        if values["status"] == TaskStatus.COMPLETED:
            values["completed_at"] = values["completed_at"] or datetime.now(timezone.utc)
        elif values["completed_at"] is not None:
            raise ValidationError("completed_at is only allowed for completed tasks")

        async def op(session: AsyncSession) -> Task:
            model = await TaskRepository(session).create(**values)
            return task_model_to_dataclass(model)

        task = await self._runner.run(op, "create task")
        logger.debug(f"Created task {task.id} ({task.task_type.value})")
        return task

    async def get_task(self, task_id: str) -> Task:
        task_id = parse_record_id(task_id, "task")

        async def op(session: AsyncSession) -> Task:
            model = await TaskRepository(session).get(task_id)
            if model is None:
                raise NotFoundError(f"task {task_id} not found")
            return task_model_to_dataclass(model)

        return await self._runner.run(op, "get task")

    async def list_tasks(self, filters: TaskFilter | None = None) -> list[Task]:
        filters = filters or TaskFilter()

        async def op(session: AsyncSession) -> list[Task]:
            models = await TaskRepository(session).list_filtered(filters)
            return [task_model_to_dataclass(m) for m in models]

        return await self._runner.run(op, "list tasks")

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        """Apply a partial update restricted to the updatable field allow-list.

        Moving a task to ``completed`` stamps completed_at unless one is
        given; moving it out of ``completed`` clears it.
        """
        unknown = set(changes) - TASK_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"fields not updatable: {', '.join(sorted(unknown))}"
            )
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationError("title must not be empty")
        for required in ("due_date", "priority", "status", "reminder_sent"):
            if required in changes and changes[required] is None:
                raise ValidationError(f"{required} must not be null")
        task_id = parse_record_id(task_id, "task")

        coerced = _coerce_task_values(changes)
        if "description" in coerced and coerced["description"] is None:
            # Clearing the description stores an empty one, as on create
            coerced["description"] = ""

        async def op(session: AsyncSession) -> Task:
            repo = TaskRepository(session)
            current = await repo.get(task_id)
            if current is None:
                raise NotFoundError(f"task {task_id} not found")

            values = dict(coerced)
            new_status = values.get("status", current.status)
            if new_status == TaskStatus.COMPLETED:
                if values.get("completed_at") is None:
                    if current.status != TaskStatus.COMPLETED or current.completed_at is None:
                        values["completed_at"] = datetime.now(timezone.utc)
                    else:
                        values.pop("completed_at", None)
            else:
                if values.get("completed_at") is not None:
                    raise ValidationError(
                        "completed_at is only allowed for completed tasks"
                    )
                values["completed_at"] = None

            model = await repo.update(task_id, **values)
            if model is None:
                raise NotFoundError(f"task {task_id} not found")
            return task_model_to_dataclass(model)

        return await self._runner.run(op, "update task")

    async def delete_task(self, task_id: str) -> bool:
        task_id = parse_record_id(task_id, "task")

        async def op(session: AsyncSession) -> bool:
            if not await TaskRepository(session).delete(task_id):
                raise NotFoundError(f"task {task_id} not found")
            return True

        return await self._runner.run(op, "delete task")

    async def find_open_task(
        self,
        task_type: TaskType,
        related_entity_type: RelatedEntityType,
        related_entity_id: str,
    ) -> Task | None:
        async def op(session: AsyncSession) -> Task | None:
            model = await TaskRepository(session).find_open(
                task_type, related_entity_type, related_entity_id
            )
            return task_model_to_dataclass(model) if model else None

        return await self._runner.run(op, "find open task")

    async def list_reminder_candidates(self, until: datetime) -> list[Task]:
        async def op(session: AsyncSession) -> list[Task]:
            models = await TaskRepository(session).list_reminder_candidates(
                ensure_utc(until)
            )
            return [task_model_to_dataclass(m) for m in models]

        return await self._runner.run(op, "list reminder candidates")

    async def mark_reminder_sent(self, task_id: str) -> bool:
        async def op(session: AsyncSession) -> bool:
            return await TaskRepository(session).mark_reminder_sent(task_id)

        return await self._runner.run(op, "mark reminder sent")
