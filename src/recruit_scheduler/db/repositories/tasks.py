"""Task repository for database operations."""

from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import CursorResult, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_scheduler.db.models import TaskModel
from recruit_scheduler.models.task import (
    OPEN_TASK_STATUSES,
    RelatedEntityType,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
)


class TaskRepository:
    """Repository for task database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        title: str,
        due_date: datetime,
        priority: TaskPriority,
        task_type: TaskType,
        description: str = "",
        status: TaskStatus = TaskStatus.OPEN,
        assigned_to: str | None = None,
        related_entity_type: RelatedEntityType | None = None,
        related_entity_id: str | None = None,
        is_automated: bool = False,
        reminder_sent: bool = False,
        completed_at: datetime | None = None,
        task_id: str | None = None,
    ) -> TaskModel:
        """Create a new task.

        Args:
            title: Short task title
            due_date: When the task is due
            priority: high, medium or low
            task_type: Kind of work item
            description: Longer description
            status: Initial status (defaults to open)
            assigned_to: Optional user the task is assigned to
            related_entity_type: Type of the domain object the task concerns
            related_entity_id: ID of the domain object the task concerns
            is_automated: Whether an automation rule created the task
            reminder_sent: Whether the due reminder was already sent
            completed_at: Completion time, only for completed tasks
            task_id: Optional specific task ID

        Returns:
            The created TaskModel
        """
        model = TaskModel(
            title=title,
            description=description,
            due_date=due_date,
            priority=priority,
            status=status,
            task_type=task_type,
            assigned_to=assigned_to,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            is_automated=is_automated,
            reminder_sent=reminder_sent,
            completed_at=completed_at,
        )
        if task_id:
            model.id = task_id

        self.session.add(model)
        await self.session.flush()
        return model

    async def get(self, task_id: str) -> TaskModel | None:
        result = await self.session.execute(
            select(TaskModel).where(TaskModel.id == task_id)
        )
        return result.scalar_one_or_none()

    async def list_filtered(self, filters: TaskFilter) -> list[TaskModel]:
        """List tasks matching a filter, sorted by due date ascending."""
        query = select(TaskModel)
        if filters.status is not None:
            query = query.where(TaskModel.status == filters.status)
        if filters.priority is not None:
            query = query.where(TaskModel.priority == filters.priority)
        if filters.task_type is not None:
            query = query.where(TaskModel.task_type == filters.task_type)
        if filters.entity_type is not None:
            query = query.where(TaskModel.related_entity_type == filters.entity_type)
        if filters.entity_id is not None:
            query = query.where(TaskModel.related_entity_id == filters.entity_id)
        if filters.assigned_to is not None:
            query = query.where(TaskModel.assigned_to == filters.assigned_to)
        if filters.automated is not None:
            query = query.where(TaskModel.is_automated.is_(filters.automated))

        result = await self.session.execute(
            query.order_by(TaskModel.due_date.asc(), TaskModel.id.asc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        return list(result.scalars().all())

    async def update(self, task_id: str, **values: Any) -> TaskModel | None:
        """Update task columns.

        None values are written as-is so callers can clear nullable columns;
        callers are responsible for passing only the columns they mean to set.

        Returns:
            Updated TaskModel, or None if the task does not exist
        """
        if not values:
            return await self.get(task_id)

        values["updated_at"] = datetime.now(timezone.utc)

        result = await self.session.execute(
            update(TaskModel)
            .where(TaskModel.id == task_id)
            .values(**values)
            .returning(TaskModel)
        )
        return result.scalar_one_or_none()

    async def delete(self, task_id: str) -> bool:
        result = await self.session.execute(
            delete(TaskModel).where(TaskModel.id == task_id)
        )
        return (cast(CursorResult[Any], result).rowcount or 0) > 0

    async def find_open(
        self,
        task_type: TaskType,
        related_entity_type: RelatedEntityType,
        related_entity_id: str,
    ) -> TaskModel | None:
        """Find an open or in-progress task for the same entity and task type."""
        result = await self.session.execute(
            select(TaskModel)
            .where(TaskModel.task_type == task_type)
            .where(TaskModel.related_entity_type == related_entity_type)
            .where(TaskModel.related_entity_id == related_entity_id)
            .where(TaskModel.status.in_(list(OPEN_TASK_STATUSES)))
            .order_by(TaskModel.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_reminder_candidates(self, until: datetime) -> list[TaskModel]:
        """Get unfinished tasks due by ``until`` that have not been reminded yet."""
        result = await self.session.execute(
            select(TaskModel)
            .where(TaskModel.status.in_(list(OPEN_TASK_STATUSES)))
            .where(TaskModel.reminder_sent.is_(False))
            .where(TaskModel.due_date <= until)
            .order_by(TaskModel.due_date.asc(), TaskModel.id.asc())
        )
        return list(result.scalars().all())

    async def mark_reminder_sent(self, task_id: str) -> bool:
        """Flip reminder_sent from false to true.

        Returns:
            True if this call flipped the flag, False if it was already set
            or the task does not exist
        """
        result = await self.session.execute(
            update(TaskModel)
            .where(TaskModel.id == task_id)
            .where(TaskModel.reminder_sent.is_(False))
            .values(reminder_sent=True, updated_at=datetime.now(timezone.utc))
        )
        return (cast(CursorResult[Any], result).rowcount or 0) > 0
