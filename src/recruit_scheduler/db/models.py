"""SQLAlchemy ORM models for the recruitment scheduler."""

import uuid
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from recruit_scheduler.errors import NotFoundError
from recruit_scheduler.models.automation import AutomationRule
from recruit_scheduler.models.notification import NotificationImportance
from recruit_scheduler.models.scheduled_task import (
    IntervalType,
    IntervalUnit,
    ScheduledTaskStatus,
    ScheduledTaskType,
)
from recruit_scheduler.models.task import (
    RelatedEntityType,
    TaskPriority,
    TaskStatus,
    TaskType,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_record_id(record_id: str, what: str) -> str:
    """Return the canonical form of a UUID primary key.

    Ids that are not UUIDs cannot match any row, and Postgres rejects them
    as bind parameters, so they are reported as missing up front.

    Raises:
        NotFoundError: if record_id is not a UUID
    """
    try:
        return str(uuid.UUID(str(record_id)))
    except ValueError:
        raise NotFoundError(f"{what} {record_id} not found") from None


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ScheduledTaskModel(Base):
    """System automation job with a due time and optional recurrence."""

    __tablename__ = "scheduled_tasks"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    task_type: Mapped[ScheduledTaskType] = mapped_column(
        Enum(ScheduledTaskType, name="scheduled_task_type", create_constraint=True),
        nullable=False,
    )
    status: Mapped[ScheduledTaskStatus] = mapped_column(
        Enum(ScheduledTaskStatus, name="scheduled_task_status", create_constraint=True),
        nullable=False,
        default=ScheduledTaskStatus.PENDING,
    )
    scheduled_for: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    interval_type: Mapped[IntervalType] = mapped_column(
        Enum(IntervalType, name="interval_type", create_constraint=True),
        nullable=False,
        default=IntervalType.NONE,
    )
    interval_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    interval_unit: Mapped[IntervalUnit | None] = mapped_column(
        Enum(IntervalUnit, name="interval_unit", create_constraint=True),
        nullable=True,
    )
    custom_schedule: Mapped[str | None] = mapped_column(String(255), nullable=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    run_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )
    last_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_scheduled_tasks_status_scheduled_for", "status", "scheduled_for"),
        Index("ix_scheduled_tasks_entity", "entity_type", "entity_id"),
    )


class TaskModel(Base):
    """Human-actionable to-do, created manually or by an automation rule."""

    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    priority: Mapped[TaskPriority] = mapped_column(
        Enum(TaskPriority, name="task_priority", create_constraint=True),
        nullable=False,
        default=TaskPriority.MEDIUM,
    )
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, name="task_status", create_constraint=True),
        nullable=False,
        default=TaskStatus.OPEN,
    )
    task_type: Mapped[TaskType] = mapped_column(
        Enum(TaskType, name="task_type", create_constraint=True),
        nullable=False,
    )
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    related_entity_type: Mapped[RelatedEntityType | None] = mapped_column(
        Enum(RelatedEntityType, name="related_entity_type", create_constraint=True),
        nullable=True,
    )
    related_entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_automated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index(
            "ix_tasks_related_entity",
            "task_type",
            "related_entity_type",
            "related_entity_id",
        ),
        Index("ix_tasks_status_due_date", "status", "due_date"),
    )


class NotificationModel(Base):
    """User-facing notification with read state."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    action: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sender_id: Mapped[str] = mapped_column(
        String(255), nullable=False, default="system"
    )
    importance: Mapped[NotificationImportance] = mapped_column(
        Enum(NotificationImportance, name="notification_importance", create_constraint=True),
        nullable=False,
        default=NotificationImportance.NORMAL,
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (Index("ix_notifications_user_read", "user_id", "read"),)


class AutomationRuleModel(Base):
    """Persisted configuration and last-run watermark of one automation rule."""

    __tablename__ = "automation_rules"

    rule: Mapped[AutomationRule] = mapped_column(
        Enum(AutomationRule, name="automation_rule", create_constraint=True),
        primary_key=True,
    )
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    days_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    notify: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )


class SchedulerLogModel(Base):
    """Audit trail of scheduled task state transitions."""

    __tablename__ = "scheduler_logs"

    log_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    # No foreign key: log entries outlive deleted tasks
    task_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    task_type: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_scheduler_logs_task_id", "task_id"),
        {"sqlite_autoincrement": True},
    )
