"""API request/response schemas for FastAPI endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from recruit_scheduler.models.automation import (
    AutomationRule,
    AutomationSummary,
    DueRunSummary,
    RuleSettings,
)
from recruit_scheduler.models.notification import Notification, NotificationImportance
from recruit_scheduler.models.scheduled_task import (
    IntervalType,
    IntervalUnit,
    ScheduledTask,
    ScheduledTaskType,
    SchedulerLogEntry,
    dump_task_config,
)
from recruit_scheduler.models.task import (
    RelatedEntityType,
    Task,
    TaskPriority,
    TaskStatus,
    TaskType,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class CamelModel(BaseModel):
    """Schema serialized with camelCase keys; snake_case is accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Scheduled task schemas
class ScheduledTaskCreate(CamelModel):
    # Optional here so a missing value is reported by the scheduler with a
    # field-specific message
    task_type: ScheduledTaskType | None = None
    scheduled_for: datetime | None = None
    interval_type: IntervalType | None = None
    interval_value: int | None = None
    interval_unit: IntervalUnit | None = None
    custom_schedule: str | None = None
    config: dict[str, Any] | None = None
    entity_id: str | None = None
    entity_type: str | None = None


class ScheduledTaskResponse(CamelModel):
    id: str
    task_type: str
    status: str
    scheduled_for: str
    interval_type: str
    interval_value: int | None
    interval_unit: str | None
    custom_schedule: str | None
    config: dict[str, Any]
    entity_id: str | None
    entity_type: str | None
    created_at: str
    updated_at: str
    last_run_at: str | None
    run_count: int
    result: dict[str, Any] | None
    error: str | None

    @classmethod
    def from_task(cls, task: ScheduledTask) -> "ScheduledTaskResponse":
        return cls(
            id=task.id,
            task_type=task.task_type.value,
            status=task.status.value,
            scheduled_for=task.scheduled_for.isoformat(),
            interval_type=task.interval_type.value,
            interval_value=task.interval_value,
            interval_unit=task.interval_unit.value if task.interval_unit else None,
            custom_schedule=task.custom_schedule,
            config=dump_task_config(task.config),
            entity_id=task.entity_id,
            entity_type=task.entity_type,
            created_at=task.created_at.isoformat(),
            updated_at=task.updated_at.isoformat(),
            last_run_at=_iso(task.last_run_at),
            run_count=task.run_count,
            result=task.result,
            error=task.error,
        )


class SchedulerLogResponse(CamelModel):
    id: int
    task_id: str
    task_type: str
    action: str
    status: str
    details: dict[str, Any] | None
    created_at: str

    @classmethod
    def from_entry(cls, entry: SchedulerLogEntry) -> "SchedulerLogResponse":
        return cls(
            id=entry.id,
            task_id=entry.task_id,
            task_type=entry.task_type,
            action=entry.action,
            status=entry.status,
            details=entry.details,
            created_at=entry.created_at.isoformat(),
        )


class DueRunResponse(CamelModel):
    started_at: str
    finished_at: str | None
    completed: list[str]
    failed: dict[str, str]
    skipped: list[str]
    error: str | None = None

    @classmethod
    def from_summary(cls, summary: DueRunSummary) -> "DueRunResponse":
        return cls(
            started_at=summary.started_at.isoformat(),
            finished_at=_iso(summary.finished_at),
            completed=summary.completed,
            failed=summary.failed,
            skipped=summary.skipped,
            error=summary.error,
        )


# Task schemas
class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    due_date: datetime
    priority: TaskPriority
    task_type: TaskType
    description: str = ""
    status: TaskStatus = TaskStatus.OPEN
    assigned_to: str | None = None
    related_entity_type: RelatedEntityType | None = None
    related_entity_id: str | None = None
    is_automated: bool = False
    reminder_sent: bool = False
    completed_at: datetime | None = None


class TaskUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    assigned_to: str | None = None
    reminder_sent: bool | None = None
    completed_at: datetime | None = None


class TaskResponse(BaseModel):
    id: str
    title: str
    description: str
    due_date: str
    priority: str
    status: str
    task_type: str
    assigned_to: str | None
    related_entity_type: str | None
    related_entity_id: str | None
    is_automated: bool
    reminder_sent: bool
    created_at: str
    updated_at: str
    completed_at: str | None

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            due_date=task.due_date.isoformat(),
            priority=task.priority.value,
            status=task.status.value,
            task_type=task.task_type.value,
            assigned_to=task.assigned_to,
            related_entity_type=(
                task.related_entity_type.value if task.related_entity_type else None
            ),
            related_entity_id=task.related_entity_id,
            is_automated=task.is_automated,
            reminder_sent=task.reminder_sent,
            created_at=task.created_at.isoformat(),
            updated_at=task.updated_at.isoformat(),
            completed_at=_iso(task.completed_at),
        )


# Automation schemas
# Keys used by the settings UI for each rule
RULE_SETTING_KEYS: dict[AutomationRule, str] = {
    AutomationRule.JOB_EXPIRY: "jobExpiryCheck",
    AutomationRule.CANDIDATE_CONTACT: "candidateContactCheck",
    AutomationRule.CUSTOMER_CONTACT: "customerContactCheck",
    AutomationRule.PROSPECT_CONTACT: "prospectContactCheck",
    AutomationRule.REMINDERS: "reminderNotifications",
}


class RuleSettingsResponse(CamelModel):
    enabled: bool
    days_threshold: int
    notify: bool
    description: str
    last_run_at: str | None

    @classmethod
    def from_settings(cls, settings: RuleSettings) -> "RuleSettingsResponse":
        return cls(
            enabled=settings.enabled,
            days_threshold=settings.days_threshold,
            notify=settings.notify,
            description=settings.description,
            last_run_at=_iso(settings.last_run_at),
        )


class RuleSettingsUpdate(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    enabled: bool | None = None
    days_threshold: int | None = Field(default=None, ge=0)
    notify: bool | None = None
    # Echoed back by clients that post the full GET payload; ignored
    description: str | None = Field(default=None, exclude=True)
    last_run_at: str | None = Field(default=None, exclude=True)


class AutomationSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    jobExpiryCheck: RuleSettingsUpdate | None = None
    candidateContactCheck: RuleSettingsUpdate | None = None
    customerContactCheck: RuleSettingsUpdate | None = None
    prospectContactCheck: RuleSettingsUpdate | None = None
    reminderNotifications: RuleSettingsUpdate | None = None

    def to_updates(self) -> dict[AutomationRule, dict[str, Any]]:
        updates: dict[AutomationRule, dict[str, Any]] = {}
        for rule, key in RULE_SETTING_KEYS.items():
            value: RuleSettingsUpdate | None = getattr(self, key)
            if value is not None:
                updates[rule] = value.model_dump(exclude_none=True)
        return updates


class AutomationSettingsResponse(BaseModel):
    success: bool = True
    settings: dict[str, RuleSettingsResponse]

    @classmethod
    def from_settings(
        cls, settings: dict[AutomationRule, RuleSettings]
    ) -> "AutomationSettingsResponse":
        return cls(
            settings={
                RULE_SETTING_KEYS[rule]: RuleSettingsResponse.from_settings(value)
                for rule, value in settings.items()
            }
        )


class AutomationSummaryResponse(CamelModel):
    success: bool = True
    message: str
    job_expiry_tasks: list[str]
    candidate_contact_tasks: list[str]
    customer_contact_tasks: list[str]
    reminder_count: int
    total_tasks: int
    errors: dict[str, str]
    skipped: list[str]
    started_at: str
    finished_at: str | None

    @classmethod
    def from_summary(cls, summary: AutomationSummary) -> "AutomationSummaryResponse":
        return cls(
            message=summary.message,
            job_expiry_tasks=summary.job_expiry_tasks,
            candidate_contact_tasks=summary.candidate_contact_tasks,
            customer_contact_tasks=summary.customer_contact_tasks,
            reminder_count=summary.reminder_count,
            total_tasks=summary.total_tasks,
            errors=summary.errors,
            skipped=summary.skipped,
            started_at=summary.started_at.isoformat(),
            finished_at=_iso(summary.finished_at),
        )


# Notification schemas
class NotificationCreate(BaseModel):
    user_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    entity_type: str | None = None
    entity_id: str | None = None
    action: str | None = None
    sender_id: str = "system"
    importance: NotificationImportance = NotificationImportance.NORMAL


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    entity_type: str | None
    entity_id: str | None
    action: str | None
    sender_id: str
    importance: str
    read: bool
    created_at: str
    read_at: str | None

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            user_id=notification.user_id,
            title=notification.title,
            message=notification.message,
            entity_type=notification.entity_type,
            entity_id=notification.entity_id,
            action=notification.action,
            sender_id=notification.sender_id,
            importance=notification.importance.value,
            read=notification.read,
            created_at=notification.created_at.isoformat(),
            read_at=_iso(notification.read_at),
        )


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


class MarkAllReadRequest(BaseModel):
    user_id: str = Field(min_length=1)


class MarkAllReadResponse(BaseModel):
    success: bool = True
    updated: int
    unread_count: int
