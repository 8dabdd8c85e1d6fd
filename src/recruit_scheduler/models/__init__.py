from .api import (
    AutomationSettingsResponse,
    AutomationSettingsUpdate,
    AutomationSummaryResponse,
    DueRunResponse,
    MarkAllReadRequest,
    MarkAllReadResponse,
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
    ScheduledTaskCreate,
    ScheduledTaskResponse,
    SchedulerLogResponse,
    TaskCreate,
    TaskResponse,
    TaskUpdate,
)
from .automation import (
    AutomationRule,
    AutomationSummary,
    DueRunSummary,
    RuleSettings,
)
from .notification import Notification, NotificationFilter, NotificationImportance
from .scheduled_task import (
    IntervalType,
    IntervalUnit,
    ScheduledTask,
    ScheduledTaskFilter,
    ScheduledTaskStatus,
    ScheduledTaskType,
)
from .task import (
    RelatedEntityType,
    Task,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
)

__all__ = [
    # API schemas
    "AutomationSettingsResponse",
    "AutomationSettingsUpdate",
    "AutomationSummaryResponse",
    "DueRunResponse",
    "MarkAllReadRequest",
    "MarkAllReadResponse",
    "NotificationCreate",
    "NotificationListResponse",
    "NotificationResponse",
    "ScheduledTaskCreate",
    "ScheduledTaskResponse",
    "SchedulerLogResponse",
    "TaskCreate",
    "TaskResponse",
    "TaskUpdate",
    # Domain models
    "AutomationRule",
    "AutomationSummary",
    "DueRunSummary",
    "RuleSettings",
    "Notification",
    "NotificationFilter",
    "NotificationImportance",
    "IntervalType",
    "IntervalUnit",
    "ScheduledTask",
    "ScheduledTaskFilter",
    "ScheduledTaskStatus",
    "ScheduledTaskType",
    "RelatedEntityType",
    "Task",
    "TaskFilter",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
]
