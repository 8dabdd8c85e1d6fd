"""Repository classes for database operations."""

from recruit_scheduler.db.repositories.automation_rules import AutomationRuleRepository
from recruit_scheduler.db.repositories.notifications import NotificationRepository
from recruit_scheduler.db.repositories.scheduled import (
    ScheduledTaskRepository,
    SchedulerLogRepository,
)
from recruit_scheduler.db.repositories.tasks import TaskRepository

__all__ = [
    "AutomationRuleRepository",
    "NotificationRepository",
    "ScheduledTaskRepository",
    "SchedulerLogRepository",
    "TaskRepository",
]
