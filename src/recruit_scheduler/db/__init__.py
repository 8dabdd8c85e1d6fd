"""Database module for the recruitment scheduler."""

from recruit_scheduler.db.engine import (
    create_engine,
    create_session_factory,
    engine_from_settings,
    get_session,
)
from recruit_scheduler.db.models import (
    Base,
    AutomationRuleModel,
    NotificationModel,
    ScheduledTaskModel,
    SchedulerLogModel,
    TaskModel,
)
from recruit_scheduler.db.runner import SessionRunner

__all__ = [
    "create_engine",
    "create_session_factory",
    "engine_from_settings",
    "get_session",
    "Base",
    "AutomationRuleModel",
    "NotificationModel",
    "ScheduledTaskModel",
    "SchedulerLogModel",
    "TaskModel",
    "SessionRunner",
]
