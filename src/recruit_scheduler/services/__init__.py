from .task_store import TaskStore
from .notification_sink import NotificationSink
from .realtime import NatsConnection, NotificationPublisher
from .scheduler import SchedulerService, next_run_after
from .entities import DatabaseEntityLookup, EntityLookup, EntitySnapshot
from .rule_settings import RuleSettingsStore
from .automation import AutomationRuleEngine
from .dispatcher import AutomationDispatcher

__all__ = [
    "TaskStore",
    "NotificationSink",
    "NatsConnection",
    "NotificationPublisher",
    "SchedulerService",
    "next_run_after",
    "DatabaseEntityLookup",
    "EntityLookup",
    "EntitySnapshot",
    "RuleSettingsStore",
    "AutomationRuleEngine",
    "AutomationDispatcher",
]
