"""FastAPI dependency injection providers for services."""

from typing import Annotated

from fastapi import Depends, Request

from recruit_scheduler.config import Settings
from recruit_scheduler.services import (
    AutomationDispatcher,
    NotificationSink,
    RuleSettingsStore,
    SchedulerService,
    TaskStore,
)


def get_settings(request: Request) -> Settings:
    """Get the application settings from app state."""
    return request.app.state.settings


def get_task_store(request: Request) -> TaskStore:
    """Get the task store from app state."""
    return request.app.state.task_store


def get_notification_sink(request: Request) -> NotificationSink:
    """Get the notification sink from app state."""
    return request.app.state.notification_sink


def get_scheduler(request: Request) -> SchedulerService:
    """Get the scheduler service from app state."""
    return request.app.state.scheduler


def get_rule_settings(request: Request) -> RuleSettingsStore:
    """Get the automation rule settings store from app state."""
    return request.app.state.rule_settings


def get_dispatcher(request: Request) -> AutomationDispatcher:
    """Get the automation dispatcher from app state."""
    return request.app.state.dispatcher


SettingsDep = Annotated[Settings, Depends(get_settings)]
TaskStoreDep = Annotated[TaskStore, Depends(get_task_store)]
NotificationSinkDep = Annotated[NotificationSink, Depends(get_notification_sink)]
SchedulerDep = Annotated[SchedulerService, Depends(get_scheduler)]
RuleSettingsDep = Annotated[RuleSettingsStore, Depends(get_rule_settings)]
DispatcherDep = Annotated[AutomationDispatcher, Depends(get_dispatcher)]
