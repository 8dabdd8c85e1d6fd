"""Notification persistence with best-effort real-time delivery."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from recruit_scheduler.db.models import NotificationModel, parse_record_id
from recruit_scheduler.db.repositories import NotificationRepository
from recruit_scheduler.db.runner import SessionRunner
from recruit_scheduler.errors import NotFoundError, ValidationError
from recruit_scheduler.models.notification import (
    Notification,
    NotificationFilter,
    NotificationImportance,
)
from recruit_scheduler.models.scheduled_task import ensure_utc, ensure_utc_optional
from recruit_scheduler.services.realtime import NotificationPublisher

logger = logging.getLogger(__name__)


def notification_model_to_dataclass(model: NotificationModel) -> Notification:
    """Convert a database model to a dataclass."""
    return Notification(
        id=model.id,
        user_id=model.user_id,
        title=model.title,
        message=model.message,
        entity_type=model.entity_type,
        entity_id=model.entity_id,
        action=model.action,
        sender_id=model.sender_id,
        importance=model.importance,
        read=model.read,
        created_at=ensure_utc(model.created_at),
        read_at=ensure_utc_optional(model.read_at),
    )


class NotificationSink:
    """Owns notification persistence and the real-time fan-out channel.

    A notification is committed before it is published, and a failed publish
    never fails the create.
    """

    def __init__(
        self,
        runner: SessionRunner,
        publisher: NotificationPublisher | None = None,
    ) -> None:
        self._runner = runner
        self._publisher = publisher or NotificationPublisher()

    async def create_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        entity_type: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
        sender_id: str = "system",
        importance: NotificationImportance | str = NotificationImportance.NORMAL,
    ) -> Notification:
        for name, value in (("user_id", user_id), ("title", title), ("message", message)):
            if not value or not str(value).strip():
                raise ValidationError(f"{name} is required")
        try:
            importance = NotificationImportance(importance)
        except ValueError:
            raise ValidationError(f"invalid importance: {importance!r}") from None

        async def op(session: AsyncSession) -> Notification:
            model = await NotificationRepository(session).create(
                user_id=user_id,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                sender_id=sender_id or "system",
                importance=importance,
            )
            return notification_model_to_dataclass(model)

        notification = await self._runner.run(op, "create notification")
        logger.info(f"Notification {notification.id} created for user {user_id}")
        await self._publisher.publish(notification)
        return notification

    async def list_notifications(self, filters: NotificationFilter) -> list[Notification]:
        if not filters.user_id:
            raise ValidationError("user_id is required")

        async def op(session: AsyncSession) -> list[Notification]:
            models = await NotificationRepository(session).list_filtered(filters)
            return [notification_model_to_dataclass(m) for m in models]

        return await self._runner.run(op, "list notifications")

    async def count_unread(self, user_id: str) -> int:
        if not user_id:
            raise ValidationError("user_id is required")

        async def op(session: AsyncSession) -> int:
            return await NotificationRepository(session).count_unread(user_id)

        return await self._runner.run(op, "count unread notifications")

    async def mark_read(self, notification_id: str) -> bool:
        """Mark one notification as read; raises NotFoundError for unknown ids."""
        notification_id = parse_record_id(notification_id, "notification")

        async def op(session: AsyncSession) -> Notification:
            model = await NotificationRepository(session).mark_read(notification_id)
            if model is None:
                raise NotFoundError(f"notification {notification_id} not found")
            return notification_model_to_dataclass(model)

        notification = await self._runner.run(op, "mark notification read")
        await self._publisher.publish_read(notification.user_id, [notification.id])
        return True

    async def mark_all_read(self, user_id: str) -> int:
        """Mark all of a user's notifications as read.

        Returns:
            Number of notifications that were unread before the call
        """
        if not user_id:
            raise ValidationError("user_id is required")

        async def op(session: AsyncSession) -> int:
            return await NotificationRepository(session).mark_all_read(user_id)

        count = await self._runner.run(op, "mark all notifications read")
        if count:
            logger.info(f"Marked {count} notifications read for user {user_id}")
            await self._publisher.publish_read(user_id)
        return count
