"""Notification repository for database operations."""

from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import CursorResult, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_scheduler.db.models import NotificationModel
from recruit_scheduler.models.notification import (
    NotificationFilter,
    NotificationImportance,
)


class NotificationRepository:
    """Repository for notification database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: str,
        title: str,
        message: str,
        entity_type: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
        sender_id: str = "system",
        importance: NotificationImportance = NotificationImportance.NORMAL,
    ) -> NotificationModel:
        model = NotificationModel(
            user_id=user_id,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            sender_id=sender_id,
            importance=importance,
            read=False,
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def get(self, notification_id: str) -> NotificationModel | None:
        result = await self.session.execute(
            select(NotificationModel).where(NotificationModel.id == notification_id)
        )
        return result.scalar_one_or_none()

    async def list_filtered(self, filters: NotificationFilter) -> list[NotificationModel]:
        """List a user's notifications, newest first."""
        query = select(NotificationModel).where(
            NotificationModel.user_id == filters.user_id
        )
        if filters.unread_only:
            query = query.where(NotificationModel.read.is_(False))
        if filters.entity_type is not None:
            query = query.where(NotificationModel.entity_type == filters.entity_type)
        if filters.entity_id is not None:
            query = query.where(NotificationModel.entity_id == filters.entity_id)

        result = await self.session.execute(
            query.order_by(NotificationModel.created_at.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        return list(result.scalars().all())

    async def count_unread(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .where(NotificationModel.read.is_(False))
        )
        return result.scalar_one()

    async def mark_read(self, notification_id: str) -> NotificationModel | None:
        """Mark one notification as read.

        Already-read notifications keep their original read_at.

        Returns:
            The notification, or None if it does not exist
        """
        now = datetime.now(timezone.utc)
        await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.id == notification_id)
            .where(NotificationModel.read.is_(False))
            .values(read=True, read_at=now)
        )
        return await self.get(notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification of a user as read.

        Returns:
            Number of notifications that changed state
        """
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .where(NotificationModel.read.is_(False))
            .values(read=True, read_at=datetime.now(timezone.utc))
        )
        return cast(CursorResult[Any], result).rowcount or 0
