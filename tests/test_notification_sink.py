"""Tests for NotificationSink persistence and real-time fan-out."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from recruit_scheduler.errors import NotFoundError, ValidationError
from recruit_scheduler.models.notification import (
    NotificationFilter,
    NotificationImportance,
)
from recruit_scheduler.services import NotificationPublisher, NotificationSink


class TestCreateNotification:
    """Tests for NotificationSink.create_notification."""

    async def test_create_persists_and_publishes(self, sink, mock_publisher):
        """Test that a created notification is stored unread and published."""
        notification = await sink.create_notification(
            user_id="alice",
            title="Task due soon",
            message="Call the candidate",
            entity_type="task",
            entity_id="t-1",
            importance="high",
        )

        assert notification.read is False
        assert notification.sender_id == "system"
        assert notification.importance == NotificationImportance.HIGH
        mock_publisher.publish.assert_awaited_once()
        assert mock_publisher.publish.await_args.args[0].id == notification.id

        listed = await sink.list_notifications(NotificationFilter(user_id="alice"))
        assert [n.id for n in listed] == [notification.id]

    @pytest.mark.parametrize("field", ["user_id", "title", "message"])
    async def test_create_requires_fields(self, sink, mock_publisher, field):
        """Test that user_id, title and message are required."""
        values = {"user_id": "alice", "title": "Title", "message": "Message"}
        values[field] = ""

        with pytest.raises(ValidationError):
            await sink.create_notification(**values)
        mock_publisher.publish.assert_not_awaited()

    async def test_create_rejects_unknown_importance(self, sink):
        """Test that importance must be low, normal or high."""
        with pytest.raises(ValidationError):
            await sink.create_notification(
                user_id="alice", title="t", message="m", importance="critical"
            )

    async def test_publish_failure_does_not_fail_create(self, runner):
        """Test that persistence succeeds when the NATS publish raises."""
        conn = MagicMock()
        conn.publish = AsyncMock(side_effect=ConnectionError("nats down"))
        sink = NotificationSink(runner, publisher=NotificationPublisher(conn))

        notification = await sink.create_notification(
            user_id="alice", title="t", message="m"
        )

        assert await sink.count_unread("alice") == 1
        conn.publish.assert_awaited_once()
        assert notification.id is not None

    async def test_without_connection_is_persist_only(self, runner):
        """Test that a sink without a publisher connection still stores notifications."""
        sink = NotificationSink(runner)

        await sink.create_notification(user_id="alice", title="t", message="m")

        assert await sink.count_unread("alice") == 1


class TestReadState:
    """Tests for listing and marking notifications read."""

    async def test_list_unread_only_and_order(self, sink):
        """Test that listing is newest first and unread_only filters."""
        first = await sink.create_notification(user_id="alice", title="1", message="m")
        second = await sink.create_notification(user_id="alice", title="2", message="m")
        await sink.create_notification(user_id="bob", title="3", message="m")
        await sink.mark_read(first.id)

        everything = await sink.list_notifications(NotificationFilter(user_id="alice"))
        unread = await sink.list_notifications(
            NotificationFilter(user_id="alice", unread_only=True)
        )

        assert {n.id for n in everything} == {first.id, second.id}
        assert [n.id for n in unread] == [second.id]

    async def test_list_requires_user(self, sink):
        """Test that listing without a user is rejected."""
        with pytest.raises(ValidationError):
            await sink.list_notifications(NotificationFilter(user_id=""))

    async def test_mark_read(self, sink, mock_publisher):
        """Test marking one notification read."""
        notification = await sink.create_notification(
            user_id="alice", title="t", message="m"
        )

        assert await sink.mark_read(notification.id) is True
        assert await sink.count_unread("alice") == 0
        mock_publisher.publish_read.assert_awaited_once_with("alice", [notification.id])

        listed = await sink.list_notifications(NotificationFilter(user_id="alice"))
        assert listed[0].read is True
        assert listed[0].read_at is not None

    async def test_mark_read_not_found(self, sink):
        """Test marking a non-existent notification."""
        with pytest.raises(NotFoundError):
            await sink.mark_read(str(uuid4()))

    async def test_mark_read_malformed_id(self, sink, mock_publisher):
        """Test that an id which is not a UUID is reported as missing."""
        with pytest.raises(NotFoundError):
            await sink.mark_read("abc")
        mock_publisher.publish_read.assert_not_awaited()

    async def test_mark_all_read(self, sink, mock_publisher):
        """Test that mark_all_read only touches the user's unread notifications."""
        for i in range(3):
            await sink.create_notification(user_id="alice", title=str(i), message="m")
        await sink.create_notification(user_id="bob", title="b", message="m")

        assert await sink.mark_all_read("alice") == 3
        assert await sink.count_unread("alice") == 0
        assert await sink.count_unread("bob") == 1
        mock_publisher.publish_read.assert_awaited_once_with("alice")

    async def test_mark_all_read_nothing_unread(self, sink, mock_publisher):
        """Test that no event is published when nothing changed."""
        assert await sink.mark_all_read("alice") == 0
        mock_publisher.publish_read.assert_not_awaited()
