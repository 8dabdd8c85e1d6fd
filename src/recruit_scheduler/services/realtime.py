"""Real-time notification fan-out over NATS.

UI clients subscribe (via the NATS WebSocket listener) to
``recruit.notifications.<user_id>`` for new notifications and to
``recruit.notifications.<user_id>.read`` for read-state changes.
"""

import json
import logging
from typing import Any

import nats
from nats.aio.client import Client

from recruit_scheduler.models.notification import Notification

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = "recruit.notifications"


def notification_subject(user_id: str) -> str:
    return f"{SUBJECT_PREFIX}.{user_id}"


def read_subject(user_id: str) -> str:
    return f"{SUBJECT_PREFIX}.{user_id}.read"


class NatsConnection:
    """Wrapper around nats.aio.client.Client with JSON serialization and reconnect handling."""

    def __init__(self, url: str = "nats://localhost:4222", name: str | None = None) -> None:
        self._url = url
        self._name = name
        self._nc: Client | None = None

    @property
    def nc(self) -> Client:
        if self._nc is None or self._nc.is_closed:
            raise RuntimeError("NATS connection not established. Call connect() first.")
        return self._nc

    @property
    def is_connected(self) -> bool:
        return self._nc is not None and self._nc.is_connected

    async def connect(self) -> None:
        """Connect to NATS server with automatic reconnection."""

        async def error_cb(e: Exception) -> None:
            logger.error("NATS error: %s", e)

        async def disconnected_cb() -> None:
            logger.warning("NATS disconnected")

        async def reconnected_cb() -> None:
            logger.info("NATS reconnected to %s", self._nc.connected_url if self._nc else "unknown")

        self._nc = await nats.connect(
            self._url,
            name=self._name,
            error_cb=error_cb,
            disconnected_cb=disconnected_cb,
            reconnected_cb=reconnected_cb,
            max_reconnect_attempts=-1,  # Infinite reconnect
            reconnect_time_wait=2,  # 2s between attempts
        )
        logger.info("Connected to NATS at %s", self._url)

    async def close(self) -> None:
        """Gracefully drain and close the connection."""
        if self._nc and not self._nc.is_closed:
            await self._nc.drain()
            logger.info("NATS connection drained and closed")

    async def publish(self, subject: str, data: dict[str, Any] | None = None) -> None:
        """Publish a JSON message to a subject."""
        payload = json.dumps(data or {}).encode()
        await self.nc.publish(subject, payload)


class NotificationPublisher:
    """Best-effort publisher for notification events.

    Publishing never raises: a missing or broken connection is logged and the
    event is dropped. Persisted notifications remain the source of truth and
    clients catch up through GET /api/notifications.
    """

    def __init__(self, conn: NatsConnection | None = None) -> None:
        self._conn = conn

    @property
    def conn(self) -> NatsConnection | None:
        return self._conn

    @property
    def is_available(self) -> bool:
        return self._conn is not None and self._conn.is_connected

    async def start(self, url: str, name: str = "recruit-scheduler") -> None:
        """Connect to NATS; on failure the service keeps running without fan-out."""
        conn = NatsConnection(url=url, name=name)
        try:
            await conn.connect()
        except Exception as e:
            logger.warning(
                f"Real-time notifications disabled, could not connect to {url}: {e}"
            )
            return
        self._conn = conn

    async def stop(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def publish(self, notification: Notification) -> bool:
        """Push a new notification to its user's subject.

        Returns:
            True if the message was handed to NATS
        """
        return await self._send(
            notification_subject(notification.user_id),
            {"type": "notification", "notification": notification.to_payload()},
        )

    async def publish_read(
        self, user_id: str, notification_ids: list[str] | None = None
    ) -> bool:
        """Tell a user's clients that notifications were marked read.

        ``notification_ids`` of None means all of the user's notifications.
        """
        return await self._send(
            read_subject(user_id),
            {
                "type": "read",
                "user_id": user_id,
                "notification_ids": notification_ids,
                "all": notification_ids is None,
            },
        )

    async def _send(self, subject: str, data: dict[str, Any]) -> bool:
        if self._conn is None:
            return False
        try:
            await self._conn.publish(subject, data)
            return True
        except Exception as e:
            logger.warning(f"Failed to publish to {subject}: {e}")
            return False
