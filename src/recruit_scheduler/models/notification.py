"""User-facing notification model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class NotificationImportance(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


@dataclass
class Notification:
    id: str
    user_id: str
    title: str
    message: str
    entity_type: str | None = None
    entity_id: str | None = None
    action: str | None = None
    sender_id: str = "system"
    importance: NotificationImportance = NotificationImportance.NORMAL
    read: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    read_at: datetime | None = None

    def to_payload(self) -> dict[str, object]:
        """Serialize for the real-time channel."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "sender_id": self.sender_id,
            "importance": self.importance.value,
            "read": self.read,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class NotificationFilter:
    user_id: str
    unread_only: bool = False
    entity_type: str | None = None
    entity_id: str | None = None
    limit: int = 50
    offset: int = 0
