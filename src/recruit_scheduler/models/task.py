"""Human-actionable task model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that still count as "open" for the duplicate-task guard
OPEN_TASK_STATUSES = (TaskStatus.OPEN, TaskStatus.IN_PROGRESS)


class TaskType(str, Enum):
    APPLICATION_FOLLOWUP = "application_followup"
    JOB_EXPIRY = "job_expiry"
    CANDIDATE_INTERVIEW = "candidate_interview"
    MATCHING_REVIEW = "matching_review"
    DOCUMENT_APPROVAL = "document_approval"
    MANUAL = "manual"
    APPLICATION_REVIEW = "application_review"
    REJECTION_REVIEW = "rejection_review"
    CANDIDATE_CONTACT = "candidate_contact"
    CUSTOMER_CONTACT = "customer_contact"
    PROSPECT_CONTACT = "prospect_contact"


class RelatedEntityType(str, Enum):
    APPLICATION = "application"
    JOB = "job"
    CANDIDATE = "candidate"
    TALENT_POOL = "talent_pool"
    CUSTOMER = "customer"
    OTHER = "other"


# Fields that PATCH /tasks/{id} may change
TASK_UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "due_date",
        "priority",
        "status",
        "assigned_to",
        "reminder_sent",
        "completed_at",
    }
)


@dataclass
class Task:
    id: str
    title: str
    due_date: datetime
    priority: TaskPriority
    task_type: TaskType
    description: str = ""
    status: TaskStatus = TaskStatus.OPEN
    assigned_to: str | None = None
    related_entity_type: RelatedEntityType | None = None
    related_entity_id: str | None = None
    is_automated: bool = False
    reminder_sent: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None


@dataclass
class TaskFilter:
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    task_type: TaskType | None = None
    entity_type: RelatedEntityType | None = None
    entity_id: str | None = None
    assigned_to: str | None = None
    automated: bool | None = None
    limit: int = 500
    offset: int = 0
