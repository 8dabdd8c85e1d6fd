"""Scheduled task model for system-level automation jobs."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class ScheduledTaskType(str, Enum):
    JOB_EXPIRY_CHECK = "job_expiry_check"
    CANDIDATE_CONTACT_CHECK = "candidate_contact_check"
    CUSTOMER_CONTACT_CHECK = "customer_contact_check"
    PROSPECT_CONTACT_CHECK = "prospect_contact_check"
    REMINDER_DISPATCH = "reminder_dispatch"
    GENERIC = "generic"


class ScheduledTaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class IntervalType(str, Enum):
    NONE = "none"
    INTERVAL = "interval"
    CUSTOM = "custom"


class IntervalUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"


# Task config variants, one per ScheduledTaskType.
# A threshold of None means "use the persisted rule setting".
class _TaskConfigBase(BaseModel):
    # API clients send camelCase keys; stored configs use field names
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobExpiryCheckConfig(_TaskConfigBase):
    kind: Literal["job_expiry_check"] = "job_expiry_check"
    days_threshold: int | None = Field(default=None, ge=0)


class CandidateContactCheckConfig(_TaskConfigBase):
    kind: Literal["candidate_contact_check"] = "candidate_contact_check"
    days_threshold: int | None = Field(default=None, ge=0)


class CustomerContactCheckConfig(_TaskConfigBase):
    kind: Literal["customer_contact_check"] = "customer_contact_check"
    days_threshold: int | None = Field(default=None, ge=0)


class ProspectContactCheckConfig(_TaskConfigBase):
    kind: Literal["prospect_contact_check"] = "prospect_contact_check"
    days_threshold: int | None = Field(default=None, ge=0)


class ReminderDispatchConfig(_TaskConfigBase):
    kind: Literal["reminder_dispatch"] = "reminder_dispatch"
    hours_before_due: int | None = Field(default=None, ge=0)


class GenericConfig(_TaskConfigBase):
    kind: Literal["generic"] = "generic"
    payload: dict[str, Any] = {}


TaskConfig = Annotated[
    Union[
        JobExpiryCheckConfig,
        CandidateContactCheckConfig,
        CustomerContactCheckConfig,
        ProspectContactCheckConfig,
        ReminderDispatchConfig,
        GenericConfig,
    ],
    Field(discriminator="kind"),
]

_config_adapter: TypeAdapter[TaskConfig] = TypeAdapter(TaskConfig)


def parse_task_config(
    task_type: ScheduledTaskType, raw: dict[str, Any] | None
) -> TaskConfig:
    """Validate a raw config payload against the variant for ``task_type``.

    Raises pydantic.ValidationError on a malformed payload and ValueError
    when the payload's ``kind`` names a different task type.
    """
    data = dict(raw or {})
    kind = data.setdefault("kind", task_type.value)
    if kind != task_type.value:
        raise ValueError(
            f"config kind '{kind}' does not match task type '{task_type.value}'"
        )
    return _config_adapter.validate_python(data)


def dump_task_config(config: TaskConfig) -> dict[str, Any]:
    return config.model_dump(mode="json")


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_utc_optional(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


@dataclass
class ScheduledTask:
    """A system automation job with a due time and optional recurrence.

    ``scheduled_for`` alone decides when the task is due; the interval fields
    only decide how ``scheduled_for`` moves after a successful run.
    """

    id: str
    task_type: ScheduledTaskType
    scheduled_for: datetime
    status: ScheduledTaskStatus = ScheduledTaskStatus.PENDING
    interval_type: IntervalType = IntervalType.NONE
    interval_value: int | None = None
    interval_unit: IntervalUnit | None = None
    custom_schedule: str | None = None  # 5-field cron expression
    config: TaskConfig = field(default_factory=GenericConfig)
    entity_id: str | None = None
    entity_type: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_run_at: datetime | None = None
    run_count: int = 0
    result: dict[str, Any] | None = None
    error: str | None = None

    @property
    def is_recurring(self) -> bool:
        return self.interval_type != IntervalType.NONE


@dataclass
class ScheduledTaskFilter:
    status: ScheduledTaskStatus | None = None
    task_type: ScheduledTaskType | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    from_date: datetime | None = None  # inclusive lower bound on scheduled_for
    to_date: datetime | None = None  # inclusive upper bound on scheduled_for
    limit: int = 100
    offset: int = 0


@dataclass
class SchedulerLogEntry:
    id: int
    task_id: str
    task_type: str
    action: str
    status: str
    details: dict[str, Any] | None
    created_at: datetime
