"""Automation rule settings and run summaries."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class AutomationRule(str, Enum):
    JOB_EXPIRY = "job_expiry"
    CANDIDATE_CONTACT = "candidate_contact"
    CUSTOMER_CONTACT = "customer_contact"
    PROSPECT_CONTACT = "prospect_contact"
    REMINDERS = "reminders"


# Fixed evaluation order for one automation pass
RULE_ORDER = (
    AutomationRule.JOB_EXPIRY,
    AutomationRule.CANDIDATE_CONTACT,
    AutomationRule.CUSTOMER_CONTACT,
    AutomationRule.PROSPECT_CONTACT,
    AutomationRule.REMINDERS,
)


@dataclass
class RuleSettings:
    rule: AutomationRule
    enabled: bool
    days_threshold: int
    notify: bool = True
    description: str = ""
    last_run_at: datetime | None = None


DEFAULT_RULE_SETTINGS: dict[AutomationRule, RuleSettings] = {
    AutomationRule.JOB_EXPIRY: RuleSettings(
        rule=AutomationRule.JOB_EXPIRY,
        enabled=True,
        days_threshold=5,
        description="Create tasks for job postings about to expire",
    ),
    AutomationRule.CANDIDATE_CONTACT: RuleSettings(
        rule=AutomationRule.CANDIDATE_CONTACT,
        enabled=True,
        days_threshold=60,
        description="Create tasks for candidates not contacted for a long time",
    ),
    AutomationRule.CUSTOMER_CONTACT: RuleSettings(
        rule=AutomationRule.CUSTOMER_CONTACT,
        enabled=True,
        days_threshold=90,
        description="Create tasks for customers not contacted for a long time",
    ),
    AutomationRule.PROSPECT_CONTACT: RuleSettings(
        rule=AutomationRule.PROSPECT_CONTACT,
        enabled=True,
        days_threshold=60,
        description="Create tasks for prospects not contacted for a long time",
    ),
    AutomationRule.REMINDERS: RuleSettings(
        rule=AutomationRule.REMINDERS,
        enabled=True,
        days_threshold=1,
        description="Send reminders for upcoming tasks",
    ),
}


@dataclass
class AutomationSummary:
    """Outcome of one automation pass.

    ``errors`` maps a failed rule category to its error message; categories
    missing from it either succeeded or were disabled.
    """

    started_at: datetime
    finished_at: datetime | None = None
    job_expiry_tasks: list[str] = field(default_factory=list)
    candidate_contact_tasks: list[str] = field(default_factory=list)
    customer_contact_tasks: list[str] = field(default_factory=list)
    reminder_count: int = 0
    errors: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def total_tasks(self) -> int:
        return (
            len(self.job_expiry_tasks)
            + len(self.candidate_contact_tasks)
            + len(self.customer_contact_tasks)
        )

    @property
    def message(self) -> str:
        text = (
            f"{self.total_tasks} automated tasks created, "
            f"{self.reminder_count} reminders sent"
        )
        if self.errors:
            succeeded = len(RULE_ORDER) - len(self.errors) - len(self.skipped)
            ran = len(RULE_ORDER) - len(self.skipped)
            text += f" ({succeeded} of {ran} rule categories succeeded)"
        return text


@dataclass
class DueRunSummary:
    """Outcome of one pass over due scheduled tasks.

    ``error`` is set when the due tasks could not be loaded at all.
    """

    started_at: datetime
    finished_at: datetime | None = None
    completed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    error: str | None = None
