"""Automation rules that turn entity state into tasks and notifications.

The predicates and task templates are plain functions of (now, entity
snapshots, threshold). AutomationRuleEngine applies them through the
duplicate-open-task guard and writes the results through the stores.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from recruit_scheduler.models.automation import RuleSettings
from recruit_scheduler.models.notification import NotificationImportance
from recruit_scheduler.models.task import (
    RelatedEntityType,
    Task,
    TaskPriority,
    TaskType,
)
from recruit_scheduler.services.entities import EntityLookup, EntitySnapshot
from recruit_scheduler.services.notification_sink import NotificationSink
from recruit_scheduler.services.task_store import TaskStore

logger = logging.getLogger(__name__)

CONTACT_TASK_DUE_DAYS = 3
MATCHING_TASK_DUE_DAYS = 2


@dataclass(frozen=True)
class TaskDraft:
    """A task an automation rule wants to exist, plus its notification text."""

    title: str
    description: str
    due_date: datetime
    priority: TaskPriority
    task_type: TaskType
    related_entity_type: RelatedEntityType
    related_entity_id: str
    assigned_to: str | None = None
    notification_title: str = ""
    notification_message: str = ""


def is_expiring(job: EntitySnapshot, now: datetime, days_threshold: int) -> bool:
    """Active job whose expiry falls in (now, now + threshold]."""
    if not job.active or job.date is None:
        return False
    return now < job.date <= now + timedelta(days=days_threshold)


def is_contact_overdue(entity: EntitySnapshot, now: datetime, days_threshold: int) -> bool:
    """Active entity last contacted more than ``days_threshold`` days ago.

    Entities never contacted (no date) are not considered overdue.
    """
    if not entity.active or entity.date is None:
        return False
    return entity.date < now - timedelta(days=days_threshold)


def job_expiry_draft(job: EntitySnapshot, days_threshold: int) -> TaskDraft:
    """Draft the review task for an expiring job.

    The task falls due ``days_threshold`` days before the posting lapses.
    """
    expiry = job.date.strftime("%Y-%m-%d")
    return TaskDraft(
        title=f"Job posting expires soon: {job.name}",
        description=(
            f'The job posting "{job.name}" expires on {expiry}. '
            "Please review it and extend it if needed."
        ),
        due_date=job.date - timedelta(days=days_threshold),
        priority=TaskPriority.MEDIUM,
        task_type=TaskType.JOB_EXPIRY,
        related_entity_type=RelatedEntityType.JOB,
        related_entity_id=job.id,
        assigned_to=job.owner_id,
        notification_title="Job posting expiring",
        notification_message=f'"{job.name}" expires on {expiry}.',
    )


def candidate_contact_draft(
    candidate: EntitySnapshot, now: datetime, days_threshold: int
) -> TaskDraft:
    return TaskDraft(
        title=f"Keep in touch: {candidate.name}",
        description=(
            f"More than {days_threshold} days have passed since the last contact "
            f"with {candidate.name}. Please get in touch to maintain the relationship."
        ),
        due_date=now + timedelta(days=CONTACT_TASK_DUE_DAYS),
        priority=TaskPriority.MEDIUM,
        task_type=TaskType.CANDIDATE_CONTACT,
        related_entity_type=RelatedEntityType.CANDIDATE,
        related_entity_id=candidate.id,
        assigned_to=candidate.owner_id,
        notification_title="Candidate contact due",
        notification_message=f"{candidate.name} has not been contacted for over {days_threshold} days.",
    )


def customer_contact_draft(
    customer: EntitySnapshot, now: datetime, days_threshold: int, prospect: bool
) -> TaskDraft:
    label = "prospect" if prospect else "customer"
    return TaskDraft(
        title=f"Keep in touch with {label}: {customer.name}",
        description=(
            f"More than {days_threshold} days have passed since the last contact "
            f"with {customer.name}. Please get in touch to maintain the relationship."
        ),
        due_date=now + timedelta(days=CONTACT_TASK_DUE_DAYS),
        # Existing customers take precedence over prospects
        priority=TaskPriority.MEDIUM if prospect else TaskPriority.HIGH,
        task_type=TaskType.PROSPECT_CONTACT if prospect else TaskType.CUSTOMER_CONTACT,
        related_entity_type=RelatedEntityType.CUSTOMER,
        related_entity_id=customer.id,
        assigned_to=customer.owner_id,
        notification_title=f"{label.capitalize()} contact due",
        notification_message=f"{customer.name} has not been contacted for over {days_threshold} days.",
    )


def matching_priority(match_score: float) -> TaskPriority:
    if match_score >= 85:
        return TaskPriority.HIGH
    if match_score < 70:
        return TaskPriority.LOW
    return TaskPriority.MEDIUM


class AutomationRuleEngine:
    """Evaluates automation rules and materializes their tasks.

    Holds no state between calls. Every created task passes the idempotency
    guard: no task is created while an open or in-progress task with the same
    (task_type, related_entity_type, related_entity_id) exists.
    """

    def __init__(
        self,
        store: TaskStore,
        sink: NotificationSink,
        entities: EntityLookup,
        default_recipient: str = "admin",
    ) -> None:
        self._store = store
        self._sink = sink
        self._entities = entities
        self._default_recipient = default_recipient

    async def check_job_expirations(self, now: datetime, settings: RuleSettings) -> list[str]:
        """Create tasks for active jobs expiring within the threshold."""
        if not settings.enabled:
            return []
        jobs = await self._entities.list_jobs()
        drafts = [
            job_expiry_draft(job, settings.days_threshold)
            for job in jobs
            if is_expiring(job, now, settings.days_threshold)
        ]
        return await self._materialize_all(drafts, settings.notify)

    async def check_candidate_contacts(self, now: datetime, settings: RuleSettings) -> list[str]:
        if not settings.enabled:
            return []
        candidates = await self._entities.list_candidates()
        drafts = [
            candidate_contact_draft(c, now, settings.days_threshold)
            for c in candidates
            if is_contact_overdue(c, now, settings.days_threshold)
        ]
        return await self._materialize_all(drafts, settings.notify)

    async def check_customer_contacts(self, now: datetime, settings: RuleSettings) -> list[str]:
        return await self._check_customers(now, settings, prospects=False)

    async def check_prospect_contacts(self, now: datetime, settings: RuleSettings) -> list[str]:
        return await self._check_customers(now, settings, prospects=True)

    async def send_reminders(
        self,
        now: datetime,
        settings: RuleSettings,
        window: timedelta | None = None,
    ) -> int:
        """Notify assignees of tasks due within the reminder window.

        Each task is reminded at most once: the notification is created first,
        then reminder_sent is flipped with a conditional update. A failed flag
        write propagates, so the category is reported as failed instead of
        silently re-sending on the next run.

        Returns:
            Number of reminder notifications sent
        """
        if not settings.enabled:
            return 0
        window = window if window is not None else timedelta(days=settings.days_threshold)
        due = await self._store.list_reminder_candidates(now + window)

        sent = 0
        for task in due:
            recipient = task.assigned_to or self._default_recipient
            overdue = task.due_date <= now
            await self._sink.create_notification(
                user_id=recipient,
                title="Task overdue" if overdue else "Task due soon",
                message=f'"{task.title}" is due on {task.due_date.strftime("%Y-%m-%d %H:%M")} UTC.',
                entity_type="task",
                entity_id=task.id,
                action="task_reminder",
                importance=(
                    NotificationImportance.HIGH
                    if task.priority == TaskPriority.HIGH
                    else NotificationImportance.NORMAL
                ),
            )
            if not await self._store.mark_reminder_sent(task.id):
                logger.warning(f"Reminder flag for task {task.id} was already set")
            sent += 1

        if sent:
            logger.info(f"Sent {sent} task reminders")
        return sent

    async def create_matching_task(
        self,
        candidate_id: str,
        job_id: str,
        match_score: float,
        candidate_name: str,
        job_title: str,
        now: datetime | None = None,
        notify: bool = True,
    ) -> Task | None:
        """Create a review task for a new candidate/job match.

        Returns:
            The created task, or None if an open review task already exists
            for the candidate
        """
        now = now or datetime.now(timezone.utc)
        draft = TaskDraft(
            title=f"Review match: {candidate_name} for {job_title}",
            description=(
                f"A new match with a score of {match_score:g}% was found for job {job_id}. "
                "Please review whether the candidate fits the position."
            ),
            due_date=now + timedelta(days=MATCHING_TASK_DUE_DAYS),
            priority=matching_priority(match_score),
            task_type=TaskType.MATCHING_REVIEW,
            related_entity_type=RelatedEntityType.CANDIDATE,
            related_entity_id=candidate_id,
            notification_title="New candidate match",
            notification_message=f"{candidate_name} matches {job_title} ({match_score:g}%).",
        )
        return await self._materialize(draft, notify)

    async def create_application_followup_task(
        self,
        application_id: str,
        applicant_name: str,
        job_title: str,
        days_until_followup: int = 7,
        now: datetime | None = None,
        notify: bool = False,
    ) -> Task | None:
        now = now or datetime.now(timezone.utc)
        draft = TaskDraft(
            title=f"Follow up with applicant: {applicant_name}",
            description=(
                f'Time to follow up with {applicant_name} about the position "{job_title}". '
                "Please contact the applicant and update the application status."
            ),
            due_date=now + timedelta(days=days_until_followup),
            priority=TaskPriority.MEDIUM,
            task_type=TaskType.APPLICATION_FOLLOWUP,
            related_entity_type=RelatedEntityType.APPLICATION,
            related_entity_id=application_id,
            notification_title="Application follow-up",
            notification_message=f"Follow up with {applicant_name} ({job_title}).",
        )
        return await self._materialize(draft, notify)

    async def _check_customers(
        self, now: datetime, settings: RuleSettings, prospects: bool
    ) -> list[str]:
        if not settings.enabled:
            return []
        customers = await self._entities.list_customers(prospects=prospects)
        drafts = [
            customer_contact_draft(c, now, settings.days_threshold, prospects)
            for c in customers
            if is_contact_overdue(c, now, settings.days_threshold)
        ]
        return await self._materialize_all(drafts, settings.notify)

    async def _materialize_all(self, drafts: list[TaskDraft], notify: bool) -> list[str]:
        created: list[str] = []
        for draft in drafts:
            task = await self._materialize(draft, notify)
            if task is not None:
                created.append(task.id)
        return created

    async def _materialize(self, draft: TaskDraft, notify: bool) -> Task | None:
        """Create the drafted task unless an open one already exists."""
        existing = await self._store.find_open_task(
            draft.task_type, draft.related_entity_type, draft.related_entity_id
        )
        if existing is not None:
            logger.debug(
                f"Skipping {draft.task_type.value} for {draft.related_entity_type.value} "
                f"{draft.related_entity_id}: open task {existing.id} exists"
            )
            return None

        task = await self._store.create_task(
            title=draft.title,
            description=draft.description,
            due_date=draft.due_date,
            priority=draft.priority,
            task_type=draft.task_type,
            assigned_to=draft.assigned_to,
            related_entity_type=draft.related_entity_type,
            related_entity_id=draft.related_entity_id,
            is_automated=True,
        )
        logger.info(
            f"Created automated {task.task_type.value} task {task.id} "
            f"for {draft.related_entity_type.value} {draft.related_entity_id}"
        )

        if notify:
            await self._sink.create_notification(
                user_id=draft.assigned_to or self._default_recipient,
                title=draft.notification_title,
                message=draft.notification_message,
                entity_type=draft.related_entity_type.value,
                entity_id=draft.related_entity_id,
                action="task_created",
                importance=(
                    NotificationImportance.HIGH
                    if draft.priority == TaskPriority.HIGH
                    else NotificationImportance.NORMAL
                ),
            )
        return task
