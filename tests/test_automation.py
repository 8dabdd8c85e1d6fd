"""Tests for the automation rules and the AutomationRuleEngine."""

import pytest
from dataclasses import replace
from datetime import timedelta

from sqlalchemy import insert

from recruit_scheduler.db.entities import candidates_table, customers_table, jobs_table
from recruit_scheduler.models.automation import DEFAULT_RULE_SETTINGS, AutomationRule
from recruit_scheduler.models.notification import NotificationFilter
from recruit_scheduler.models.task import (
    RelatedEntityType,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from recruit_scheduler.services import DatabaseEntityLookup, EntitySnapshot
from recruit_scheduler.services.automation import (
    is_contact_overdue,
    is_expiring,
    matching_priority,
)


def settings_for(rule, **overrides):
    return replace(DEFAULT_RULE_SETTINGS[rule], **overrides)


class TestPredicates:
    """Tests for the pure rule predicates."""

    def test_is_expiring_window(self, now):
        """Test the (now, now + threshold] window for job expiry."""
        def job(delta):
            return EntitySnapshot(id="j", name="Job", date=now + delta)

        assert is_expiring(job(timedelta(days=4)), now, 5) is True
        assert is_expiring(job(timedelta(days=5)), now, 5) is True
        assert is_expiring(job(timedelta(days=5, seconds=1)), now, 5) is False
        assert is_expiring(job(timedelta(0)), now, 5) is False
        assert is_expiring(job(timedelta(days=-1)), now, 5) is False

    def test_is_expiring_ignores_inactive_and_undated(self, now):
        inactive = EntitySnapshot(id="j", name="Job", date=now + timedelta(days=1), active=False)
        undated = EntitySnapshot(id="j", name="Job", date=None)

        assert is_expiring(inactive, now, 5) is False
        assert is_expiring(undated, now, 5) is False

    def test_is_contact_overdue(self, now):
        """Test that contact is overdue strictly before now - threshold."""
        def candidate(delta, active=True):
            return EntitySnapshot(id="c", name="Cand", date=now - delta, active=active)

        assert is_contact_overdue(candidate(timedelta(days=61)), now, 60) is True
        assert is_contact_overdue(candidate(timedelta(days=60)), now, 60) is False
        assert is_contact_overdue(candidate(timedelta(days=10)), now, 60) is False
        assert is_contact_overdue(candidate(timedelta(days=90), active=False), now, 60) is False

    def test_never_contacted_is_not_overdue(self, now):
        assert is_contact_overdue(EntitySnapshot(id="c", name="C", date=None), now, 60) is False

    @pytest.mark.parametrize(
        "score,priority",
        [
            (95, TaskPriority.HIGH),
            (85, TaskPriority.HIGH),
            (84.5, TaskPriority.MEDIUM),
            (70, TaskPriority.MEDIUM),
            (69.9, TaskPriority.LOW),
        ],
    )
    def test_matching_priority(self, score, priority):
        assert matching_priority(score) == priority


class TestJobExpiryRule:
    """Tests for AutomationRuleEngine.check_job_expirations."""

    async def test_creates_task_due_before_expiry(self, rule_engine, entities, store, sink, now):
        """Test that an expiring job yields one task owned by the job's owner.

        The task falls due the threshold (five days) before the expiry date.
        """
        expiry = now + timedelta(days=4)
        entities.jobs = [
            EntitySnapshot(id="job-1", name="Backend Engineer", date=expiry, owner_id="alice"),
            EntitySnapshot(id="job-2", name="Far Future", date=now + timedelta(days=30)),
        ]

        created = await rule_engine.check_job_expirations(
            now, settings_for(AutomationRule.JOB_EXPIRY)
        )

        assert len(created) == 1
        task = await store.get_task(created[0])
        assert task.task_type == TaskType.JOB_EXPIRY
        assert task.related_entity_type == RelatedEntityType.JOB
        assert task.related_entity_id == "job-1"
        assert task.due_date == expiry - timedelta(days=5)
        assert task.priority == TaskPriority.MEDIUM
        assert task.assigned_to == "alice"
        assert task.is_automated is True
        assert "Backend Engineer" in task.title

        notifications = await sink.list_notifications(NotificationFilter(user_id="alice"))
        assert len(notifications) == 1
        assert notifications[0].action == "task_created"
        assert notifications[0].entity_id == "job-1"

    async def test_second_run_is_idempotent(self, rule_engine, entities, store, now):
        """Test that an open task blocks a duplicate."""
        entities.jobs = [
            EntitySnapshot(id="job-1", name="Backend Engineer", date=now + timedelta(days=2))
        ]
        settings = settings_for(AutomationRule.JOB_EXPIRY)

        first = await rule_engine.check_job_expirations(now, settings)
        second = await rule_engine.check_job_expirations(now, settings)

        assert len(first) == 1
        assert second == []
        assert len(await store.list_tasks(TaskFilter(task_type=TaskType.JOB_EXPIRY))) == 1

    async def test_completed_task_allows_new_one(self, rule_engine, entities, store, now):
        """Test that the guard only considers open and in-progress tasks."""
        entities.jobs = [
            EntitySnapshot(id="job-1", name="Backend Engineer", date=now + timedelta(days=2))
        ]
        settings = settings_for(AutomationRule.JOB_EXPIRY)
        [task_id] = await rule_engine.check_job_expirations(now, settings)
        await store.update_task(task_id, {"status": TaskStatus.COMPLETED})

        again = await rule_engine.check_job_expirations(now, settings)

        assert len(again) == 1
        assert again[0] != task_id

    async def test_disabled_rule_does_nothing(self, rule_engine, entities, store, now):
        entities.jobs = [EntitySnapshot(id="job-1", name="J", date=now + timedelta(days=1))]

        created = await rule_engine.check_job_expirations(
            now, settings_for(AutomationRule.JOB_EXPIRY, enabled=False)
        )

        assert created == []
        assert await store.list_tasks() == []

    async def test_notify_off_skips_notification(self, rule_engine, entities, sink, now):
        entities.jobs = [EntitySnapshot(id="job-1", name="J", date=now + timedelta(days=1))]

        created = await rule_engine.check_job_expirations(
            now, settings_for(AutomationRule.JOB_EXPIRY, notify=False)
        )

        assert len(created) == 1
        assert await sink.count_unread("admin") == 0


class TestContactRules:
    """Tests for the candidate, customer and prospect contact rules."""

    async def test_candidate_contact(self, rule_engine, entities, store, sink, now):
        """Test an overdue candidate without owner notifies the default recipient."""
        entities.candidates = [
            EntitySnapshot(id="cand-1", name="Ada", date=now - timedelta(days=61)),
            EntitySnapshot(id="cand-2", name="Bob", date=now - timedelta(days=5)),
            EntitySnapshot(id="cand-3", name="Cy", date=None),
        ]

        created = await rule_engine.check_candidate_contacts(
            now, settings_for(AutomationRule.CANDIDATE_CONTACT)
        )

        assert len(created) == 1
        task = await store.get_task(created[0])
        assert task.related_entity_id == "cand-1"
        assert task.task_type == TaskType.CANDIDATE_CONTACT
        assert task.priority == TaskPriority.MEDIUM
        assert task.due_date == now + timedelta(days=3)
        assert task.assigned_to is None
        assert await sink.count_unread("admin") == 1

    async def test_customer_contact_is_high_priority(self, rule_engine, entities, store, now):
        entities.customers = [
            EntitySnapshot(id="cust-1", name="Acme", date=now - timedelta(days=91), owner_id="bob")
        ]

        [task_id] = await rule_engine.check_customer_contacts(
            now, settings_for(AutomationRule.CUSTOMER_CONTACT)
        )

        task = await store.get_task(task_id)
        assert task.task_type == TaskType.CUSTOMER_CONTACT
        assert task.related_entity_type == RelatedEntityType.CUSTOMER
        assert task.priority == TaskPriority.HIGH
        assert task.assigned_to == "bob"

    async def test_prospect_contact_is_medium_priority(self, rule_engine, entities, store, now):
        entities.prospects = [
            EntitySnapshot(id="cust-2", name="Initech", date=now - timedelta(days=61))
        ]

        [task_id] = await rule_engine.check_prospect_contacts(
            now, settings_for(AutomationRule.PROSPECT_CONTACT)
        )

        task = await store.get_task(task_id)
        assert task.task_type == TaskType.PROSPECT_CONTACT
        assert task.priority == TaskPriority.MEDIUM

    async def test_threshold_from_settings(self, rule_engine, entities, now):
        """Test that the days threshold comes from the rule settings."""
        entities.candidates = [
            EntitySnapshot(id="cand-1", name="Ada", date=now - timedelta(days=20))
        ]

        created = await rule_engine.check_candidate_contacts(
            now, settings_for(AutomationRule.CANDIDATE_CONTACT, days_threshold=14)
        )

        assert len(created) == 1


class TestReminders:
    """Tests for AutomationRuleEngine.send_reminders."""

    async def _task(self, store, now, **overrides):
        values = {
            "title": "Call Ada",
            "due_date": now + timedelta(hours=12),
            "priority": TaskPriority.MEDIUM,
            "task_type": TaskType.CANDIDATE_CONTACT,
            "assigned_to": "alice",
        }
        values.update(overrides)
        return await store.create_task(**values)

    async def test_reminds_once(self, rule_engine, store, sink, now):
        """Test that a task due within the window is reminded exactly once."""
        task = await self._task(store, now)
        settings = settings_for(AutomationRule.REMINDERS)

        assert await rule_engine.send_reminders(now, settings) == 1
        assert await rule_engine.send_reminders(now, settings) == 0

        assert (await store.get_task(task.id)).reminder_sent is True
        notifications = await sink.list_notifications(NotificationFilter(user_id="alice"))
        assert len(notifications) == 1
        assert notifications[0].action == "task_reminder"
        assert notifications[0].entity_id == task.id

    async def test_window_and_status(self, rule_engine, store, now):
        """Test that tasks outside the window or already finished are skipped."""
        await self._task(store, now, due_date=now + timedelta(days=3))
        await self._task(store, now, status=TaskStatus.COMPLETED)
        await self._task(store, now, status=TaskStatus.CANCELLED)
        overdue = await self._task(store, now, due_date=now - timedelta(days=2))

        sent = await rule_engine.send_reminders(now, settings_for(AutomationRule.REMINDERS))

        assert sent == 1
        assert (await store.get_task(overdue.id)).reminder_sent is True

    async def test_unassigned_task_reminds_default_recipient(self, rule_engine, store, sink, now):
        await self._task(store, now, assigned_to=None)

        await rule_engine.send_reminders(now, settings_for(AutomationRule.REMINDERS))

        assert await sink.count_unread("admin") == 1

    async def test_explicit_window(self, rule_engine, store, now):
        """Test that an explicit window overrides the days threshold."""
        await self._task(store, now, due_date=now + timedelta(hours=30))

        narrow = await rule_engine.send_reminders(
            now, settings_for(AutomationRule.REMINDERS), window=timedelta(hours=6)
        )
        wide = await rule_engine.send_reminders(
            now, settings_for(AutomationRule.REMINDERS), window=timedelta(hours=48)
        )

        assert (narrow, wide) == (0, 1)

    async def test_disabled(self, rule_engine, store, now):
        await self._task(store, now)

        assert (
            await rule_engine.send_reminders(
                now, settings_for(AutomationRule.REMINDERS, enabled=False)
            )
            == 0
        )


class TestEventTasks:
    """Tests for match review and application follow-up tasks."""

    async def test_create_matching_task(self, rule_engine, sink, now):
        task = await rule_engine.create_matching_task(
            candidate_id="cand-1",
            job_id="job-1",
            match_score=91,
            candidate_name="Ada",
            job_title="Backend Engineer",
            now=now,
        )

        assert task.task_type == TaskType.MATCHING_REVIEW
        assert task.priority == TaskPriority.HIGH
        assert task.due_date == now + timedelta(days=2)
        assert await sink.count_unread("admin") == 1

        duplicate = await rule_engine.create_matching_task(
            candidate_id="cand-1",
            job_id="job-2",
            match_score=75,
            candidate_name="Ada",
            job_title="Frontend Engineer",
            now=now,
        )
        assert duplicate is None

    async def test_create_application_followup_task(self, rule_engine, sink, now):
        task = await rule_engine.create_application_followup_task(
            application_id="app-1",
            applicant_name="Ada",
            job_title="Backend Engineer",
            now=now,
        )

        assert task.task_type == TaskType.APPLICATION_FOLLOWUP
        assert task.related_entity_type == RelatedEntityType.APPLICATION
        assert task.due_date == now + timedelta(days=7)
        assert task.is_automated is True
        assert await sink.count_unread("admin") == 0


class TestDatabaseEntityLookup:
    """Tests for reading entities from the host application's tables."""

    async def test_lists_active_entities(self, db_session, runner, now):
        await db_session.execute(
            insert(jobs_table),
            [
                {"id": "job-1", "title": "Backend", "active": True,
                 "expiry_date": now + timedelta(days=3), "owner_id": "alice"},
                {"id": "job-2", "title": "Closed", "active": False,
                 "expiry_date": now + timedelta(days=3), "owner_id": None},
            ],
        )
        await db_session.execute(
            insert(candidates_table),
            [{"id": "cand-1", "name": "Ada", "active": True, "last_contact_date": None}],
        )
        await db_session.execute(
            insert(customers_table),
            [
                {"id": "cust-1", "name": "Acme", "active": True, "is_prospect": False,
                 "last_contact_date": now - timedelta(days=100)},
                {"id": "cust-2", "name": "Initech", "active": True, "is_prospect": True,
                 "last_contact_date": now - timedelta(days=100)},
            ],
        )
        await db_session.commit()

        lookup = DatabaseEntityLookup(runner)

        jobs = await lookup.list_jobs()
        assert [(j.id, j.name, j.owner_id) for j in jobs] == [("job-1", "Backend", "alice")]
        assert jobs[0].date == now + timedelta(days=3)

        candidates = await lookup.list_candidates()
        assert [(c.id, c.date) for c in candidates] == [("cand-1", None)]

        assert [c.id for c in await lookup.list_customers(prospects=False)] == ["cust-1"]
        assert [c.id for c in await lookup.list_customers(prospects=True)] == ["cust-2"]
