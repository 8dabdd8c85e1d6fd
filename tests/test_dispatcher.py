"""Tests for the AutomationDispatcher."""

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from recruit_scheduler.errors import AutomationRunInProgressError, TransientStoreError
from recruit_scheduler.models.automation import RULE_ORDER, AutomationRule
from recruit_scheduler.models.notification import NotificationFilter
from recruit_scheduler.models.scheduled_task import ScheduledTaskStatus
from recruit_scheduler.models.task import TaskFilter, TaskType
from recruit_scheduler.services import EntitySnapshot


@pytest.fixture
def populated(entities, now):
    """One expiring job, one overdue candidate, customer and prospect each."""
    entities.jobs = [
        EntitySnapshot(id="job-1", name="Backend Engineer", date=now + timedelta(days=4), owner_id="alice")
    ]
    entities.candidates = [
        EntitySnapshot(id="cand-1", name="Ada", date=now - timedelta(days=70))
    ]
    entities.customers = [
        EntitySnapshot(id="cust-1", name="Acme", date=now - timedelta(days=100), owner_id="bob")
    ]
    entities.prospects = [
        EntitySnapshot(id="cust-2", name="Initech", date=now - timedelta(days=70))
    ]
    return entities


class TestRunAll:
    """Tests for AutomationDispatcher.run_all."""

    async def test_full_pass(self, dispatcher, populated, store, sink, now):
        """Test that every category runs and the summary adds up."""
        summary = await dispatcher.run_all(now)

        assert summary.errors == {}
        assert len(summary.job_expiry_tasks) == 1
        assert len(summary.candidate_contact_tasks) == 1
        # Customer and prospect tasks are reported together
        assert len(summary.customer_contact_tasks) == 2
        assert summary.total_tasks == 4
        assert summary.started_at == now
        assert summary.finished_at is not None
        assert summary.message.startswith("4 automated tasks created")

    async def test_job_expiry_reminder_same_pass(self, dispatcher, entities, store, sink, now):
        """Test that a new job-expiry task is reminded in the same pass.

        The task falls due five days before an expiry four days away, so it
        is already overdue when the reminder category runs.
        """
        entities.jobs = [
            EntitySnapshot(id="job-1", name="Backend Engineer", date=now + timedelta(days=4), owner_id="alice")
        ]

        summary = await dispatcher.run_all(now)

        assert len(summary.job_expiry_tasks) == 1
        task = await store.get_task(summary.job_expiry_tasks[0])
        assert task.due_date == now - timedelta(days=1)
        assert task.reminder_sent is True
        assert summary.reminder_count == 1
        notifications = await sink.list_notifications(NotificationFilter(user_id="alice"))
        assert sorted(n.action for n in notifications) == ["task_created", "task_reminder"]

    async def test_second_pass_creates_nothing(self, dispatcher, populated, now):
        """Test that a repeated pass is idempotent."""
        await dispatcher.run_all(now)

        summary = await dispatcher.run_all(now)

        assert summary.total_tasks == 0
        assert summary.errors == {}

    async def test_failing_category_is_isolated(self, dispatcher, populated, store, now):
        """Test that one failing category does not stop the others."""
        populated.failures["candidates"] = RuntimeError("candidate store offline")

        summary = await dispatcher.run_all(now)

        assert set(summary.errors) == {"candidate_contact"}
        assert "candidate store offline" in summary.errors["candidate_contact"]
        assert len(summary.job_expiry_tasks) == 1
        assert len(summary.customer_contact_tasks) == 2
        assert summary.candidate_contact_tasks == []
        assert "(4 of 5 rule categories succeeded)" in summary.message

    async def test_settings_failure_is_reported_per_category(
        self, dispatcher, populated, rule_settings, store, now
    ):
        """Test that unreadable settings still produce a summary with every category failed."""
        failure = AsyncMock(side_effect=TransientStoreError("get automation settings failed"))

        with patch.object(rule_settings, "get_settings", failure):
            summary = await dispatcher.run_all(now)

        assert set(summary.errors) == {rule.value for rule in RULE_ORDER}
        assert all("settings unavailable" in e for e in summary.errors.values())
        assert summary.total_tasks == 0
        assert summary.finished_at is not None
        assert await store.list_tasks() == []
        assert dispatcher.is_running is False

    async def test_timeout_becomes_rule_error(
        self, rule_engine, scheduler, rule_settings, populated, now
    ):
        """Test that a hanging category is cut off by the rule timeout."""
        from recruit_scheduler.services import AutomationDispatcher

        async def hang():
            await asyncio.sleep(10)

        populated.list_jobs = hang
        dispatcher = AutomationDispatcher(
            rule_engine, scheduler, rule_settings, rule_timeout=0.05
        )

        summary = await dispatcher.run_all(now)

        assert "timed out" in summary.errors["job_expiry"]
        assert len(summary.candidate_contact_tasks) == 1

    async def test_disabled_rules_are_skipped(self, dispatcher, populated, rule_settings, now):
        """Test that disabled rules are reported as skipped."""
        await rule_settings.update_settings(
            {AutomationRule.CUSTOMER_CONTACT: {"enabled": False}}
        )

        summary = await dispatcher.run_all(now)

        assert summary.skipped == ["customer_contact"]
        # Only the prospect task remains
        assert len(summary.customer_contact_tasks) == 1

    async def test_watermark_advances(self, dispatcher, populated, rule_settings, now):
        """Test that successful categories record their last run."""
        populated.failures["jobs"] = RuntimeError("down")

        await dispatcher.run_all(now)

        settings = await rule_settings.get_settings()
        assert settings[AutomationRule.JOB_EXPIRY].last_run_at is None
        assert settings[AutomationRule.CANDIDATE_CONTACT].last_run_at == now

    async def test_concurrent_run_is_rejected(self, dispatcher, populated, now):
        """Test that a second pass while one is running is rejected."""
        started = asyncio.Event()
        release = asyncio.Event()
        original = populated.list_jobs

        async def slow_jobs():
            started.set()
            await release.wait()
            return await original()

        populated.list_jobs = slow_jobs

        first = asyncio.create_task(dispatcher.run_all(now))
        await started.wait()
        assert dispatcher.is_running is True

        with pytest.raises(AutomationRunInProgressError):
            await dispatcher.run_all(now)
        with pytest.raises(AutomationRunInProgressError):
            await dispatcher.run_due(now)

        release.set()
        summary = await first
        assert len(summary.job_expiry_tasks) == 1
        assert dispatcher.is_running is False


class TestRunDue:
    """Tests for AutomationDispatcher.run_due."""

    async def test_runs_due_tasks_in_order(self, dispatcher, scheduler, populated, store, now):
        """Test that due tasks execute their rule category and complete."""
        job_check = await scheduler.create_task(
            task_type="job_expiry_check", scheduled_for=now - timedelta(hours=1)
        )
        generic = await scheduler.create_task(
            task_type="generic", scheduled_for=now - timedelta(minutes=5)
        )
        future = await scheduler.create_task(
            task_type="candidate_contact_check", scheduled_for=now + timedelta(hours=1)
        )

        summary = await dispatcher.run_due(now)

        assert summary.completed == [job_check.id, generic.id]
        assert summary.failed == {}
        done = await scheduler.get_task(job_check.id)
        assert done.status == ScheduledTaskStatus.COMPLETED
        assert len(done.result["created_task_ids"]) == 1
        assert (await scheduler.get_task(generic.id)).result == {"task_type": "generic"}
        assert (await scheduler.get_task(future.id)).status == ScheduledTaskStatus.PENDING
        assert await store.list_tasks(TaskFilter(task_type=TaskType.CANDIDATE_CONTACT)) == []

    async def test_config_threshold_overrides_settings(self, dispatcher, scheduler, entities, now):
        """Test that a scheduled task's days_threshold wins over the rule setting."""
        entities.candidates = [
            EntitySnapshot(id="cand-1", name="Ada", date=now - timedelta(days=20))
        ]
        task = await scheduler.create_task(
            task_type="candidate_contact_check",
            scheduled_for=now,
            config={"days_threshold": 14},
        )

        await dispatcher.run_due(now)

        result = (await scheduler.get_task(task.id)).result
        assert len(result["created_task_ids"]) == 1

    async def test_runs_even_if_rule_disabled(self, dispatcher, scheduler, rule_settings, populated, now):
        """Test that scheduling a task is an explicit request to run its rule."""
        await rule_settings.update_settings({AutomationRule.JOB_EXPIRY: {"enabled": False}})
        task = await scheduler.create_task(task_type="job_expiry_check", scheduled_for=now)

        await dispatcher.run_due(now)

        assert len((await scheduler.get_task(task.id)).result["created_task_ids"]) == 1

    async def test_reminder_dispatch_window(self, dispatcher, scheduler, store, now):
        """Test that hours_before_due sets the reminder window."""
        await store.create_task(
            title="Call Ada",
            due_date=now + timedelta(hours=30),
            priority="medium",
            task_type="candidate_contact",
        )
        task = await scheduler.create_task(
            task_type="reminder_dispatch",
            scheduled_for=now,
            config={"hours_before_due": 48},
        )

        await dispatcher.run_due(now)

        assert (await scheduler.get_task(task.id)).result == {
            "rule": "reminders",
            "reminder_count": 1,
        }

    async def test_failure_marks_task_failed(self, dispatcher, scheduler, populated, now):
        """Test that a failing rule fails only its own task."""
        populated.failures["jobs"] = RuntimeError("job store offline")
        failing = await scheduler.create_task(
            task_type="job_expiry_check", scheduled_for=now - timedelta(minutes=2)
        )
        ok = await scheduler.create_task(
            task_type="customer_contact_check", scheduled_for=now - timedelta(minutes=1)
        )

        summary = await dispatcher.run_due(now)

        assert list(summary.failed) == [failing.id]
        assert summary.completed == [ok.id]
        failed = await scheduler.get_task(failing.id)
        assert failed.status == ScheduledTaskStatus.FAILED
        assert "job store offline" in failed.error

    async def test_due_query_failure_returns_summary(self, dispatcher, scheduler, now):
        """Test that a failed due query leaves tasks pending and reports the error."""
        task = await scheduler.create_task(task_type="generic", scheduled_for=now)
        failure = AsyncMock(side_effect=TransientStoreError("list due scheduled tasks failed"))

        with patch.object(scheduler, "get_due_tasks", failure):
            summary = await dispatcher.run_due(now)

        assert summary.error == "list due scheduled tasks failed"
        assert summary.completed == []
        assert (await scheduler.get_task(task.id)).status == ScheduledTaskStatus.PENDING

    async def test_start_failure_fails_only_that_task(self, dispatcher, scheduler, now):
        """Test that a store error while starting one task does not stop the pass."""
        flaky = await scheduler.create_task(
            task_type="generic", scheduled_for=now - timedelta(minutes=2)
        )
        ok = await scheduler.create_task(
            task_type="generic", scheduled_for=now - timedelta(minutes=1)
        )
        start_task = scheduler.start_task

        async def start_or_fail(task_id, now=None):
            if task_id == flaky.id:
                raise TransientStoreError("start scheduled task failed")
            return await start_task(task_id, now=now)

        with patch.object(scheduler, "start_task", start_or_fail):
            summary = await dispatcher.run_due(now)

        assert summary.failed == {flaky.id: "start scheduled task failed"}
        assert summary.completed == [ok.id]
        assert (await scheduler.get_task(flaky.id)).status == ScheduledTaskStatus.PENDING

    async def test_recurring_task_is_rescheduled(self, dispatcher, scheduler, now):
        """Test that a recurring task returns to pending one period later."""
        task = await scheduler.create_task(
            task_type="generic",
            scheduled_for=now - timedelta(minutes=30),
            interval_type="interval",
            interval_value=1,
            interval_unit="hours",
        )

        await dispatcher.run_due(now)

        updated = await scheduler.get_task(task.id)
        assert updated.status == ScheduledTaskStatus.PENDING
        assert updated.scheduled_for == now + timedelta(minutes=30)
        assert updated.run_count == 1
        assert updated.last_run_at == now

    async def test_nothing_due(self, dispatcher, now):
        summary = await dispatcher.run_due(now)

        assert summary.completed == []
        assert summary.failed == {}
