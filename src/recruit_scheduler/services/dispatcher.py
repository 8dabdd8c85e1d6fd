"""Dispatcher driving automation passes and due scheduled tasks."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from recruit_scheduler.errors import (
    AutomationRunInProgressError,
    ConflictError,
    NotFoundError,
    RuleEvaluationError,
    SchedulerError,
)
from recruit_scheduler.models.automation import (
    RULE_ORDER,
    AutomationRule,
    AutomationSummary,
    DueRunSummary,
    RuleSettings,
)
from recruit_scheduler.models.scheduled_task import (
    ReminderDispatchConfig,
    ScheduledTask,
    ScheduledTaskType,
    ensure_utc,
)
from recruit_scheduler.services.automation import AutomationRuleEngine
from recruit_scheduler.services.rule_settings import RuleSettingsStore
from recruit_scheduler.services.scheduler import SchedulerService

logger = logging.getLogger(__name__)

# Rule category run by each automation task type
_TASK_TYPE_RULES: dict[ScheduledTaskType, AutomationRule] = {
    ScheduledTaskType.JOB_EXPIRY_CHECK: AutomationRule.JOB_EXPIRY,
    ScheduledTaskType.CANDIDATE_CONTACT_CHECK: AutomationRule.CANDIDATE_CONTACT,
    ScheduledTaskType.CUSTOMER_CONTACT_CHECK: AutomationRule.CUSTOMER_CONTACT,
    ScheduledTaskType.PROSPECT_CONTACT_CHECK: AutomationRule.PROSPECT_CONTACT,
    ScheduledTaskType.REMINDER_DISPATCH: AutomationRule.REMINDERS,
}


class AutomationDispatcher:
    """Runs one automation pass or one pass over due scheduled tasks.

    Only one pass runs at a time per process. A call made while another pass
    holds the lock is rejected with AutomationRunInProgressError rather than
    queued, so the duplicate-task guard never races with itself.
    """

    def __init__(
        self,
        engine: AutomationRuleEngine,
        scheduler: SchedulerService,
        rule_settings: RuleSettingsStore,
        rule_timeout: float = 120.0,
    ) -> None:
        self._engine = engine
        self._scheduler = scheduler
        self._rule_settings = rule_settings
        self._rule_timeout = rule_timeout
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_all(self, now: datetime | None = None) -> AutomationSummary:
        """Evaluate every rule category once, in fixed order.

        ``now`` is captured once and shared by all categories. A failing
        category is recorded in ``summary.errors`` and the remaining
        categories still run.
        """
        async with self._exclusive():
            now = ensure_utc(now) if now else datetime.now(timezone.utc)
            summary = AutomationSummary(started_at=now)
            logger.info(f"Automation pass started at {now.isoformat()}")

            try:
                settings = await self._rule_settings.get_settings()
            except SchedulerError as e:
                # Without settings no category can run; each one reports it
                logger.error(f"Could not load automation settings: {e.message}")
                for rule in RULE_ORDER:
                    summary.errors[rule.value] = f"settings unavailable: {e.message}"
                summary.finished_at = datetime.now(timezone.utc)
                return summary

            for rule in RULE_ORDER:
                rule_settings = settings[rule]
                if not rule_settings.enabled:
                    summary.skipped.append(rule.value)
                    logger.info(f"Rule {rule.value} disabled, skipping")
                    continue
                try:
                    result = await self._run_rule(rule, now, rule_settings)
                except RuleEvaluationError as e:
                    summary.errors[rule.value] = e.message
                    continue
                _record(summary, rule, result)
                await self._advance_watermark(rule, now)

            summary.finished_at = datetime.now(timezone.utc)
            logger.info(f"Automation pass finished: {summary.message}")
            return summary

    async def run_due(self, now: datetime | None = None) -> DueRunSummary:
        """Execute pending scheduled tasks due at ``now``, earliest first."""
        async with self._exclusive():
            now = ensure_utc(now) if now else datetime.now(timezone.utc)
            summary = DueRunSummary(started_at=now)

            try:
                due = await self._scheduler.get_due_tasks(now)
                settings = await self._rule_settings.get_settings() if due else {}
            except SchedulerError as e:
                # Nothing was started; due tasks stay pending for the next pass
                logger.error(f"Could not load due scheduled tasks: {e.message}")
                summary.error = e.message
                summary.finished_at = datetime.now(timezone.utc)
                return summary

            for task in due:
                try:
                    await self._scheduler.start_task(task.id, now=now)
                except (ConflictError, NotFoundError) as e:
                    # Cancelled or started elsewhere since the due query
                    logger.info(f"Skipping scheduled task {task.id}: {e}")
                    summary.skipped.append(task.id)
                    continue
                except SchedulerError as e:
                    logger.error(f"Could not start scheduled task {task.id}: {e.message}")
                    summary.failed[task.id] = e.message
                    continue

                try:
                    result = await self._execute(task, now, settings)
                except RuleEvaluationError as e:
                    summary.failed[task.id] = e.message
                    await self._finish(task.id, error=e.message)
                    continue
                if await self._finish(task.id, result=result, summary=summary):
                    summary.completed.append(task.id)

            summary.finished_at = datetime.now(timezone.utc)
            if due:
                logger.info(
                    f"Due pass finished: {len(summary.completed)} completed, "
                    f"{len(summary.failed)} failed, {len(summary.skipped)} skipped"
                )
            return summary

    def _exclusive(self) -> asyncio.Lock:
        if self._lock.locked():
            raise AutomationRunInProgressError("an automation run is already in progress")
        return self._lock

    async def _run_rule(
        self,
        rule: AutomationRule,
        now: datetime,
        settings: RuleSettings,
        reminder_window: timedelta | None = None,
    ) -> list[str] | int:
        """Run one rule category under the rule timeout.

        Raises:
            RuleEvaluationError: wrapping any failure of the category
        """
        handlers: dict[AutomationRule, Callable[[], Awaitable[list[str] | int]]] = {
            AutomationRule.JOB_EXPIRY: lambda: self._engine.check_job_expirations(now, settings),
            AutomationRule.CANDIDATE_CONTACT: lambda: self._engine.check_candidate_contacts(now, settings),
            AutomationRule.CUSTOMER_CONTACT: lambda: self._engine.check_customer_contacts(now, settings),
            AutomationRule.PROSPECT_CONTACT: lambda: self._engine.check_prospect_contacts(now, settings),
            AutomationRule.REMINDERS: lambda: self._engine.send_reminders(now, settings, reminder_window),
        }
        try:
            async with asyncio.timeout(self._rule_timeout):
                return await handlers[rule]()
        except TimeoutError:
            logger.error(f"Rule {rule.value} timed out after {self._rule_timeout}s")
            raise RuleEvaluationError(
                rule.value, f"timed out after {self._rule_timeout}s"
            ) from None
        except Exception as e:
            logger.exception(f"Rule {rule.value} failed: {e}")
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            raise RuleEvaluationError(rule.value, message) from e

    async def _execute(
        self,
        task: ScheduledTask,
        now: datetime,
        settings: dict[AutomationRule, RuleSettings],
    ) -> dict[str, Any]:
        """Run the rule category behind a scheduled task.

        Thresholds in the task config override the persisted rule settings.
        The rule's enabled flag is ignored: scheduling the task is an
        explicit request to run it.
        """
        rule = _TASK_TYPE_RULES.get(task.task_type)
        if rule is None:
            return {"task_type": task.task_type.value}

        rule_settings = replace(settings[rule], enabled=True)
        reminder_window = None
        if isinstance(task.config, ReminderDispatchConfig):
            if task.config.hours_before_due is not None:
                reminder_window = timedelta(hours=task.config.hours_before_due)
        elif task.config.days_threshold is not None:
            rule_settings = replace(rule_settings, days_threshold=task.config.days_threshold)

        result = await self._run_rule(rule, now, rule_settings, reminder_window)
        if isinstance(result, int):
            return {"rule": rule.value, "reminder_count": result}
        return {"rule": rule.value, "created_task_ids": result}

    async def _finish(
        self,
        task_id: str,
        result: dict[str, Any] | None = None,
        error: str | None = None,
        summary: DueRunSummary | None = None,
    ) -> bool:
        """Record the outcome of a started task; store failures are logged, not raised."""
        try:
            if error is not None:
                await self._scheduler.fail_task(task_id, error)
            else:
                await self._scheduler.complete_task(task_id, result)
        except SchedulerError as e:
            # The task stays running until reset_task moves it back to pending
            logger.error(f"Could not record outcome of scheduled task {task_id}: {e.message}")
            if summary is not None:
                summary.failed[task_id] = e.message
            return False
        return True

    async def _advance_watermark(self, rule: AutomationRule, now: datetime) -> None:
        try:
            await self._rule_settings.mark_run(rule, now)
        except SchedulerError as e:
            # The category's tasks exist already; only the watermark is stale
            logger.warning(f"Could not advance last run of {rule.value}: {e}")


def _record(summary: AutomationSummary, rule: AutomationRule, result: list[str] | int) -> None:
    if rule == AutomationRule.REMINDERS:
        summary.reminder_count += int(result)
    elif rule == AutomationRule.JOB_EXPIRY:
        summary.job_expiry_tasks.extend(result)
    elif rule == AutomationRule.CANDIDATE_CONTACT:
        summary.candidate_contact_tasks.extend(result)
    else:
        summary.customer_contact_tasks.extend(result)
