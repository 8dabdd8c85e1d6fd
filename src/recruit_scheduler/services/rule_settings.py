"""Persisted per-rule automation settings."""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from recruit_scheduler.db.repositories import AutomationRuleRepository
from recruit_scheduler.db.runner import SessionRunner
from recruit_scheduler.errors import ValidationError
from recruit_scheduler.models.automation import (
    DEFAULT_RULE_SETTINGS,
    RULE_ORDER,
    AutomationRule,
    RuleSettings,
)
from recruit_scheduler.models.scheduled_task import ensure_utc, ensure_utc_optional

logger = logging.getLogger(__name__)


class RuleSettingsStore:
    """Reads and writes rule settings, falling back to defaults for unsaved rules."""

    def __init__(self, runner: SessionRunner) -> None:
        self._runner = runner

    async def get_settings(self) -> dict[AutomationRule, RuleSettings]:
        async def op(session: AsyncSession) -> dict[AutomationRule, RuleSettings]:
            saved = {m.rule: m for m in await AutomationRuleRepository(session).list_all()}
            settings: dict[AutomationRule, RuleSettings] = {}
            for rule in RULE_ORDER:
                default = DEFAULT_RULE_SETTINGS[rule]
                model = saved.get(rule)
                if model is None:
                    settings[rule] = replace(default)
                else:
                    settings[rule] = replace(
                        default,
                        enabled=model.enabled,
                        days_threshold=model.days_threshold,
                        notify=model.notify,
                        last_run_at=ensure_utc_optional(model.last_run_at),
                    )
            return settings

        return await self._runner.run(op, "get automation settings")

    async def update_settings(
        self, updates: dict[AutomationRule, dict[str, Any]]
    ) -> dict[AutomationRule, RuleSettings]:
        """Apply partial updates (enabled, days_threshold, notify) per rule.

        Rules not named in ``updates`` keep their current settings.
        """
        for rule, changes in updates.items():
            unknown = set(changes) - {"enabled", "days_threshold", "notify"}
            if unknown:
                raise ValidationError(
                    f"{rule.value}: unknown settings {', '.join(sorted(unknown))}"
                )
            threshold = changes.get("days_threshold")
            if threshold is not None and threshold < 0:
                raise ValidationError(f"{rule.value}: daysThreshold must not be negative")

        current = await self.get_settings()

        async def op(session: AsyncSession) -> None:
            repo = AutomationRuleRepository(session)
            for rule, changes in updates.items():
                merged = current[rule]
                await repo.upsert(
                    rule,
                    enabled=_pick(changes, "enabled", merged.enabled),
                    days_threshold=_pick(changes, "days_threshold", merged.days_threshold),
                    notify=_pick(changes, "notify", merged.notify),
                )

        await self._runner.run(op, "update automation settings")
        logger.info(
            f"Updated automation settings for {', '.join(r.value for r in updates)}"
        )
        return await self.get_settings()

    async def mark_run(self, rule: AutomationRule, now: datetime) -> None:
        """Advance the rule's last-run watermark to ``now``."""

        async def op(session: AsyncSession) -> None:
            await AutomationRuleRepository(session).set_last_run(
                rule,
                ensure_utc(now),
                default_days_threshold=DEFAULT_RULE_SETTINGS[rule].days_threshold,
            )

        await self._runner.run(op, f"mark {rule.value} run")


def _pick(changes: dict[str, Any], key: str, fallback: Any) -> Any:
    value = changes.get(key)
    return fallback if value is None else value
