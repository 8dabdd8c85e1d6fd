"""Automation rule settings repository."""

from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import CursorResult, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_scheduler.db.models import AutomationRuleModel
from recruit_scheduler.models.automation import AutomationRule


class AutomationRuleRepository:
    """Repository for persisted automation rule settings."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_all(self) -> list[AutomationRuleModel]:
        result = await self.session.execute(select(AutomationRuleModel))
        return list(result.scalars().all())

    async def get(self, rule: AutomationRule) -> AutomationRuleModel | None:
        result = await self.session.execute(
            select(AutomationRuleModel).where(AutomationRuleModel.rule == rule)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        rule: AutomationRule,
        enabled: bool,
        days_threshold: int,
        notify: bool,
    ) -> AutomationRuleModel:
        """Create or replace the settings of one rule, keeping its watermark."""
        model = await self.get(rule)
        if model is None:
            model = AutomationRuleModel(
                rule=rule,
                enabled=enabled,
                days_threshold=days_threshold,
                notify=notify,
            )
            self.session.add(model)
        else:
            model.enabled = enabled
            model.days_threshold = days_threshold
            model.notify = notify
            model.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return model

    async def set_last_run(
        self,
        rule: AutomationRule,
        last_run_at: datetime,
        default_days_threshold: int,
    ) -> None:
        """Advance a rule's last-run watermark, creating its row if needed."""
        result = await self.session.execute(
            update(AutomationRuleModel)
            .where(AutomationRuleModel.rule == rule)
            .values(last_run_at=last_run_at)
        )
        if (cast(CursorResult[Any], result).rowcount or 0) > 0:
            return
        self.session.add(
            AutomationRuleModel(
                rule=rule,
                enabled=True,
                days_threshold=default_days_threshold,
                notify=True,
                last_run_at=last_run_at,
            )
        )
        await self.session.flush()
