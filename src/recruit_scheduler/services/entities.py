"""Entity lookup used by the automation rules."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import Table, select
from sqlalchemy.ext.asyncio import AsyncSession

from recruit_scheduler.db.entities import candidates_table, customers_table, jobs_table
from recruit_scheduler.db.runner import SessionRunner
from recruit_scheduler.models.scheduled_task import ensure_utc_optional


@dataclass(frozen=True)
class EntitySnapshot:
    """Point-in-time view of a job, candidate or customer.

    ``date`` is the field the entity's rule looks at: the expiry date for
    jobs, the last contact date for candidates and customers. It may be None.
    """

    id: str
    name: str
    date: datetime | None
    active: bool = True
    owner_id: str | None = None


class EntityLookup(Protocol):
    async def list_jobs(self) -> list[EntitySnapshot]: ...

    async def list_candidates(self) -> list[EntitySnapshot]: ...

    async def list_customers(self, prospects: bool) -> list[EntitySnapshot]: ...


class DatabaseEntityLookup:
    """Reads active entities from the host application's tables."""

    def __init__(self, runner: SessionRunner) -> None:
        self._runner = runner

    async def list_jobs(self) -> list[EntitySnapshot]:
        return await self._fetch(
            jobs_table, jobs_table.c.title, jobs_table.c.expiry_date, "list jobs"
        )

    async def list_candidates(self) -> list[EntitySnapshot]:
        return await self._fetch(
            candidates_table,
            candidates_table.c.name,
            candidates_table.c.last_contact_date,
            "list candidates",
        )

    async def list_customers(self, prospects: bool) -> list[EntitySnapshot]:
        return await self._fetch(
            customers_table,
            customers_table.c.name,
            customers_table.c.last_contact_date,
            "list prospects" if prospects else "list customers",
            customers_table.c.is_prospect.is_(prospects),
        )

    async def _fetch(
        self, table: Table, name_col, date_col, description: str, *criteria
    ) -> list[EntitySnapshot]:
        query = select(
            table.c.id, name_col, date_col, table.c.active, table.c.owner_id
        ).where(table.c.active.is_(True))
        for criterion in criteria:
            query = query.where(criterion)
        query = query.order_by(table.c.id)

        async def op(session: AsyncSession) -> list[EntitySnapshot]:
            result = await session.execute(query)
            return [
                EntitySnapshot(
                    id=str(row[0]),
                    name=row[1],
                    date=ensure_utc_optional(row[2]),
                    active=bool(row[3]),
                    owner_id=row[4],
                )
                for row in result.all()
            ]

        return await self._runner.run(op, description)
