"""Scheduled task API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Query, status

from recruit_scheduler.dependencies import DispatcherDep, SchedulerDep
from recruit_scheduler.models.api import (
    DueRunResponse,
    ScheduledTaskCreate,
    ScheduledTaskResponse,
    SchedulerLogResponse,
)
from recruit_scheduler.models.scheduled_task import (
    ScheduledTaskFilter,
    ScheduledTaskStatus,
    ScheduledTaskType,
)

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.get("", response_model=list[ScheduledTaskResponse])
async def list_scheduled_tasks(
    scheduler: SchedulerDep,
    task_status: ScheduledTaskStatus | None = Query(default=None, alias="status"),
    task_type: ScheduledTaskType | None = Query(default=None, alias="taskType"),
    entity_type: str | None = Query(default=None, alias="entityType"),
    entity_id: str | None = Query(default=None, alias="entityId"),
    from_date: datetime | None = Query(default=None, alias="fromDate"),
    to_date: datetime | None = Query(default=None, alias="toDate"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> list[ScheduledTaskResponse]:
    tasks = await scheduler.list_tasks(
        ScheduledTaskFilter(
            status=task_status,
            task_type=task_type,
            entity_type=entity_type,
            entity_id=entity_id,
            from_date=from_date,
            to_date=to_date,
            limit=limit,
            offset=offset,
        )
    )
    return [ScheduledTaskResponse.from_task(t) for t in tasks]


@router.post(
    "", status_code=status.HTTP_201_CREATED, response_model=ScheduledTaskResponse
)
async def create_scheduled_task(
    body: ScheduledTaskCreate, scheduler: SchedulerDep
) -> ScheduledTaskResponse:
    task = await scheduler.create_task(
        task_type=body.task_type,
        scheduled_for=body.scheduled_for,
        interval_type=body.interval_type,
        interval_value=body.interval_value,
        interval_unit=body.interval_unit,
        custom_schedule=body.custom_schedule,
        config=body.config,
        entity_id=body.entity_id,
        entity_type=body.entity_type,
    )
    return ScheduledTaskResponse.from_task(task)


@router.delete("")
async def delete_scheduled_task(
    scheduler: SchedulerDep,
    task_id: str = Query(alias="id"),
) -> dict[str, bool | str]:
    await scheduler.delete_task(task_id)
    return {"success": True, "id": task_id}


@router.post("/run-due", response_model=DueRunResponse)
async def run_due_tasks(dispatcher: DispatcherDep) -> DueRunResponse:
    """Execute every pending scheduled task that is due now."""
    summary = await dispatcher.run_due()
    return DueRunResponse.from_summary(summary)


@router.get("/{task_id}", response_model=ScheduledTaskResponse)
async def get_scheduled_task(task_id: str, scheduler: SchedulerDep) -> ScheduledTaskResponse:
    return ScheduledTaskResponse.from_task(await scheduler.get_task(task_id))


@router.post("/{task_id}/cancel", response_model=ScheduledTaskResponse)
async def cancel_scheduled_task(
    task_id: str, scheduler: SchedulerDep
) -> ScheduledTaskResponse:
    await scheduler.cancel_task(task_id)
    return ScheduledTaskResponse.from_task(await scheduler.get_task(task_id))


@router.post("/{task_id}/reset", response_model=ScheduledTaskResponse)
async def reset_scheduled_task(
    task_id: str, scheduler: SchedulerDep
) -> ScheduledTaskResponse:
    """Move a stuck running or failed task back to pending."""
    return ScheduledTaskResponse.from_task(await scheduler.reset_task(task_id))


@router.get("/{task_id}/logs",response_model=list[SchedulerLogResponse])
async def get_scheduled_task_logs(
    task_id: str, scheduler: SchedulerDep
) -> list[SchedulerLogResponse]:
    return [SchedulerLogResponse.from_entry(e) for e in await scheduler.get_logs(task_id)]
