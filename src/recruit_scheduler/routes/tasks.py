"""Task API endpoints, including the automation trigger and settings."""

from fastapi import APIRouter, Query, status

from recruit_scheduler.dependencies import (
    DispatcherDep,
    RuleSettingsDep,
    TaskStoreDep,
)
from recruit_scheduler.models.api import (
    RULE_SETTING_KEYS,
    AutomationSettingsResponse,
    AutomationSettingsUpdate,
    AutomationSummaryResponse,
    TaskCreate,
    TaskResponse,
    TaskUpdate,
)
from recruit_scheduler.models.task import (
    RelatedEntityType,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    TaskType,
)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    store: TaskStoreDep,
    task_status: TaskStatus | None = Query(default=None, alias="status"),
    priority: TaskPriority | None = None,
    task_type: TaskType | None = Query(default=None, alias="taskType"),
    entity_type: RelatedEntityType | None = Query(default=None, alias="entityType"),
    entity_id: str | None = Query(default=None, alias="entityId"),
    assigned_to: str | None = Query(default=None, alias="assignedTo"),
    automated: bool | None = None,
    limit: int = Query(default=500, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> list[TaskResponse]:
    """List tasks sorted by due date ascending."""
    tasks = await store.list_tasks(
        TaskFilter(
            status=task_status,
            priority=priority,
            task_type=task_type,
            entity_type=entity_type,
            entity_id=entity_id,
            assigned_to=assigned_to,
            automated=automated,
            limit=limit,
            offset=offset,
        )
    )
    return [TaskResponse.from_task(t) for t in tasks]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=TaskResponse)
async def create_task(body: TaskCreate, store: TaskStoreDep) -> TaskResponse:
    task = await store.create_task(**body.model_dump())
    return TaskResponse.from_task(task)


@router.post("/auto-generate", response_model=AutomationSummaryResponse)
async def auto_generate_tasks(dispatcher: DispatcherDep) -> AutomationSummaryResponse:
    """Run one automation pass and report what it created.

    Category failures are reported in ``errors`` with a 200 response.
    """
    summary = await dispatcher.run_all()
    return AutomationSummaryResponse.from_summary(summary)


@router.get("/auto-generate")
async def auto_generate_status(
    dispatcher: DispatcherDep, rule_settings: RuleSettingsDep
) -> dict:
    settings = await rule_settings.get_settings()
    return {
        "success": True,
        "status": "running" if dispatcher.is_running else "idle",
        "automation": {
            RULE_SETTING_KEYS[rule]: value.enabled for rule, value in settings.items()
        },
    }


@router.get("/automation-settings", response_model=AutomationSettingsResponse)
async def get_automation_settings(
    rule_settings: RuleSettingsDep,
) -> AutomationSettingsResponse:
    return AutomationSettingsResponse.from_settings(await rule_settings.get_settings())


@router.post("/automation-settings", response_model=AutomationSettingsResponse)
async def update_automation_settings(
    body: AutomationSettingsUpdate, rule_settings: RuleSettingsDep
) -> AutomationSettingsResponse:
    settings = await rule_settings.update_settings(body.to_updates())
    return AutomationSettingsResponse.from_settings(settings)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, store: TaskStoreDep) -> TaskResponse:
    return TaskResponse.from_task(await store.get_task(task_id))


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(task_id: str, body: TaskUpdate, store: TaskStoreDep) -> TaskResponse:
    task = await store.update_task(task_id, body.model_dump(exclude_unset=True))
    return TaskResponse.from_task(task)


@router.delete("/{task_id}")
async def delete_task(task_id: str, store: TaskStoreDep) -> dict[str, bool | str]:
    await store.delete_task(task_id)
    return {"success": True, "id": task_id}
