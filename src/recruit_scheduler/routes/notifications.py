"""Notification API endpoints."""

from fastapi import APIRouter, Query, status

from recruit_scheduler.dependencies import NotificationSinkDep
from recruit_scheduler.models.api import (
    MarkAllReadRequest,
    MarkAllReadResponse,
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
)
from recruit_scheduler.models.notification import NotificationFilter

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    sink: NotificationSinkDep,
    user_id: str = Query(min_length=1),
    unread_only: bool = False,
    entity_type: str | None = None,
    entity_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> NotificationListResponse:
    notifications = await sink.list_notifications(
        NotificationFilter(
            user_id=user_id,
            unread_only=unread_only,
            entity_type=entity_type,
            entity_id=entity_id,
            limit=limit,
            offset=offset,
        )
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.from_notification(n) for n in notifications],
        unread_count=await sink.count_unread(user_id),
    )


@router.post(
    "", status_code=status.HTTP_201_CREATED, response_model=NotificationResponse
)
async def create_notification(
    body: NotificationCreate, sink: NotificationSinkDep
) -> NotificationResponse:
    notification = await sink.create_notification(**body.model_dump())
    return NotificationResponse.from_notification(notification)


@router.put("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_read(
    body: MarkAllReadRequest, sink: NotificationSinkDep
) -> MarkAllReadResponse:
    updated = await sink.mark_all_read(body.user_id)
    return MarkAllReadResponse(
        updated=updated, unread_count=await sink.count_unread(body.user_id)
    )


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, sink: NotificationSinkDep) -> dict[str, bool | str]:
    await sink.mark_read(notification_id)
    return {"success": True, "id": notification_id}
