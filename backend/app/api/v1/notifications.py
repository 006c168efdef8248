"""In-app notification inbox for the current user."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.core.deps import get_current_user, get_repository
from app.models.user import User
from app.repositories.base import WorkflowRepository
from app.schemas.notification import NotificationListResponse, NotificationOut
from app.services import notifications as notifications_svc

router = APIRouter()


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications for the current user",
)
async def list_notifications(
    repo: Annotated[WorkflowRepository, Depends(get_repository)],
    current_user: Annotated[User, Depends(get_current_user)],
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
):
    notifications = await notifications_svc.list_notifications(
        repo, current_user.id, unread_only=unread_only, limit=limit
    )
    unread = await notifications_svc.list_notifications(
        repo, current_user.id, unread_only=True, limit=limit
    )
    return NotificationListResponse(
        items=[NotificationOut.model_validate(n) for n in notifications],
        total=len(notifications),
        unread=len(unread),
    )


@router.post(
    "/{notification_id}/read",
    response_model=NotificationOut,
    summary="Mark a notification as read",
)
async def mark_notification_read(
    notification_id: uuid.UUID,
    repo: Annotated[WorkflowRepository, Depends(get_repository)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    notification = await notifications_svc.mark_read(repo, notification_id, current_user.id)
    return NotificationOut.model_validate(notification)
