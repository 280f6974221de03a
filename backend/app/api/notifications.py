"""
Notification API endpoints.

WHY: Users learn about changes to their access (a new member, a role
change, a workspace invitation, an assigned task) through their inbox.

HOW: Every route works on the caller's own notifications only.
Administrative sends go through POST and need manage_users.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import Admit
from app.core.deps import get_current_user, require_permission
from app.core.exceptions import ValidationError
from app.core.roles import Permission
from app.db.session import get_db
from app.models.notification import (
    NOTIFICATION_PRIORITY_DESCRIPTIONS,
    NOTIFICATION_TYPE_DESCRIPTIONS,
    Notification,
    NotificationType,
)
from app.models.user import User
from app.schemas.notification import (
    MarkAllReadResponse,
    NotificationCreate,
    NotificationCreatedResponse,
    NotificationListResponse,
    NotificationPage,
    NotificationPreferencesResponse,
    NotificationPreferencesUpdate,
    NotificationResponse,
    NotificationTypesResponse,
    UnreadCountResponse,
)
from app.services.notification_service import NotificationService


router = APIRouter(prefix="/notifications", tags=["notifications"])

MAX_PAGE_SIZE = 100


def get_notification_service(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get(
    "",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="List notifications",
    description="The caller's notifications, newest first",
)
async def list_notifications(
    limit: int = Query(default=50, ge=1),
    unread_only: bool = Query(default=False),
    type: Optional[NotificationType] = Query(default=None),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationListResponse:
    limit = min(limit, MAX_PAGE_SIZE)
    notifications = await service.list_for_user(
        current_user.id, limit=limit, unread_only=unread_only, notification_type=type
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=await service.unread_count(current_user.id),
        pagination=NotificationPage(limit=limit, has_more=len(notifications) == limit),
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    status_code=status.HTTP_200_OK,
    summary="Unread notification count",
)
async def unread_count(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await service.unread_count(current_user.id))


@router.get(
    "/types",
    response_model=NotificationTypesResponse,
    status_code=status.HTTP_200_OK,
    summary="Notification types",
    description="Every notification type and priority with a description",
)
async def notification_types(
    current_user: User = Depends(get_current_user),
) -> NotificationTypesResponse:
    return NotificationTypesResponse(
        types={t.value: text for t, text in NOTIFICATION_TYPE_DESCRIPTIONS.items()},
        priorities={p.value: text for p, text in NOTIFICATION_PRIORITY_DESCRIPTIONS.items()},
    )


@router.get(
    "/preferences",
    response_model=NotificationPreferencesResponse,
    status_code=status.HTTP_200_OK,
    summary="Get notification preferences",
)
async def get_preferences(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.get_preferences(current_user.id)


@router.put(
    "/preferences",
    response_model=NotificationPreferencesResponse,
    status_code=status.HTTP_200_OK,
    summary="Update notification preferences",
    description="Fields left out keep their current value",
)
async def update_preferences(
    data: NotificationPreferencesUpdate,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.update_preferences(current_user.id, **data.model_dump(exclude_unset=True))


@router.post(
    "",
    response_model=NotificationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send notification",
    description="Send a notification to a user (requires manage_users)",
)
async def create_notification(
    data: NotificationCreate,
    access: Admit = Depends(require_permission(Permission.MANAGE_USERS)),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationCreatedResponse:
    """
    Raises:
        ValidationError (400): If the recipient has muted this type or the
            notification could not be stored
    """
    notification = await service.notify(
        data.user_id,
        data.type,
        title=data.title,
        message=data.message,
        priority=data.priority,
        extra_data=data.extra_data,
        triggered_by_id=access.user.id,
    )
    if notification is None:
        raise ValidationError(message="Notification was not created (type disabled by user)")
    return NotificationCreatedResponse(
        message="Notification created", notification_id=notification.id
    )


@router.patch(
    "/mark-all-read",
    response_model=MarkAllReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark all notifications read",
)
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> MarkAllReadResponse:
    count = await service.mark_all_read(current_user.id)
    return MarkAllReadResponse(
        message=f"{count} notifications marked as read", marked_count=count
    )


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark notification read",
)
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> Notification:
    """
    Raises:
        ResourceNotFoundError (404), AuthorizationError (403) for another
        user's notification
    """
    return await service.mark_read(current_user.id, notification_id)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete notification",
)
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
) -> None:
    await service.delete(current_user.id, notification_id)
