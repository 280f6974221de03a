"""
Pydantic schemas for notification endpoints.
"""

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field

from app.models.notification import NotificationPriority, NotificationType


class NotificationCreate(BaseModel):
    """Administrative notification to a single user."""

    user_id: int = Field(..., description="Recipient user ID")
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    extra_data: dict = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 7,
                "type": "system_announcement",
                "title": "Maintenance window",
                "message": "The service restarts at 22:00 UTC",
                "priority": "high",
            }
        }


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    extra_data: dict | None = None
    triggered_by_id: int | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationPage(BaseModel):
    limit: int
    has_more: bool


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
    pagination: NotificationPage


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    message: str
    marked_count: int


class NotificationCreatedResponse(BaseModel):
    message: str
    notification_id: int


class NotificationPreferencesUpdate(BaseModel):
    """Partial preference update; omitted fields keep their stored value."""

    is_enabled: bool | None = None
    muted_types: List[NotificationType] | None = None
    email_notifications: bool | None = None
    push_notifications: bool | None = None
    quiet_hours: dict | None = None


class NotificationPreferencesResponse(BaseModel):
    is_enabled: bool
    muted_types: List[str]
    email_notifications: bool
    push_notifications: bool
    quiet_hours: dict | None = None

    class Config:
        from_attributes = True


class NotificationTypesResponse(BaseModel):
    types: Dict[str, str]
    priorities: Dict[str, str]
