"""
Notification models.

WHAT: Persisted in-app notifications and the per-user preferences that
decide which of them are stored.

WHY: Access changes (joining an organization, a new role, a workspace
invitation, a task assignment) are things the affected user needs to
learn about. The notification store is the inbox; real-time delivery is
an external collaborator that reads from it.

HOW: One row per notification, addressed to exactly one user. A user has
at most one preference row; without one, DEFAULT_NOTIFICATION_PREFERENCES
apply and every notification type is enabled.
"""

import enum
from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


def _enum_values(enum_class) -> list:
    return [member.value for member in enum_class]


class NotificationType(str, enum.Enum):
    """Kinds of notification a user can receive and mute."""

    FILE_UPLOADED = "file_uploaded"
    FILE_SHARED = "file_shared"
    FILE_DELETED = "file_deleted"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    WORKSPACE_INVITE = "workspace_invite"
    WORKSPACE_REMOVED = "workspace_removed"
    WORKSPACE_ROLE_CHANGED = "workspace_role_changed"
    MEMBER_JOINED = "member_joined"
    MEMBER_LEFT = "member_left"
    ROLE_CHANGED = "role_changed"
    SECURITY_ALERT = "security_alert"
    SYSTEM_ANNOUNCEMENT = "system_announcement"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


NOTIFICATION_TYPE_DESCRIPTIONS: Dict[NotificationType, str] = {
    NotificationType.FILE_UPLOADED: "When someone uploads a file to a workspace you're part of",
    NotificationType.FILE_SHARED: "When a file is shared with you",
    NotificationType.FILE_DELETED: "When a file you uploaded is deleted",
    NotificationType.TASK_ASSIGNED: "When you are assigned a new task",
    NotificationType.TASK_COMPLETED: "When a task you created is completed",
    NotificationType.WORKSPACE_INVITE: "When you are invited to join a workspace",
    NotificationType.WORKSPACE_REMOVED: "When you are removed from a workspace",
    NotificationType.WORKSPACE_ROLE_CHANGED: "When your role in a workspace changes",
    NotificationType.MEMBER_JOINED: "When someone joins your organization or workspace",
    NotificationType.MEMBER_LEFT: "When someone leaves your organization or workspace",
    NotificationType.ROLE_CHANGED: "When your role or permissions change",
    NotificationType.SECURITY_ALERT: "Security events on your account",
    NotificationType.SYSTEM_ANNOUNCEMENT: "System-wide announcements and updates",
}

NOTIFICATION_PRIORITY_DESCRIPTIONS: Dict[NotificationPriority, str] = {
    NotificationPriority.LOW: "Low priority notifications (can be batched)",
    NotificationPriority.MEDIUM: "Normal priority notifications",
    NotificationPriority.HIGH: "Important notifications (immediate delivery)",
    NotificationPriority.URGENT: "Critical notifications (immediate delivery + sound)",
}

# Applied when a user has never saved preferences
DEFAULT_NOTIFICATION_PREFERENCES: Dict[str, Any] = {
    "is_enabled": True,
    "email_notifications": False,
    "push_notifications": True,
    "quiet_hours": {"enabled": False, "start": "22:00", "end": "08:00"},
}


class Notification(Base, PrimaryKeyMixin, TimestampMixin):
    """
    A notification addressed to one user.

    Fields:
    - user_id: Recipient
    - type / priority: NotificationType / NotificationPriority
    - title / message: Display text
    - extra_data: Ids of the objects the notification is about
    - triggered_by_id: The user whose action caused it (nullable)
    - is_read / read_at: Read state; read_at is set once
    """

    __tablename__ = "notifications"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(
        Enum(NotificationType, name="notificationtype", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(
        Enum(NotificationPriority, name="notificationpriority", values_callable=_enum_values),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )
    # NOTE: Named 'extra_data' because 'metadata' is reserved by SQLAlchemy
    extra_data = Column(JSON, nullable=True)
    triggered_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_notifications_user_id_is_read", "user_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"


class NotificationPreference(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Notification settings of one user.

    ``muted_types`` lists the NotificationType values the user switched
    off; anything not listed is delivered while ``is_enabled`` is set.
    """

    __tablename__ = "notification_preferences"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    is_enabled = Column(Boolean, nullable=False, default=True)
    muted_types = Column(JSON, nullable=False, default=list)
    email_notifications = Column(Boolean, nullable=False, default=False)
    push_notifications = Column(Boolean, nullable=False, default=True)
    quiet_hours = Column(JSON, nullable=True)

    def allows(self, notification_type: NotificationType) -> bool:
        return bool(self.is_enabled) and notification_type.value not in (self.muted_types or [])

    def __repr__(self) -> str:
        return f"<NotificationPreference(user_id={self.user_id}, enabled={self.is_enabled})>"
