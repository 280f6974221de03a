"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin, utc_now
from app.models.organization import Organization, DEFAULT_ORGANIZATION_SETTINGS
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from app.models.invitation import (
    InvitationStatus,
    OrganizationInvitation,
    WorkspaceInvitation,
)
from app.models.audit_log import AuditLog, AuditAction
from app.models.task import Task, TaskStatus, TaskPriority
from app.models.file import FileRecord, FileShare
from app.models.notification import (
    Notification,
    NotificationPreference,
    NotificationPriority,
    NotificationType,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "utc_now",
    "Organization",
    "DEFAULT_ORGANIZATION_SETTINGS",
    "User",
    "Workspace",
    "WorkspaceMember",
    "InvitationStatus",
    "OrganizationInvitation",
    "WorkspaceInvitation",
    "AuditLog",
    "AuditAction",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "FileRecord",
    "FileShare",
    "Notification",
    "NotificationPreference",
    "NotificationPriority",
    "NotificationType",
]
