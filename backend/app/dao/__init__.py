"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from app.dao.base import BaseDAO
from app.dao.user import UserDAO
from app.dao.organization import OrganizationDAO
from app.dao.workspace import WorkspaceDAO, WorkspaceMemberDAO
from app.dao.invitation import OrganizationInvitationDAO, WorkspaceInvitationDAO
from app.dao.audit_log import AuditLogDAO
from app.dao.task import TaskDAO
from app.dao.file import FileRecordDAO, FileShareDAO
from app.dao.notification import NotificationDAO, NotificationPreferenceDAO

__all__ = [
    "BaseDAO",
    "UserDAO",
    "OrganizationDAO",
    "WorkspaceDAO",
    "WorkspaceMemberDAO",
    "OrganizationInvitationDAO",
    "WorkspaceInvitationDAO",
    "AuditLogDAO",
    "TaskDAO",
    "FileRecordDAO",
    "FileShareDAO",
    "NotificationDAO",
    "NotificationPreferenceDAO",
]
