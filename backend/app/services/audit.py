"""
Audit logging service.

WHAT: Service layer for appending audit entries with request context.

WHY: Role, status, invitation and membership changes must be traceable.
At the same time audit is observability, not part of the business
transaction: a failed audit write is logged and swallowed so that the
change it describes still goes through.

HOW: Each write runs in a SAVEPOINT (``session.begin_nested()``). If the
insert fails only the savepoint is rolled back, and the surrounding
request transaction stays usable. IP and user agent come from the
RequestContextMiddleware.
"""

import logging
from typing import Optional, Dict, Any, List

from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.audit_log import AuditLogDAO
from app.models.audit_log import AuditLog, AuditAction
from app.middleware.request_context import get_request_context


# Logger for audit service errors (not audit events themselves)
logger = logging.getLogger(__name__)


DEFAULT_REASONS: Dict[AuditAction, str] = {
    AuditAction.ROLE_CHANGE: "Organization role updated by administrator",
    AuditAction.SYSTEM_ROLE_CHANGE: "System role updated by administrator",
    AuditAction.STATUS_CHANGE: "Account status updated by administrator",
    AuditAction.WORKSPACE_ROLE_CHANGE: "Workspace role updated by workspace administrator",
    AuditAction.WORKSPACE_MEMBER_REMOVED: "Removed from workspace by workspace administrator",
}


def default_reason(action: AuditAction) -> str:
    """System-generated reason used when the caller gave none."""
    return DEFAULT_REASONS.get(action, f"{action.value.replace('_', ' ').lower()} (system generated)")


class AuditService:
    """
    Service for creating and listing audit log entries.

    Example:
        audit = AuditService(db)
        await audit.record(
            AuditAction.ROLE_CHANGE,
            actor_user_id=admin.id,
            target_user_id=user.id,
            org_id=admin.organization_id,
            changes={"organization_role": {"before": "member", "after": "manager"}},
        )
    """

    def __init__(self, session: AsyncSession):
        self.dao = AuditLogDAO(session)
        self._session = session

    def _get_context(self) -> tuple[Optional[str], Optional[str]]:
        """
        Get IP address and user agent from request context.

        Returns:
            Tuple of (ip_address, user_agent), both may be None
        """
        ctx = get_request_context()
        if ctx:
            return ctx.ip_address, ctx.user_agent
        return None, None

    async def record(
        self,
        action: AuditAction,
        actor_user_id: Optional[int] = None,
        target_user_id: Optional[int] = None,
        org_id: Optional[int] = None,
        workspace_id: Optional[int] = None,
        resource_type: str = "user",
        resource_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """
        Append one audit entry.

        Args:
            action: Type of event (from AuditAction enum)
            actor_user_id: User who performed the action
            target_user_id: User whose access changed
            org_id: Organization scope
            workspace_id: Workspace scope
            resource_type: Category of affected resource
            resource_id: Specific resource ID (defaults to the target user)
            changes: {"field": {"before": ..., "after": ...}}
            reason: Justification; a default is generated when omitted
            extra_data: Additional context

        Returns:
            Created AuditLog or None if logging failed

        Note:
            This method never raises. Errors are logged to the application
            logger instead.
        """
        if resource_id is None and resource_type == "user":
            resource_id = target_user_id
        ip_address, user_agent = self._get_context()

        try:
            async with self._session.begin_nested():
                return await self.dao.create(
                    action=action,
                    resource_type=resource_type,
                    actor_user_id=actor_user_id,
                    target_user_id=target_user_id,
                    resource_id=resource_id,
                    org_id=org_id,
                    workspace_id=workspace_id,
                    changes=changes,
                    reason=reason or default_reason(action),
                    extra_data=extra_data,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
        except Exception as e:
            logger.error(
                "Failed to create audit log for %s: %s",
                action.value,
                e,
                exc_info=True,
            )
            return None

    async def record_role_change(
        self,
        action: AuditAction,
        actor_user_id: int,
        target_user_id: int,
        field: str,
        before: Optional[str],
        after: Optional[str],
        org_id: Optional[int] = None,
        workspace_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Convenience wrapper for a single before/after field change."""
        return await self.record(
            action,
            actor_user_id=actor_user_id,
            target_user_id=target_user_id,
            org_id=org_id,
            workspace_id=workspace_id,
            changes={field: {"before": before, "after": after}},
            reason=reason,
        )

    async def list_for_organization(
        self,
        org_id: int,
        skip: int = 0,
        limit: int = 50,
        action: Optional[AuditAction] = None,
    ) -> tuple[List[AuditLog], int]:
        """
        Page through an organization's audit trail, newest first.

        Returns:
            Tuple of (entries, total)
        """
        entries = await self.dao.get_by_org(org_id, skip=skip, limit=limit, action=action)
        total = await self.dao.count_by_org(org_id, action=action)
        return entries, total
