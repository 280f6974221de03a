"""
Audit Log Data Access Object (DAO).

WHAT: Data access layer for audit log operations.

WHY: Audit entries must be tamper-proof. This DAO is the only write path
to the table and refuses updates and deletes outright.

HOW: Standalone DAO (not BaseDAO) so no generic update/delete is ever
inherited. Listing is scoped to an organization and ordered newest first.
"""

from typing import Optional, List, Dict, Any
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog, AuditAction
from app.core.exceptions import AuditLogImmutableError


class AuditLogDAO:
    """
    Data Access Object for audit log operations.

    HOW: Uses SQLAlchemy async session for all operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        action: AuditAction,
        resource_type: str,
        actor_user_id: Optional[int] = None,
        target_user_id: Optional[int] = None,
        resource_id: Optional[int] = None,
        org_id: Optional[int] = None,
        workspace_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        extra_data: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """
        Create a new audit log entry.

        Args:
            action: Type of event (from AuditAction enum)
            resource_type: Category of affected resource
            actor_user_id: User who performed the action
            target_user_id: User whose access changed
            resource_id: Specific resource ID (nullable)
            org_id: Organization scope
            workspace_id: Workspace scope
            changes: Before/after values for mutations
            reason: Justification for the change
            extra_data: Additional context
            ip_address: Client IP address
            user_agent: Client browser/application info

        Returns:
            The created AuditLog entry

        Raises:
            IntegrityError: If database constraints are violated
        """
        log = AuditLog(
            actor_user_id=actor_user_id,
            target_user_id=target_user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            org_id=org_id,
            workspace_id=workspace_id,
            changes=changes,
            reason=reason,
            extra_data=extra_data,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(log)
        await self.session.flush()
        await self.session.refresh(log)
        return log

    async def get_by_id(self, log_id: int) -> Optional[AuditLog]:
        result = await self.session.execute(
            select(AuditLog).where(AuditLog.id == log_id)
        )
        return result.scalar_one_or_none()

    async def get_by_org(
        self,
        org_id: int,
        skip: int = 0,
        limit: int = 100,
        action: Optional[AuditAction] = None,
    ) -> List[AuditLog]:
        """
        Retrieve audit logs for a specific organization, newest first.

        Args:
            org_id: Organization ID
            skip: Pagination offset
            limit: Maximum records to return
            action: Optional action type filter

        Returns:
            List of AuditLog entries for the organization
        """
        query = select(AuditLog).where(AuditLog.org_id == org_id)
        if action is not None:
            query = query.where(AuditLog.action == action)

        result = await self.session.execute(
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_org(self, org_id: int, action: Optional[AuditAction] = None) -> int:
        query = select(func.count(AuditLog.id)).where(AuditLog.org_id == org_id)
        if action is not None:
            query = query.where(AuditLog.action == action)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def get_by_target_user(
        self,
        user_id: int,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        """All entries where the user's access was changed, newest first."""
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.target_user_id == user_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update(self, log_id: int, **kwargs: Any) -> None:
        """
        Attempt to update an audit log (BLOCKED).

        Raises:
            AuditLogImmutableError: Always raised - updates not allowed
        """
        raise AuditLogImmutableError(
            f"Audit log {log_id} is append-only and cannot be updated"
        )

    async def delete(self, log_id: int) -> None:
        """
        Attempt to delete an audit log (BLOCKED).

        Raises:
            AuditLogImmutableError: Always raised - deletions not allowed
        """
        raise AuditLogImmutableError(
            f"Audit log {log_id} is append-only and cannot be deleted"
        )
