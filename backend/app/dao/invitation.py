"""
Invitation Data Access Objects.

WHAT: Queries over organization and workspace invitations.

WHY: Expiry is lazy. Every query that returns pending invitations first
marks the overdue ones as expired, so callers never see a pending
invitation whose expiry has passed.
"""

from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.base import utc_now
from app.models.invitation import (
    InvitationStatus,
    OrganizationInvitation,
    WorkspaceInvitation,
)


class _InvitationDAO(BaseDAO):
    """Shared expiry handling for both invitation kinds."""

    async def expire_overdue(self, **filters) -> int:
        """
        Mark every pending, overdue invitation matching filters as expired.

        Returns:
            Number of invitations that changed state
        """
        query = (
            update(self.model)
            .where(self.model.status == InvitationStatus.PENDING)
            .where(self.model.expires_at <= utc_now())
        )
        for field, value in filters.items():
            query = query.where(getattr(self.model, field) == value)
        result = await self.session.execute(query.values(status=InvitationStatus.EXPIRED))
        return result.rowcount or 0

    async def transition(self, invitation, status: InvitationStatus, **fields):
        """Move an invitation out of pending. Callers check the current state."""
        return await self.update(invitation.id, status=status, **fields)


class OrganizationInvitationDAO(_InvitationDAO):
    def __init__(self, session: AsyncSession):
        super().__init__(OrganizationInvitation, session)

    async def get_pending_for_email(self, email: str) -> List[OrganizationInvitation]:
        """Pending invitations addressed to an email, newest first."""
        await self.expire_overdue()
        result = await self.session.execute(
            select(OrganizationInvitation)
            .where(func.lower(OrganizationInvitation.email) == email.lower())
            .where(OrganizationInvitation.status == InvitationStatus.PENDING)
            .order_by(OrganizationInvitation.created_at.desc(), OrganizationInvitation.id.desc())
        )
        return list(result.scalars().all())

    async def find_pending(self, organization_id: int, email: str) -> Optional[OrganizationInvitation]:
        await self.expire_overdue(organization_id=organization_id)
        result = await self.session.execute(
            select(OrganizationInvitation)
            .where(OrganizationInvitation.organization_id == organization_id)
            .where(func.lower(OrganizationInvitation.email) == email.lower())
            .where(OrganizationInvitation.status == InvitationStatus.PENDING)
            .limit(1)
        )
        return result.scalar_one_or_none()


class WorkspaceInvitationDAO(_InvitationDAO):
    def __init__(self, session: AsyncSession):
        super().__init__(WorkspaceInvitation, session)

    async def get_pending_for_user(self, user_id: int) -> List[WorkspaceInvitation]:
        await self.expire_overdue(invitee_id=user_id)
        result = await self.session.execute(
            select(WorkspaceInvitation)
            .where(WorkspaceInvitation.invitee_id == user_id)
            .where(WorkspaceInvitation.status == InvitationStatus.PENDING)
            .order_by(WorkspaceInvitation.created_at.desc(), WorkspaceInvitation.id.desc())
        )
        return list(result.scalars().all())

    async def find_pending(self, workspace_id: int, user_id: int) -> Optional[WorkspaceInvitation]:
        await self.expire_overdue(workspace_id=workspace_id, invitee_id=user_id)
        result = await self.session.execute(
            select(WorkspaceInvitation)
            .where(WorkspaceInvitation.workspace_id == workspace_id)
            .where(WorkspaceInvitation.invitee_id == user_id)
            .where(WorkspaceInvitation.status == InvitationStatus.PENDING)
            .limit(1)
        )
        return result.scalar_one_or_none()
