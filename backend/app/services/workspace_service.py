"""
Workspace service.

WHAT: Workspace CRUD, workspace membership and the workspace invitation
flow.

WHY: Workspace roles are the third permission tier. Routes admit the
caller with a workspace- or organization-level gate; this service adds
the rules that depend on the target (owner protection, strictly-lower
roles) and keeps ``member_count`` equal to the member rows plus the owner.

HOW: Like the organization service, writes are left to the request's
session dependency, except the expiry of an overdue invitation found
while accepting or declining, which is committed before the error.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import AuthorizationGate, Deny
from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    InvalidStateTransitionError,
    InvitationExpiredError,
    InvitationNotFoundError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    RoleAssignmentError,
    ValidationError,
    WorkspaceNotFoundError,
)
from app.core.roles import AccessPolicy, Role
from app.dao.invitation import WorkspaceInvitationDAO
from app.dao.user import UserDAO
from app.dao.workspace import WorkspaceDAO, WorkspaceMemberDAO
from app.models.audit_log import AuditAction
from app.models.base import utc_now
from app.models.invitation import InvitationStatus, WorkspaceInvitation
from app.models.notification import NotificationType
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from app.services.audit import AuditService
from app.services.identity import IdentityResolver, normalize_stored_role
from app.services.notification_service import NotificationService


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceParticipant:
    """A row of the members listing. The owner has no membership row."""

    user_id: int
    email: str
    display_name: str
    role: str
    is_owner: bool
    joined_at: Optional[datetime]


class WorkspaceService:
    """Business logic for workspaces and their members."""

    def __init__(self, session: AsyncSession, policy: AccessPolicy):
        self.session = session
        self.policy = policy
        self.workspace_dao = WorkspaceDAO(session)
        self.member_dao = WorkspaceMemberDAO(session)
        self.invitation_dao = WorkspaceInvitationDAO(session)
        self.user_dao = UserDAO(session)
        self.resolver = IdentityResolver(session)
        self.gate = AuthorizationGate(self.resolver, policy)
        self.audit = AuditService(session)
        self.notifications = NotificationService(session)

    async def _get_or_404(self, workspace_id: int) -> Workspace:
        workspace = await self.workspace_dao.get_by_id(workspace_id)
        if workspace is None:
            raise WorkspaceNotFoundError()
        return workspace

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    async def list_for_user(self, user: User) -> List[Workspace]:
        """Workspaces the caller owns or belongs to, within their organization."""
        organization_id = await self.resolver.get_user_organization_id(user.id)
        if organization_id is None:
            return []
        return await self.workspace_dao.get_accessible(user.id, organization_id)

    async def get(self, workspace_id: int) -> Workspace:
        return await self._get_or_404(workspace_id)

    async def create(
        self,
        owner: User,
        organization_id: int,
        name: str,
        description: Optional[str] = None,
        is_private: bool = True,
    ) -> Workspace:
        """
        Create a workspace owned by the caller.

        The owner holds WORKSPACE_ADMIN implicitly; member_count starts at 1.
        """
        workspace = await self.workspace_dao.create(
            name=name.strip(),
            description=description,
            owner_id=owner.id,
            organization_id=organization_id,
            is_private=is_private,
            member_count=1,
        )
        await self.audit.record(
            AuditAction.WORKSPACE_CREATED,
            actor_user_id=owner.id,
            org_id=organization_id,
            workspace_id=workspace.id,
            resource_type="workspace",
            resource_id=workspace.id,
            reason="Workspace created",
        )
        return workspace

    async def update(self, actor: User, workspace_id: int, **fields) -> Workspace:
        workspace = await self._get_or_404(workspace_id)
        changes = {
            field: {"before": getattr(workspace, field), "after": value}
            for field, value in fields.items()
            if value is not None and getattr(workspace, field) != value
        }
        if not changes:
            return workspace

        updated = await self.workspace_dao.update(
            workspace_id, **{field: change["after"] for field, change in changes.items()}
        )
        await self.audit.record(
            AuditAction.WORKSPACE_UPDATED,
            actor_user_id=actor.id,
            org_id=workspace.organization_id,
            workspace_id=workspace_id,
            resource_type="workspace",
            resource_id=workspace_id,
            changes=changes,
        )
        return updated

    async def delete(self, actor: User, organization_id: int, workspace_id: int) -> None:
        """
        Delete a workspace of the actor's organization.

        Workspaces of other organizations are reported as not found.
        """
        workspace = await self.workspace_dao.get_by_id(workspace_id)
        if workspace is None or workspace.organization_id != organization_id:
            raise WorkspaceNotFoundError()

        await self.workspace_dao.delete_with_contents(workspace_id)
        await self.audit.record(
            AuditAction.WORKSPACE_DELETED,
            actor_user_id=actor.id,
            org_id=organization_id,
            workspace_id=workspace_id,
            resource_type="workspace",
            resource_id=workspace_id,
            extra_data={"name": workspace.name},
        )
        logger.info("User %s deleted workspace %s", actor.id, workspace_id)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def list_members(self, workspace_id: int) -> List[WorkspaceParticipant]:
        """The owner first, then members in joining order."""
        workspace = await self._get_or_404(workspace_id)
        participants: List[WorkspaceParticipant] = []

        owner = await self.user_dao.get_by_id(workspace.owner_id)
        if owner is not None:
            participants.append(
                WorkspaceParticipant(
                    user_id=owner.id,
                    email=owner.email,
                    display_name=owner.display_name,
                    role=Role.WORKSPACE_ADMIN.value,
                    is_owner=True,
                    joined_at=workspace.created_at,
                )
            )

        for membership in await self.member_dao.get_members(workspace_id):
            user = await self.user_dao.get_by_id(membership.user_id)
            if user is None:
                continue
            participants.append(
                WorkspaceParticipant(
                    user_id=user.id,
                    email=user.email,
                    display_name=user.display_name,
                    role=normalize_stored_role(membership.role).value,
                    is_owner=False,
                    joined_at=membership.joined_at,
                )
            )
        return participants

    async def _check_member_management(
        self, actor: User, workspace_id: int, target_id: int, new_role: Optional[Role] = None
    ) -> None:
        decision = await self.gate.check_workspace_member_management(
            actor, workspace_id, target_id, new_role=new_role
        )
        if isinstance(decision, Deny):
            raise decision.to_exception()

    async def update_member_role(
        self,
        actor: User,
        workspace_id: int,
        target_id: int,
        new_role: Role,
        reason: Optional[str] = None,
    ) -> WorkspaceMember:
        workspace = await self._get_or_404(workspace_id)
        await self._check_member_management(actor, workspace_id, target_id, new_role)

        membership = await self.member_dao.get_membership(workspace_id, target_id)
        before = membership.role
        updated = await self.member_dao.update(membership.id, role=new_role.value)

        await self.audit.record_role_change(
            AuditAction.WORKSPACE_ROLE_CHANGE,
            actor_user_id=actor.id,
            target_user_id=target_id,
            field="workspace_role",
            before=before,
            after=new_role.value,
            org_id=workspace.organization_id,
            workspace_id=workspace_id,
            reason=reason,
        )
        await self.notifications.notify(
            target_id,
            NotificationType.WORKSPACE_ROLE_CHANGED,
            title="Workspace role changed",
            message=f"Your role in {workspace.name} changed from {before} to {new_role.value}",
            extra_data={"workspace_id": workspace_id, "before": before, "after": new_role.value},
            triggered_by_id=actor.id,
        )
        return updated

    async def remove_member(
        self,
        actor: User,
        workspace_id: int,
        target_id: int,
        reason: Optional[str] = None,
    ) -> Workspace:
        workspace = await self._get_or_404(workspace_id)
        await self._check_member_management(actor, workspace_id, target_id)

        membership = await self.member_dao.get_membership(workspace_id, target_id)
        removed_role = membership.role
        await self.member_dao.remove_membership(workspace_id, target_id)
        workspace = await self.workspace_dao.adjust_member_count(workspace_id, -1)

        await self.audit.record(
            AuditAction.WORKSPACE_MEMBER_REMOVED,
            actor_user_id=actor.id,
            target_user_id=target_id,
            org_id=workspace.organization_id,
            workspace_id=workspace_id,
            changes={"workspace_role": {"before": removed_role, "after": None}},
            reason=reason,
        )
        await self.notifications.notify(
            target_id,
            NotificationType.WORKSPACE_REMOVED,
            title="Removed from workspace",
            message=f"You were removed from {workspace.name}",
            extra_data={"workspace_id": workspace_id},
            triggered_by_id=actor.id,
        )
        return workspace

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def invite(
        self, actor: User, actor_role: Role, workspace_id: int, invitee_id: int, role: Role
    ) -> WorkspaceInvitation:
        """
        Invite a user of the same organization into a workspace.

        Raises:
            RoleAssignmentError: Role is not strictly below the actor's workspace role
            ResourceNotFoundError: Unknown invitee
            ValidationError: Invitee is outside the organization or already a member
            ResourceAlreadyExistsError: A pending invitation already exists
        """
        workspace = await self._get_or_404(workspace_id)
        if not self.policy.can_assign_role(actor_role, role):
            raise RoleAssignmentError(
                message=f"Cannot assign {role.value} role: insufficient permissions",
                required=role.value,
                user_role=actor_role.value,
            )

        invitee = await self.user_dao.get_by_id(invitee_id)
        if invitee is None:
            raise ResourceNotFoundError(message="User not found")
        if invitee.organization_id != workspace.organization_id:
            raise ValidationError(message="User is not a member of this organization")
        if await self.resolver.get_user_workspace_role(invitee_id, workspace_id) is not None:
            raise ValidationError(message="User is already a member of this workspace")
        if await self.invitation_dao.find_pending(workspace_id, invitee_id) is not None:
            raise ResourceAlreadyExistsError(
                message="A pending invitation already exists for this user",
                resource_type="WorkspaceInvitation",
            )

        invitation = await self.invitation_dao.create(
            workspace_id=workspace_id,
            invitee_id=invitee_id,
            role=role.value,
            invited_by_id=actor.id,
            status=InvitationStatus.PENDING,
            expires_at=utc_now() + timedelta(days=settings.INVITATION_EXPIRY_DAYS),
        )
        await self.audit.record(
            AuditAction.WORKSPACE_INVITATION_SENT,
            actor_user_id=actor.id,
            target_user_id=invitee_id,
            org_id=workspace.organization_id,
            workspace_id=workspace_id,
            resource_type="workspace_invitation",
            resource_id=invitation.id,
            changes={"workspace_role": {"before": None, "after": role.value}},
        )
        await self.notifications.notify(
            invitee_id,
            NotificationType.WORKSPACE_INVITE,
            title="Workspace invitation",
            message=f"{actor.display_name} invited you to {workspace.name} as {role.value}",
            extra_data={"workspace_id": workspace_id, "invitation_id": invitation.id},
            triggered_by_id=actor.id,
        )
        return invitation

    async def list_invitations(self, user: User) -> List[WorkspaceInvitation]:
        return await self.invitation_dao.get_pending_for_user(user.id)

    async def _load_pending_for(self, user: User, invitation_id: int) -> WorkspaceInvitation:
        invitation = await self.invitation_dao.get_by_id(invitation_id)
        if invitation is None:
            raise InvitationNotFoundError()
        if invitation.status.is_terminal:
            raise InvalidStateTransitionError(message="Invitation is no longer pending")
        if invitation.invitee_id != user.id:
            raise AuthorizationError(message="This invitation is not for you")
        if invitation.is_overdue():
            await self.invitation_dao.transition(invitation, InvitationStatus.EXPIRED)
            # The expired state is kept even though this request fails.
            await self.session.commit()
            raise InvitationExpiredError()
        return invitation

    async def accept_invitation(self, user: User, invitation_id: int) -> Workspace:
        """
        Join a workspace. Settles the invitation, so a repeat call fails
        with "Invitation is no longer pending" and nothing is added twice.
        """
        invitation = await self._load_pending_for(user, invitation_id)
        workspace = await self.workspace_dao.get_by_id(invitation.workspace_id)
        if workspace is None:
            raise WorkspaceNotFoundError(message="Workspace no longer exists")

        role = Role.coerce(invitation.role) or Role.MEMBER
        if await self.resolver.get_user_workspace_role(user.id, workspace.id) is None:
            await self.member_dao.create(
                workspace_id=workspace.id,
                user_id=user.id,
                role=role.value,
                invited_by_id=invitation.invited_by_id,
                joined_at=utc_now(),
            )
            workspace = await self.workspace_dao.adjust_member_count(workspace.id, 1)

        await self.invitation_dao.transition(
            invitation, InvitationStatus.ACCEPTED, accepted_at=utc_now()
        )
        await self.audit.record(
            AuditAction.WORKSPACE_MEMBER_ADDED,
            actor_user_id=user.id,
            target_user_id=user.id,
            org_id=workspace.organization_id,
            workspace_id=workspace.id,
            changes={"workspace_role": {"before": None, "after": role.value}},
            reason="Accepted workspace invitation",
        )
        await self.notifications.notify_many(
            (u for u in (workspace.owner_id, invitation.invited_by_id) if u != user.id),
            NotificationType.MEMBER_JOINED,
            title="New workspace member",
            message=f"{user.display_name} joined {workspace.name} as {role.value}",
            extra_data={"workspace_id": workspace.id, "user_id": user.id},
            triggered_by_id=user.id,
        )
        return workspace

    async def decline_invitation(self, user: User, invitation_id: int) -> WorkspaceInvitation:
        invitation = await self._load_pending_for(user, invitation_id)
        declined = await self.invitation_dao.transition(
            invitation, InvitationStatus.DECLINED, declined_at=utc_now()
        )
        await self.audit.record(
            AuditAction.INVITATION_DECLINED,
            actor_user_id=user.id,
            target_user_id=user.id,
            workspace_id=invitation.workspace_id,
            resource_type="workspace_invitation",
            resource_id=invitation.id,
        )
        return declined
