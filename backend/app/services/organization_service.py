"""
Organization service.

WHAT: Organization lifecycle, member role/status management and the
organization invitation flow.

WHY: These are the mutations the authorization layer exists to guard.
Routes admit the caller with an organization-level gate first; this
service then applies the finer rules (owner protection, manage-user,
assign-role) through the same AuthorizationGate before writing anything,
and records every change in the audit log. Users affected by a change
are notified through NotificationService.

HOW: One instance per request sharing the request's session. Writes are
committed by the request's session dependency on success. The one
exception is invitation expiry: an overdue invitation found while
accepting or declining is committed as expired before the request fails,
because the failing request's rollback would otherwise undo it.
"""

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import AuthorizationGate, Deny
from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    InvalidStateTransitionError,
    InvitationExpiredError,
    InvitationNotFoundError,
    OrganizationNotFoundError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    RoleAssignmentError,
    ValidationError,
)
from app.core.roles import AccessPolicy, Role
from app.dao.invitation import OrganizationInvitationDAO
from app.dao.organization import OrganizationDAO
from app.dao.user import UserDAO
from app.models.audit_log import AuditAction
from app.models.base import utc_now
from app.models.invitation import InvitationStatus, OrganizationInvitation
from app.models.notification import NotificationPriority, NotificationType
from app.models.organization import DEFAULT_ORGANIZATION_SETTINGS, Organization
from app.models.user import User
from app.services.audit import AuditService
from app.services.identity import IdentityResolver
from app.services.notification_service import NotificationService


logger = logging.getLogger(__name__)


class OrganizationService:
    """Business logic for organizations, members and organization invitations."""

    def __init__(self, session: AsyncSession, policy: AccessPolicy):
        self.session = session
        self.policy = policy
        self.org_dao = OrganizationDAO(session)
        self.user_dao = UserDAO(session)
        self.invitation_dao = OrganizationInvitationDAO(session)
        self.resolver = IdentityResolver(session)
        self.gate = AuthorizationGate(self.resolver, policy)
        self.audit = AuditService(session)
        self.notifications = NotificationService(session)

    # ------------------------------------------------------------------
    # Organization lifecycle
    # ------------------------------------------------------------------

    async def get_current(self, user: User) -> Tuple[Organization, Role]:
        """
        The caller's organization and their role in it.

        Raises:
            ResourceNotFoundError: If the caller has no organization yet
        """
        organization_id = await self.resolver.get_user_organization_id(user.id)
        if organization_id is None:
            raise ResourceNotFoundError(message="User not associated with any organization")
        organization = await self.org_dao.get_by_id(organization_id)
        if organization is None:
            raise OrganizationNotFoundError()
        role = await self.resolver.get_user_organization_role(user.id)
        return organization, role

    async def create_organization(
        self,
        user: User,
        name: str,
        description: Optional[str] = None,
        settings_override: Optional[dict] = None,
    ) -> Organization:
        """
        Create an organization owned by the caller.

        The caller becomes its ORG_OWNER. A user belongs to at most one
        organization, so callers that already have one are rejected.

        Raises:
            ValidationError: If the name is blank or the caller already
                belongs to an organization
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError(message="Organization name is required")
        if await self.resolver.get_user_organization_id(user.id) is not None:
            raise ValidationError(message="User already belongs to an organization")

        org_settings = dict(DEFAULT_ORGANIZATION_SETTINGS)
        if settings_override:
            org_settings.update(
                {k: bool(v) for k, v in settings_override.items() if k in DEFAULT_ORGANIZATION_SETTINGS}
            )

        organization = await self.org_dao.create(
            name=name,
            description=(description or "").strip(),
            owner_id=user.id,
            settings=org_settings,
            member_count=1,
        )
        await self.user_dao.update(
            user.id,
            organization_id=organization.id,
            organization_role=Role.ORG_OWNER.value,
        )

        await self.audit.record(
            AuditAction.ORG_CREATED,
            actor_user_id=user.id,
            target_user_id=user.id,
            org_id=organization.id,
            resource_type="organization",
            resource_id=organization.id,
            changes={"organization_role": {"before": None, "after": Role.ORG_OWNER.value}},
            reason="Organization created",
        )
        logger.info("User %s created organization %s", user.id, organization.id)
        return organization

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def list_members(self, user: User, skip: int = 0, limit: int = 100) -> List[User]:
        return await self.resolver.get_organization_users(user.id, skip=skip, limit=limit)

    async def _load_target(self, target_id: int) -> User:
        target = await self.user_dao.get_by_id(target_id)
        if target is None:
            raise ResourceNotFoundError(message="User not found")
        return target

    async def update_member_role(
        self,
        actor: User,
        target_id: int,
        new_role: Role,
        reason: Optional[str] = None,
    ) -> User:
        """
        Set a member's organization role.

        Raises:
            ResourceNotFoundError: Unknown target
            ProtectedResourceError: Target is the owner and actor is not a super admin
            InsufficientPermissionsError: Actor cannot manage the target
            RoleAssignmentError: New role is not strictly below the actor's
        """
        target = await self._load_target(target_id)
        decision = await self.gate.check_user_management(actor, target, new_role=new_role)
        if isinstance(decision, Deny):
            raise decision.to_exception()

        before = await self.resolver.get_user_organization_role(target.id)
        updated = await self.user_dao.update(target.id, organization_role=new_role.value)

        await self.audit.record_role_change(
            AuditAction.ROLE_CHANGE,
            actor_user_id=actor.id,
            target_user_id=target.id,
            field="organization_role",
            before=before.value,
            after=new_role.value,
            org_id=decision.organization_id,
            reason=reason,
        )
        await self.notifications.notify(
            target.id,
            NotificationType.ROLE_CHANGED,
            title="Your role has changed",
            message=f"Your organization role changed from {before.value} to {new_role.value}",
            priority=NotificationPriority.HIGH,
            extra_data={"before": before.value, "after": new_role.value},
            triggered_by_id=actor.id,
        )
        logger.info(
            "User %s changed organization role of user %s: %s -> %s",
            actor.id,
            target.id,
            before.value,
            new_role.value,
        )
        return updated

    async def update_member_status(
        self,
        actor: User,
        target_id: int,
        is_active: bool,
        reason: Optional[str] = None,
    ) -> User:
        """
        Activate or deactivate a member (soft delete).

        Raises:
            ProtectedResourceError: "Cannot deactivate organization owner"
                unless the actor is a super admin
        """
        target = await self._load_target(target_id)
        decision = await self.gate.check_user_management(
            actor, target, deactivating=not is_active
        )
        if isinstance(decision, Deny):
            raise decision.to_exception()

        before = target.is_active
        updated = await self.user_dao.update(target.id, is_active=is_active)

        await self.audit.record(
            AuditAction.STATUS_CHANGE,
            actor_user_id=actor.id,
            target_user_id=target.id,
            org_id=decision.organization_id,
            changes={"is_active": {"before": before, "after": is_active}},
            reason=reason,
        )
        return updated

    def available_roles(self, acting_role: Role) -> List[Role]:
        """Roles the acting role may grant, most senior first."""
        return self.policy.assignable_roles(acting_role)

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def invite(self, actor: User, email: str, role: Role) -> OrganizationInvitation:
        """
        Invite an email address into the actor's organization.

        Raises:
            RoleAssignmentError: Role is not strictly below the actor's
            ValidationError: Invitee already belongs to an organization
            ResourceAlreadyExistsError: A pending invitation already exists
        """
        organization_id = await self.resolver.get_user_organization_id(actor.id)
        actor_role = await self.resolver.get_user_organization_role(actor.id)
        if not self.policy.can_assign_role(actor_role, role):
            raise RoleAssignmentError(
                message=f"Cannot assign {role.value} role: insufficient permissions",
                required=role.value,
                user_role=actor_role.value,
            )

        email = email.lower()
        existing = await self.user_dao.get_by_email(email)
        if existing is not None and existing.organization_id is not None:
            if existing.organization_id == organization_id:
                raise ValidationError(message="User is already a member of this organization")
            raise ValidationError(message="User already belongs to another organization")

        if await self.invitation_dao.find_pending(organization_id, email) is not None:
            raise ResourceAlreadyExistsError(
                message="A pending invitation already exists for this email",
                resource_type="OrganizationInvitation",
            )

        invitation = await self.invitation_dao.create(
            organization_id=organization_id,
            email=email,
            role=role.value,
            invited_by_id=actor.id,
            status=InvitationStatus.PENDING,
            expires_at=utc_now() + timedelta(days=settings.INVITATION_EXPIRY_DAYS),
        )
        await self.audit.record(
            AuditAction.INVITATION_SENT,
            actor_user_id=actor.id,
            target_user_id=existing.id if existing else None,
            org_id=organization_id,
            resource_type="organization_invitation",
            resource_id=invitation.id,
            changes={"role": {"before": None, "after": role.value}},
            extra_data={"email": email},
        )
        return invitation

    async def list_invitations(self, user: User) -> List[OrganizationInvitation]:
        """Pending invitations for the caller's email; overdue ones are expired first."""
        return await self.invitation_dao.get_pending_for_email(user.email)

    async def _load_pending_for(self, user: User, invitation_id: int) -> OrganizationInvitation:
        """
        Load an invitation addressed to ``user`` and make sure it can still be settled.

        Expiry is applied here: an overdue pending invitation is flipped to
        expired and the caller gets InvitationExpiredError.
        """
        invitation = await self.invitation_dao.get_by_id(invitation_id)
        if invitation is None:
            raise InvitationNotFoundError()
        if invitation.status.is_terminal:
            raise InvalidStateTransitionError(message="Invitation is no longer pending")
        if invitation.email.lower() != user.email.lower():
            raise AuthorizationError(message="This invitation is not for your email address")
        if invitation.is_overdue():
            await self.invitation_dao.transition(invitation, InvitationStatus.EXPIRED)
            # The expired state is kept even though this request fails.
            await self.session.commit()
            raise InvitationExpiredError()
        return invitation

    async def accept_invitation(self, user: User, invitation_id: int) -> Tuple[Organization, Role]:
        """
        Join the inviting organization with the proposed role.

        Accepting is one-shot: a second call finds the invitation settled
        and fails with "Invitation is no longer pending", so the member
        count is incremented exactly once.

        Raises:
            InvitationNotFoundError, InvalidStateTransitionError,
            InvitationExpiredError, AuthorizationError, ValidationError
        """
        invitation = await self._load_pending_for(user, invitation_id)

        if await self.resolver.get_user_organization_id(user.id) is not None:
            raise ValidationError(
                message="You already belong to an organization. "
                "Please leave your current organization first."
            )

        organization = await self.org_dao.get_by_id(invitation.organization_id)
        if organization is None:
            raise OrganizationNotFoundError(message="Organization no longer exists")

        role = Role.coerce(invitation.role) or Role.MEMBER
        await self.user_dao.update(
            user.id,
            organization_id=organization.id,
            organization_role=role.value,
        )
        await self.invitation_dao.transition(
            invitation, InvitationStatus.ACCEPTED, accepted_at=utc_now()
        )
        organization = await self.org_dao.increment_member_count(organization.id)

        await self.audit.record(
            AuditAction.MEMBER_JOINED,
            actor_user_id=user.id,
            target_user_id=user.id,
            org_id=organization.id,
            resource_type="organization_invitation",
            resource_id=invitation.id,
            changes={"organization_role": {"before": None, "after": role.value}},
            reason="Accepted organization invitation",
        )
        await self.notifications.notify_many(
            (u for u in (organization.owner_id, invitation.invited_by_id) if u != user.id),
            NotificationType.MEMBER_JOINED,
            title="New member joined",
            message=f"{user.display_name} joined {organization.name} as {role.value}",
            extra_data={"organization_id": organization.id, "user_id": user.id},
            triggered_by_id=user.id,
        )
        logger.info("User %s joined organization %s as %s", user.id, organization.id, role.value)
        return organization, role

    async def decline_invitation(self, user: User, invitation_id: int) -> OrganizationInvitation:
        invitation = await self._load_pending_for(user, invitation_id)
        declined = await self.invitation_dao.transition(
            invitation, InvitationStatus.DECLINED, declined_at=utc_now()
        )
        await self.audit.record(
            AuditAction.INVITATION_DECLINED,
            actor_user_id=user.id,
            target_user_id=user.id,
            org_id=invitation.organization_id,
            resource_type="organization_invitation",
            resource_id=invitation.id,
        )
        return declined
