"""
Authorization gate.

WHAT: The admission decisions behind every privileged route: system,
organization and workspace permission checks, the ownership-or-role
fallback, and the rules for managing another user's role or status.

WHY: Each check is a plain async method returning ``Admit`` or ``Deny``
instead of raising or calling a continuation. That keeps the decision
logic free of FastAPI and testable with a fake resolver; the dependency
layer in ``app.core.deps`` turns a ``Deny`` into an exception.

HOW: Every check follows the same steps:
1. require an authenticated caller (None -> 401)
2. resolve the relevant role through the IdentityResolver
3. evaluate it against the AccessPolicy
4. return Deny with a machine-readable reason, or Admit with the
   resolved role and scope

Checks fail closed: an unexpected exception while resolving becomes a
500 Deny ("Permission verification failed"), never an admission.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    InsufficientPermissionsError,
    NoOrganizationMembershipError,
    NotWorkspaceMemberError,
    PermissionVerificationError,
    ProtectedResourceError,
    ResourceNotFoundError,
    RoleAssignmentError,
    WorkspaceIdRequiredError,
)
from app.core.roles import AccessPolicy, Permission, Role
from app.models.user import User
from app.services.identity import IdentityResolver


logger = logging.getLogger(__name__)


class DenyReason(str, enum.Enum):
    """Why a gate refused a request. Each reason maps to one exception."""

    UNAUTHENTICATED = "unauthenticated"
    NO_ORGANIZATION = "no_organization"
    NOT_WORKSPACE_MEMBER = "not_workspace_member"
    WORKSPACE_ID_REQUIRED = "workspace_id_required"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    ROLE_ASSIGNMENT = "role_assignment"
    PROTECTED_RESOURCE = "protected_resource"
    NOT_FOUND = "not_found"
    VERIFICATION_FAILED = "verification_failed"


_EXCEPTIONS = {
    DenyReason.UNAUTHENTICATED: AuthenticationError,
    DenyReason.NO_ORGANIZATION: NoOrganizationMembershipError,
    DenyReason.NOT_WORKSPACE_MEMBER: NotWorkspaceMemberError,
    DenyReason.WORKSPACE_ID_REQUIRED: WorkspaceIdRequiredError,
    DenyReason.INSUFFICIENT_PERMISSIONS: InsufficientPermissionsError,
    DenyReason.ROLE_ASSIGNMENT: RoleAssignmentError,
    DenyReason.PROTECTED_RESOURCE: ProtectedResourceError,
    DenyReason.NOT_FOUND: ResourceNotFoundError,
    DenyReason.VERIFICATION_FAILED: PermissionVerificationError,
}

OWNER_ROLE_CHANGE_MESSAGE = "Cannot change organization owner role"
OWNER_DEACTIVATION_MESSAGE = "Cannot deactivate organization owner"


@dataclass(frozen=True)
class Admit:
    """
    A positive decision, with the role and scope that justified it.

    Route handlers receive this as their access context.
    """

    user: User
    role: Role
    organization_id: Optional[int] = None
    workspace_id: Optional[int] = None
    via_ownership: bool = False

    @property
    def user_id(self) -> int:
        return self.user.id


@dataclass(frozen=True)
class Deny:
    """A negative decision."""

    reason: DenyReason
    message: Optional[str] = None
    required: Optional[str] = None
    user_role: Optional[Role] = None
    workspace_id: Optional[int] = None

    @property
    def exception_class(self) -> type:
        return _EXCEPTIONS[self.reason]

    @property
    def status_code(self) -> int:
        return self.exception_class.status_code

    def to_exception(self) -> AppException:
        context = {}
        if self.required is not None:
            context["required"] = self.required
        if self.user_role is not None:
            context["user_role"] = self.user_role.value
        if self.workspace_id is not None:
            context["workspace_id"] = self.workspace_id
        return self.exception_class(message=self.message, **context)


Decision = Union[Admit, Deny]


class AuthorizationGate:
    """
    Admission decisions for one request.

    Example:
        gate = AuthorizationGate(IdentityResolver(session), policy)
        decision = await gate.check_organization_permission(
            user, Permission.MANAGE_ORG_MEMBERS
        )
        if isinstance(decision, Deny):
            raise decision.to_exception()
    """

    def __init__(self, resolver: IdentityResolver, policy: AccessPolicy):
        self.resolver = resolver
        self.policy = policy

    def _fail_closed(self, check: str, user: Optional[User]) -> Deny:
        logger.error(
            "Permission verification failed in %s for user %s",
            check,
            getattr(user, "id", None),
            exc_info=True,
        )
        return Deny(DenyReason.VERIFICATION_FAILED)

    def _deny(self, deny: Deny, user: User, check: str) -> Deny:
        logger.info(
            "Denied %s for user %s: %s (required=%s, role=%s)",
            check,
            user.id,
            deny.reason.value,
            deny.required,
            deny.user_role.value if deny.user_role else None,
        )
        return deny

    async def check_permission(self, user: Optional[User], permission: Permission) -> Decision:
        """System-level check against the caller's system role."""
        if user is None:
            return Deny(DenyReason.UNAUTHENTICATED)
        try:
            role = await self.resolver.get_user_system_role(user.id)
            if not self.policy.has_permission(role, permission):
                return self._deny(
                    Deny(
                        DenyReason.INSUFFICIENT_PERMISSIONS,
                        required=permission.value,
                        user_role=role,
                    ),
                    user,
                    "system permission",
                )
            return Admit(user=user, role=role)
        except Exception:
            return self._fail_closed("check_permission", user)

    async def check_organization_permission(
        self, user: Optional[User], permission: Permission
    ) -> Decision:
        """
        Organization-level check.

        An unaffiliated caller is rejected before their role is looked at;
        without an organization the role has no meaning.
        """
        if user is None:
            return Deny(DenyReason.UNAUTHENTICATED)
        try:
            organization_id = await self.resolver.get_user_organization_id(user.id)
            if organization_id is None:
                return self._deny(
                    Deny(DenyReason.NO_ORGANIZATION), user, "organization permission"
                )

            role = await self.resolver.get_user_organization_role(user.id)
            if not self.policy.has_permission(role, permission):
                return self._deny(
                    Deny(
                        DenyReason.INSUFFICIENT_PERMISSIONS,
                        message="Access denied: Insufficient organization permissions",
                        required=permission.value,
                        user_role=role,
                    ),
                    user,
                    "organization permission",
                )
            return Admit(user=user, role=role, organization_id=organization_id)
        except Exception:
            return self._fail_closed("check_organization_permission", user)

    async def check_workspace_permission(
        self,
        user: Optional[User],
        workspace_id: Optional[int],
        permission: Permission,
    ) -> Decision:
        """
        Workspace-level check.

        A missing workspace id is a malformed request (400). No role in the
        workspace is "not a member" (403), reported separately from a role
        that is too low.
        """
        if user is None:
            return Deny(DenyReason.UNAUTHENTICATED)
        if workspace_id is None:
            return Deny(DenyReason.WORKSPACE_ID_REQUIRED)
        try:
            role = await self.resolver.get_user_workspace_role(user.id, workspace_id)
            if role is None:
                return self._deny(
                    Deny(DenyReason.NOT_WORKSPACE_MEMBER, workspace_id=workspace_id),
                    user,
                    "workspace permission",
                )
            if not self.policy.has_permission(role, permission):
                return self._deny(
                    Deny(
                        DenyReason.INSUFFICIENT_PERMISSIONS,
                        message="Access denied: Insufficient workspace permissions",
                        required=permission.value,
                        user_role=role,
                        workspace_id=workspace_id,
                    ),
                    user,
                    "workspace permission",
                )
            organization_id = await self.resolver.get_user_organization_id(user.id)
            return Admit(
                user=user,
                role=role,
                organization_id=organization_id,
                workspace_id=workspace_id,
            )
        except Exception:
            return self._fail_closed("check_workspace_permission", user)

    async def check_ownership_or_role(
        self,
        user: Optional[User],
        resource: Any,
        min_role: Role,
        resource_name: str = "Resource",
        workspace_permission: Optional[Permission] = None,
    ) -> Decision:
        """
        Admit the resource's owner, otherwise require a minimum system role.

        Args:
            user: The caller
            resource: Object exposing ``is_owned_by(user_id)``, or None
            min_role: Lowest system role allowed to act on others' resources
            resource_name: Used in the not-found message
            workspace_permission: When given, a role in the resource's
                workspace holding this permission also admits the caller

        A denial always names ``min_role`` as the requirement.
        """
        if user is None:
            return Deny(DenyReason.UNAUTHENTICATED)
        if resource is None:
            return Deny(DenyReason.NOT_FOUND, message=f"{resource_name} not found")
        try:
            role = await self.resolver.get_user_system_role(user.id)
            workspace_id = getattr(resource, "workspace_id", None)
            if resource.is_owned_by(user.id):
                return Admit(user=user, role=role, workspace_id=workspace_id, via_ownership=True)
            if self.policy.get_role_level(role) >= self.policy.get_role_level(min_role):
                return Admit(user=user, role=role, workspace_id=workspace_id)
            if workspace_permission is not None and workspace_id is not None:
                workspace_role = await self.resolver.get_user_workspace_role(user.id, workspace_id)
                if workspace_role is not None and self.policy.has_permission(
                    workspace_role, workspace_permission
                ):
                    return Admit(user=user, role=workspace_role, workspace_id=workspace_id)
            return self._deny(
                Deny(
                    DenyReason.INSUFFICIENT_PERMISSIONS,
                    required=min_role.value,
                    user_role=role,
                ),
                user,
                "ownership or role",
            )
        except Exception:
            return self._fail_closed("check_ownership_or_role", user)

    async def check_user_management(
        self,
        actor: Optional[User],
        target: Optional[User],
        new_role: Optional[Role] = None,
        deactivating: bool = False,
    ) -> Decision:
        """
        Decide whether an actor may change a target's organization role or status.

        Order of checks:
        1. the organization owner may only be changed by a super admin
        2. otherwise the actor must be able to manage the target (same
           organization, strictly higher level)
        3. a new role must sit strictly below the actor's own level

        Super admins skip step 2 but never grant SUPER_ADMIN through this path.
        """
        if actor is None:
            return Deny(DenyReason.UNAUTHENTICATED)
        if target is None:
            return Deny(DenyReason.NOT_FOUND, message="User not found")
        try:
            actor_system_role = await self.resolver.get_user_system_role(actor.id)
            actor_role = await self.resolver.get_user_organization_role(actor.id)
            target_role = await self.resolver.get_user_organization_role(target.id)
            is_super_admin = actor_system_role is Role.SUPER_ADMIN
            if is_super_admin:
                actor_role = Role.SUPER_ADMIN

            if target_role is Role.ORG_OWNER and not is_super_admin:
                message = OWNER_DEACTIVATION_MESSAGE if deactivating else OWNER_ROLE_CHANGE_MESSAGE
                return self._deny(
                    Deny(DenyReason.PROTECTED_RESOURCE, message=message),
                    actor,
                    "user management",
                )

            if not is_super_admin and not await self.resolver.can_manage_user(
                actor.id, target.id, self.policy
            ):
                return self._deny(
                    Deny(
                        DenyReason.INSUFFICIENT_PERMISSIONS,
                        message="Cannot manage users with equal or higher role",
                        user_role=actor_role,
                    ),
                    actor,
                    "user management",
                )

            if new_role is not None and not self.policy.can_assign_role(actor_role, new_role):
                return self._deny(
                    Deny(
                        DenyReason.ROLE_ASSIGNMENT,
                        message="Cannot assign role equal to or higher than your own",
                        required=new_role.value,
                        user_role=actor_role,
                    ),
                    actor,
                    "role assignment",
                )

            organization_id = await self.resolver.get_user_organization_id(target.id)
            return Admit(user=actor, role=actor_role, organization_id=organization_id)
        except Exception:
            return self._fail_closed("check_user_management", actor)

    async def check_workspace_member_management(
        self,
        actor: Optional[User],
        workspace_id: int,
        target_id: int,
        new_role: Optional[Role] = None,
    ) -> Decision:
        """
        Decide whether an actor may change or remove a workspace member.

        The workspace owner is never a managed member. Otherwise the actor's
        workspace role must be strictly above the target's, and a new role
        strictly below the actor's.
        """
        if actor is None:
            return Deny(DenyReason.UNAUTHENTICATED)
        try:
            actor_role = await self.resolver.get_user_workspace_role(actor.id, workspace_id)
            if actor_role is None:
                return Deny(DenyReason.NOT_WORKSPACE_MEMBER, workspace_id=workspace_id)

            workspace = await self.resolver.workspace_dao.get_by_id(workspace_id)
            if workspace is not None and workspace.owner_id == target_id:
                return self._deny(
                    Deny(DenyReason.PROTECTED_RESOURCE, message="Cannot modify workspace owner"),
                    actor,
                    "workspace member management",
                )

            target_role = await self.resolver.get_user_workspace_role(target_id, workspace_id)
            if target_role is None:
                return Deny(DenyReason.NOT_FOUND, message="Workspace member not found")

            if self.policy.get_role_level(actor_role) <= self.policy.get_role_level(target_role):
                return self._deny(
                    Deny(
                        DenyReason.INSUFFICIENT_PERMISSIONS,
                        message="Cannot manage members with equal or higher role",
                        user_role=actor_role,
                        workspace_id=workspace_id,
                    ),
                    actor,
                    "workspace member management",
                )

            if new_role is not None and not self.policy.can_assign_role(actor_role, new_role):
                return self._deny(
                    Deny(
                        DenyReason.ROLE_ASSIGNMENT,
                        message="Cannot assign role equal to or higher than your own",
                        required=new_role.value,
                        user_role=actor_role,
                    ),
                    actor,
                    "workspace role assignment",
                )

            return Admit(user=actor, role=actor_role, workspace_id=workspace_id)
        except Exception:
            return self._fail_closed("check_workspace_member_management", actor)
