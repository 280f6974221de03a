"""
Identity resolvers.

WHAT: Read-only lookups that turn a user id (and optionally a workspace id)
into the role that applies to it.

WHY: Gates never trust role data from the token or the request. They ask
these resolvers, which read the current records on every call, so a role
change is effective on the very next request.

HOW: Missing records resolve to defaults instead of raising:

- missing user or missing role field -> MEMBER
- stored role string outside the registry -> VIEWER (logged)
- no workspace relation -> None ("not a member", distinct from a low role)

Database errors are not swallowed here; they propagate to the gate, which
turns them into a 500 denial.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import AccessPolicy, Role
from app.dao.user import UserDAO
from app.dao.workspace import WorkspaceDAO, WorkspaceMemberDAO
from app.models.user import User


logger = logging.getLogger(__name__)


def normalize_stored_role(value: Optional[str], default: Role = Role.MEMBER) -> Role:
    """
    Normalize a role string read from the database.

    Args:
        value: Raw stored value (any casing, may be None or blank)
        default: Role used when the value is missing

    Returns:
        The matching Role, ``default`` when missing, VIEWER when unrecognized
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    role = Role.coerce(value)
    if role is None:
        logger.warning("Unrecognized stored role %r, treating as viewer", value)
        return Role.VIEWER
    return role


class IdentityResolver:
    """
    Resolves system, organization and workspace roles for a user.

    One instance per request; it shares the request's database session.

    Example:
        resolver = IdentityResolver(session)
        role = await resolver.get_user_organization_role(user.id)
    """

    def __init__(self, session: AsyncSession):
        self.user_dao = UserDAO(session)
        self.workspace_dao = WorkspaceDAO(session)
        self.member_dao = WorkspaceMemberDAO(session)

    async def _get_user(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        return await self.user_dao.get_by_id(user_id)

    async def get_user_system_role(self, user_id: int) -> Role:
        """System role of a user; MEMBER when the user or the field is missing."""
        user = await self._get_user(user_id)
        if user is None:
            return Role.MEMBER
        return normalize_stored_role(user.role)

    async def get_user_organization_id(self, user_id: int) -> Optional[int]:
        user = await self._get_user(user_id)
        if user is None:
            return None
        return user.organization_id

    async def get_user_organization_role(self, user_id: int) -> Role:
        """
        Role of a user inside their organization.

        Falls back to the system role, then to MEMBER.
        """
        user = await self._get_user(user_id)
        if user is None:
            return Role.MEMBER
        if user.organization_role:
            return normalize_stored_role(user.organization_role)
        return normalize_stored_role(user.role)

    async def get_user_workspace_role(self, user_id: int, workspace_id: int) -> Optional[Role]:
        """
        Role of a user in a workspace.

        Returns:
            WORKSPACE_ADMIN for the owner, the membership role for members,
            None when the user has no relation to the workspace (or the
            workspace does not exist)
        """
        workspace = await self.workspace_dao.get_by_id(workspace_id)
        if workspace is None:
            return None
        if workspace.owner_id == user_id:
            return Role.WORKSPACE_ADMIN

        membership = await self.member_dao.get_membership(workspace_id, user_id)
        if membership is None:
            return None
        return normalize_stored_role(membership.role)

    async def are_in_same_organization(self, user_a: int, user_b: int) -> bool:
        """Both users belong to an organization and it is the same one."""
        org_a = await self.get_user_organization_id(user_a)
        org_b = await self.get_user_organization_id(user_b)
        return org_a is not None and org_b is not None and org_a == org_b

    async def can_manage_user(self, actor_id: int, target_id: int, policy: AccessPolicy) -> bool:
        """
        Whether an actor may change another user's role or status.

        Requires the same organization and a strictly higher organization
        role level. Nobody can manage a peer or a superior, or themselves.
        """
        if not await self.are_in_same_organization(actor_id, target_id):
            return False
        actor_role = await self.get_user_organization_role(actor_id)
        target_role = await self.get_user_organization_role(target_id)
        return policy.get_role_level(actor_role) > policy.get_role_level(target_role)

    async def get_organization_users(
        self,
        user_id: int,
        skip: int = 0,
        limit: int = 100,
    ) -> List[User]:
        """Members of the caller's organization; empty when unaffiliated."""
        organization_id = await self.get_user_organization_id(user_id)
        if organization_id is None:
            return []
        return await self.user_dao.get_users_by_org(organization_id, skip=skip, limit=limit)
