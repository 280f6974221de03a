"""
Role and permission registry.

WHAT: The fixed role hierarchy, the fixed permission set, the
role -> permission matrix and the pure evaluator functions over them.

WHY: Every gate in the API asks the same three questions ("does this role
hold this permission?", "how senior is this role?", "may this role grant
that role?"). Answering them from one immutable AccessPolicy object keeps a
single source of truth without mutable module state.

HOW: Role and Permission are closed enums. Free-form strings are only
accepted at the edge through Role.parse / Role.coerce, which trim and
lowercase. AccessPolicy is built once by build_access_policy() at app
start-up and handed to gates through app.state.
"""

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Union

from app.core.exceptions import InvalidRoleError


class Role(str, enum.Enum):
    """
    Role enumeration, ordered from least to most privileged.

    WHY: Declaration order is the hierarchy; ROLE_LEVELS is derived from it.
    """

    VIEWER = "viewer"
    MEMBER = "member"
    MANAGER = "manager"
    WORKSPACE_ADMIN = "workspace_admin"
    ORG_ADMIN = "org_admin"
    ORG_OWNER = "org_owner"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def coerce(cls, value: Union["Role", str, None]) -> Optional["Role"]:
        """
        Normalize a raw value to a Role, or None when it is not a known role.

        Example:
            >>> Role.coerce("  Org_Admin ")
            <Role.ORG_ADMIN: 'org_admin'>
            >>> Role.coerce("owner") is None
            True
        """
        if value is None:
            return None
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def parse(cls, value: Union["Role", str, None]) -> "Role":
        """
        Normalize a role supplied by a client.

        Raises:
            InvalidRoleError: If the value is not in the registry. Unknown
                roles are rejected, never silently defaulted.
        """
        role = cls.coerce(value)
        if role is None:
            raise InvalidRoleError(
                message="Valid role is required",
                provided_role=value if isinstance(value, str) else None,
                allowed_roles=[r.value for r in cls],
            )
        return role


class Permission(str, enum.Enum):
    """
    Permission enumeration.

    Members sharing a value are enum aliases: ``Permission.INVITE_MEMBERS``
    is ``Permission.MANAGE_MEMBERS``. Iterating the enum yields only the
    canonical permissions.
    """

    # System
    MANAGE_SYSTEM = "manage_system"
    MANAGE_USERS = "manage_users"
    VIEW_USERS = "view_users"

    # Organization
    MANAGE_ORGANIZATION = "manage_organization"
    CREATE_ORGANIZATION = "create_organization"
    DELETE_ORGANIZATION = "delete_organization"
    MANAGE_ORG_MEMBERS = "manage_org_members"
    VIEW_ORG_MEMBERS = "view_org_members"

    # Workspace
    CREATE_WORKSPACES = "create_workspaces"
    EDIT_WORKSPACES = "edit_workspaces"
    DELETE_WORKSPACES = "delete_workspaces"
    VIEW_WORKSPACES = "view_workspaces"
    MANAGE_MEMBERS = "manage_members"
    VIEW_MEMBERS = "view_members"

    # Files
    UPLOAD_FILES = "upload_files"
    DELETE_FILES = "delete_files"
    SHARE_FILES = "share_files"
    VIEW_FILES = "view_files"

    # Tasks
    CREATE_TASKS = "create_tasks"
    ASSIGN_TASKS = "assign_tasks"
    DELETE_TASKS = "delete_tasks"
    VIEW_TASKS = "view_tasks"

    # Aliases
    CREATE_WORKSPACE = "create_workspaces"
    DELETE_WORKSPACE = "delete_workspaces"
    MANAGE_WORKSPACE = "edit_workspaces"
    VIEW_WORKSPACE = "view_workspaces"
    INVITE_MEMBERS = "manage_members"
    REMOVE_MEMBERS = "manage_members"
    MANAGE_ROLES = "manage_members"

    @classmethod
    def coerce(cls, value: Union["Permission", str, None]) -> Optional["Permission"]:
        """Normalize a raw value to a Permission, or None when unknown."""
        if isinstance(value, Permission):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_VIEWER = {
    Permission.VIEW_WORKSPACES,
    Permission.VIEW_MEMBERS,
    Permission.VIEW_FILES,
    Permission.VIEW_TASKS,
}
_MEMBER = _VIEWER | {
    Permission.UPLOAD_FILES,
    Permission.CREATE_TASKS,
}
_MANAGER = _MEMBER | {
    Permission.DELETE_FILES,
    Permission.SHARE_FILES,
    Permission.ASSIGN_TASKS,
}
_WORKSPACE_ADMIN = _MANAGER | {
    Permission.EDIT_WORKSPACES,
    Permission.MANAGE_MEMBERS,
    Permission.DELETE_TASKS,
}
_ORG_ADMIN = _WORKSPACE_ADMIN | {
    Permission.VIEW_ORG_MEMBERS,
    Permission.MANAGE_ORG_MEMBERS,
    Permission.CREATE_WORKSPACES,
    Permission.DELETE_WORKSPACES,
}
_ORG_OWNER = _ORG_ADMIN | {
    Permission.MANAGE_ORGANIZATION,
}

ROLE_PERMISSIONS: Mapping[Role, frozenset] = MappingProxyType(
    {
        Role.SUPER_ADMIN: frozenset(Permission),
        Role.ORG_OWNER: frozenset(_ORG_OWNER),
        Role.ORG_ADMIN: frozenset(_ORG_ADMIN),
        Role.WORKSPACE_ADMIN: frozenset(_WORKSPACE_ADMIN),
        Role.MANAGER: frozenset(_MANAGER),
        Role.MEMBER: frozenset(_MEMBER),
        Role.VIEWER: frozenset(_VIEWER),
    }
)

# Higher number = more privilege. 0 is reserved for unknown roles.
ROLE_LEVELS: Mapping[Role, int] = MappingProxyType(
    {role: level for level, role in enumerate(Role, start=1)}
)

ROLE_DESCRIPTIONS: Mapping[Role, str] = MappingProxyType(
    {
        Role.SUPER_ADMIN: "System administrator with unrestricted access",
        Role.ORG_OWNER: "Full control over organization and all workspaces",
        Role.ORG_ADMIN: "Can manage organization workspaces and members",
        Role.WORKSPACE_ADMIN: "Can manage specific workspaces and their members",
        Role.MANAGER: "Can manage tasks and files within workspaces",
        Role.MEMBER: "Can participate in workspaces and create content",
        Role.VIEWER: "Can view content but not modify anything",
    }
)

ROLE_DISPLAY_NAMES: Mapping[Role, str] = MappingProxyType(
    {
        Role.SUPER_ADMIN: "Super Admin",
        Role.ORG_OWNER: "Organization Owner",
        Role.ORG_ADMIN: "Organization Admin",
        Role.WORKSPACE_ADMIN: "Workspace Admin",
        Role.MANAGER: "Manager",
        Role.MEMBER: "Member",
        Role.VIEWER: "Viewer",
    }
)


RoleLike = Union[Role, str, None]
PermissionLike = Union[Permission, str, None]


@dataclass(frozen=True)
class AccessPolicy:
    """
    Immutable role/permission configuration plus the pure evaluator.

    WHAT: Answers permission, level and delegation questions without I/O.

    WHY: Built once at process start and passed to every gate, so the
    matrix cannot drift between call sites and tests can build their own.
    """

    role_permissions: Mapping[Role, frozenset]
    role_levels: Mapping[Role, int]
    role_descriptions: Mapping[Role, str]
    role_display_names: Mapping[Role, str]

    def permissions_for(self, role: RoleLike) -> frozenset:
        """Return the permission set of a role (empty for unknown roles)."""
        normalized = Role.coerce(role)
        if normalized is None:
            return frozenset()
        return self.role_permissions.get(normalized, frozenset())

    def has_permission(self, role: RoleLike, permission: PermissionLike) -> bool:
        """
        Check whether a role holds a permission.

        Example:
            >>> policy = build_access_policy()
            >>> policy.has_permission("MANAGER", Permission.ASSIGN_TASKS)
            True
            >>> policy.has_permission("viewer", "upload_files")
            False
        """
        normalized_permission = Permission.coerce(permission)
        if normalized_permission is None:
            return False
        return normalized_permission in self.permissions_for(role)

    def get_role_level(self, role: RoleLike) -> int:
        """Position of a role in the hierarchy; 0 for unknown or missing roles."""
        normalized = Role.coerce(role)
        if normalized is None:
            return 0
        return self.role_levels.get(normalized, 0)

    def can_assign_role(self, acting_role: RoleLike, target_role: RoleLike) -> bool:
        """
        Check whether an actor may grant a role.

        Only roles strictly below the actor's own level can be granted, which
        also rules out self-escalation and lateral assignment.
        """
        return self.get_role_level(acting_role) > self.get_role_level(target_role)

    def assignable_roles(self, acting_role: RoleLike) -> List[Role]:
        """Roles the actor may grant, most senior first. Never SUPER_ADMIN."""
        return [
            role
            for role in sorted(self.role_levels, key=self.role_levels.get, reverse=True)
            if role is not Role.SUPER_ADMIN and self.can_assign_role(acting_role, role)
        ]

    def describe(self, role: Role) -> str:
        return self.role_descriptions.get(role, "Standard user permissions")

    def display_name(self, role: Role) -> str:
        return self.role_display_names.get(role, role.value)


def build_access_policy(
    role_permissions: Optional[Mapping[Role, Iterable[Permission]]] = None,
) -> AccessPolicy:
    """
    Build the access policy.

    Args:
        role_permissions: Optional override of the matrix (tests only).
            Defaults to ROLE_PERMISSIONS.

    Returns:
        Frozen AccessPolicy
    """
    matrix = role_permissions if role_permissions is not None else ROLE_PERMISSIONS
    return AccessPolicy(
        role_permissions=MappingProxyType(
            {role: frozenset(perms) for role, perms in matrix.items()}
        ),
        role_levels=ROLE_LEVELS,
        role_descriptions=ROLE_DESCRIPTIONS,
        role_display_names=ROLE_DISPLAY_NAMES,
    )
