"""
FastAPI dependencies for authentication and authorization.

WHY: Dependencies provide reusable authentication and authorization logic
that can be injected into route handlers, following the DRY principle
and ensuring consistent security across the API.

HOW: The ``require_*`` factories wrap the AuthorizationGate. A Deny is
raised as the matching AppException; an Admit is stored on
``request.state.access`` and returned to the route as its access context.

Usage:
    @router.put("/members/{user_id}/role")
    async def update_role(
        access: Admit = Depends(
            require_organization_permission(Permission.MANAGE_ORG_MEMBERS)
        ),
    ):
        ...
"""

import logging
from typing import Any, Callable, Dict, Optional, Type

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import extract_user_id, verify_token
from app.core.authorization import Admit, AuthorizationGate, Decision, Deny
from app.core.exceptions import AuthenticationError, ResourceNotFoundError
from app.core.roles import AccessPolicy, Permission, Role, build_access_policy
from app.dao.base import BaseDAO
from app.dao.file import FileRecordDAO
from app.dao.task import TaskDAO
from app.dao.user import UserDAO
from app.db.session import get_db
from app.models.user import User
from app.services.identity import IdentityResolver


logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme
# WHY: auto_error=False so a missing header is reported as our own 401
# AuthenticationError instead of FastAPI's default response.
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from JWT token.

    WHY: This dependency:
    1. Extracts token from Authorization header
    2. Verifies token signature and expiration
    3. Fetches user from database
    4. Ensures user still exists and is active

    Raises:
        AuthenticationError: If token is missing, invalid, expired, or the
            user is unknown or inactive
    """
    if credentials is None:
        raise AuthenticationError()

    # TokenExpiredError / TokenInvalidError are AuthenticationErrors (401)
    payload = verify_token(credentials.credentials)
    user_id = extract_user_id(payload)

    # WHY: User data in token might be stale; always fetch current data
    user = await UserDAO(db).get_by_id(user_id)

    if not user:
        raise AuthenticationError(message="User not found")

    if not user.is_active:
        # WHY: Deactivated users lose access on their next request
        raise AuthenticationError(message="User account is inactive")

    return user


def get_access_policy(request: Request) -> AccessPolicy:
    """
    The process-wide AccessPolicy built in create_app().

    Falls back to the default policy when the app was assembled without
    one (for example a bare FastAPI app in a unit test).
    """
    policy = getattr(request.app.state, "access_policy", None)
    if policy is None:
        policy = build_access_policy()
        request.app.state.access_policy = policy
    return policy


def get_identity_resolver(db: AsyncSession = Depends(get_db)) -> IdentityResolver:
    return IdentityResolver(db)


def get_authorization_gate(
    resolver: IdentityResolver = Depends(get_identity_resolver),
    policy: AccessPolicy = Depends(get_access_policy),
) -> AuthorizationGate:
    return AuthorizationGate(resolver, policy)


def enforce(request: Request, decision: Decision) -> Admit:
    """
    Raise on Deny, record and return the Admit otherwise.

    Raises:
        AppException: The exception matching the denial reason
    """
    if isinstance(decision, Deny):
        raise decision.to_exception()
    request.state.access = decision
    return decision


def _parse_id(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


async def get_workspace_id(request: Request) -> Optional[int]:
    """
    Find the workspace a request is scoped to.

    Looks at the ``workspace_id`` path parameter, then the query string,
    then a JSON body (``workspace_id`` or ``workspaceId``).
    """
    workspace_id = _parse_id(request.path_params.get("workspace_id"))
    if workspace_id is not None:
        return workspace_id

    for key in ("workspace_id", "workspaceId"):
        workspace_id = _parse_id(request.query_params.get(key))
        if workspace_id is not None:
            return workspace_id

    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            try:
                body = await request.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                for key in ("workspace_id", "workspaceId"):
                    workspace_id = _parse_id(body.get(key))
                    if workspace_id is not None:
                        return workspace_id
    return None


def require_permission(permission: Permission) -> Callable:
    """
    Require a permission of the caller's system role.

    Args:
        permission: Permission the system role must hold

    Returns:
        Dependency returning the Admit
    """

    async def permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        gate: AuthorizationGate = Depends(get_authorization_gate),
    ) -> Admit:
        return enforce(request, await gate.check_permission(current_user, permission))

    return permission_checker


def require_organization_permission(permission: Permission) -> Callable:
    """
    Require organization membership and a permission of the organization role.

    Unaffiliated callers get 403 "No organization membership" before their
    role is evaluated.
    """

    async def organization_permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        gate: AuthorizationGate = Depends(get_authorization_gate),
    ) -> Admit:
        decision = await gate.check_organization_permission(current_user, permission)
        return enforce(request, decision)

    return organization_permission_checker


def require_workspace_permission(permission: Permission) -> Callable:
    """
    Require a permission of the caller's role in the requested workspace.

    Raises WorkspaceIdRequiredError (400) when the request names no workspace.
    """

    async def workspace_permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        gate: AuthorizationGate = Depends(get_authorization_gate),
        workspace_id: Optional[int] = Depends(get_workspace_id),
    ) -> Admit:
        decision = await gate.check_workspace_permission(current_user, workspace_id, permission)
        return enforce(request, decision)

    return workspace_permission_checker


OWNED_RESOURCES: Dict[str, Type[BaseDAO]] = {
    "task": TaskDAO,
    "file": FileRecordDAO,
}


def require_ownership_or_role(
    kind: str, min_role: Role, workspace_permission: Optional[Permission] = None
) -> Callable:
    """
    Admit the owner of a resource, or any caller at ``min_role`` or above.

    Args:
        kind: Resource kind ("task" or "file"); the id is read from the
            ``{kind}_id`` path parameter
        min_role: Minimum system role for acting on someone else's resource
        workspace_permission: Optional permission that, held in the
            resource's workspace, also admits the caller
    """
    dao_class = OWNED_RESOURCES[kind]
    param = f"{kind}_id"

    async def ownership_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        gate: AuthorizationGate = Depends(get_authorization_gate),
        db: AsyncSession = Depends(get_db),
    ) -> Admit:
        resource_id = _parse_id(request.path_params.get(param))
        resource = await dao_class(db).get_by_id(resource_id) if resource_id is not None else None
        decision = await gate.check_ownership_or_role(
            current_user,
            resource,
            min_role,
            resource_name=kind.capitalize(),
            workspace_permission=workspace_permission,
        )
        return enforce(request, decision)

    return ownership_checker


def require_resource_workspace_permission(kind: str, permission: Permission) -> Callable:
    """
    Require a permission in the workspace that holds a resource.

    The resource is loaded from the ``{kind}_id`` path parameter; a missing
    resource is 404 before any role is looked at.
    """
    dao_class = OWNED_RESOURCES[kind]
    param = f"{kind}_id"

    async def resource_workspace_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        gate: AuthorizationGate = Depends(get_authorization_gate),
        db: AsyncSession = Depends(get_db),
    ) -> Admit:
        resource_id = _parse_id(request.path_params.get(param))
        resource = await dao_class(db).get_by_id(resource_id) if resource_id is not None else None
        if resource is None:
            raise ResourceNotFoundError(message=f"{kind.capitalize()} not found")
        decision = await gate.check_workspace_permission(
            current_user, resource.workspace_id, permission
        )
        return enforce(request, decision)

    return resource_workspace_checker
