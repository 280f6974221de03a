"""
Admin Portal API endpoints.

WHAT: Organization administration: member listing, role and status
changes, assignable roles and the audit trail.

WHY: Administrators need centralized access to:
1. User management within their organization
2. Soft deactivation of members who leave
3. Audit log viewing for security compliance

HOW: Every route is admitted by an organization-level gate. The role and
status mutations then go through OrganizationService, which applies the
owner guard, the manage-user rule and the assign-role rule and records an
audit entry.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.organizations import get_organization_service, role_options
from app.core.authorization import Admit
from app.core.config import settings
from app.core.deps import get_access_policy, require_organization_permission
from app.core.roles import AccessPolicy, Permission, Role
from app.dao.user import UserDAO
from app.db.session import get_db
from app.models.audit_log import AuditAction
from app.models.user import User
from app.schemas.auth import RoleUpdateRequest, UserListResponse, UserResponse
from app.schemas.organization import (
    AuditLogListResponse,
    AuditLogResponse,
    AvailableRolesResponse,
    MemberStatusUpdate,
)
from app.services.audit import AuditService
from app.services.organization_service import OrganizationService


router = APIRouter(prefix="/admin", tags=["admin"])


# ============================================================================
# User Management
# ============================================================================


@router.get(
    "/users",
    response_model=UserListResponse,
    status_code=status.HTTP_200_OK,
    summary="List organization users",
    description="Members of the caller's organization, including deactivated ones",
)
async def list_users(
    skip: int = Query(default=0, ge=0, description="Number of items to skip"),
    limit: int = Query(default=50, ge=1, le=200, description="Maximum items to return"),
    include_inactive: bool = Query(default=True, description="Include deactivated users"),
    access: Admit = Depends(require_organization_permission(Permission.VIEW_ORG_MEMBERS)),
    db: AsyncSession = Depends(get_db),
) -> UserListResponse:
    user_dao = UserDAO(db)
    users = await user_dao.get_users_by_org(
        access.organization_id, skip=skip, limit=limit, include_inactive=include_inactive
    )
    filters = {"organization_id": access.organization_id}
    if not include_inactive:
        filters["is_active"] = True
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=await user_dao.count(**filters),
    )


@router.put(
    "/users/{user_id}/role",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Update user role",
    description="Set a member's organization role. The owner can only be changed by a super admin.",
)
async def update_user_role(
    user_id: int,
    data: RoleUpdateRequest,
    access: Admit = Depends(require_organization_permission(Permission.MANAGE_ORG_MEMBERS)),
    service: OrganizationService = Depends(get_organization_service),
) -> User:
    """
    Update a member's organization role.

    Raises:
        InvalidRoleError (400): Role string is not a known role
        ProtectedResourceError (403): Target is the organization owner
        InsufficientPermissionsError (403): Target's role is not below the caller's
        RoleAssignmentError (403): New role is not below the caller's
    """
    new_role = Role.parse(data.role)
    return await service.update_member_role(access.user, user_id, new_role, data.reason)


@router.put(
    "/users/{user_id}/status",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Activate or deactivate user",
    description="Soft-deactivate or reactivate a member of the organization",
)
async def update_user_status(
    user_id: int,
    data: MemberStatusUpdate,
    access: Admit = Depends(require_organization_permission(Permission.MANAGE_ORG_MEMBERS)),
    service: OrganizationService = Depends(get_organization_service),
) -> User:
    return await service.update_member_status(access.user, user_id, data.is_active, data.reason)


@router.get(
    "/available-roles",
    response_model=AvailableRolesResponse,
    status_code=status.HTTP_200_OK,
    summary="Assignable roles",
    description="Roles the caller may grant, each with label, description and level",
)
async def available_roles(
    access: Admit = Depends(require_organization_permission(Permission.MANAGE_ORG_MEMBERS)),
    policy: AccessPolicy = Depends(get_access_policy),
    service: OrganizationService = Depends(get_organization_service),
) -> AvailableRolesResponse:
    return AvailableRolesResponse(
        current_role=access.role.value,
        roles=role_options(policy, service.available_roles(access.role)),
    )


# ============================================================================
# Audit Logs
# ============================================================================


@router.get(
    "/audit-logs",
    response_model=AuditLogListResponse,
    status_code=status.HTTP_200_OK,
    summary="List audit logs",
    description="The organization's audit trail, newest first",
)
async def list_audit_logs(
    skip: int = Query(default=0, ge=0, description="Number of items to skip"),
    limit: int = Query(default=settings.AUDIT_LOG_PAGE_SIZE, ge=1, description="Maximum items to return"),
    action: Optional[AuditAction] = Query(default=None, description="Filter by action"),
    access: Admit = Depends(require_organization_permission(Permission.VIEW_ORG_MEMBERS)),
    db: AsyncSession = Depends(get_db),
) -> AuditLogListResponse:
    limit = min(limit, settings.AUDIT_LOG_MAX_PAGE_SIZE)
    entries, total = await AuditService(db).list_for_organization(
        access.organization_id, skip=skip, limit=limit, action=action
    )
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=total,
        skip=skip,
        limit=limit,
    )
