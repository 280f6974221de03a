"""
Organization API endpoints.

WHY: Organizations are the tenant boundary. These endpoints let a user
create one (becoming its owner), let organization admins manage members
and invitations, and let invitees accept or decline.

HOW: Member-management routes are admitted by an organization-level gate;
OrganizationService then applies the owner, manage-user and assign-role
rules before writing.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import Admit
from app.core.deps import (
    get_access_policy,
    get_current_user,
    require_organization_permission,
)
from app.core.roles import AccessPolicy, Permission, Role
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import RoleUpdateRequest, UserResponse
from app.schemas.organization import (
    AvailableRolesResponse,
    OrganizationCreate,
    OrganizationCreateResponse,
    OrganizationInvitationResponse,
    OrganizationInviteRequest,
    OrganizationResponse,
    RoleOption,
)
from app.services.identity import IdentityResolver
from app.services.organization_service import OrganizationService


router = APIRouter(prefix="/organizations", tags=["organizations"])


class CurrentOrganizationResponse(BaseModel):
    organization: OrganizationResponse
    user_role: str


class InvitationAcceptResponse(BaseModel):
    message: str
    organization: OrganizationResponse
    role: str


def get_organization_service(
    db: AsyncSession = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> OrganizationService:
    return OrganizationService(db, policy)


def role_options(policy: AccessPolicy, roles: List[Role]) -> List[RoleOption]:
    return [
        RoleOption(
            value=role.value,
            label=policy.display_name(role),
            description=policy.describe(role),
            level=policy.get_role_level(role),
        )
        for role in roles
    ]


@router.get(
    "/current",
    response_model=CurrentOrganizationResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current organization",
    description="The caller's organization and their role in it",
)
async def get_current_organization(
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> CurrentOrganizationResponse:
    organization, role = await service.get_current(current_user)
    return CurrentOrganizationResponse(
        organization=OrganizationResponse.model_validate(organization),
        user_role=role.value,
    )


@router.post(
    "",
    response_model=OrganizationCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create organization",
    description="Create an organization; the caller becomes its owner",
)
async def create_organization(
    data: OrganizationCreate,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationCreateResponse:
    """
    Create a new organization.

    Raises:
        ValidationError (400): If the caller already belongs to an organization
    """
    organization = await service.create_organization(
        current_user, data.name, data.description, data.settings
    )
    return OrganizationCreateResponse(
        organization=OrganizationResponse.model_validate(organization),
        user=UserResponse.model_validate(current_user),
    )


@router.get(
    "/members",
    response_model=List[UserResponse],
    status_code=status.HTTP_200_OK,
    summary="List organization members",
    description="Requires view_org_members",
)
async def list_members(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=200),
    access: Admit = Depends(require_organization_permission(Permission.VIEW_ORG_MEMBERS)),
    service: OrganizationService = Depends(get_organization_service),
) -> List[User]:
    return await service.list_members(access.user, skip=skip, limit=limit)


@router.put(
    "/members/{user_id}/role",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Update member role",
    description="Set a member's organization role (requires manage_org_members)",
)
async def update_member_role(
    user_id: int,
    data: RoleUpdateRequest,
    access: Admit = Depends(require_organization_permission(Permission.MANAGE_ORG_MEMBERS)),
    service: OrganizationService = Depends(get_organization_service),
) -> User:
    new_role = Role.parse(data.role)
    return await service.update_member_role(access.user, user_id, new_role, data.reason)


@router.post(
    "/invite",
    response_model=OrganizationInvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite member",
    description="Invite an email address into the organization (requires manage_org_members)",
)
async def invite_member(
    data: OrganizationInviteRequest,
    access: Admit = Depends(require_organization_permission(Permission.MANAGE_ORG_MEMBERS)),
    service: OrganizationService = Depends(get_organization_service),
):
    role = Role.parse(data.role)
    return await service.invite(access.user, data.email, role)


@router.get(
    "/available-roles",
    response_model=AvailableRolesResponse,
    status_code=status.HTTP_200_OK,
    summary="Assignable roles",
    description="Roles the caller may grant inside their organization",
)
async def available_roles(
    current_user: User = Depends(get_current_user),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
) -> AvailableRolesResponse:
    role = await IdentityResolver(db).get_user_organization_role(current_user.id)
    return AvailableRolesResponse(
        current_role=role.value,
        roles=role_options(policy, policy.assignable_roles(role)),
    )


@router.get(
    "/invitations",
    response_model=List[OrganizationInvitationResponse],
    status_code=status.HTTP_200_OK,
    summary="My organization invitations",
    description="Pending invitations addressed to the caller's email",
)
async def list_invitations(
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return await service.list_invitations(current_user)


@router.post(
    "/invitations/{invitation_id}/accept",
    response_model=InvitationAcceptResponse,
    status_code=status.HTTP_200_OK,
    summary="Accept organization invitation",
)
async def accept_invitation(
    invitation_id: int,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> InvitationAcceptResponse:
    """
    Join the inviting organization.

    Raises:
        InvitationNotFoundError (404), InvitationExpiredError (400),
        InvalidStateTransitionError (400) when already settled
    """
    organization, role = await service.accept_invitation(current_user, invitation_id)
    return InvitationAcceptResponse(
        message="Invitation accepted successfully",
        organization=OrganizationResponse.model_validate(organization),
        role=role.value,
    )


@router.post(
    "/invitations/{invitation_id}/decline",
    response_model=OrganizationInvitationResponse,
    status_code=status.HTTP_200_OK,
    summary="Decline organization invitation",
)
async def decline_invitation(
    invitation_id: int,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return await service.decline_invitation(current_user, invitation_id)
