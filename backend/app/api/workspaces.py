"""
Workspace API endpoints.

WHY: Workspaces are where the third permission tier lives. Creating and
deleting a workspace is an organization decision (org_admin and above);
everything inside one is decided by the caller's workspace role, where
the owner counts as workspace_admin.

Routes under ``/workspaces/invitations`` are declared before the
``/{workspace_id}`` routes so the literal path wins.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import Admit
from app.core.deps import (
    get_access_policy,
    get_current_user,
    require_organization_permission,
    require_workspace_permission,
)
from app.core.roles import AccessPolicy, Permission, Role
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import RoleUpdateRequest
from app.schemas.workspace import (
    WorkspaceCreate,
    WorkspaceDetailResponse,
    WorkspaceInvitationResponse,
    WorkspaceInviteRequest,
    WorkspaceMemberResponse,
    WorkspaceMemberRoleResponse,
    WorkspaceResponse,
    WorkspaceUpdate,
)
from app.services.workspace_service import WorkspaceService


router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def get_workspace_service(
    db: AsyncSession = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
) -> WorkspaceService:
    return WorkspaceService(db, policy)


@router.get(
    "",
    response_model=List[WorkspaceResponse],
    status_code=status.HTTP_200_OK,
    summary="List my workspaces",
    description="Workspaces of the caller's organization that they own or belong to",
)
async def list_workspaces(
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return await service.list_for_user(current_user)


@router.post(
    "",
    response_model=WorkspaceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create workspace",
    description="Requires create_workspaces in the organization; the caller becomes owner",
)
async def create_workspace(
    data: WorkspaceCreate,
    access: Admit = Depends(require_organization_permission(Permission.CREATE_WORKSPACES)),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return await service.create(
        access.user,
        access.organization_id,
        data.name,
        description=data.description,
        is_private=data.is_private,
    )


@router.get(
    "/invitations",
    response_model=List[WorkspaceInvitationResponse],
    status_code=status.HTTP_200_OK,
    summary="My workspace invitations",
)
async def list_workspace_invitations(
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return await service.list_invitations(current_user)


@router.post(
    "/invitations/{invitation_id}/accept",
    response_model=WorkspaceResponse,
    status_code=status.HTTP_200_OK,
    summary="Accept workspace invitation",
)
async def accept_workspace_invitation(
    invitation_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return await service.accept_invitation(current_user, invitation_id)


@router.post(
    "/invitations/{invitation_id}/decline",
    response_model=WorkspaceInvitationResponse,
    status_code=status.HTTP_200_OK,
    summary="Decline workspace invitation",
)
async def decline_workspace_invitation(
    invitation_id: int,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return await service.decline_invitation(current_user, invitation_id)


@router.get(
    "/{workspace_id}",
    response_model=WorkspaceDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Get workspace",
    description="Workspace details plus the caller's workspace role",
)
async def get_workspace(
    workspace_id: int,
    access: Admit = Depends(require_workspace_permission(Permission.VIEW_WORKSPACES)),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceDetailResponse:
    workspace = await service.get(workspace_id)
    return WorkspaceDetailResponse(
        **WorkspaceResponse.model_validate(workspace).model_dump(),
        user_role=access.role.value,
    )


@router.put(
    "/{workspace_id}",
    response_model=WorkspaceResponse,
    status_code=status.HTTP_200_OK,
    summary="Update workspace",
    description="Requires edit_workspaces in the workspace",
)
async def update_workspace(
    workspace_id: int,
    data: WorkspaceUpdate,
    access: Admit = Depends(require_workspace_permission(Permission.EDIT_WORKSPACES)),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return await service.update(access.user, workspace_id, **data.model_dump(exclude_unset=True))


@router.delete(
    "/{workspace_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete workspace",
    description="Requires delete_workspaces in the organization. Removes members, invitations, tasks and files.",
)
async def delete_workspace(
    workspace_id: int,
    access: Admit = Depends(require_organization_permission(Permission.DELETE_WORKSPACES)),
    service: WorkspaceService = Depends(get_workspace_service),
) -> None:
    await service.delete(access.user, access.organization_id, workspace_id)


@router.post(
    "/{workspace_id}/invite",
    response_model=WorkspaceInvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite to workspace",
    description="Invite a user of the same organization (requires manage_members)",
)
async def invite_to_workspace(
    workspace_id: int,
    data: WorkspaceInviteRequest,
    access: Admit = Depends(require_workspace_permission(Permission.MANAGE_MEMBERS)),
    service: WorkspaceService = Depends(get_workspace_service),
):
    role = Role.parse(data.role)
    return await service.invite(access.user, access.role, workspace_id, data.user_id, role)


@router.get(
    "/{workspace_id}/members",
    response_model=List[WorkspaceMemberResponse],
    status_code=status.HTTP_200_OK,
    summary="List workspace members",
    description="The owner first, then members in joining order",
)
async def list_workspace_members(
    workspace_id: int,
    access: Admit = Depends(require_workspace_permission(Permission.VIEW_MEMBERS)),
    service: WorkspaceService = Depends(get_workspace_service),
) -> List[WorkspaceMemberResponse]:
    participants = await service.list_members(workspace_id)
    return [WorkspaceMemberResponse(**vars(p)) for p in participants]


@router.put(
    "/{workspace_id}/members/{user_id}/role",
    response_model=WorkspaceMemberRoleResponse,
    status_code=status.HTTP_200_OK,
    summary="Update workspace member role",
)
async def update_workspace_member_role(
    workspace_id: int,
    user_id: int,
    data: RoleUpdateRequest,
    access: Admit = Depends(require_workspace_permission(Permission.MANAGE_MEMBERS)),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberRoleResponse:
    new_role = Role.parse(data.role)
    membership = await service.update_member_role(
        access.user, workspace_id, user_id, new_role, data.reason
    )
    return WorkspaceMemberRoleResponse(
        workspace_id=membership.workspace_id,
        user_id=membership.user_id,
        role=membership.role,
    )


@router.delete(
    "/{workspace_id}/members/{user_id}",
    response_model=WorkspaceResponse,
    status_code=status.HTTP_200_OK,
    summary="Remove workspace member",
)
async def remove_workspace_member(
    workspace_id: int,
    user_id: int,
    reason: str | None = Query(default=None, max_length=1000),
    access: Admit = Depends(require_workspace_permission(Permission.MANAGE_MEMBERS)),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return await service.remove_member(access.user, workspace_id, user_id, reason)
