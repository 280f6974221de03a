"""
Workspace file endpoints.

Only file metadata is handled here; the bytes live in external storage
and ``storage_path`` points at them.

Deleting or editing someone else's file needs manager level, or
delete_files in the file's workspace for deletes. Sharing is a workspace
permission (share_files) and only reaches users of the same organization.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import Admit
from app.core.deps import (
    get_current_user,
    require_ownership_or_role,
    require_resource_workspace_permission,
    require_workspace_permission,
)
from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.core.roles import Permission, Role
from app.dao.file import FileRecordDAO, FileShareDAO
from app.dao.user import UserDAO
from app.db.session import get_db
from app.models.file import FileRecord
from app.models.notification import NotificationType
from app.models.user import User
from app.schemas.workspace import (
    FileCreate,
    FileResponse,
    FileShareRequest,
    FileShareResponse,
    FileUpdate,
    WorkspaceFileCreate,
)
from app.services.notification_service import NotificationService


logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


async def _register_file(
    db: AsyncSession, workspace_id: int, data: FileCreate, uploader_id: int
) -> FileRecord:
    return await FileRecordDAO(db).create(
        workspace_id=workspace_id,
        file_name=data.file_name,
        content_type=data.content_type,
        size_bytes=data.size_bytes,
        storage_path=data.storage_path,
        description=data.description,
        is_public=data.is_public,
        uploaded_by_id=uploader_id,
    )


@router.get(
    "/workspaces/{workspace_id}/files",
    response_model=List[FileResponse],
    status_code=status.HTTP_200_OK,
    summary="List workspace files",
)
async def list_files(
    workspace_id: int,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=200),
    access: Admit = Depends(require_workspace_permission(Permission.VIEW_FILES)),
    db: AsyncSession = Depends(get_db),
):
    return await FileRecordDAO(db).get_by_workspace(workspace_id, skip=skip, limit=limit)


@router.post(
    "/workspaces/{workspace_id}/files",
    response_model=FileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register uploaded file",
    description="Requires upload_files in the workspace",
)
async def create_file(
    workspace_id: int,
    data: FileCreate,
    access: Admit = Depends(require_workspace_permission(Permission.UPLOAD_FILES)),
    db: AsyncSession = Depends(get_db),
):
    return await _register_file(db, workspace_id, data, access.user_id)


@router.get(
    "/files",
    response_model=List[FileResponse],
    status_code=status.HTTP_200_OK,
    summary="List files by workspace query",
    description="Workspace named by the workspace_id (or workspaceId) query parameter",
)
async def list_files_by_query(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=200),
    access: Admit = Depends(require_workspace_permission(Permission.VIEW_FILES)),
    db: AsyncSession = Depends(get_db),
):
    return await FileRecordDAO(db).get_by_workspace(access.workspace_id, skip=skip, limit=limit)


@router.post(
    "/files",
    response_model=FileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register uploaded file (workspace in body)",
    description="Workspace named by workspaceId in the JSON body; requires upload_files",
)
async def create_file_by_body(
    data: WorkspaceFileCreate,
    access: Admit = Depends(require_workspace_permission(Permission.UPLOAD_FILES)),
    db: AsyncSession = Depends(get_db),
):
    return await _register_file(db, access.workspace_id, data, access.user_id)


@router.get(
    "/files/shared",
    response_model=List[FileResponse],
    status_code=status.HTTP_200_OK,
    summary="Files shared with me",
)
async def list_shared_files(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await FileRecordDAO(db).get_shared_with(current_user.id, skip=skip, limit=limit)


@router.put(
    "/files/{file_id}",
    response_model=FileResponse,
    status_code=status.HTTP_200_OK,
    summary="Update file metadata",
    description="The uploader may edit a file; otherwise manager or above is required",
)
async def update_file(
    file_id: int,
    data: FileUpdate,
    access: Admit = Depends(require_ownership_or_role("file", Role.MANAGER)),
    db: AsyncSession = Depends(get_db),
):
    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    dao = FileRecordDAO(db)
    if not changes:
        return await dao.get_by_id(file_id)
    return await dao.update(file_id, **changes)


@router.post(
    "/files/{file_id}/share",
    response_model=FileShareResponse,
    status_code=status.HTTP_200_OK,
    summary="Share file",
    description="Share a file with a user of the same organization (requires share_files)",
)
async def share_file(
    file_id: int,
    data: FileShareRequest,
    access: Admit = Depends(require_resource_workspace_permission("file", Permission.SHARE_FILES)),
    db: AsyncSession = Depends(get_db),
) -> FileShareResponse:
    """
    Share a file with another user.

    Sharing again with the same user replaces the permission.

    Raises:
        ResourceNotFoundError (404): Unknown user, or one outside the caller's organization
        ValidationError (400): Sharing with yourself
    """
    target = await UserDAO(db).get_by_email(data.user_email)
    if target is None or target.organization_id != access.organization_id:
        raise ResourceNotFoundError(message="User not found")
    if target.id == access.user_id:
        raise ValidationError(message="Cannot share a file with yourself")

    await FileShareDAO(db).share(file_id, access.user_id, target.id, data.permission)
    record = await FileRecordDAO(db).get_by_id(file_id)
    await NotificationService(db).notify(
        target.id,
        NotificationType.FILE_SHARED,
        title="File shared with you",
        message=f"{access.user.email} shared {record.file_name} with you",
        extra_data={"file_id": file_id, "permission": data.permission},
        triggered_by_id=access.user_id,
    )
    logger.info("User %s shared file %s with user %s", access.user_id, file_id, target.id)
    return FileShareResponse(
        message="File shared successfully",
        file_id=file_id,
        shared_with=target.email,
        permission=data.permission,
    )


@router.delete(
    "/files/{file_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete file",
    description=(
        "The uploader may delete a file; otherwise delete_files in the workspace "
        "or manager or above is required"
    ),
)
async def delete_file(
    file_id: int,
    access: Admit = Depends(
        require_ownership_or_role("file", Role.MANAGER, workspace_permission=Permission.DELETE_FILES)
    ),
    db: AsyncSession = Depends(get_db),
) -> None:
    dao = FileRecordDAO(db)
    record = await dao.get_by_id(file_id)
    uploader_id, file_name, workspace_id = record.uploaded_by_id, record.file_name, record.workspace_id
    await FileShareDAO(db).delete_for_files([file_id])
    await dao.delete(file_id)
    if uploader_id is not None and uploader_id != access.user_id:
        await NotificationService(db).notify(
            uploader_id,
            NotificationType.FILE_DELETED,
            title="File deleted",
            message=f"{file_name} was deleted by {access.user.email}",
            extra_data={"file_id": file_id, "workspace_id": workspace_id},
            triggered_by_id=access.user_id,
        )
    logger.info("User %s deleted file %s", access.user_id, file_id)
