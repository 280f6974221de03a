"""
Pydantic schemas for workspace, task and file endpoints.
"""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from app.models.invitation import InvitationStatus
from app.models.task import TaskPriority, TaskStatus


class WorkspaceCreate(BaseModel):
    """Workspace creation request schema."""

    name: str = Field(..., min_length=1, max_length=255, description="Workspace name")
    description: str | None = Field(None, max_length=1000)
    is_private: bool = Field(default=True, description="Hidden from non-members")

    class Config:
        json_schema_extra = {
            "example": {"name": "Website redesign", "description": "Q3 launch", "is_private": True}
        }


class WorkspaceUpdate(BaseModel):
    """Partial workspace update."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=1000)
    is_private: bool | None = None


class WorkspaceResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    owner_id: int
    organization_id: int
    is_private: bool
    member_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WorkspaceDetailResponse(WorkspaceResponse):
    """Workspace plus the caller's role in it."""

    user_role: str


class WorkspaceInviteRequest(BaseModel):
    """Invite an existing user to a workspace."""

    user_id: int = Field(..., description="Invitee user ID")
    role: str = Field(default="member", max_length=50, description="Proposed workspace role")

    class Config:
        json_schema_extra = {"example": {"user_id": 7, "role": "manager"}}


class WorkspaceInvitationResponse(BaseModel):
    id: int
    workspace_id: int
    invitee_id: int
    role: str
    status: InvitationStatus
    invited_by_id: int | None = None
    expires_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class WorkspaceMemberResponse(BaseModel):
    """A workspace participant. The owner is listed with is_owner=True."""

    user_id: int
    email: str
    display_name: str
    role: str
    is_owner: bool = False
    joined_at: datetime | None = None


class WorkspaceMemberRoleResponse(BaseModel):
    """Result of a workspace role change."""

    workspace_id: int
    user_id: int
    role: str


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to_id: int | None = None
    due_date: date | None = None


class WorkspaceTaskCreate(TaskCreate):
    """Task creation that names its workspace in the body."""

    workspace_id: int = Field(..., alias="workspaceId")

    class Config:
        populate_by_name = True


class TaskUpdate(BaseModel):
    """Partial task update; only the fields sent are changed."""

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to_id: int | None = None
    due_date: date | None = None

    class Config:
        json_schema_extra = {"example": {"status": "in_progress", "assigned_to_id": 7}}


class TaskResponse(BaseModel):
    id: int
    workspace_id: int
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    created_by_id: int | None = None
    assigned_to_id: int | None = None
    due_date: date | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class FileCreate(BaseModel):
    """Metadata for a file already written to storage."""

    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str | None = Field(None, max_length=100)
    size_bytes: int = Field(default=0, ge=0)
    storage_path: str = Field(..., min_length=1, max_length=1024)
    description: str | None = Field(None, max_length=5000)
    is_public: bool = False


class WorkspaceFileCreate(FileCreate):
    """File registration that names its workspace in the body."""

    workspace_id: int = Field(..., alias="workspaceId")

    class Config:
        populate_by_name = True


class FileUpdate(BaseModel):
    description: str | None = Field(None, max_length=5000)
    is_public: bool | None = None


class FileShareRequest(BaseModel):
    user_email: EmailStr
    permission: Literal["read", "write"] = "read"

    class Config:
        json_schema_extra = {"example": {"user_email": "jane@example.com", "permission": "read"}}


class FileShareResponse(BaseModel):
    message: str
    file_id: int
    shared_with: str
    permission: str


class FileResponse(BaseModel):
    id: int
    workspace_id: int
    file_name: str
    content_type: str | None = None
    size_bytes: int
    storage_path: str
    description: str | None = None
    is_public: bool = False
    uploaded_by_id: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True
