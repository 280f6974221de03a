"""
Pydantic schemas for organization and admin endpoints.

WHY: Schemas define request/response contracts for organization management,
providing validation, documentation, and type safety.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.models.audit_log import AuditAction
from app.models.invitation import InvitationStatus
from app.schemas.auth import UserResponse


class OrganizationCreate(BaseModel):
    """Organization creation request schema."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Organization name",
    )
    description: str | None = Field(
        default=None,
        max_length=1000,
        description="Organization description",
    )
    settings: dict | None = Field(
        default=None,
        description="Overrides for allow_public_workspaces / require_approval_for_new_members",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Acme Corporation",
                "description": "Design and engineering",
            }
        }


class OrganizationResponse(BaseModel):
    """Organization response schema."""

    id: int = Field(..., description="Organization ID")
    name: str = Field(..., description="Organization name")
    description: str | None = Field(None, description="Organization description")
    owner_id: int = Field(..., description="Owner user ID")
    settings: dict = Field(default_factory=dict, description="Organization settings")
    member_count: int = Field(..., description="Number of members")
    created_at: datetime = Field(..., description="Organization creation timestamp")
    updated_at: datetime = Field(..., description="Organization last update timestamp")

    class Config:
        from_attributes = True  # Enable ORM mode for SQLAlchemy models


class OrganizationCreateResponse(BaseModel):
    organization: OrganizationResponse
    user: UserResponse


class MemberStatusUpdate(BaseModel):
    """Activate or deactivate an organization member."""

    is_active: bool = Field(..., description="New account status")
    reason: str | None = Field(None, max_length=500, description="Why the status changes")

    class Config:
        json_schema_extra = {"example": {"is_active": False, "reason": "Left the company"}}


class OrganizationInviteRequest(BaseModel):
    """Invite someone to the caller's organization by email."""

    email: EmailStr = Field(..., description="Invitee email address")
    role: str = Field(default="member", max_length=50, description="Proposed organization role")

    class Config:
        json_schema_extra = {"example": {"email": "sam@example.com", "role": "manager"}}


class OrganizationInvitationResponse(BaseModel):
    id: int
    organization_id: int
    email: str
    role: str
    status: InvitationStatus
    invited_by_id: int | None = None
    expires_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class RoleOption(BaseModel):
    """One entry of an available-roles listing."""

    value: str = Field(..., description="Role identifier")
    label: str = Field(..., description="Display name")
    description: str = Field(..., description="What the role can do")
    level: int = Field(..., description="Position in the hierarchy")


class AvailableRolesResponse(BaseModel):
    current_role: str = Field(..., description="Caller's role the listing is based on")
    roles: list[RoleOption]


class AuditLogResponse(BaseModel):
    """Audit log entry as exposed to organization admins."""

    id: int
    action: AuditAction
    actor_user_id: int | None = None
    target_user_id: int | None = None
    org_id: int | None = None
    workspace_id: int | None = None
    resource_type: str
    resource_id: int | None = None
    changes: dict | None = None
    reason: str | None = None
    ip_address: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    items: list[AuditLogResponse]
    total: int
    skip: int
    limit: int
