"""
Pydantic schemas for authentication and user endpoints.

WHY: Schemas define request/response contracts, providing:
1. Automatic validation of request data
2. API documentation (OpenAPI/Swagger)
3. Clear separation between API and database models

Role values are accepted as plain strings and parsed with Role.parse at
the route, so an unknown role is reported as "Valid role is required"
rather than a generic validation error.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    """User registration request schema."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(
        ...,
        min_length=8,
        max_length=100,
        description="User's password",
    )
    display_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Name shown to other members",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "email": "jane@example.com",
                "password": "SecurePassword123!",
                "display_name": "Jane Doe",
            }
        }


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="User's password",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "email": "jane@example.com",
                "password": "SecurePassword123!",
            }
        }


class TokenResponse(BaseModel):
    """
    JWT token response schema.

    WHY: Returns access token with additional metadata for client-side
    token management (expiration time, token type).
    """

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer' for JWT)")
    expires_in: int = Field(..., description="Token expiration time in seconds")


class UserResponse(BaseModel):
    """
    User response schema.

    WHY: Returns user data without sensitive information (no password hash).
    Includes the role fields the frontend needs to decide what to show.
    """

    id: int = Field(..., description="User ID")
    email: str = Field(..., description="User's email address")
    display_name: str = Field(..., description="User's display name")
    role: str = Field(..., description="System role")
    organization_id: int | None = Field(None, description="Organization ID (null until onboarding)")
    organization_role: str | None = Field(None, description="Role inside the organization")
    is_active: bool = Field(..., description="Whether user account is active")
    created_at: datetime = Field(..., description="Account creation timestamp")

    class Config:
        from_attributes = True  # Enable ORM mode for SQLAlchemy models
        json_schema_extra = {
            "example": {
                "id": 1,
                "email": "jane@example.com",
                "display_name": "Jane Doe",
                "role": "member",
                "organization_id": 1,
                "organization_role": "org_owner",
                "is_active": True,
                "created_at": "2025-10-12T10:30:00",
            }
        }


class RoleUpdateRequest(BaseModel):
    """Request to set a role (system, organization or workspace)."""

    role: str = Field(..., max_length=50, description="New role, case-insensitive")
    reason: str | None = Field(None, max_length=500, description="Why the role changes")

    class Config:
        json_schema_extra = {
            "example": {"role": "manager", "reason": "Leads the design team"}
        }


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
