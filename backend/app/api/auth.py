"""
Authentication API endpoints.

WHY: These endpoints provide the authentication flow and the system-level
user administration:
1. Register - Create an account (system role member, no organization)
2. Login - Authenticate user and return JWT token
3. Me - Get current user information
4. Users / role - System-wide user listing and system role changes,
   gated on the caller's system role

Security:
- Passwords are compared using constant-time comparison (bcrypt)
- Generic error messages prevent user enumeration attacks
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import verify_password, create_access_token, hash_password
from app.core.authorization import Admit
from app.core.deps import get_access_policy, get_current_user, require_permission
from app.core.exceptions import (
    AuthenticationError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
    RoleAssignmentError,
)
from app.core.config import settings
from app.core.roles import AccessPolicy, Permission, Role
from app.db.session import get_db
from app.dao.user import UserDAO
from app.models.audit_log import AuditAction
from app.models.user import User
from app.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    RoleUpdateRequest,
    TokenResponse,
    UserListResponse,
    UserResponse,
)
from app.services.audit import AuditService
from app.services.identity import normalize_stored_role


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


def _token_for(user: User) -> TokenResponse:
    # Roles are deliberately not put in the token; gates re-read them.
    access_token = create_access_token({"user_id": user.id, "email": user.email})
    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.JWT_EXPIRATION_MINUTES * 60,
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register user",
    description="Create an account. The new user has system role member and no organization.",
)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """
    Register a new user.

    Raises:
        ResourceAlreadyExistsError (409): If the email is taken
    """
    user = await UserDAO(db).create_user(
        email=data.email,
        hashed_password=hash_password(data.password),
        display_name=data.display_name.strip(),
        role=Role.MEMBER.value,
    )
    logger.info("Registered user %s", user.id)
    return _token_for(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Login user",
    description="Authenticate user with email and password, returns JWT token",
)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """
    Authenticate user and return JWT access token.

    Raises:
        AuthenticationError (401): If credentials are invalid or the account is inactive
    """
    user = await UserDAO(db).get_by_email(credentials.email)

    # WHY: Use generic error message to prevent user enumeration
    if not user or not verify_password(credentials.password, user.hashed_password):
        raise AuthenticationError(message="Invalid email or password")

    if not user.is_active:
        raise AuthenticationError(message="Account is inactive")

    return _token_for(user)


@router.get(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user",
    description="Get information about the currently authenticated user",
)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> User:
    return current_user


@router.get(
    "/users",
    response_model=UserListResponse,
    status_code=status.HTTP_200_OK,
    summary="List all users",
    description="System-wide user listing (requires view_users)",
)
async def list_users(
    skip: int = Query(default=0, ge=0, description="Number of items to skip"),
    limit: int = Query(default=50, ge=1, le=200, description="Maximum items to return"),
    access: Admit = Depends(require_permission(Permission.VIEW_USERS)),
    db: AsyncSession = Depends(get_db),
) -> UserListResponse:
    user_dao = UserDAO(db)
    users = await user_dao.get_all(skip=skip, limit=limit)
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=await user_dao.count(),
    )


@router.put(
    "/users/{user_id}/role",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Change system role",
    description="Set a user's system role (requires manage_users)",
)
async def update_system_role(
    user_id: int,
    data: RoleUpdateRequest,
    access: Admit = Depends(require_permission(Permission.MANAGE_USERS)),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Change a user's system role.

    The caller must outrank both the target's current role and the new
    role; nobody can grant super_admin through this endpoint.

    Raises:
        InvalidRoleError (400): Unknown role
        ResourceNotFoundError (404): Unknown user
        InsufficientPermissionsError (403): Target is a peer or superior
        RoleAssignmentError (403): New role not strictly below the caller's
    """
    new_role = Role.parse(data.role)
    user_dao = UserDAO(db)
    target = await user_dao.get_by_id(user_id)
    if target is None:
        raise ResourceNotFoundError(message="User not found")

    current = normalize_stored_role(target.role)
    if policy.get_role_level(access.role) <= policy.get_role_level(current):
        raise InsufficientPermissionsError(
            message="Cannot manage users with equal or higher role",
            user_role=access.role.value,
        )
    if not policy.can_assign_role(access.role, new_role):
        raise RoleAssignmentError(
            message=f"Cannot assign {new_role.value} role: insufficient permissions",
            required=new_role.value,
            user_role=access.role.value,
        )

    updated = await user_dao.update(target.id, role=new_role.value)
    await AuditService(db).record_role_change(
        AuditAction.SYSTEM_ROLE_CHANGE,
        actor_user_id=access.user_id,
        target_user_id=target.id,
        field="role",
        before=current.value,
        after=new_role.value,
        org_id=target.organization_id,
        reason=data.reason,
    )
    return updated
