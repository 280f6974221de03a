"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the API
2. HTTP status code mapping for FastAPI
3. Structured, machine-readable denial reasons for the frontend
4. No sensitive data leaks in error messages (OWASP A04)

IMPORTANT: NEVER use base Exception class. Always use custom exceptions.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses, HTTP status code mapping, and prevents sensitive data
    leaks in error messages.

    Subclasses may list context keys in ``public_fields``; those are lifted
    to the top level of the response body (``required``, ``userRole``,
    ``workspaceId``) so clients can branch on them without digging into
    ``details``.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"
    public_fields: Dict[str, str] = {}

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key"}
        filtered_context = {
            k: v
            for k, v in self.context.items()
            if k.lower() not in sensitive_fields and k not in self.public_fields
        }

        body: Dict[str, Any] = {
            "error": self.message,
            "code": self.__class__.__name__,
            "status_code": self.status_code,
        }
        for context_key, response_key in self.public_fields.items():
            value = self.context.get(context_key)
            if value is not None:
                body[response_key] = getattr(value, "value", value)

        body["details"] = filtered_context if filtered_context else None
        return body


# ============================================================================
# Authentication & Authorization Exceptions (OWASP A01 / A07)
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when no caller identity can be resolved.

    WHY: 401 never reveals whether the requested resource exists.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Authentication required"


class TokenExpiredError(AuthenticationError):
    """Raised when a JWT token has expired."""

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """Raised when a JWT token is malformed or has an invalid signature."""

    default_message = "Token is invalid"


class AuthorizationError(AppException):
    """
    Raised when an authenticated caller may not perform an action.

    WHY: Distinguishing authorization (403) from authentication (401) helps
    frontends show "You don't have permission" instead of "Please log in".

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "You do not have permission to perform this action"


class NoOrganizationMembershipError(AuthorizationError):
    """
    Raised when an organization-scoped route is called by an unaffiliated user.

    WHY: Kept separate from InsufficientPermissionsError so the frontend can
    route the user to onboarding instead of showing a permission error.
    """

    default_message = "Access denied: No organization membership"


class NotWorkspaceMemberError(AuthorizationError):
    """Raised when the caller holds no role at all in the target workspace."""

    default_message = "Access denied: Not a workspace member"
    public_fields = {"workspace_id": "workspaceId"}


class InsufficientPermissionsError(AuthorizationError):
    """
    Raised when the caller's role lacks the required permission or level.

    The response carries the required permission (or role) and the caller's
    role; the caller is already authenticated in the same system.
    """

    default_message = "Access denied: Insufficient permissions"
    public_fields = {
        "required": "required",
        "user_role": "userRole",
        "workspace_id": "workspaceId",
    }


class RoleAssignmentError(AuthorizationError):
    """Raised when an actor tries to grant a role at or above their own level."""

    default_message = "Cannot assign this role: insufficient permissions"
    public_fields = {"required": "required", "user_role": "userRole"}


class ProtectedResourceError(AuthorizationError):
    """
    Raised on attempts to modify the organization owner.

    The message is fixed; the current role of the target is never echoed.
    """

    default_message = "Cannot modify organization owner"


class PermissionVerificationError(AppException):
    """
    Raised when a gate could not complete its checks.

    Gates fail closed: an infrastructure error while resolving roles is a
    denial, never an admission.

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500
    default_message = "Permission verification failed"


# ============================================================================
# Validation & Input Exceptions (OWASP A03)
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


class InvalidRoleError(ValidationError):
    """Raised when a role value is not part of the fixed role registry."""

    default_message = "Valid role is required"


class WorkspaceIdRequiredError(ValidationError):
    """Raised when a workspace-scoped request names no workspace."""

    default_message = "Workspace ID required"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class OrganizationNotFoundError(ResourceNotFoundError):
    """Raised when an organization doesn't exist."""

    default_message = "Organization not found"


class WorkspaceNotFoundError(ResourceNotFoundError):
    """Raised when a workspace doesn't exist."""

    default_message = "Workspace not found"


class InvitationNotFoundError(ResourceNotFoundError):
    """Raised when an invitation doesn't exist."""

    default_message = "Invitation not found"


class ResourceAlreadyExistsError(AppException):
    """
    Raised when attempting to create a resource that already exists.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Resource already exists"


# ============================================================================
# Business Logic Exceptions
# ============================================================================


class InvalidStateTransitionError(AppException):
    """
    Raised when an invalid state transition is attempted.

    WHY: Invitations only move out of ``pending``; accepting or declining a
    settled invitation must fail with a clear message.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Invalid state transition"


class InvitationExpiredError(InvalidStateTransitionError):
    """Raised when a pending invitation is found past its expiry."""

    default_message = "Invitation has expired"


# ============================================================================
# Audit Log Exceptions (OWASP A09)
# ============================================================================


class AuditLogImmutableError(AppException):
    """
    Raised when attempting to update or delete an audit log.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "Audit logs are immutable and cannot be modified"
