"""
JWT authentication and password hashing utilities.

WHY: This module provides authentication functionality:
1. Password hashing with bcrypt (OWASP A07: Authentication Failures)
2. JWT token generation and verification

Tokens only identify the caller (``user_id``). Roles are never trusted
from the token; every gate re-reads them from the database so that a role
change takes effect on the next request.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
from jose import jwt, JWTError
from passlib.context import CryptContext

from app.core.config import settings
from app.core.exceptions import (
    TokenExpiredError,
    TokenInvalidError,
)


# Password hashing context
# WHY: bcrypt with default cost factor (12 rounds) provides strong protection
# against brute-force attacks while maintaining acceptable performance.
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# Password Hashing
# ============================================================================


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password (60 characters, includes salt and cost factor)
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against its hash.

    WHY: Constant-time comparison (built into passlib) prevents timing
    attacks that could leak information about the password.

    Example:
        >>> hashed = hash_password("MyPassword123!")
        >>> verify_password("MyPassword123!", hashed)
        True
        >>> verify_password("WrongPassword", hashed)
        False
    """
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


# ============================================================================
# JWT Token Management
# ============================================================================


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Token includes:
    - user_id (and whatever else the caller passes)
    - exp: Expiration time (default: JWT_EXPIRATION_MINUTES)
    - iat: Issued at time (for audit)
    - nbf: Not before time (prevents premature use)

    Security Notes:
        - NEVER include passwords or sensitive data in tokens
        - Tokens are signed but not encrypted (base64 encoded)

    Example:
        >>> token = create_access_token({"user_id": 1})
        >>> verify_token(token)["user_id"]
        1
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRATION_MINUTES))

    to_encode.update(
        {
            "exp": expire,
            "iat": now,
            "nbf": now,
        }
    )

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded token payload with user data

    Raises:
        TokenExpiredError: If token has expired
        TokenInvalidError: If token is malformed or signature invalid
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )

    except jwt.ExpiredSignatureError:
        # WHY: Separate exception for expired tokens allows frontend
        # to trigger token refresh without full re-authentication
        raise TokenExpiredError(message="Token has expired")

    except JWTError as e:
        raise TokenInvalidError(
            message="Invalid token",
            error=str(e),
        )


def extract_user_id(payload: Dict[str, Any]) -> int:
    """
    Extract user ID from a verified token payload.

    Raises:
        TokenInvalidError: If the payload carries no usable user_id
    """
    user_id = payload.get("user_id")
    if user_id is None:
        raise TokenInvalidError(message="Token missing user_id")
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise TokenInvalidError(message="Token has malformed user_id")
