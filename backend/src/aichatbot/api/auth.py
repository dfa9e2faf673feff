"""
Authentication context for API endpoints.

Identity is established upstream (session gateway); requests carry the user
id and user type in headers. Every endpoint that reads or writes user data
depends on get_auth_context().
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException, status

from aichatbot.chat.entitlements import UserType


@dataclass
class AuthContext:
    """
    Authentication context for API requests.

    Attributes:
        user_id: UUID of the current user
        user_type: Guest or regular user, used for message quotas
    """

    user_id: UUID
    user_type: UserType = UserType.REGULAR


def get_auth_context(
    x_user_id: Optional[str] = Header(
        None, description="User UUID (required)", alias="X-User-Id"
    ),
    x_user_type: Optional[str] = Header(
        None, description="guest or regular (default regular)", alias="X-User-Type"
    ),
) -> AuthContext:
    """
    FastAPI dependency extracting the user from request headers.

    Raises:
        HTTPException(401): If the user header is missing
        HTTPException(400): If a header value is malformed
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )

    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user ID format",
        )

    try:
        user_type = UserType(x_user_type or UserType.REGULAR.value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Type must be 'guest' or 'regular'",
        )

    return AuthContext(user_id=user_id, user_type=user_type)
