"""
FastAPI dependencies for authentication and authorization.

This module provides dependency functions for JWT authentication, role-based
access control and database session injection.
"""

from typing import Annotated, NamedTuple, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.core.exceptions import UserNotFoundError
from bookstore.core.logging import get_logger, set_user_id
from bookstore.core.security import TokenError, decode_token, get_token_user_id
from bookstore.database.connection import get_db
from bookstore.database.models.user import User
from bookstore.services.auth.service import AuthService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


class AuthContext(NamedTuple):
    """Identity of the caller as seen by the order processor."""

    user_id: UUID
    is_privileged: bool

    @classmethod
    def from_user(cls, user: User) -> "AuthContext":
        return cls(user_id=user.id, is_privileged=user.is_admin)


def _credentials_exception(detail: str = "Authentication required") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Validate JWT token and retrieve current authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired, or the
            user no longer exists
    """
    if credentials is None:
        logger.debug("Authentication failed: No credentials provided")
        raise _credentials_exception()

    try:
        payload = decode_token(credentials.credentials)
        user_id = get_token_user_id(payload)
    except TokenError as e:
        logger.warning("Authentication failed", code=e.code)
        raise _credentials_exception(
            "Token has expired" if e.code == "TOKEN_EXPIRED" else "Invalid or expired token"
        ) from None

    try:
        user = await AuthService(db).get_user(user_id)
    except UserNotFoundError:
        logger.warning("Authentication failed: User not found", user_id=str(user_id))
        raise _credentials_exception("Invalid or expired token") from None

    set_user_id(str(user.id))
    return user


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Require an admin caller.

    Raises:
        HTTPException: 403 if the user is not an admin
    """
    if not current_user.is_admin:
        logger.warning(
            "Authorization failed: admin required",
            user_id=str(current_user.id),
            role=current_user.role.value,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


def get_auth_context(
    current_user: Annotated[User, Depends(get_current_user)],
) -> AuthContext:
    return AuthContext.from_user(current_user)


DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentAdmin = Annotated[User, Depends(get_current_admin)]
CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]

__all__ = [
    "AuthContext",
    "CurrentAdmin",
    "CurrentAuth",
    "CurrentUser",
    "DatabaseSession",
    "get_current_admin",
    "get_current_user",
    "get_auth_context",
]
