"""
Security utilities for password hashing and JWT access tokens.

Passwords are hashed with bcrypt through passlib; access tokens are HS256
JWTs issued and verified with python-jose. Token claims carry the user id
as ``sub`` plus the email and role so callers can log without a lookup.
"""

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from bookstore.core.config import get_settings
from bookstore.core.logging import get_logger

logger = get_logger(__name__)

TOKEN_TYPE_ACCESS = "access"


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Exception raised for token-related errors."""


class PasswordError(SecurityError):
    """Exception raised for password-related errors."""


@lru_cache
def get_password_context() -> CryptContext:
    """Build the bcrypt context once, using the configured cost factor."""
    settings = get_settings()
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=settings.bcrypt_rounds,
        bcrypt__ident="2b",
    )


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Raises:
        PasswordError: If the password is empty or hashing fails
    """
    if not password:
        logger.error("Attempted to hash empty password")
        raise PasswordError("Password cannot be empty", code="EMPTY_PASSWORD")

    try:
        return get_password_context().hash(password)
    except Exception as e:
        logger.error(
            "Password hashing failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise PasswordError(
            "Failed to hash password",
            code="HASH_FAILED",
            original_error=str(e),
        ) from e


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Empty inputs and malformed hashes verify as False rather than raising,
    so callers can treat every failure as "invalid credentials".
    """
    if not plain_password or not hashed_password:
        return False

    try:
        return get_password_context().verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.warning(
            "Password verification failed on malformed hash",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False


def token_lifetime() -> timedelta:
    """Lifetime of a newly issued access token."""
    return timedelta(minutes=get_settings().jwt_access_token_expire_minutes)


def create_access_token(
    user_id: UUID,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        user_id: Subject of the token
        email: User email, carried as a claim
        role: User role value, carried as a claim
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string

    Raises:
        TokenError: If encoding fails
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else token_lifetime())

    claims: Dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": now,
        "exp": expire,
        "type": TOKEN_TYPE_ACCESS,
    }

    try:
        token = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)
    except JWTError as e:
        logger.error(
            "Failed to create access token",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TokenError(
            "Failed to create access token",
            code="TOKEN_CREATE_FAILED",
            original_error=str(e),
        ) from e

    logger.debug(
        "Access token created",
        subject=str(user_id),
        expires_at=expire.isoformat(),
    )
    return token


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Returns:
        Decoded claims

    Raises:
        TokenError: If the token is empty, expired, malformed, or not an
            access token
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError as e:
        logger.info("Token has expired")
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning(
            "Invalid token",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TokenError("Invalid token", code="TOKEN_INVALID") from e

    if payload.get("type") != TOKEN_TYPE_ACCESS:
        logger.warning("Token type mismatch", actual=payload.get("type"))
        raise TokenError("Invalid token type", code="TOKEN_INVALID")

    return payload


def get_token_user_id(payload: Dict[str, Any]) -> UUID:
    """
    Extract the user id from decoded claims.

    Raises:
        TokenError: If ``sub`` is missing or not a UUID
    """
    subject = payload.get("sub")
    if not subject:
        raise TokenError("Token missing subject", code="TOKEN_INVALID")
    try:
        return UUID(subject)
    except (TypeError, ValueError) as e:
        raise TokenError("Token subject is not a user id", code="TOKEN_INVALID") from e


def get_security_headers(is_production: bool) -> Dict[str, str]:
    """Headers added to every response by the security middleware."""
    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }
    if is_production:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return headers
