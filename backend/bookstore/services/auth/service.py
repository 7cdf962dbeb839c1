"""
Authentication service implementation.

This module provides user registration, login and user lookup. Passwords are
hashed with bcrypt through passlib and sessions are stateless JWT access
tokens.
"""

import asyncio
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.core.exceptions import (
    AuthenticationError,
    ConflictError,
    UserNotFoundError,
)
from bookstore.core.logging import get_logger
from bookstore.core.security import (
    create_access_token,
    hash_password,
    token_lifetime,
    verify_password,
)
from bookstore.database.connection import translate_storage_error
from bookstore.database.models.user import User, UserRole
from bookstore.schemas.auth import TokenResponse, UserCreate, UserLogin, UserSummary

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
STORAGE_ERRORS = (SQLAlchemyError, asyncio.TimeoutError)


class AuthService:
    """
    Authentication service for user management and authentication.

    Handles user registration, login with JWT token issuance and user
    lookup for request authentication.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize authentication service.

        Args:
            session: Async database session
        """
        self.session = session

    def _token_response(self, user: User) -> TokenResponse:
        token = create_access_token(user.id, user.email, user.role.value)
        return TokenResponse(
            token=token,
            expires_in=int(token_lifetime().total_seconds()),
            user=UserSummary.model_validate(user),
        )

    async def register_user(self, user_data: UserCreate) -> TokenResponse:
        """
        Register a new customer account.

        Args:
            user_data: Registration data

        Returns:
            Token response for the new user

        Raises:
            ConflictError: If the email is already registered
        """
        email = user_data.email.lower()

        try:
            if await self._get_user_by_email(email) is not None:
                logger.warning("Registration attempt with existing email", email=email)
                raise ConflictError(
                    "Email already registered",
                    code="EMAIL_ALREADY_REGISTERED",
                )

            user = User(
                name=user_data.name,
                email=email,
                password_hash=hash_password(user_data.password),
                role=UserRole.CUSTOMER,
            )
            self.session.add(user)
            await self.session.flush()
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(
                "Email already registered",
                code="EMAIL_ALREADY_REGISTERED",
            ) from None
        except STORAGE_ERRORS as e:
            await self.session.rollback()
            raise translate_storage_error(e, "register_user") from e

        logger.info("User registered", user_id=str(user.id), email=email)
        return self._token_response(user)

    async def login_user(self, login_data: UserLogin) -> TokenResponse:
        """
        Authenticate a user by email and password.

        The same message is returned for an unknown email and a wrong
        password.

        Raises:
            AuthenticationError: If credentials are invalid
        """
        email = login_data.email.lower()

        try:
            user = await self._get_user_by_email(email)
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "login_user") from e

        if user is None or not verify_password(login_data.password, user.password_hash):
            logger.warning("Login failed", email=email, user_found=user is not None)
            raise AuthenticationError(INVALID_CREDENTIALS, code="INVALID_CREDENTIALS")

        logger.info("User logged in", user_id=str(user.id))
        return self._token_response(user)

    async def get_user(self, user_id: uuid.UUID) -> User:
        """
        Get user by ID.

        Raises:
            UserNotFoundError: If no such user exists
        """
        try:
            user = await self._get_user_by_id(user_id)
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "get_user", user_id=str(user_id)) from e

        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def _get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
