"""
Authentication API endpoints.

This module implements FastAPI routes for user registration and login. Both
endpoints are rate limited per client address.
"""

from fastapi import APIRouter, Request, status

from bookstore.api.deps import DatabaseSession
from bookstore.core.logging import get_logger
from bookstore.core.rate_limit import auth_rate_limit, limiter
from bookstore.schemas.auth import TokenResponse, UserCreate, UserLogin
from bookstore.services.auth.service import AuthService

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user account",
    description="Create a customer account. Returns a JWT for immediate use.",
)
@limiter.limit(auth_rate_limit)
async def register(
    request: Request,
    user_data: UserCreate,
    db: DatabaseSession,
) -> TokenResponse:
    """
    Register a new user account.

    Raises:
        ConflictError: 409 if the email is already registered
    """
    logger.info("User registration attempt", email=user_data.email)
    return await AuthService(db).register_user(user_data)


@router.post(
    "/login",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK,
    summary="User login",
    description="Authenticate with email and password. Returns a JWT for API access.",
)
@limiter.limit(auth_rate_limit)
async def login(
    request: Request,
    login_data: UserLogin,
    db: DatabaseSession,
) -> TokenResponse:
    """
    Authenticate user and issue an access token.

    Raises:
        AuthenticationError: 401 for invalid credentials
    """
    return await AuthService(db).login_user(login_data)
