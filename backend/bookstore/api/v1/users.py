"""
User profile endpoints.
"""

from fastapi import APIRouter

from bookstore.api.deps import CurrentUser
from bookstore.schemas.auth import UserResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
async def get_me(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)
