"""
Authentication schemas for request/response validation.

Registration, login and the token response. Emails are normalised to lower
case on input so lookups are case-insensitive.
"""

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from bookstore.database.models.user import UserRole
from bookstore.schemas.common import CamelModel


class UserCreate(CamelModel):
    """
    Schema for user registration requests.

    Validates email format and minimum password length.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name",
        examples=["John Doe"],
    )
    email: EmailStr = Field(
        ...,
        description="User email address",
        examples=["john@example.com"],
    )
    password: str = Field(
        ...,
        min_length=6,
        max_length=128,
        description="User password (at least 6 characters)",
        examples=["customer123"],
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Name must not be blank")
        return stripped

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "John Doe",
                    "email": "john@example.com",
                    "password": "customer123",
                }
            ]
        }
    }


class UserLogin(CamelModel):
    """Schema for user login requests."""

    email: EmailStr = Field(
        ...,
        description="User email address",
        examples=["john@example.com"],
    )
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="User password",
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserSummary(CamelModel):
    """User fields embedded in token responses."""

    id: UUID
    name: str
    email: str
    role: UserRole


class UserResponse(UserSummary):
    """Schema for user profile responses."""

    created_at: datetime
    updated_at: datetime


class TokenResponse(CamelModel):
    """
    Schema for authentication token responses.

    Contains the access token, its lifetime and the authenticated user.
    """

    token: str = Field(
        ...,
        description="JWT access token for API authentication",
        examples=["eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."],
    )
    token_type: str = Field(
        default="Bearer",
        description="Token type (always 'Bearer')",
    )
    expires_in: int = Field(
        ...,
        description="Access token lifetime in seconds",
        examples=[604800],
    )
    user: UserSummary
