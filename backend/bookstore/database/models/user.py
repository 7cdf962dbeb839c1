"""
User model with authentication and role management.

Defines the User account used for login and for order ownership. Roles are
deliberately coarse: customers place and cancel their own orders, admins
manage the catalog and order statuses.
"""

import enum

from sqlalchemy import CheckConstraint, Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from bookstore.database.base import BaseModel


class UserRole(str, enum.Enum):
    """User role enumeration for role-based access control."""

    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"

    @classmethod
    def from_string(cls, value: str) -> "UserRole":
        """
        Convert string to UserRole enum.

        Raises:
            ValueError: If value is not a valid role
        """
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Invalid role: {value}") from None

    @property
    def is_privileged(self) -> bool:
        return self is UserRole.ADMIN


class User(BaseModel):
    """
    User account.

    Attributes:
        id: Unique user identifier (UUID)
        name: Display name
        email: Login email, stored lower-cased and unique
        password_hash: Bcrypt hash of the password
        role: Access role
        created_at: Account creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Display name",
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="User email address (unique, lower-cased)",
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password",
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role", native_enum=False, length=20),
        nullable=False,
        default=UserRole.CUSTOMER,
        index=True,
        comment="User role for access control",
    )

    __table_args__ = (
        CheckConstraint("length(email) >= 3", name="ck_users_email_min_length"),
        CheckConstraint("length(name) >= 1", name="ck_users_name_min_length"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role.is_privileged

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role.value})>"
