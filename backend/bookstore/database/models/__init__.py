"""
Database models package initialization.

Models are imported here so they are registered with ``Base.metadata`` for
Alembic and for relationship resolution.
"""

from bookstore.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from bookstore.database.models.book import Book
from bookstore.database.models.order import Order, OrderItem
from bookstore.database.models.user import User, UserRole

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "Book",
    "Order",
    "OrderItem",
    "User",
    "UserRole",
]
