"""
Book model for the catalog.

A book is the unit of inventory: ``stock_quantity`` is the shared mutable
counter that order placement decrements and cancellation restores. The
database enforces that it never goes negative; application code mutates it
only through ``InventoryLedger``.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from bookstore.database.base import BaseModel


class Book(BaseModel):
    """
    Catalog entry with price and stock on hand.

    Attributes:
        id: Unique book identifier (UUID)
        title: Book title
        authors: Ordered list of author names
        genre: Genre label used for filtering
        isbn: Unique ISBN
        price: Current unit price (non-negative)
        description: Optional blurb
        stock_quantity: Units on hand (never negative)
        image_url: Optional cover image URL
    """

    __tablename__ = "books"

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Book title",
    )

    authors: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=list,
        comment="Ordered list of author names",
    )

    genre: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Genre label",
    )

    isbn: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
        comment="International Standard Book Number",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Current unit price",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Optional description",
    )

    stock_quantity: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
        comment="Units on hand",
    )

    image_url: Mapped[Optional[str]] = mapped_column(
        String(1024),
        nullable=True,
        comment="Cover image URL",
    )

    __table_args__ = (
        Index("ix_books_genre_title", "genre", "title"),
        CheckConstraint("price >= 0", name="ck_books_price_non_negative"),
        CheckConstraint(
            "stock_quantity >= 0",
            name="ck_books_stock_quantity_non_negative",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Book(id={self.id}, isbn={self.isbn!r}, "
            f"stock_quantity={self.stock_quantity})>"
        )
