"""
Book catalog schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from pydantic import AfterValidator, Field

from bookstore.schemas.common import CamelModel, Money


def _clean_authors(value: list[str]) -> list[str]:
    authors = [author.strip() for author in value if author and author.strip()]
    if not authors:
        raise ValueError("At least one author is required")
    return authors


Authors = Annotated[list[str], AfterValidator(_clean_authors)]


class BookCreate(CamelModel):
    """Schema for adding a book to the catalog."""

    title: str = Field(..., min_length=1, max_length=255, examples=["Clean Code"])
    authors: Authors = Field(..., examples=[["Robert C. Martin"]])
    genre: str = Field(..., min_length=1, max_length=100, examples=["Technology"])
    isbn: str = Field(..., min_length=1, max_length=20, examples=["978-0132350884"])
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, examples=[42.99])
    description: Optional[str] = None
    stock_quantity: int = Field(default=0, ge=0, examples=[15])
    image_url: Optional[str] = Field(default=None, max_length=1024)


class BookUpdate(CamelModel):
    """
    Schema for partial book updates.

    Only fields present in the request body are applied.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    authors: Optional[Authors] = None
    genre: Optional[str] = Field(default=None, min_length=1, max_length=100)
    isbn: Optional[str] = Field(default=None, min_length=1, max_length=20)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    image_url: Optional[str] = Field(default=None, max_length=1024)


class BookSummary(CamelModel):
    """Book fields embedded in order items."""

    id: UUID
    title: str
    authors: list[str]
    image_url: Optional[str] = None


class BookResponse(CamelModel):
    """Schema for book responses."""

    id: UUID
    title: str
    authors: list[str]
    genre: str
    isbn: str
    price: Money
    description: Optional[str] = None
    stock_quantity: int
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
