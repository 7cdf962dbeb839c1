"""
Shared schema building blocks.

API payloads use camelCase keys while Python code uses snake_case; every
schema derives from ``CamelModel`` so both spellings are accepted on input
and camelCase is emitted on output.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

T = TypeVar("T")

# Prices are exact decimals internally and plain JSON numbers on the wire.
Money = Annotated[
    Decimal,
    PlainSerializer(lambda value: float(value), return_type=float, when_used="json"),
]


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaginationMeta(CamelModel):
    """Pagination metadata."""

    page: int = Field(..., ge=1, description="Current page number (1-based)")
    size: int = Field(..., ge=1, description="Items per page")
    total_elements: int = Field(..., ge=0, description="Total matching items")
    total_pages: int = Field(..., ge=0, description="Total number of pages")
    has_next: bool = Field(..., description="Whether a next page exists")
    has_previous: bool = Field(..., description="Whether a previous page exists")


class Page(CamelModel, Generic[T]):
    """Paginated response envelope."""

    data: list[T]
    pagination: PaginationMeta


class ErrorResponse(CamelModel):
    """Uniform error envelope returned by every failing endpoint."""

    timestamp: datetime
    status: int
    error: str
    message: str
    path: str
    code: Optional[str] = None
    details: Optional[dict[str, Any]] = None
