"""
Order schemas for request/response validation.

Requests carry only book ids and quantities; prices are always taken from
the catalog at placement time.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from bookstore.schemas.books import BookSummary
from bookstore.schemas.common import CamelModel, Money
from bookstore.services.orders.enums import OrderStatus, PaymentStatus


class OrderItemCreate(CamelModel):
    """Schema for one requested line item."""

    book_id: UUID = Field(..., description="Book to order")
    quantity: int = Field(..., ge=1, description="Units to order", examples=[2])


class OrderCreate(CamelModel):
    """
    Schema for order placement requests.

    Repeated book ids are allowed and are merged into one line item.
    """

    items: list[OrderItemCreate] = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {"bookId": "3fa85f64-5717-4562-b3fc-2c963f66afa6", "quantity": 2}
                    ]
                }
            ]
        }
    }


class OrderStatusUpdate(CamelModel):
    """Schema for privileged status updates."""

    status: str = Field(
        ...,
        min_length=1,
        description="New order status",
        examples=["SHIPPED"],
    )


class OrderUserSummary(CamelModel):
    """Owner fields embedded in order responses."""

    id: UUID
    name: str
    email: str


class OrderItemResponse(CamelModel):
    """Schema for order line items."""

    id: UUID
    book_id: UUID
    book: Optional[BookSummary] = None
    quantity: int
    unit_price: Money
    subtotal: Money


class OrderResponse(CamelModel):
    """Schema for order responses."""

    id: UUID
    user_id: UUID
    user: Optional[OrderUserSummary] = None
    order_items: list[OrderItemResponse]
    total_price: Money
    order_status: OrderStatus
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime
