"""
Order and order item models.

An order exclusively owns its items: they are created in the same
transaction as the order and deleted with it. Items reference books by id
only and keep a snapshot of the unit price, so later catalog price changes
never alter historical totals.
"""

import uuid
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Numeric,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookstore.database.base import BaseModel
from bookstore.database.models.book import Book
from bookstore.database.models.user import User
from bookstore.services.orders.enums import OrderStatus, PaymentStatus


class Order(BaseModel):
    """
    Customer order.

    Attributes:
        id: Unique order identifier (UUID)
        user_id: Owning user
        order_status: Lifecycle status
        payment_status: Payment status
        total_price: Sum of item subtotals
        order_items: Line items in submission order
        user: Owning user (eager loaded)
    """

    __tablename__ = "orders"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="User who placed the order",
    )

    order_status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus, name="order_status", native_enum=False, length=20),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
        comment="Order lifecycle status",
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name="payment_status", native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.PENDING,
        comment="Payment status",
    )

    total_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
        comment="Sum of item subtotals",
    )

    user: Mapped[User] = relationship(
        User,
        foreign_keys=[user_id],
        lazy="selectin",
    )

    order_items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.line_number",
    )

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
        CheckConstraint("total_price >= 0", name="ck_orders_total_price_non_negative"),
    )

    @property
    def can_cancel(self) -> bool:
        return self.order_status.can_cancel

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, user_id={self.user_id}, "
            f"status={self.order_status.value}, total_price={self.total_price})>"
        )


class OrderItem(BaseModel):
    """
    Line item of an order.

    Attributes:
        order_id: Parent order
        book_id: Referenced book
        line_number: Position within the order, starting at 1
        quantity: Units ordered (positive)
        unit_price: Book price at order time
        subtotal: unit_price * quantity
    """

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Parent order identifier",
    )

    book_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("books.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Referenced book identifier",
    )

    line_number: Mapped[int] = mapped_column(
        nullable=False,
        comment="Position of the item within its order",
    )

    quantity: Mapped[int] = mapped_column(
        nullable=False,
        comment="Units ordered",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Unit price snapshot at order time",
    )

    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
        comment="unit_price * quantity",
    )

    order: Mapped[Order] = relationship(
        Order,
        back_populates="order_items",
    )

    book: Mapped[Book] = relationship(
        Book,
        foreign_keys=[book_id],
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price_non_negative"),
        CheckConstraint("subtotal >= 0", name="ck_order_items_subtotal_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<OrderItem(id={self.id}, order_id={self.order_id}, "
            f"book_id={self.book_id}, quantity={self.quantity})>"
        )
