"""
Order data access repository.

This module implements the OrderRepository class providing async methods for
creating orders with their line items, conditional and unconditional status
updates, and paginated retrieval with eager-loaded relationships. The
repository only flushes; committing is the caller's decision so an order can
be inserted in the same transaction as its stock decrements.
"""

import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bookstore.core.logging import get_logger
from bookstore.database.models.order import Order, OrderItem
from bookstore.services.orders.enums import OrderStatus, PaymentStatus

logger = get_logger(__name__)

CENT = Decimal("0.01")


def money(value: Decimal) -> Decimal:
    """Round a monetary amount to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderRepository:
    """
    Repository for order data access operations.

    Provides async methods for CRUD operations on orders with support for
    pagination and relationship loading.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    def _order_query(self):
        return select(Order).options(
            selectinload(Order.order_items).selectinload(OrderItem.book),
            selectinload(Order.user),
        )

    async def create_order_with_items(
        self,
        user_id: uuid.UUID,
        items: Sequence[dict[str, Any]],
    ) -> Order:
        """
        Add an order and its line items to the session.

        Args:
            user_id: User placing the order
            items: Line items in submission order, each with ``book_id``,
                ``quantity`` and ``unit_price``

        Returns:
            Flushed (uncommitted) order with its items attached
        """
        order_items = []
        for line_number, item in enumerate(items, start=1):
            unit_price = money(item["unit_price"])
            order_items.append(
                OrderItem(
                    book_id=item["book_id"],
                    line_number=line_number,
                    quantity=item["quantity"],
                    unit_price=unit_price,
                    subtotal=money(unit_price * item["quantity"]),
                )
            )

        order = Order(
            user_id=user_id,
            order_status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            total_price=money(sum((i.subtotal for i in order_items), Decimal("0"))),
            order_items=order_items,
        )

        self.session.add(order)
        await self.session.flush()

        logger.debug(
            "Order row inserted",
            order_id=str(order.id),
            user_id=str(user_id),
            item_count=len(order_items),
            total_price=str(order.total_price),
        )

        return order

    async def get_order_by_id(
        self,
        order_id: uuid.UUID,
        refresh: bool = False,
    ) -> Optional[Order]:
        """
        Get order by ID with items, books and owner loaded.

        Args:
            order_id: Order identifier
            refresh: Overwrite any stale state already in the identity map,
                needed after bulk UPDATE statements

        Returns:
            Order if found, None otherwise
        """
        stmt = self._order_query().where(Order.id == order_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_status(self, order_id: uuid.UUID) -> Optional[OrderStatus]:
        result = await self.session.execute(
            select(Order.order_status).where(Order.id == order_id)
        )
        return result.scalar_one_or_none()

    async def list_orders(
        self,
        user_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[list[Order], int]:
        """
        Page through orders, newest first.

        Args:
            user_id: Restrict to one user's orders; None lists every order
            skip: Number of rows to skip
            limit: Maximum rows to return

        Returns:
            Tuple of (orders, total matching count)
        """
        count_stmt = select(func.count()).select_from(Order)
        stmt = self._order_query()

        if user_id is not None:
            count_stmt = count_stmt.where(Order.user_id == user_id)
            stmt = stmt.where(Order.user_id == user_id)

        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(Order.created_at.desc(), Order.id).offset(skip).limit(limit)
        result = await self.session.execute(stmt)

        return list(result.scalars().all()), total

    async def mark_cancelled(self, order_id: uuid.UUID) -> bool:
        """
        Move an order from PENDING to CANCELLED if it is still pending.

        The status check and the write are one statement, so two concurrent
        cancellations cannot both succeed.

        Returns:
            True if this call performed the transition
        """
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.order_status == OrderStatus.PENDING,
            )
            .values(order_status=OrderStatus.CANCELLED)
            .returning(Order.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def set_status(self, order_id: uuid.UUID, status: OrderStatus) -> bool:
        """
        Set order status unconditionally.

        Returns:
            True if the order exists
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(order_status=status)
            .returning(Order.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None
