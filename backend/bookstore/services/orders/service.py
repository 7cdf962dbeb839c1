"""
Order service: placement, cancellation and status management.

Placement runs in two phases. The advisory phase resolves every requested
book and checks availability without writing anything, so most bad requests
are rejected cheaply. The atomic phase then issues a conditional decrement
per line and inserts the order in one transaction; the conditional decrement
is what actually guarantees stock never goes negative when requests race.
Cancellation restores stock in a single transaction guarded by a conditional
status update.
"""

import asyncio
import uuid
from decimal import Decimal
from typing import Any, Mapping, NamedTuple, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from bookstore.core.exceptions import (
    BookNotFoundError,
    BookstoreError,
    InsufficientStockError,
    InvalidInputError,
    InvalidOrderStateError,
    OrderAccessDeniedError,
    OrderNotFoundError,
)
from bookstore.core.logging import get_logger, log_performance
from bookstore.database.connection import translate_storage_error
from bookstore.database.models.book import Book
from bookstore.database.models.order import Order
from bookstore.services.inventory.ledger import InventoryLedger
from bookstore.services.orders.enums import OrderStatus
from bookstore.services.orders.repository import OrderRepository
from bookstore.services.orders.state_machine import PlacementStateMachine

logger = get_logger(__name__)

STORAGE_ERRORS = (SQLAlchemyError, asyncio.TimeoutError)


class OrderLine(NamedTuple):
    """A validated, coalesced line of an order request."""

    book_id: uuid.UUID
    quantity: int
    index: int


def _entry_value(entry: Any, *names: str) -> Any:
    if isinstance(entry, Mapping):
        for name in names:
            if entry.get(name) is not None:
                return entry[name]
        return None
    for name in names:
        value = getattr(entry, name, None)
        if value is not None:
            return value
    return None


def normalize_items(items: Any) -> list[OrderLine]:
    """
    Validate the shape of an order request and merge duplicate books.

    Entries may be mappings or objects exposing ``book_id`` (or ``bookId``)
    and ``quantity``. Lines referring to the same book are merged into one,
    keeping the position of the first occurrence.

    Raises:
        InvalidInputError: Naming the offending entry index and field
    """
    if not items or isinstance(items, (str, bytes, Mapping)):
        raise InvalidInputError("Order must contain at least one item", field="items")

    lines: dict[uuid.UUID, OrderLine] = {}

    for index, entry in enumerate(items):
        raw_book_id = _entry_value(entry, "book_id", "bookId")
        if raw_book_id is None or raw_book_id == "":
            raise InvalidInputError(
                f"Item {index}: bookId is required",
                field=f"items[{index}].bookId",
            )
        try:
            book_id = raw_book_id if isinstance(raw_book_id, uuid.UUID) else uuid.UUID(str(raw_book_id))
        except ValueError:
            raise InvalidInputError(
                f"Item {index}: bookId is not a valid identifier",
                field=f"items[{index}].bookId",
            ) from None

        quantity = _entry_value(entry, "quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidInputError(
                f"Item {index}: quantity must be a positive integer",
                field=f"items[{index}].quantity",
            )

        existing = lines.get(book_id)
        if existing is None:
            lines[book_id] = OrderLine(book_id, quantity, index)
        else:
            lines[book_id] = existing._replace(quantity=existing.quantity + quantity)

    return list(lines.values())


class OrderService:
    """
    Order processor over the inventory ledger.

    One instance per session. Every public mutation commits on success and
    rolls back on failure, so callers never see a half-applied order.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = OrderRepository(session)
        self.ledger = InventoryLedger(session)

    async def _rollback(self) -> None:
        try:
            await self.session.rollback()
        except STORAGE_ERRORS as e:
            logger.error(
                "Rollback failed",
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _reload_committed(self, order: Order) -> Order:
        """
        Re-read an order after its transaction has committed.

        The write is already durable at this point, so a failed read must not
        surface as a retryable error; the in-session order is returned instead.
        """
        try:
            refreshed = await self.repository.get_order_by_id(order.id, refresh=True)
        except STORAGE_ERRORS as e:
            logger.warning(
                "Re-read after commit failed, returning in-session order",
                order_id=str(order.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return order
        return refreshed if refreshed is not None else order

    async def _resolve_and_check(self, lines: Sequence[OrderLine]) -> dict[uuid.UUID, Book]:
        """
        Advisory phase: every book exists and currently has enough stock.

        Nothing is written. A passing check is no guarantee; the atomic phase
        may still fail.
        """
        result = await self.session.execute(
            select(Book)
            .where(Book.id.in_([line.book_id for line in lines]))
            .execution_options(populate_existing=True)
        )
        books = {book.id: book for book in result.scalars().all()}

        for line in lines:
            book = books.get(line.book_id)
            if book is None:
                raise BookNotFoundError(line.book_id)
            if not await self.ledger.check_availability(line.book_id, line.quantity):
                available = await self.ledger.get_stock(line.book_id)
                raise InsufficientStockError(
                    line.book_id,
                    available,
                    line.quantity,
                    title=book.title,
                )

        return books

    async def place_order(self, user_id: uuid.UUID, items: Any) -> Order:
        """
        Place an order, decrementing stock for every line.

        Args:
            user_id: User placing the order
            items: Sequence of entries with ``book_id`` and ``quantity``

        Returns:
            The created order with items loaded

        Raises:
            InvalidInputError: Malformed item list
            BookNotFoundError: A referenced book does not exist
            InsufficientStockError: A line exceeds stock, found either by the
                advisory check or at commit time
            TransientStorageError: Storage failure; nothing was committed
        """
        machine = PlacementStateMachine()

        with log_performance(logger, "place_order", user_id=str(user_id)):
            try:
                lines = normalize_items(items)
                books = await self._resolve_and_check(lines)

                machine.reserve()

                # Ascending book id keeps row lock acquisition order consistent
                # across concurrent orders.
                for line in sorted(lines, key=lambda line: line.book_id):
                    await self.ledger.decrement(
                        line.book_id,
                        line.quantity,
                        title=books[line.book_id].title,
                    )

                order = await self.repository.create_order_with_items(
                    user_id,
                    [
                        {
                            "book_id": line.book_id,
                            "quantity": line.quantity,
                            "unit_price": Decimal(books[line.book_id].price),
                        }
                        for line in lines
                    ],
                )
                await self.session.commit()
            except BookstoreError as e:
                await self._rollback()
                machine.reject(e.code)
                logger.info(
                    "Order rejected",
                    user_id=str(user_id),
                    code=e.code,
                    reason=e.message,
                    **machine.describe(),
                )
                raise
            except STORAGE_ERRORS as e:
                await self._rollback()
                machine.reject("TRANSIENT_STORAGE_FAILURE")
                raise translate_storage_error(
                    e, "place_order", user_id=str(user_id)
                ) from e

            machine.commit(order.id)
            logger.info(
                "Order placed",
                order_id=str(order.id),
                user_id=str(user_id),
                item_count=len(lines),
                total_price=str(order.total_price),
                **machine.describe(),
            )

        return await self._reload_committed(order)

    async def cancel_order(self, order_id: uuid.UUID, requesting_user_id: uuid.UUID) -> Order:
        """
        Cancel a pending order owned by the requester and restock its items.

        The status flip and every restock happen in one transaction. The flip
        is conditional on the order still being PENDING, so a repeated or
        concurrent cancel fails instead of restocking twice.

        Raises:
            OrderNotFoundError: Order does not exist
            OrderAccessDeniedError: Requester does not own the order
            InvalidOrderStateError: Order is not PENDING
            TransientStorageError: Storage failure; nothing was committed
        """
        try:
            order = await self.repository.get_order_by_id(order_id, refresh=True)
        except STORAGE_ERRORS as e:
            raise translate_storage_error(
                e, "cancel_order", order_id=str(order_id)
            ) from e

        if order is None:
            raise OrderNotFoundError(order_id)

        if order.user_id != requesting_user_id:
            raise OrderAccessDeniedError(order_id, requesting_user_id)

        if not order.order_status.can_cancel:
            raise InvalidOrderStateError(order_id, order.order_status)

        machine = PlacementStateMachine.for_existing_order(order.id)

        with log_performance(logger, "cancel_order", order_id=str(order_id)):
            try:
                if not await self.repository.mark_cancelled(order.id):
                    current = await self.repository.get_status(order.id)
                    raise InvalidOrderStateError(order.id, current)

                for item in sorted(order.order_items, key=lambda item: item.book_id):
                    await self.ledger.increment(item.book_id, item.quantity)

                await self.session.commit()
            except BookstoreError:
                await self._rollback()
                raise
            except STORAGE_ERRORS as e:
                await self._rollback()
                raise translate_storage_error(
                    e, "cancel_order", order_id=str(order_id)
                ) from e

            machine.cancel()
            logger.info(
                "Order cancelled and restocked",
                order_id=str(order.id),
                user_id=str(requesting_user_id),
                restocked_items=len(order.order_items),
                **machine.describe(),
            )

        # The status flip was a bulk UPDATE; bring the loaded copy in line.
        set_committed_value(order, "order_status", OrderStatus.CANCELLED)
        return await self._reload_committed(order)

    async def update_order_status(self, order_id: uuid.UUID, new_status: Any) -> Order:
        """
        Set an order's status (privileged).

        No stock side effects, even when the new status is CANCELLED.

        Raises:
            InvalidInputError: Unknown status value
            OrderNotFoundError: Order does not exist
        """
        if isinstance(new_status, OrderStatus):
            status = new_status
        else:
            try:
                status = OrderStatus.from_string(str(new_status))
            except ValueError as e:
                raise InvalidInputError(str(e), field="status") from None

        try:
            if not await self.repository.set_status(order_id, status):
                raise OrderNotFoundError(order_id)
            await self.session.commit()
        except BookstoreError:
            await self._rollback()
            raise
        except STORAGE_ERRORS as e:
            await self._rollback()
            raise translate_storage_error(
                e, "update_order_status", order_id=str(order_id)
            ) from e

        logger.info(
            "Order status updated",
            order_id=str(order_id),
            order_status=status.value,
        )

        return await self.get_order(order_id)

    async def get_order(
        self,
        order_id: uuid.UUID,
        requesting_user_id: Optional[uuid.UUID] = None,
        is_privileged: bool = True,
    ) -> Order:
        """
        Fetch one order with fresh state.

        Non-privileged callers may only read their own orders.

        Raises:
            OrderNotFoundError: Order does not exist
            OrderAccessDeniedError: Caller is neither owner nor privileged
        """
        try:
            order = await self.repository.get_order_by_id(order_id, refresh=True)
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "get_order", order_id=str(order_id)) from e

        if order is None:
            raise OrderNotFoundError(order_id)

        if not is_privileged and order.user_id != requesting_user_id:
            raise OrderAccessDeniedError(
                order_id,
                requesting_user_id,
                message="You do not have permission to access this order",
            )

        return order

    async def list_orders(
        self,
        user_id: Optional[uuid.UUID],
        page: int = 1,
        size: int = 10,
    ) -> tuple[list[Order], int]:
        """
        List orders newest first.

        Args:
            user_id: Owner filter; None lists all orders
            page: 1-based page number
            size: Page size

        Returns:
            Tuple of (orders, total count)
        """
        try:
            return await self.repository.list_orders(
                user_id=user_id,
                skip=(page - 1) * size,
                limit=size,
            )
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "list_orders") from e
