"""
Inventory ledger: the only code path that mutates book stock.

Every mutation is a single UPDATE statement, so it is atomic with respect to
concurrent writers regardless of what the caller read beforehand. The ledger
never commits; it takes part in whatever transaction the caller's session has
open, which lets the order processor decrement several books and insert an
order as one unit of work.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.core.exceptions import (
    BookNotFoundError,
    InsufficientStockError,
    InvalidInputError,
)
from bookstore.core.logging import get_logger
from bookstore.database.models.book import Book

logger = get_logger(__name__)


def validate_quantity(quantity: Any, field: str = "quantity", allow_zero: bool = False) -> int:
    """
    Ensure a stock quantity is an integer within range.

    Booleans are rejected even though they subclass ``int``.

    Raises:
        InvalidInputError: If the value is not an acceptable integer
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInputError(f"{field} must be an integer", field=field)

    minimum = 0 if allow_zero else 1
    if quantity < minimum:
        qualifier = "non-negative" if allow_zero else "positive"
        raise InvalidInputError(f"{field} must be a {qualifier} integer", field=field)

    return quantity


class InventoryLedger:
    """
    Authoritative per-book stock counts.

    ``check_availability`` is advisory: the answer may be stale by the time
    the caller acts on it. ``decrement`` is the operation that actually
    guarantees stock never goes negative.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_stock(self, book_id: uuid.UUID) -> int:
        """
        Read the current stock of a book.

        Raises:
            BookNotFoundError: If the book does not exist
        """
        result = await self.session.execute(
            select(Book.stock_quantity).where(Book.id == book_id)
        )
        stock = result.scalar_one_or_none()
        if stock is None:
            raise BookNotFoundError(book_id)
        return stock

    async def check_availability(self, book_id: uuid.UUID, quantity: int) -> bool:
        """
        Whether ``quantity`` units are currently on hand.

        Args:
            book_id: Book to check
            quantity: Positive number of units wanted

        Returns:
            True if stock >= quantity at the time of the read

        Raises:
            BookNotFoundError: If the book does not exist
            InvalidInputError: If quantity is not a positive integer
        """
        validate_quantity(quantity)
        return await self.get_stock(book_id) >= quantity

    async def decrement(
        self,
        book_id: uuid.UUID,
        quantity: int,
        title: Optional[str] = None,
    ) -> int:
        """
        Atomically remove ``quantity`` units if and only if enough remain.

        Issues one conditional UPDATE guarded by ``stock_quantity >= quantity``.
        When no row matches, the book is re-read to tell a missing book apart
        from a shortfall.

        Args:
            book_id: Book to decrement
            quantity: Positive number of units
            title: Optional title used in the shortfall message

        Returns:
            Remaining stock after the decrement

        Raises:
            BookNotFoundError: If the book does not exist
            InsufficientStockError: If fewer than ``quantity`` units remain
            InvalidInputError: If quantity is not a positive integer
        """
        validate_quantity(quantity)

        stmt = (
            update(Book)
            .where(Book.id == book_id, Book.stock_quantity >= quantity)
            .values(stock_quantity=Book.stock_quantity - quantity)
            .returning(Book.stock_quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        remaining = result.scalar_one_or_none()

        if remaining is None:
            available = await self.get_stock(book_id)
            logger.info(
                "Stock decrement refused",
                book_id=str(book_id),
                requested=quantity,
                available=available,
            )
            raise InsufficientStockError(book_id, available, quantity, title=title)

        logger.debug(
            "Stock decremented",
            book_id=str(book_id),
            quantity=quantity,
            remaining=remaining,
        )
        return remaining

    async def increment(self, book_id: uuid.UUID, quantity: int) -> int:
        """
        Atomically add ``quantity`` units back to a book.

        Used for compensating restock when an order is cancelled.

        Raises:
            BookNotFoundError: If the book does not exist
            InvalidInputError: If quantity is not a positive integer
        """
        validate_quantity(quantity)

        stmt = (
            update(Book)
            .where(Book.id == book_id)
            .values(stock_quantity=Book.stock_quantity + quantity)
            .returning(Book.stock_quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        new_stock = result.scalar_one_or_none()

        if new_stock is None:
            raise BookNotFoundError(book_id)

        logger.debug(
            "Stock incremented",
            book_id=str(book_id),
            quantity=quantity,
            new_stock=new_stock,
        )
        return new_stock

    async def set_stock(self, book_id: uuid.UUID, quantity: int) -> int:
        """
        Overwrite the stock of a book with an absolute value.

        Privileged catalog administration path. Concurrent decrements either
        happen before the overwrite and are discarded by it, or after it and
        apply to the new value.

        Raises:
            BookNotFoundError: If the book does not exist
            InvalidInputError: If quantity is negative or not an integer
        """
        validate_quantity(quantity, field="stockQuantity", allow_zero=True)

        stmt = (
            update(Book)
            .where(Book.id == book_id)
            .values(stock_quantity=quantity)
            .returning(Book.stock_quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        new_stock = result.scalar_one_or_none()

        if new_stock is None:
            raise BookNotFoundError(book_id)

        logger.info("Stock overwritten", book_id=str(book_id), stock_quantity=new_stock)
        return new_stock
