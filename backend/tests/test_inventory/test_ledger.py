"""
Tests for InventoryLedger stock operations.

Runs against the SQLite test database so the conditional UPDATE statements
are executed for real.
"""

import uuid

import pytest

from bookstore.core.exceptions import (
    BookNotFoundError,
    InsufficientStockError,
    InvalidInputError,
)
from bookstore.services.inventory.ledger import InventoryLedger, validate_quantity


class TestValidateQuantity:
    @pytest.mark.parametrize("value", [0, -1, 1.5, "2", None, True])
    def test_rejects_non_positive_or_non_integer(self, value) -> None:
        with pytest.raises(InvalidInputError):
            validate_quantity(value)

    def test_allow_zero(self) -> None:
        assert validate_quantity(0, allow_zero=True) == 0

    def test_error_names_field(self) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            validate_quantity(-3, field="stockQuantity", allow_zero=True)
        assert exc_info.value.context["field"] == "stockQuantity"


class TestCheckAvailability:
    async def test_enough_stock(self, db_session, make_book) -> None:
        book = await make_book(stock=5)
        ledger = InventoryLedger(db_session)

        assert await ledger.check_availability(book.id, 5) is True
        assert await ledger.check_availability(book.id, 6) is False

    async def test_missing_book(self, db_session) -> None:
        ledger = InventoryLedger(db_session)
        with pytest.raises(BookNotFoundError):
            await ledger.check_availability(uuid.uuid4(), 1)

    async def test_does_not_mutate(self, db_session, make_book, stock_of) -> None:
        book = await make_book(stock=3)
        ledger = InventoryLedger(db_session)

        await ledger.check_availability(book.id, 10)

        assert await stock_of(book.id) == 3


class TestDecrement:
    async def test_returns_remaining_stock(self, db_session, make_book, stock_of) -> None:
        book = await make_book(stock=5)
        ledger = InventoryLedger(db_session)

        remaining = await ledger.decrement(book.id, 2)
        await db_session.commit()

        assert remaining == 3
        assert await stock_of(book.id) == 3

    async def test_can_reach_zero(self, db_session, make_book, stock_of) -> None:
        book = await make_book(stock=4)
        ledger = InventoryLedger(db_session)

        assert await ledger.decrement(book.id, 4) == 0
        await db_session.commit()
        assert await stock_of(book.id) == 0

    async def test_insufficient_stock_reports_available(
        self, db_session, make_book, stock_of
    ) -> None:
        book = await make_book(stock=2, title="Dune")
        ledger = InventoryLedger(db_session)

        with pytest.raises(InsufficientStockError) as exc_info:
            await ledger.decrement(book.id, 3, title=book.title)

        error = exc_info.value
        assert error.book_id == book.id
        assert error.available == 2
        assert error.requested == 3
        assert '"Dune"' in error.message
        await db_session.rollback()
        assert await stock_of(book.id) == 2

    async def test_missing_book(self, db_session) -> None:
        ledger = InventoryLedger(db_session)
        with pytest.raises(BookNotFoundError):
            await ledger.decrement(uuid.uuid4(), 1)

    async def test_invalid_quantity(self, db_session, make_book) -> None:
        book = await make_book(stock=5)
        ledger = InventoryLedger(db_session)
        with pytest.raises(InvalidInputError):
            await ledger.decrement(book.id, 0)


class TestIncrement:
    async def test_adds_stock(self, db_session, make_book, stock_of) -> None:
        book = await make_book(stock=1)
        ledger = InventoryLedger(db_session)

        assert await ledger.increment(book.id, 4) == 5
        await db_session.commit()
        assert await stock_of(book.id) == 5

    async def test_missing_book(self, db_session) -> None:
        ledger = InventoryLedger(db_session)
        with pytest.raises(BookNotFoundError):
            await ledger.increment(uuid.uuid4(), 1)


class TestSetStock:
    async def test_overwrites(self, db_session, make_book, stock_of) -> None:
        book = await make_book(stock=7)
        ledger = InventoryLedger(db_session)

        assert await ledger.set_stock(book.id, 0) == 0
        await db_session.commit()
        assert await stock_of(book.id) == 0

    async def test_rejects_negative(self, db_session, make_book) -> None:
        book = await make_book(stock=7)
        ledger = InventoryLedger(db_session)
        with pytest.raises(InvalidInputError):
            await ledger.set_stock(book.id, -1)

    async def test_missing_book(self, db_session) -> None:
        ledger = InventoryLedger(db_session)
        with pytest.raises(BookNotFoundError):
            await ledger.set_stock(uuid.uuid4(), 3)
