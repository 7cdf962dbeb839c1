"""
Test suite for OrderService placement, cancellation and status updates.

Runs against the SQLite test database. Concurrency tests give every task its
own session, so racing placements contend on the database exactly as
separate requests would.
"""

import asyncio
import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError

from bookstore.core.exceptions import (
    BookNotFoundError,
    InsufficientStockError,
    InvalidInputError,
    InvalidOrderStateError,
    OrderAccessDeniedError,
    OrderNotFoundError,
    TransientStorageError,
)
from bookstore.database.models import Book, Order
from bookstore.services.inventory.ledger import InventoryLedger
from bookstore.services.orders.enums import OrderStatus, PaymentStatus
from bookstore.services.orders.repository import OrderRepository
from bookstore.services.orders.service import OrderService, normalize_items


# ============================================================================
# Helpers
# ============================================================================


async def count_orders(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(Order))
        return result.scalar_one()


def line(book, quantity):
    return {"book_id": book.id, "quantity": quantity}


@pytest.fixture
async def customer(make_user):
    return await make_user()


@pytest.fixture
def order_service(db_session) -> OrderService:
    return OrderService(db_session)


# ============================================================================
# Request validation
# ============================================================================


class TestNormalizeItems:
    def test_empty_list_rejected(self) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            normalize_items([])
        assert exc_info.value.context["field"] == "items"

    def test_missing_book_id_names_entry(self) -> None:
        book_id = uuid.uuid4()
        with pytest.raises(InvalidInputError) as exc_info:
            normalize_items([{"book_id": book_id, "quantity": 1}, {"quantity": 2}])
        assert exc_info.value.context["field"] == "items[1].bookId"

    @pytest.mark.parametrize("quantity", [0, -2, 1.5, "3", None, True])
    def test_bad_quantity_names_entry(self, quantity) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            normalize_items([{"book_id": uuid.uuid4(), "quantity": quantity}])
        assert exc_info.value.context["field"] == "items[0].quantity"

    def test_malformed_book_id(self) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            normalize_items([{"book_id": "not-a-uuid", "quantity": 1}])
        assert exc_info.value.context["field"] == "items[0].bookId"

    def test_duplicates_are_merged_in_first_seen_order(self) -> None:
        first, second = uuid.uuid4(), uuid.uuid4()
        lines = normalize_items(
            [
                {"book_id": first, "quantity": 1},
                {"bookId": str(second), "quantity": 2},
                {"book_id": first, "quantity": 3},
            ]
        )
        assert [(item.book_id, item.quantity) for item in lines] == [(first, 4), (second, 2)]


# ============================================================================
# Placement
# ============================================================================


class TestPlaceOrder:
    async def test_decrements_every_item_exactly(
        self, order_service, customer, make_book, stock_of
    ) -> None:
        book_a = await make_book(stock=10, price="12.99")
        book_b = await make_book(stock=4, price="5.50")

        order = await order_service.place_order(
            customer.id, [line(book_a, 3), line(book_b, 4)]
        )

        assert await stock_of(book_a.id) == 7
        assert await stock_of(book_b.id) == 0
        assert order.user_id == customer.id
        assert order.order_status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING

    async def test_total_is_sum_of_subtotals(self, order_service, customer, make_book) -> None:
        book_a = await make_book(stock=10, price="12.99")
        book_b = await make_book(stock=10, price="5.50")

        order = await order_service.place_order(
            customer.id, [line(book_a, 3), line(book_b, 2)]
        )

        subtotals = [item.subtotal for item in order.order_items]
        assert subtotals == [Decimal("38.97"), Decimal("11.00")]
        assert order.total_price == sum(subtotals)
        assert order.total_price == Decimal("49.97")

    async def test_items_keep_request_order_and_price_snapshot(
        self, order_service, customer, make_book, session_factory
    ) -> None:
        book_a = await make_book(stock=10, price="20.00")
        book_b = await make_book(stock=10, price="8.00")

        order = await order_service.place_order(
            customer.id, [line(book_b, 1), line(book_a, 1)]
        )

        async with session_factory() as session:
            await session.execute(
                update(Book).where(Book.id == book_a.id).values(price=Decimal("99.00"))
            )
            await session.commit()

        reloaded = await order_service.get_order(order.id)
        assert [item.book_id for item in reloaded.order_items] == [book_b.id, book_a.id]
        assert [item.line_number for item in reloaded.order_items] == [1, 2]
        assert reloaded.order_items[1].unit_price == Decimal("20.00")
        assert reloaded.total_price == Decimal("28.00")

    async def test_duplicate_books_become_one_line(
        self, order_service, customer, make_book, stock_of
    ) -> None:
        book = await make_book(stock=5)

        order = await order_service.place_order(
            customer.id, [line(book, 2), line(book, 1)]
        )

        assert len(order.order_items) == 1
        assert order.order_items[0].quantity == 3
        assert await stock_of(book.id) == 2

    async def test_duplicate_books_checked_against_combined_quantity(
        self, order_service, customer, make_book, stock_of
    ) -> None:
        book = await make_book(stock=3)

        with pytest.raises(InsufficientStockError) as exc_info:
            await order_service.place_order(customer.id, [line(book, 2), line(book, 2)])

        assert exc_info.value.requested == 4
        assert await stock_of(book.id) == 3

    async def test_unknown_book(
        self, order_service, customer, make_book, stock_of, session_factory
    ) -> None:
        book = await make_book(stock=5)
        missing = uuid.uuid4()

        with pytest.raises(BookNotFoundError) as exc_info:
            await order_service.place_order(
                customer.id, [line(book, 1), {"book_id": missing, "quantity": 1}]
            )

        assert exc_info.value.book_id == missing
        assert await stock_of(book.id) == 5
        assert await count_orders(session_factory) == 0

    async def test_invalid_input_changes_nothing(
        self, order_service, customer, make_book, stock_of, session_factory
    ) -> None:
        book = await make_book(stock=5)

        with pytest.raises(InvalidInputError):
            await order_service.place_order(customer.id, [line(book, 1), line(book, 0)])

        assert await stock_of(book.id) == 5
        assert await count_orders(session_factory) == 0

    async def test_one_short_item_rejects_whole_order(
        self, order_service, customer, make_book, stock_of, session_factory
    ) -> None:
        book_b = await make_book(stock=2, title="Book B")
        book_c = await make_book(stock=10, title="Book C")

        with pytest.raises(InsufficientStockError) as exc_info:
            await order_service.place_order(
                customer.id, [line(book_b, 3), line(book_c, 1)]
            )

        error = exc_info.value
        assert error.book_id == book_b.id
        assert error.available == 2
        assert error.requested == 3
        assert await stock_of(book_b.id) == 2
        assert await stock_of(book_c.id) == 10
        assert await count_orders(session_factory) == 0

    async def test_repeated_failures_never_mutate(
        self, order_service, customer, make_book, stock_of, session_factory
    ) -> None:
        book_b = await make_book(stock=2)
        book_c = await make_book(stock=10)
        items = [line(book_c, 1), line(book_b, 3)]

        for _ in range(2):
            with pytest.raises(InsufficientStockError):
                await order_service.place_order(customer.id, items)
            assert await stock_of(book_b.id) == 2
            assert await stock_of(book_c.id) == 10

        assert await count_orders(session_factory) == 0

    async def test_sold_out_book_reports_zero_available(
        self, session_factory, customer, make_book, stock_of
    ) -> None:
        book_a = await make_book(stock=5)

        async with session_factory() as session:
            await OrderService(session).place_order(customer.id, [line(book_a, 5)])
        assert await stock_of(book_a.id) == 0

        async with session_factory() as session:
            with pytest.raises(InsufficientStockError) as exc_info:
                await OrderService(session).place_order(customer.id, [line(book_a, 1)])

        error = exc_info.value
        assert (error.book_id, error.available, error.requested) == (book_a.id, 0, 1)


class TestCommitTimeRace:
    """Advisory check passed on stale data; the conditional decrement refuses."""

    async def test_stale_check_fails_at_commit_with_same_shape(
        self, session_factory, customer, make_book, stock_of, monkeypatch
    ) -> None:
        book_a = await make_book(stock=5)

        async with session_factory() as session:
            await OrderService(session).place_order(customer.id, [line(book_a, 5)])

        monkeypatch.setattr(
            InventoryLedger, "check_availability", AsyncMock(return_value=True)
        )

        async with session_factory() as session:
            with pytest.raises(InsufficientStockError) as exc_info:
                await OrderService(session).place_order(customer.id, [line(book_a, 1)])

        error = exc_info.value
        assert (error.book_id, error.available, error.requested) == (book_a.id, 0, 1)
        assert await stock_of(book_a.id) == 0

    async def test_commit_failure_rolls_back_earlier_decrements(
        self, order_service, customer, make_book, stock_of, session_factory, monkeypatch
    ) -> None:
        plenty = await make_book(stock=10)
        short = await make_book(stock=1)

        monkeypatch.setattr(
            InventoryLedger, "check_availability", AsyncMock(return_value=True)
        )

        with pytest.raises(InsufficientStockError) as exc_info:
            await order_service.place_order(
                customer.id, [line(plenty, 4), line(short, 2)]
            )

        assert exc_info.value.book_id == short.id
        assert exc_info.value.available == 1
        assert await stock_of(plenty.id) == 10
        assert await stock_of(short.id) == 1
        assert await count_orders(session_factory) == 0


class TestConcurrentPlacement:
    async def test_exactly_one_full_stock_order_wins(
        self, session_factory, make_user, make_book, stock_of
    ) -> None:
        book = await make_book(stock=3)
        users = [await make_user() for _ in range(5)]

        async def attempt(user):
            async with session_factory() as session:
                return await OrderService(session).place_order(user.id, [line(book, 3)])

        results = await asyncio.gather(
            *(attempt(user) for user in users),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, Order)]
        failures = [r for r in results if isinstance(r, InsufficientStockError)]
        assert len(successes) == 1
        assert len(failures) == 4
        assert all(f.book_id == book.id and f.requested == 3 for f in failures)
        assert await stock_of(book.id) == 0
        assert await count_orders(session_factory) == 1

    async def test_concurrent_small_orders_never_oversell(
        self, session_factory, make_user, make_book, stock_of
    ) -> None:
        book = await make_book(stock=4)
        users = [await make_user() for _ in range(6)]

        async def attempt(user):
            async with session_factory() as session:
                return await OrderService(session).place_order(user.id, [line(book, 1)])

        results = await asyncio.gather(
            *(attempt(user) for user in users),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, Order)]
        failures = [r for r in results if isinstance(r, InsufficientStockError)]
        assert len(successes) == 4
        assert len(failures) == 2
        assert await stock_of(book.id) == 0


class TestStorageFailure:
    async def test_storage_error_becomes_transient_and_rolls_back(
        self, order_service, customer, make_book, stock_of, session_factory, monkeypatch
    ) -> None:
        book = await make_book(stock=5)

        monkeypatch.setattr(
            OrderRepository,
            "create_order_with_items",
            AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("connection lost"))),
        )

        with pytest.raises(TransientStorageError) as exc_info:
            await order_service.place_order(customer.id, [line(book, 2)])

        assert exc_info.value.status_code == 503
        assert exc_info.value.context["retryable"] is True
        assert await stock_of(book.id) == 5
        assert await count_orders(session_factory) == 0

    async def test_read_failure_after_commit_returns_placed_order(
        self, order_service, customer, make_book, stock_of, session_factory, monkeypatch
    ) -> None:
        book = await make_book(stock=5)

        monkeypatch.setattr(
            OrderRepository,
            "get_order_by_id",
            AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("connection lost"))),
        )

        order = await order_service.place_order(customer.id, [line(book, 2)])

        assert order.order_status == OrderStatus.PENDING
        assert [item.quantity for item in order.order_items] == [2]
        assert await stock_of(book.id) == 3
        assert await count_orders(session_factory) == 1

    async def test_cancel_lookup_failure_is_transient(
        self, order_service, customer, make_book, stock_of, session_factory, monkeypatch
    ) -> None:
        book = await make_book(stock=5)
        order = await order_service.place_order(customer.id, [line(book, 2)])
        order_id = order.id

        monkeypatch.setattr(
            OrderRepository,
            "get_order_by_id",
            AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("connection lost"))),
        )

        with pytest.raises(TransientStorageError) as exc_info:
            await order_service.cancel_order(order_id, customer.id)

        assert exc_info.value.status_code == 503
        assert exc_info.value.context["retryable"] is True
        assert exc_info.value.context["operation"] == "cancel_order"
        assert await stock_of(book.id) == 3

        async with session_factory() as session:
            result = await session.execute(
                select(Order.order_status).where(Order.id == order_id)
            )
            assert result.scalar_one() == OrderStatus.PENDING

    async def test_read_failure_after_cancel_commit_returns_cancelled_order(
        self, order_service, customer, make_book, stock_of, monkeypatch
    ) -> None:
        book = await make_book(stock=5)
        order = await order_service.place_order(customer.id, [line(book, 2)])

        monkeypatch.setattr(
            OrderRepository,
            "get_order_by_id",
            AsyncMock(
                side_effect=[
                    order,
                    OperationalError("SELECT", {}, Exception("connection lost")),
                ]
            ),
        )

        cancelled = await order_service.cancel_order(order.id, customer.id)

        assert cancelled.id == order.id
        assert cancelled.order_status == OrderStatus.CANCELLED
        assert await stock_of(book.id) == 5


# ============================================================================
# Cancellation
# ============================================================================


class TestCancelOrder:
    async def test_restores_stock_and_cancels(
        self, order_service, customer, make_book, stock_of
    ) -> None:
        book_a = await make_book(stock=6)
        book_b = await make_book(stock=3)
        order = await order_service.place_order(
            customer.id, [line(book_a, 2), line(book_b, 3)]
        )

        cancelled = await order_service.cancel_order(order.id, customer.id)

        assert cancelled.order_status == OrderStatus.CANCELLED
        assert await stock_of(book_a.id) == 6
        assert await stock_of(book_b.id) == 3

    async def test_second_cancel_fails_without_restocking(
        self, order_service, customer, make_book, stock_of
    ) -> None:
        book = await make_book(stock=5)
        order = await order_service.place_order(customer.id, [line(book, 2)])
        await order_service.cancel_order(order.id, customer.id)

        with pytest.raises(InvalidOrderStateError) as exc_info:
            await order_service.cancel_order(order.id, customer.id)

        assert exc_info.value.current_status == OrderStatus.CANCELLED
        assert await stock_of(book.id) == 5

    async def test_concurrent_cancels_restock_once(
        self, session_factory, customer, make_book, stock_of
    ) -> None:
        book = await make_book(stock=5)
        async with session_factory() as session:
            order = await OrderService(session).place_order(customer.id, [line(book, 5)])

        async def attempt():
            async with session_factory() as session:
                return await OrderService(session).cancel_order(order.id, customer.id)

        results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

        assert sum(isinstance(r, Order) for r in results) == 1
        assert sum(isinstance(r, InvalidOrderStateError) for r in results) == 1
        assert await stock_of(book.id) == 5

    async def test_only_owner_may_cancel(
        self, order_service, customer, make_user, make_book, stock_of
    ) -> None:
        other = await make_user()
        book = await make_book(stock=5)
        order = await order_service.place_order(customer.id, [line(book, 2)])

        with pytest.raises(OrderAccessDeniedError):
            await order_service.cancel_order(order.id, other.id)

        assert await stock_of(book.id) == 3

    async def test_missing_order(self, order_service, customer) -> None:
        with pytest.raises(OrderNotFoundError):
            await order_service.cancel_order(uuid.uuid4(), customer.id)

    async def test_shipped_order_cannot_be_cancelled(
        self, order_service, customer, make_book, stock_of
    ) -> None:
        book = await make_book(stock=5)
        order = await order_service.place_order(customer.id, [line(book, 2)])
        await order_service.update_order_status(order.id, OrderStatus.SHIPPED)

        with pytest.raises(InvalidOrderStateError):
            await order_service.cancel_order(order.id, customer.id)

        assert await stock_of(book.id) == 3


# ============================================================================
# Status updates and reads
# ============================================================================


class TestUpdateOrderStatus:
    async def test_sets_status(self, order_service, customer, make_book) -> None:
        book = await make_book(stock=5)
        order = await order_service.place_order(customer.id, [line(book, 1)])

        updated = await order_service.update_order_status(order.id, "shipped")

        assert updated.order_status == OrderStatus.SHIPPED

    async def test_cancelled_via_status_update_does_not_restock(
        self, order_service, customer, make_book, stock_of
    ) -> None:
        book = await make_book(stock=5)
        order = await order_service.place_order(customer.id, [line(book, 2)])

        updated = await order_service.update_order_status(order.id, OrderStatus.CANCELLED)

        assert updated.order_status == OrderStatus.CANCELLED
        assert await stock_of(book.id) == 3

    async def test_unknown_status(self, order_service, customer, make_book) -> None:
        book = await make_book(stock=5)
        order = await order_service.place_order(customer.id, [line(book, 1)])

        with pytest.raises(InvalidInputError) as exc_info:
            await order_service.update_order_status(order.id, "LOST")
        assert exc_info.value.context["field"] == "status"

    async def test_missing_order(self, order_service) -> None:
        with pytest.raises(OrderNotFoundError):
            await order_service.update_order_status(uuid.uuid4(), OrderStatus.DELIVERED)


class TestReadOrders:
    async def test_owner_and_privileged_can_read(
        self, order_service, customer, make_user, make_book
    ) -> None:
        other = await make_user()
        book = await make_book(stock=5)
        order = await order_service.place_order(customer.id, [line(book, 1)])

        owned = await order_service.get_order(order.id, customer.id, is_privileged=False)
        assert owned.id == order.id

        admin_view = await order_service.get_order(order.id, other.id, is_privileged=True)
        assert admin_view.id == order.id

        with pytest.raises(OrderAccessDeniedError):
            await order_service.get_order(order.id, other.id, is_privileged=False)

    async def test_list_filters_by_owner(
        self, order_service, customer, make_user, make_book
    ) -> None:
        other = await make_user()
        book = await make_book(stock=10)
        await order_service.place_order(customer.id, [line(book, 1)])
        await order_service.place_order(customer.id, [line(book, 1)])
        await order_service.place_order(other.id, [line(book, 1)])

        own, own_total = await order_service.list_orders(customer.id, page=1, size=10)
        everything, all_total = await order_service.list_orders(None, page=1, size=2)

        assert own_total == 2
        assert {o.user_id for o in own} == {customer.id}
        assert all_total == 3
        assert len(everything) == 2
