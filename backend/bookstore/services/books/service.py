"""
Book catalog service.

Implements listing, lookup and administration of catalog entries. Plain
column edits go through ``BookRepository``; any change to
``stock_quantity`` is routed through ``InventoryLedger.set_stock`` so the
ledger stays the single writer of stock.
"""

import asyncio
import math
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.core.config import get_settings
from bookstore.core.exceptions import (
    BookNotFoundError,
    BookstoreError,
    ConflictError,
    InvalidInputError,
)
from bookstore.core.logging import get_logger
from bookstore.database.connection import translate_storage_error
from bookstore.database.models.book import Book
from bookstore.services.books.repository import SORTABLE_COLUMNS, BookRepository
from bookstore.services.inventory.ledger import InventoryLedger, validate_quantity

logger = get_logger(__name__)

STORAGE_ERRORS = (SQLAlchemyError, asyncio.TimeoutError)

REQUIRED_FIELDS = ("title", "authors", "genre", "isbn", "price", "stock_quantity")

_SNAKE_TO_CAMEL_SORT = {
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "stock_quantity": "stockQuantity",
}


def parse_sort(sort: Optional[str]) -> tuple[str, bool]:
    """
    Parse a sort expression like ``price`` or ``-createdAt``.

    Returns:
        Tuple of (sort field, descending)

    Raises:
        InvalidInputError: Unknown sort field
    """
    expression = (sort or "createdAt").strip()
    descending = expression.startswith("-")
    field = expression.lstrip("-")
    field = _SNAKE_TO_CAMEL_SORT.get(field, field)

    if field not in SORTABLE_COLUMNS:
        valid = ", ".join(sorted(SORTABLE_COLUMNS))
        raise InvalidInputError(
            f"Invalid sort field '{field}'. Valid fields: {valid}",
            field="sort",
        )
    return field, descending


def build_pagination(page: int, size: int, total: int) -> dict[str, Any]:
    """Pagination metadata for a page of results."""
    return {
        "page": page,
        "size": size,
        "total_elements": total,
        "total_pages": math.ceil(total / size) if size else 0,
        "has_next": page * size < total,
        "has_previous": page > 1,
    }


def validate_page(page: int, size: int) -> None:
    max_size = get_settings().max_page_size
    if page < 1:
        raise InvalidInputError("page must be at least 1", field="page")
    if size < 1 or size > max_size:
        raise InvalidInputError(f"size must be between 1 and {max_size}", field="size")


class BookService:
    """Catalog operations over one session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = BookRepository(session)
        self.ledger = InventoryLedger(session)

    async def _rollback(self) -> None:
        try:
            await self.session.rollback()
        except STORAGE_ERRORS as e:
            logger.error("Rollback failed", error=str(e), error_type=type(e).__name__)

    async def list_books(
        self,
        page: int = 1,
        size: Optional[int] = None,
        sort: Optional[str] = None,
        query: Optional[str] = None,
        genre: Optional[str] = None,
    ) -> tuple[list[Book], dict[str, Any]]:
        """
        Page through the catalog.

        Returns:
            Tuple of (books, pagination metadata)
        """
        size = size or get_settings().default_page_size
        validate_page(page, size)
        sort_field, descending = parse_sort(sort)

        try:
            books, total = await self.repository.search(
                query=query.strip() if query else None,
                genre=genre or None,
                sort_field=sort_field,
                descending=descending,
                skip=(page - 1) * size,
                limit=size,
            )
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "list_books") from e

        return books, build_pagination(page, size, total)

    async def get_book(self, book_id: uuid.UUID) -> Book:
        """
        Get a book by id.

        Raises:
            BookNotFoundError: Book does not exist
        """
        try:
            book = await self.repository.get_by_id(book_id, refresh=True)
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "get_book", book_id=str(book_id)) from e

        if book is None:
            raise BookNotFoundError(book_id)
        return book

    async def get_genres(self) -> list[str]:
        try:
            return await self.repository.get_genres()
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "get_genres") from e

    @staticmethod
    def _validate_fields(data: dict[str, Any]) -> None:
        for field in REQUIRED_FIELDS:
            if field in data and data[field] is None:
                raise InvalidInputError(f"{field} must not be null", field=field)
        if "price" in data and data["price"] is not None and Decimal(data["price"]) < 0:
            raise InvalidInputError("price must be non-negative", field="price")
        if "stock_quantity" in data and data["stock_quantity"] is not None:
            validate_quantity(data["stock_quantity"], field="stockQuantity", allow_zero=True)
        for field in ("title", "genre", "isbn"):
            if field in data and not (data[field] or "").strip():
                raise InvalidInputError(f"{field} must not be empty", field=field)

    async def create_book(self, data: dict[str, Any]) -> Book:
        """
        Add a book to the catalog.

        Raises:
            InvalidInputError: Invalid field values
            ConflictError: ISBN already in use
        """
        self._validate_fields(data)

        try:
            if await self.repository.get_by_isbn(data["isbn"]) is not None:
                raise ConflictError(
                    "A book with this ISBN already exists",
                    code="DUPLICATE_ISBN",
                    isbn=data["isbn"],
                )
            book = await self.repository.create(data)
            await self.session.commit()
        except BookstoreError:
            await self._rollback()
            raise
        except STORAGE_ERRORS as e:
            await self._rollback()
            raise translate_storage_error(e, "create_book", isbn=data.get("isbn")) from e

        logger.info(
            "Book created",
            book_id=str(book.id),
            isbn=book.isbn,
            stock_quantity=book.stock_quantity,
        )
        return book

    async def update_book(self, book_id: uuid.UUID, data: dict[str, Any]) -> Book:
        """
        Partially update a book.

        Only keys present in ``data`` are changed. A ``stock_quantity`` key is
        applied through the inventory ledger as an absolute overwrite.

        Raises:
            BookNotFoundError: Book does not exist
            InvalidInputError: Invalid field values
            ConflictError: New ISBN already in use
        """
        self._validate_fields(data)
        changes = dict(data)
        new_stock = changes.pop("stock_quantity", None)

        try:
            book = await self.repository.get_by_id(book_id)
            if book is None:
                raise BookNotFoundError(book_id)

            new_isbn = changes.get("isbn")
            if new_isbn and new_isbn != book.isbn:
                if await self.repository.get_by_isbn(new_isbn) is not None:
                    raise ConflictError(
                        "A book with this ISBN already exists",
                        code="DUPLICATE_ISBN",
                        isbn=new_isbn,
                    )

            if changes:
                await self.repository.update(book, changes)
            if new_stock is not None:
                await self.ledger.set_stock(book_id, new_stock)

            await self.session.commit()
        except BookstoreError:
            await self._rollback()
            raise
        except STORAGE_ERRORS as e:
            await self._rollback()
            raise translate_storage_error(e, "update_book", book_id=str(book_id)) from e

        logger.info(
            "Book updated",
            book_id=str(book_id),
            fields=sorted(data),
        )
        return await self.get_book(book_id)

    async def delete_book(self, book_id: uuid.UUID) -> None:
        """
        Remove a book from the catalog.

        Raises:
            BookNotFoundError: Book does not exist
            ConflictError: Book is referenced by order items
        """
        try:
            book = await self.repository.get_by_id(book_id)
            if book is None:
                raise BookNotFoundError(book_id)

            if await self.repository.is_referenced_by_orders(book_id):
                raise ConflictError(
                    "Cannot delete book that is referenced in orders",
                    code="BOOK_IN_USE",
                    book_id=str(book_id),
                )

            await self.repository.delete(book)
            await self.session.commit()
        except BookstoreError:
            await self._rollback()
            raise
        except STORAGE_ERRORS as e:
            await self._rollback()
            raise translate_storage_error(e, "delete_book", book_id=str(book_id)) from e

        logger.info("Book deleted", book_id=str(book_id))
