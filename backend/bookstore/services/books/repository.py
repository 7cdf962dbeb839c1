"""
Book catalog data access repository.

Async query helpers for the catalog: filtered, sorted and paginated listing,
lookups by id and ISBN, distinct genres and reference checks used before
deletion. Stock is deliberately absent here; it is written only through
``InventoryLedger``.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import String, cast, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.core.logging import get_logger
from bookstore.database.models.book import Book
from bookstore.database.models.order import OrderItem

logger = get_logger(__name__)

SORTABLE_COLUMNS = {
    "createdAt": Book.created_at,
    "updatedAt": Book.updated_at,
    "title": Book.title,
    "price": Book.price,
    "genre": Book.genre,
    "stockQuantity": Book.stock_quantity,
}


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class BookRepository:
    """Repository for book catalog queries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, book_id: uuid.UUID, refresh: bool = False) -> Optional[Book]:
        stmt = select(Book).where(Book.id == book_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_isbn(self, isbn: str) -> Optional[Book]:
        result = await self.session.execute(select(Book).where(Book.isbn == isbn))
        return result.scalar_one_or_none()

    async def search(
        self,
        query: Optional[str] = None,
        genre: Optional[str] = None,
        sort_field: str = "createdAt",
        descending: bool = False,
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[list[Book], int]:
        """
        Search books with filters, sorting and pagination.

        Args:
            query: Case-insensitive substring matched against title or authors
            genre: Exact genre filter
            sort_field: Key of ``SORTABLE_COLUMNS``
            descending: Sort direction
            skip: Number of rows to skip
            limit: Maximum rows to return

        Returns:
            Tuple of (books, total matching count)
        """
        conditions = []
        if query:
            pattern = _like_pattern(query)
            conditions.append(
                or_(
                    Book.title.ilike(pattern, escape="\\"),
                    cast(Book.authors, String).ilike(pattern, escape="\\"),
                )
            )
        if genre:
            conditions.append(Book.genre == genre)

        column = SORTABLE_COLUMNS[sort_field]
        order_by = column.desc() if descending else column.asc()

        count_stmt = select(func.count()).select_from(Book).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(Book)
            .where(*conditions)
            .order_by(order_by, Book.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        books = list(result.scalars().all())

        logger.debug(
            "Book search executed",
            query=query,
            genre=genre,
            sort_field=sort_field,
            descending=descending,
            total=total,
            returned=len(books),
        )

        return books, total

    async def create(self, data: dict[str, Any]) -> Book:
        book = Book(**data)
        self.session.add(book)
        await self.session.flush()
        return book

    async def update(self, book: Book, data: dict[str, Any]) -> Book:
        for field, value in data.items():
            setattr(book, field, value)
        await self.session.flush()
        return book

    async def delete(self, book: Book) -> None:
        await self.session.delete(book)
        await self.session.flush()

    async def is_referenced_by_orders(self, book_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(exists().where(OrderItem.book_id == book_id))
        )
        return bool(result.scalar())

    async def get_genres(self) -> list[str]:
        result = await self.session.execute(
            select(Book.genre).distinct().order_by(Book.genre)
        )
        return list(result.scalars().all())
