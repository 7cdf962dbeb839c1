"""
Demo data loader for local development.

Creates an admin, two customers and a handful of books. Existing rows (by
email or ISBN) are left untouched, so the script can be run repeatedly:

    python -m bookstore.database.seed
"""

import asyncio
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.core.logging import configure_logging, get_logger
from bookstore.core.security import hash_password
from bookstore.database.connection import close_database_connections, get_session
from bookstore.database.models import Book, User, UserRole

logger = get_logger(__name__)

SEED_USERS: list[dict[str, Any]] = [
    {"name": "Admin User", "email": "admin@bookstore.com", "password": "admin123", "role": UserRole.ADMIN},
    {"name": "John Doe", "email": "john@example.com", "password": "customer123", "role": UserRole.CUSTOMER},
    {"name": "Jane Smith", "email": "jane@example.com", "password": "customer123", "role": UserRole.CUSTOMER},
]

SEED_BOOKS: list[dict[str, Any]] = [
    {
        "title": "The Great Gatsby",
        "authors": ["F. Scott Fitzgerald"],
        "genre": "Fiction",
        "isbn": "978-0743273565",
        "price": Decimal("12.99"),
        "description": "A classic American novel set in the Jazz Age.",
        "stock_quantity": 50,
        "image_url": "https://images.example.com/great-gatsby.jpg",
    },
    {
        "title": "To Kill a Mockingbird",
        "authors": ["Harper Lee"],
        "genre": "Fiction",
        "isbn": "978-0061120084",
        "price": Decimal("14.99"),
        "description": "A story of racial injustice and childhood innocence.",
        "stock_quantity": 30,
        "image_url": "https://images.example.com/mockingbird.jpg",
    },
    {
        "title": "1984",
        "authors": ["George Orwell"],
        "genre": "Science Fiction",
        "isbn": "978-0451524935",
        "price": Decimal("13.99"),
        "description": "A dystopian novel about totalitarianism and surveillance.",
        "stock_quantity": 25,
        "image_url": "https://images.example.com/1984.jpg",
    },
    {
        "title": "Clean Code",
        "authors": ["Robert C. Martin"],
        "genre": "Technology",
        "isbn": "978-0132350884",
        "price": Decimal("42.99"),
        "description": "A handbook of agile software craftsmanship.",
        "stock_quantity": 15,
        "image_url": "https://images.example.com/clean-code.jpg",
    },
    {
        "title": "Design Patterns",
        "authors": ["Erich Gamma", "Richard Helm", "Ralph Johnson", "John Vlissides"],
        "genre": "Technology",
        "isbn": "978-0201633610",
        "price": Decimal("54.99"),
        "description": "Elements of reusable object-oriented software.",
        "stock_quantity": 20,
        "image_url": "https://images.example.com/design-patterns.jpg",
    },
]


async def seed_users(session: AsyncSession) -> int:
    created = 0
    for data in SEED_USERS:
        existing = await session.execute(select(User.id).where(User.email == data["email"]))
        if existing.scalar_one_or_none() is not None:
            continue
        session.add(
            User(
                name=data["name"],
                email=data["email"],
                password_hash=hash_password(data["password"]),
                role=data["role"],
            )
        )
        created += 1
    await session.flush()
    return created


async def seed_books(session: AsyncSession) -> int:
    created = 0
    for data in SEED_BOOKS:
        existing = await session.execute(select(Book.id).where(Book.isbn == data["isbn"]))
        if existing.scalar_one_or_none() is not None:
            continue
        session.add(Book(**data))
        created += 1
    await session.flush()
    return created


async def seed() -> None:
    async with get_session() as session:
        users = await seed_users(session)
        books = await seed_books(session)
    logger.info("Seed data loaded", users_created=users, books_created=books)


async def main() -> None:
    configure_logging()
    try:
        await seed()
    finally:
        await close_database_connections()


if __name__ == "__main__":
    asyncio.run(main())
