"""
Pytest configuration and shared test fixtures.

Storage-backed tests run against a file-based SQLite database per test
through the aiosqlite driver, so the same models, conditional UPDATE ...
RETURNING statements and per-session transactions are exercised as in
production. API tests drive the FastAPI app over httpx's ASGI transport with
the database dependency pointed at the test database.
"""

import os

# Settings are cached on first use, so the environment must be prepared
# before any application module is imported.
os.environ["APP_ENVIRONMENT"] = "test"
os.environ["APP_RATE_LIMIT_ENABLED"] = "false"
os.environ["APP_BCRYPT_ROUNDS"] = "4"
os.environ["APP_LOG_LEVEL"] = "WARNING"

import uuid
from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bookstore.core.security import create_access_token, hash_password
from bookstore.database.connection import get_db
from bookstore.database.models import Base, Book, User, UserRole
from bookstore.main import app

DEFAULT_PASSWORD = "secret123"


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a fresh SQLite database with the full schema.

    A generous busy timeout lets concurrent writers queue on the database
    lock instead of failing.
    """
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bookstore_test.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an asynchronous test client bound to the test database.

    Example:
        async def test_health_endpoint(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[User]]:
    """Factory persisting a user; every call gets a unique email by default."""

    async def _make_user(
        email: Optional[str] = None,
        role: UserRole = UserRole.CUSTOMER,
        password: str = DEFAULT_PASSWORD,
        name: str = "Test User",
    ) -> User:
        user = User(
            name=name,
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            password_hash=hash_password(password),
            role=role,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


@pytest.fixture
def make_book(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Book]]:
    """Factory persisting a book; every call gets a unique ISBN by default."""

    async def _make_book(
        stock: int = 10,
        price: str = "10.00",
        title: Optional[str] = None,
        isbn: Optional[str] = None,
        genre: str = "Fiction",
        authors: Optional[list[str]] = None,
    ) -> Book:
        book = Book(
            title=title or f"Book {uuid.uuid4().hex[:6]}",
            authors=authors or ["Test Author"],
            genre=genre,
            isbn=isbn or f"978-{uuid.uuid4().int % 10**10:010d}",
            price=Decimal(price),
            stock_quantity=stock,
        )
        async with session_factory() as session:
            session.add(book)
            await session.commit()
        return book

    return _make_book


@pytest.fixture
def stock_of(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[uuid.UUID], Awaitable[int]]:
    """Read a book's committed stock through a fresh session."""

    async def _stock_of(book_id: uuid.UUID) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(Book.stock_quantity).where(Book.id == book_id)
            )
            return result.scalar_one()

    return _stock_of


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.email, user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
