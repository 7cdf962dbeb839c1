"""
Database connection management with SQLAlchemy async engine.

Owns the process-wide async engine and session factory, the FastAPI
session dependency, health checks with retry/backoff, and the mapping from
driver failures to the domain's transient-storage error.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bookstore.core.config import get_settings
from bookstore.core.exceptions import (
    BookstoreError,
    ConflictError,
    TransientStorageError,
)
from bookstore.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _convert_database_url_to_async(url: str) -> str:
    """Rewrite a plain PostgreSQL URL to use the asyncpg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine() -> AsyncEngine:
    """
    Create async SQLAlchemy engine with connection pooling.

    The asyncpg ``command_timeout`` bounds every statement, so a stuck
    transaction surfaces as a transient failure instead of hanging the
    request.
    """
    settings = get_settings()
    database_url = _convert_database_url_to_async(settings.database_url)

    engine = create_async_engine(
        database_url,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args={
            "server_settings": {
                "application_name": settings.app_name,
            },
            "command_timeout": settings.db_command_timeout,
            "timeout": 10,
        },
    )

    logger.info(
        "Database engine created",
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        environment=settings.environment,
    )

    return engine


def get_engine() -> AsyncEngine:
    """
    Get or create the global async database engine.

    Raises:
        RuntimeError: If engine initialization fails
    """
    global _engine

    if _engine is None:
        try:
            _engine = create_engine()
        except Exception as e:
            logger.error(
                "Failed to create database engine",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RuntimeError(f"Database engine initialization failed: {e}") from e

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the global session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database session factory created")

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create async database session with automatic cleanup.

    Commits whatever the caller left pending on success and rolls back on
    any exception. Services that own an atomic unit of work commit it
    themselves; the final commit here is then a no-op.
    """
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.debug(
            "Database session rolled back",
            error_type=type(e).__name__,
        )
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database session injection.

    Example:
        @router.get("/books")
        async def list_books(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with get_session() as session:
        yield session


def is_transient_error(exc: BaseException) -> bool:
    """
    Whether a storage failure is worth retrying from scratch.

    Lost connections, lock/statement timeouts, deadlocks and serialization
    failures qualify; integrity violations do not.
    """
    if isinstance(exc, IntegrityError):
        return False
    if isinstance(exc, (OperationalError, InterfaceError, asyncio.TimeoutError, TimeoutError)):
        return True
    if isinstance(exc, DBAPIError):
        return True
    return False


def translate_storage_error(exc: BaseException, operation: str, **context) -> BookstoreError:
    """
    Map a raw storage exception to a domain error.

    Integrity violations become ``ConflictError``; everything else raised
    by the driver or SQLAlchemy is reported as ``TransientStorageError``.
    The caller is responsible for rolling back first.
    """
    if isinstance(exc, IntegrityError):
        logger.warning(
            "Storage integrity violation",
            operation=operation,
            error=str(exc.orig) if exc.orig is not None else str(exc),
            **context,
        )
        return ConflictError(
            "Request conflicts with current data",
            code="INTEGRITY_CONFLICT",
            operation=operation,
            **context,
        )

    logger.error(
        "Storage failure",
        operation=operation,
        transient=is_transient_error(exc),
        error=str(exc),
        error_type=type(exc).__name__,
        **context,
    )
    return TransientStorageError(operation=operation, **context)


async def check_database_health(max_retries: int = 3, retry_delay: float = 1.0) -> bool:
    """
    Check database connectivity with retry logic.

    Args:
        max_retries: Maximum number of connection attempts
        retry_delay: Base delay between retries in seconds, doubled each time

    Returns:
        True if database is healthy, False otherwise
    """
    for attempt in range(max_retries):
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.debug("Database health check passed", attempt=attempt + 1)
            return True
        except (OperationalError, DBAPIError, OSError) as e:
            logger.warning(
                "Database health check failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                error=str(e),
                error_type=type(e).__name__,
            )
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
        except SQLAlchemyError as e:
            logger.error(
                "Database health check failed - SQLAlchemy error",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    logger.error("Database health check failed after all retries", max_retries=max_retries)
    return False


async def get_database_stats() -> dict[str, Any]:
    """Connection pool statistics for readiness reporting."""
    pool = get_engine().pool
    stats: dict[str, Any] = {"pool_class": type(pool).__name__}

    for name in ("size", "checkedin", "checkedout", "overflow"):
        method = getattr(pool, name, None)
        if callable(method):
            stats[name] = method()

    return stats


async def close_database_connections() -> None:
    """
    Dispose of the engine and forget the session factory.

    Called during application shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        try:
            await _engine.dispose()
            logger.info("Database connections closed and engine disposed")
        finally:
            _engine = None
            _session_factory = None
