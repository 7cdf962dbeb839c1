"""
Domain exception hierarchy shared by services and the HTTP layer.

Every error carries a human readable message, a stable machine code and
structured context. The API layer maps each class to an HTTP status and
renders the context as the ``details`` of the error envelope.
"""

from typing import Any


class BookstoreError(Exception):
    """Base exception for all domain errors."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str, code: str = "BOOKSTORE_ERROR", **context: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


class InvalidInputError(BookstoreError):
    """Malformed request shape; never worth retrying."""

    status_code = 400
    error = "Bad Request"

    def __init__(self, message: str, field: str | None = None, **context: Any):
        if field is not None:
            context["field"] = field
        super().__init__(message, code="INVALID_INPUT", **context)


class NotFoundError(BookstoreError):
    """Referenced entity does not exist."""

    status_code = 404
    error = "Not Found"


class BookNotFoundError(NotFoundError):
    def __init__(self, book_id: Any):
        super().__init__(
            f"Book with ID {book_id} not found",
            code="BOOK_NOT_FOUND",
            book_id=str(book_id),
        )
        self.book_id = book_id


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: Any):
        super().__init__(
            "Order not found",
            code="ORDER_NOT_FOUND",
            order_id=str(order_id),
        )
        self.order_id = order_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: Any):
        super().__init__(
            "User not found",
            code="USER_NOT_FOUND",
            user_id=str(user_id),
        )


class InsufficientStockError(BookstoreError):
    """
    Requested quantity exceeds the stock on hand.

    Raised with the same shape whether detected by the advisory check or by
    the conditional decrement at commit time.
    """

    status_code = 400
    error = "Bad Request"

    def __init__(self, book_id: Any, available: int, requested: int, title: str | None = None):
        label = f'"{title}"' if title else str(book_id)
        super().__init__(
            f"Insufficient stock for book {label}. "
            f"Available: {available}, Requested: {requested}",
            code="INSUFFICIENT_STOCK",
            book_id=str(book_id),
            available=available,
            requested=requested,
        )
        self.book_id = book_id
        self.available = available
        self.requested = requested


class ForbiddenError(BookstoreError):
    status_code = 403
    error = "Forbidden"

    def __init__(self, message: str, code: str = "FORBIDDEN", **context: Any):
        super().__init__(message, code=code, **context)


class OrderAccessDeniedError(ForbiddenError):
    def __init__(self, order_id: Any, user_id: Any, message: str | None = None):
        super().__init__(
            message or "You can only cancel your own orders",
            code="ORDER_ACCESS_DENIED",
            order_id=str(order_id),
            user_id=str(user_id),
        )


class InvalidOrderStateError(BookstoreError):
    """Operation is not valid for the order's current status."""

    status_code = 409
    error = "Conflict"

    def __init__(self, order_id: Any, current_status: Any, message: str | None = None):
        status_value = getattr(current_status, "value", current_status)
        super().__init__(
            message or "Only pending orders can be cancelled",
            code="INVALID_ORDER_STATE",
            order_id=str(order_id),
            current_status=status_value,
        )
        self.current_status = current_status


class ConflictError(BookstoreError):
    """Write would violate a uniqueness or referential rule."""

    status_code = 409
    error = "Conflict"

    def __init__(self, message: str, code: str = "CONFLICT", **context: Any):
        super().__init__(message, code=code, **context)


class AuthenticationError(BookstoreError):
    status_code = 401
    error = "Unauthorized"

    def __init__(self, message: str = "Authentication required", code: str = "AUTH_ERROR", **context: Any):
        super().__init__(message, code=code, **context)


class TransientStorageError(BookstoreError):
    """
    Infrastructure failure inside a storage transaction.

    Nothing partial was committed, so the caller may retry the whole
    operation from scratch.
    """

    status_code = 503
    error = "Service Unavailable"

    def __init__(self, message: str = "Storage temporarily unavailable, please retry", **context: Any):
        super().__init__(message, code="TRANSIENT_STORAGE_FAILURE", retryable=True, **context)
