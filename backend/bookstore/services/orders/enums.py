"""Order and payment status enums for the order lifecycle."""

from enum import Enum


class OrderStatus(str, Enum):
    """
    Order lifecycle status.

    Orders are created PENDING. PENDING -> CANCELLED through the owner's
    cancel request is the only transition that restores stock; privileged
    status updates never touch inventory.
    """

    PENDING = "PENDING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """
        Convert string to OrderStatus enum, case-insensitively.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().upper())
        except (AttributeError, ValueError):
            valid_values = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Invalid status. Valid values: {valid_values}"
            ) from None

    @property
    def can_cancel(self) -> bool:
        """Whether the owning customer may still cancel."""
        return self is OrderStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


class PaymentStatus(str, Enum):
    """Payment status recorded alongside the order."""

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
