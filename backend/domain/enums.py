"""
Domain enums.

OrderStatus is the single stored status vocabulary for orders and order
items. The two legacy vocabularies ("website" lowercase and "admin"
titlecase) are rendered from it at the serialization boundary.
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    COMPLETED = "completed"

    @property
    def admin_label(self) -> str:
        return _ADMIN_LABELS[self]

    @property
    def website_label(self) -> str:
        return _WEBSITE_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (
            OrderStatus.DELIVERED,
            OrderStatus.COMPLETED,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDED,
        )

    @classmethod
    def parse(cls, value: "str | OrderStatus") -> "OrderStatus":
        """
        Parse a status written in either vocabulary, case-insensitively.

        Raises:
            ValueError: if the string is not a known status in any vocabulary.
        """
        if isinstance(value, OrderStatus):
            return value
        key = str(value or "").strip().lower()
        status = _PARSE_TABLE.get(key)
        if status is None:
            raise ValueError(f"Unknown order status: {value!r}")
        return status


_ADMIN_LABELS = {
    OrderStatus.PENDING: "Not Processed",
    OrderStatus.PROCESSING: "Processing",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.SHIPPED: "Dispatched",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.REFUNDED: "Processing Refund",
    OrderStatus.COMPLETED: "Completed",
}

# "confirmed" has no customer-facing label of its own
_WEBSITE_LABELS = {
    OrderStatus.PENDING: "pending",
    OrderStatus.PROCESSING: "processing",
    OrderStatus.CONFIRMED: "processing",
    OrderStatus.SHIPPED: "shipped",
    OrderStatus.DELIVERED: "delivered",
    OrderStatus.CANCELLED: "cancelled",
    OrderStatus.REFUNDED: "refunded",
    OrderStatus.COMPLETED: "completed",
}

_PARSE_TABLE = {
    **{label.lower(): status for status, label in _ADMIN_LABELS.items()},
    **{status.value: status for status in OrderStatus},
}


class PaymentMethod(str, Enum):
    RAZORPAY = "razorpay"
    COD = "cod"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class UserRole(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"
