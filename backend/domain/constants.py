"""
Domain constants used across services/routers.
"""

from domain.enums import OrderStatus, UserRole

# Items may only be cancelled directly from these states
CANCELLABLE_ITEM_STATUSES = frozenset({
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.CONFIRMED,
})

# Any item in these states blocks whole-order cancellation
ORDER_CANCEL_BLOCKING_ITEM_STATUSES = frozenset({
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
})

NON_CANCELLABLE_ORDER_STATUSES = frozenset({
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
})

REVIEWABLE_ITEM_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.COMPLETED})

SHIPPABLE_ORDER_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.CONFIRMED})

STAFF_ROLES = frozenset({UserRole.STAFF.value, UserRole.ADMIN.value})

DEFAULT_CANCEL_REASON = "Customer requested cancellation"

# Razorpay webhook events that confirm a payment
WEBHOOK_PAYMENT_EVENTS = frozenset({"payment.captured", "order.paid"})

# Razorpay webhook events we subscribe to but take no action on
WEBHOOK_ACKNOWLEDGED_EVENTS = frozenset({
    "payment.authorized",
    "payment.failed",
    "refund.created",
    "refund.processed",
    "refund.failed",
    "order.notification.delivered",
    "order.notification.failed",
})

REQUIRED_ADDRESS_FIELDS = (
    "firstName",
    "lastName",
    "phoneNumber",
    "address1",
    "city",
    "state",
    "zipCode",
    "country",
)
