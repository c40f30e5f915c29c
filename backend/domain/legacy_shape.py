"""
Render stored orders in the legacy document shape.

Older storefront pages read line items from `orderItems` with website
statuses; the staff panel reads `products` with admin statuses. Both
arrays are produced here from the single stored item collection, so
they always agree.
"""
from datetime import datetime
from typing import Any

from domain.enums import OrderStatus
from domain.order_normalizer import normalize_order_for_admin


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _item_fields(item) -> dict[str, Any]:
    return {
        "_id": str(item.id),
        "product": item.product_id,
        "name": item.name,
        "size": item.size,
        "qty": item.quantity,
        "quantity": item.quantity,
        "price": item.price,
        "cancelRequested": bool(item.cancel_requested),
        "cancelReason": item.cancel_reason,
        "cancelRequestedAt": _iso(item.cancel_requested_at),
        "reviewed": bool(item.reviewed),
        "reviewedAt": _iso(item.reviewed_at),
        "completedAt": _iso(item.completed_at),
    }


def render_order_item(item, vocabulary: str = "website") -> dict[str, Any]:
    status = OrderStatus.parse(item.status)
    fields = _item_fields(item)
    fields["status"] = status.admin_label if vocabulary == "admin" else status.website_label
    return fields


def render_order(order) -> dict[str, Any]:
    """
    Serialize an Order row (with its items loaded) as a legacy document.

    `status` is in the website vocabulary; `orderItems` carry website
    statuses and `products` carry admin statuses.
    """
    status = OrderStatus.parse(order.status)
    address = dict(order.shipping_address or {})
    return {
        "_id": str(order.id),
        "id": order.id,
        "user": order.user_id,
        "status": status.website_label,
        "orderItems": [render_order_item(item, "website") for item in order.items],
        "products": [render_order_item(item, "admin") for item in order.items],
        "shippingAddress": address,
        "deliveryAddress": dict(address),
        "paymentMethod": order.payment_method,
        "paymentStatus": order.payment_status,
        "paymentIntentId": order.payment_intent_id,
        "paymentResult": order.payment_result,
        "isPaid": bool(order.is_paid),
        "paidAt": _iso(order.paid_at),
        "trackingNumber": order.tracking_number,
        "manifestId": order.manifest_id,
        "deliveryStatus": order.delivery_status,
        "deliveredAt": _iso(order.delivered_at),
        "itemsPrice": order.items_price,
        "shippingPrice": order.shipping_price,
        "taxPrice": order.tax_price,
        "discountAmount": order.discount_amount,
        "couponCode": order.coupon_code,
        "total": order.total_amount,
        "totalAmount": order.total_amount,
        "createdAt": _iso(order.created_at),
        "updatedAt": _iso(order.updated_at),
    }


def render_order_for_admin(order) -> dict[str, Any]:
    """Legacy document with the order status in the admin vocabulary."""
    document = normalize_order_for_admin(render_order(order))
    # "confirmed" renders as website "processing"; keep the finer admin label
    document["status"] = OrderStatus.parse(order.status).admin_label
    return document
