"""
Import legacy order documents into the canonical tables.

Old documents carry two item arrays (`orderItems`, `products`) whose
statuses drifted apart and use both status vocabularies. Each document
is normalized, the two arrays are merged into one item collection (the
`products` entry wins, it is what staff edited) and written as one Order.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Order, OrderItem, User
from domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from domain.order_normalizer import normalize_order_for_admin

logger = logging.getLogger(__name__)


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, dict):
        value = value.get("$date")
    if not value:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _oid(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("$oid") or value.get("_id")
    return str(value) if value else None


def _status(value: Any) -> OrderStatus:
    try:
        return OrderStatus.parse(value)
    except ValueError:
        logger.warning(f"Unknown legacy status {value!r}; importing as pending")
        return OrderStatus.PENDING


def _item_key(item: dict) -> str | None:
    return _oid(item.get("_id")) or _oid(item.get("product"))


def merge_items(document: dict) -> list[dict]:
    """
    Merge `orderItems` and `products` into one list.

    Entries are matched by subdocument id, falling back to the product
    reference. For a matched pair the `products` entry's status and flags
    win; fields missing there are taken from the `orderItems` entry.
    """
    merged: dict[str, dict] = {}
    order: list[str] = []
    for source in ("orderItems", "products"):
        for index, item in enumerate(document.get(source) or []):
            key = _item_key(item) or f"{source}:{index}"
            if key not in merged:
                merged[key] = {}
                order.append(key)
            base = merged[key]
            for field, value in item.items():
                if source == "products" or field not in base:
                    if value is not None:
                        base[field] = value
    return [merged[k] for k in order]


def document_to_rows(document: dict) -> tuple[dict, list[dict]]:
    """Column values for the Order and its OrderItems (no user resolution)."""
    doc = normalize_order_for_admin(document) or {}
    address = doc.get("shippingAddress") or {}
    total = doc.get("totalAmount") or doc.get("total") or 0

    payment_method = str(doc.get("paymentMethod") or "").lower()
    is_paid = bool(doc.get("isPaid"))
    order_values = {
        "legacy_id": _oid(doc.get("_id")),
        "status": _status(doc.get("status")).value,
        "payment_method": PaymentMethod.COD.value if payment_method == "cod" else PaymentMethod.RAZORPAY.value,
        "payment_status": PaymentStatus.PAID.value if is_paid else (doc.get("paymentStatus") or PaymentStatus.PENDING.value),
        "payment_intent_id": doc.get("paymentIntentId"),
        "payment_result": doc.get("paymentResult"),
        "is_paid": is_paid,
        "paid_at": _parse_datetime(doc.get("paidAt")),
        "shipping_address": address,
        "tracking_number": doc.get("trackingNumber"),
        "manifest_id": doc.get("manifestId"),
        "delivery_status": doc.get("deliveryStatus"),
        "delivered_at": _parse_datetime(doc.get("deliveredAt")),
        "items_price": float(doc.get("itemsPrice") or 0),
        "shipping_price": float(doc.get("shippingPrice") or 0),
        "tax_price": float(doc.get("taxPrice") or 0),
        "discount_amount": float(doc.get("discountAmount") or 0),
        "total_amount": float(total),
        "coupon_code": doc.get("couponApplied") or doc.get("couponCode"),
        "created_at": _parse_datetime(doc.get("createdAt")) or datetime.utcnow(),
    }

    items = []
    for item in merge_items(doc):
        product_ref = _oid(item.get("product"))
        items.append({
            "product_id": int(product_ref) if product_ref and product_ref.isdigit() else None,
            "name": item.get("name") or "",
            "size": item.get("size"),
            "quantity": int(item.get("quantity") or item.get("qty") or 1),
            "price": float(item.get("price") or 0),
            "status": _status(item.get("status")).value,
            "cancel_requested": bool(item.get("cancelRequested")),
            "cancel_reason": item.get("cancelReason"),
            "cancel_requested_at": _parse_datetime(item.get("cancelRequestedAt")),
            "reviewed": bool(item.get("reviewed")),
            "completed_at": _parse_datetime(item.get("completedAt")),
        })
    return order_values, items


async def _resolve_user(db: AsyncSession, user_ref: Any) -> User | None:
    if isinstance(user_ref, dict) and user_ref.get("email"):
        email = str(user_ref["email"]).strip().lower()
        user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if not user:
            user = User(email=email, name=user_ref.get("name"))
            db.add(user)
            await db.flush()
        return user
    if isinstance(user_ref, int) or (isinstance(user_ref, str) and user_ref.isdigit()):
        return await db.get(User, int(user_ref))
    return None


async def import_document(db: AsyncSession, document: dict) -> str:
    """
    Import one legacy document.

    Returns "imported", "exists" or "skipped" (no resolvable user).
    """
    order_values, item_values = document_to_rows(document)

    legacy_id = order_values["legacy_id"]
    if legacy_id:
        existing = await db.scalar(select(Order.id).where(Order.legacy_id == legacy_id))
        if existing:
            return "exists"

    user = await _resolve_user(db, document.get("user"))
    if not user:
        logger.warning(f"Legacy order {legacy_id}: owner could not be resolved; skipped")
        return "skipped"

    order = Order(user_id=user.id, **order_values)
    for values in item_values:
        order.items.append(OrderItem(**values))
    db.add(order)
    await db.flush()
    return "imported"
