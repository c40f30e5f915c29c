"""
Order lifecycle service.

Handles:
    1. Checkout (cart validation, totals, stock)
    2. Payment success (idempotent, shared by webhook and client verification)
    3. Per-item status changes and order-level roll-up
    4. Customer cancellations, cancel requests and review flags
    5. Carrier status updates

All functions flush but never commit; routers own the transaction.
Every status comparison is done on canonical OrderStatus values.
"""
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Cart, CartItem, Order, OrderItem, Product, User
from domain.constants import (
    CANCELLABLE_ITEM_STATUSES,
    DEFAULT_CANCEL_REASON,
    NON_CANCELLABLE_ORDER_STATUSES,
    ORDER_CANCEL_BLOCKING_ITEM_STATUSES,
    REQUIRED_ADDRESS_FIELDS,
    REVIEWABLE_ITEM_STATUSES,
    STAFF_ROLES,
)
from domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from domain.errors import NotFoundError, ValidationError
from utils.validators import validate_phone, validate_pincode

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
# Lookups
# ════════════════════════════════════════════════════════════════════


def _coerce_id(value: Any) -> int | None:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def parse_status(value: str) -> OrderStatus:
    """Parse a status in either vocabulary or raise a 400."""
    try:
        return OrderStatus.parse(value)
    except ValueError:
        raise ValidationError(f"Unknown status: {value}", field="status")


async def get_order(db: AsyncSession, *, order_id: Any) -> Order:
    oid = _coerce_id(order_id)
    order = await db.get(Order, oid) if oid is not None else None
    if not order:
        raise NotFoundError("Order", order_id)
    return order


async def get_order_for_user(db: AsyncSession, *, order_id: Any, user: User) -> Order:
    """
    Load an order the caller may act on.

    Staff see every order; customers only their own. Someone else's order
    is reported as missing rather than forbidden.
    """
    order = await get_order(db, order_id=order_id)
    if order.user_id != user.id and user.role not in STAFF_ROLES:
        raise NotFoundError("Order", order_id)
    return order


async def get_owned_order(db: AsyncSession, *, order_id: Any, user_id: int) -> Order:
    """Strict owner lookup; staff get no bypass."""
    order = await get_order(db, order_id=order_id)
    if order.user_id != user_id:
        raise NotFoundError("Order", order_id)
    return order


def find_item(order: Order, item_id: Any) -> OrderItem:
    key = str(item_id).strip()
    for item in order.items:
        if str(item.id) == key:
            return item
    raise NotFoundError("Order item", item_id)


async def list_user_orders(
    db: AsyncSession,
    *,
    user_id: int,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Order], int]:
    total = await db.scalar(select(func.count(Order.id)).where(Order.user_id == user_id))
    res = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(res.scalars().all()), int(total or 0)


# ════════════════════════════════════════════════════════════════════
# Checkout
# ════════════════════════════════════════════════════════════════════


def normalize_address(address: dict[str, Any] | None) -> dict[str, Any]:
    """
    Canonicalize a shipping address.

    `phone` is accepted as an alias of `phoneNumber`. Missing required
    fields are rejected instead of being filled with placeholders.
    """
    if not isinstance(address, dict):
        raise ValidationError("Shipping address is required", field="shippingAddress")

    normalized = {k: (v.strip() if isinstance(v, str) else v) for k, v in address.items()}
    if not normalized.get("phoneNumber") and normalized.get("phone"):
        normalized["phoneNumber"] = normalized["phone"]
    normalized.pop("phone", None)

    missing = [f for f in REQUIRED_ADDRESS_FIELDS if not normalized.get(f)]
    if missing:
        raise ValidationError(
            f"Shipping address is missing: {', '.join(missing)}",
            field="shippingAddress",
            details={"missing": missing},
        )

    if str(normalized["country"]).lower() in ("india", "in"):
        normalized["zipCode"] = validate_pincode(normalized["zipCode"])
        normalized["phoneNumber"] = validate_phone(normalized["phoneNumber"])
    return normalized


async def build_quote(
    db: AsyncSession,
    *,
    items: list[dict],
    shipping_price: float = 0.0,
    tax_price: float = 0.0,
    discount_amount: float = 0.0,
) -> dict:
    """
    items: [{product_id:int, quantity:int, size:str|None}]

    Returns line snapshots and totals; raises ValidationError when the
    cart is empty or a product is unavailable / out of stock.
    """
    if not items:
        raise ValidationError("Cart is empty")

    product_ids = [int(i["product_id"]) for i in items]
    res = await db.execute(select(Product).where(Product.id.in_(product_ids)))
    products = {p.id: p for p in res.scalars().all()}

    lines: list[dict] = []
    items_price = 0.0
    for i in items:
        pid = int(i["product_id"])
        qty = int(i.get("quantity", 1))
        if qty <= 0:
            raise ValidationError("Quantity must be positive", field="quantity")
        p = products.get(pid)
        if not p or not p.active:
            raise ValidationError(f"Product {pid} is not available")
        if qty > p.stock_quantity:
            raise ValidationError(f"Insufficient stock for {p.name}")
        items_price += p.price * qty
        lines.append({
            "productId": pid,
            "name": p.name,
            "size": i.get("size"),
            "quantity": qty,
            "price": p.price,
        })

    discount = min(max(0.0, discount_amount), items_price)
    total = max(0.0, items_price + shipping_price + tax_price - discount)
    return {
        "items": lines,
        "items_price": round(items_price, 2),
        "shipping_price": round(shipping_price, 2),
        "tax_price": round(tax_price, 2),
        "discount_amount": round(discount, 2),
        "total_amount": round(total, 2),
    }


async def reserve_stock(db: AsyncSession, *, lines: list[dict]) -> None:
    """Decrement stock and bump sold counters, or raise without touching anything."""
    product_ids = [int(line["productId"]) for line in lines]
    res = await db.execute(select(Product).where(Product.id.in_(product_ids)))
    products = {p.id: p for p in res.scalars().all()}

    for line in lines:
        p = products.get(int(line["productId"]))
        if not p or p.stock_quantity < int(line["quantity"]):
            name = p.name if p else line.get("name") or line["productId"]
            raise ValidationError(f"Insufficient stock for {name}")

    for line in lines:
        p = products[int(line["productId"])]
        p.stock_quantity -= int(line["quantity"])
        p.sold = (p.sold or 0) + int(line["quantity"])


async def create_order(
    db: AsyncSession,
    *,
    user_id: int,
    quote: dict,
    shipping_address: dict,
    payment_method: PaymentMethod,
    status: OrderStatus = OrderStatus.PENDING,
    coupon_code: str | None = None,
) -> Order:
    order = Order(
        user_id=user_id,
        status=status.value,
        payment_method=payment_method.value,
        payment_status=PaymentStatus.PENDING.value,
        shipping_address=shipping_address,
        items_price=quote["items_price"],
        shipping_price=quote["shipping_price"],
        tax_price=quote["tax_price"],
        discount_amount=quote["discount_amount"],
        total_amount=quote["total_amount"],
        coupon_code=coupon_code,
        created_at=datetime.utcnow(),
    )
    for line in quote["items"]:
        order.items.append(
            OrderItem(
                product_id=int(line["productId"]),
                name=line.get("name") or "",
                size=line.get("size"),
                quantity=int(line["quantity"]),
                price=float(line["price"]),
                status=status.value,
            )
        )
    db.add(order)
    await db.flush()
    logger.info(
        f"Order {order.id} created for user {user_id} "
        f"({payment_method.value}, total={order.total_amount})"
    )
    return order


async def clear_cart(db: AsyncSession, *, user_id: int) -> None:
    cart_id = await db.scalar(select(Cart.id).where(Cart.user_id == user_id))
    if cart_id is None:
        return
    await db.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
    await db.execute(delete(Cart).where(Cart.id == cart_id))


# ════════════════════════════════════════════════════════════════════
# Payment
# ════════════════════════════════════════════════════════════════════


async def handle_payment_success(
    db: AsyncSession,
    *,
    order_id: Any,
    payment_result: dict,
    provider: str,
) -> dict:
    """
    Mark an order as paid and clear the buyer's cart.

    Idempotent: a second confirmation for an already-paid order (the
    webhook and the client verification race for the same payment)
    returns success without touching the row.
    """
    order = await get_order(db, order_id=order_id)

    if order.is_paid:
        logger.info(f"Order {order.id} already paid; ignoring duplicate confirmation from {provider}")
        return {"success": True, "orderId": order.id, "alreadyPaid": True}

    now = datetime.utcnow()
    order.is_paid = True
    order.paid_at = now
    order.payment_status = PaymentStatus.PAID.value
    order.payment_provider = provider
    order.payment_result = payment_result
    if payment_result.get("id"):
        order.payment_id = payment_result["id"]

    if OrderStatus.parse(order.status) is OrderStatus.PENDING:
        order.status = OrderStatus.PROCESSING.value
        for item in order.items:
            if OrderStatus.parse(item.status) is OrderStatus.PENDING:
                item.status = OrderStatus.PROCESSING.value

    await clear_cart(db, user_id=order.user_id)
    await db.flush()

    logger.info(f"Order {order.id} marked paid via {provider} (payment {order.payment_id})")
    return {"success": True, "orderId": order.id, "alreadyPaid": False}


# ════════════════════════════════════════════════════════════════════
# Item status
# ════════════════════════════════════════════════════════════════════


def roll_up_order_status(order: Order) -> OrderStatus:
    """
    Derive the order-level status from its items.

    Cancelled items are ignored unless every item is cancelled.
    """
    current = OrderStatus.parse(order.status)
    statuses = [OrderStatus.parse(item.status) for item in order.items]
    if not statuses:
        return current

    active = [s for s in statuses if s is not OrderStatus.CANCELLED]
    if not active:
        return OrderStatus.CANCELLED
    if all(s is OrderStatus.REFUNDED for s in active):
        return OrderStatus.REFUNDED
    if all(s is OrderStatus.COMPLETED for s in active):
        return OrderStatus.COMPLETED
    if all(s in (OrderStatus.DELIVERED, OrderStatus.COMPLETED) for s in active):
        return OrderStatus.DELIVERED
    if any(s in (OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.COMPLETED) for s in active):
        return OrderStatus.SHIPPED
    # nothing has left the warehouse; a stale shipped/delivered order status moves back
    if any(s in (OrderStatus.PROCESSING, OrderStatus.CONFIRMED) for s in active):
        if current in (OrderStatus.PROCESSING, OrderStatus.CONFIRMED):
            return current
        return OrderStatus.PROCESSING
    if all(s is OrderStatus.PENDING for s in active):
        return OrderStatus.PENDING
    return current


def _set_item_status(order: Order, item: OrderItem, status: OrderStatus) -> None:
    item.status = status.value
    if status in (OrderStatus.DELIVERED, OrderStatus.COMPLETED) and not item.completed_at:
        item.completed_at = datetime.utcnow()
    order.status = roll_up_order_status(order).value


def _mark_collected(order: Order) -> None:
    """COD money is collected on delivery."""
    if not order.is_paid:
        order.is_paid = True
        order.paid_at = datetime.utcnow()
        order.payment_status = PaymentStatus.PAID.value


async def update_item_status(
    db: AsyncSession,
    *,
    order_id: Any,
    item_id: Any,
    status: str,
) -> Order:
    """
    Set one item's status. `status` may be in either vocabulary.

    Both legacy arrays are rendered from the same row, so a single write
    keeps them in sync.
    """
    new_status = parse_status(status)
    order = await get_order(db, order_id=order_id)
    item = find_item(order, item_id)

    previous = item.status
    _set_item_status(order, item, new_status)
    if new_status is OrderStatus.DELIVERED:
        _mark_collected(order)

    await db.flush()
    logger.info(
        f"Order {order.id} item {item.id}: {previous} -> {new_status.value} "
        f"(order status {order.status})"
    )
    return order


# ════════════════════════════════════════════════════════════════════
# Cancellation & reviews
# ════════════════════════════════════════════════════════════════════


async def cancel_order(db: AsyncSession, *, order: Order) -> Order:
    current = OrderStatus.parse(order.status)
    if current in NON_CANCELLABLE_ORDER_STATUSES:
        raise ValidationError(f"Order cannot be cancelled. Current status: {current.website_label}.")

    if any(OrderStatus.parse(item.status) in ORDER_CANCEL_BLOCKING_ITEM_STATUSES for item in order.items):
        raise ValidationError(
            "Order cannot be cancelled as one or more items have been dispatched, delivered, or completed."
        )

    order.status = OrderStatus.CANCELLED.value
    for item in order.items:
        item.status = OrderStatus.CANCELLED.value

    await db.flush()
    logger.info(f"Order {order.id} cancelled")
    return order


async def cancel_item(db: AsyncSession, *, order: Order, item_id: Any) -> OrderItem:
    item = find_item(order, item_id)
    current = OrderStatus.parse(item.status)
    if current not in CANCELLABLE_ITEM_STATUSES:
        raise ValidationError(
            f"Product cannot be cancelled. Current status: {current.admin_label}. "
            "Product can only be cancelled if status is 'Not Processed', 'Processing', or 'Confirmed'."
        )

    _set_item_status(order, item, OrderStatus.CANCELLED)
    await db.flush()
    logger.info(f"Order {order.id} item {item.id} cancelled by customer")
    return item


async def request_item_cancellation(
    db: AsyncSession,
    *,
    order: Order,
    item_id: Any,
    reason: str | None = None,
) -> OrderItem:
    """Flag an item for staff review; the status itself is left untouched."""
    item = find_item(order, item_id)
    item.cancel_requested = True
    item.cancel_reason = (reason or "").strip() or DEFAULT_CANCEL_REASON
    item.cancel_requested_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Cancel requested for order {order.id} item {item.id}")
    return item


async def mark_item_reviewed(db: AsyncSession, *, order: Order, item_id: Any) -> OrderItem:
    item = find_item(order, item_id)
    if OrderStatus.parse(item.status) not in REVIEWABLE_ITEM_STATUSES:
        raise ValidationError("This item cannot be reviewed yet as it hasn't been delivered")
    item.reviewed = True
    item.reviewed_at = datetime.utcnow()
    await db.flush()
    return item


# ════════════════════════════════════════════════════════════════════
# Shipment
# ════════════════════════════════════════════════════════════════════


async def record_shipment(
    db: AsyncSession,
    *,
    order: Order,
    waybill: str,
    manifest_id: str | None,
    delivery_status: str,
) -> Order:
    order.tracking_number = waybill
    order.manifest_id = manifest_id
    order.delivery_status = delivery_status
    for item in order.items:
        if OrderStatus.parse(item.status) is not OrderStatus.CANCELLED:
            item.status = OrderStatus.SHIPPED.value
    order.status = OrderStatus.SHIPPED.value
    await db.flush()
    logger.info(f"Order {order.id} shipped (waybill {waybill})")
    return order


async def apply_shipment_status(
    db: AsyncSession,
    *,
    order_id: Any,
    new_status: str,
    reason: str | None = None,
) -> Order:
    """Apply a carrier/staff status to the whole order and its open items."""
    status = parse_status(new_status)
    order = await get_order(db, order_id=order_id)

    order.status = status.value
    order.delivery_status = reason or status.website_label
    for item in order.items:
        if OrderStatus.parse(item.status) is OrderStatus.CANCELLED:
            continue
        item.status = status.value
        if status in (OrderStatus.DELIVERED, OrderStatus.COMPLETED) and not item.completed_at:
            item.completed_at = datetime.utcnow()

    if status in (OrderStatus.DELIVERED, OrderStatus.COMPLETED):
        order.delivered_at = order.delivered_at or datetime.utcnow()
    if status is OrderStatus.DELIVERED:
        _mark_collected(order)

    await db.flush()
    logger.info(f"Order {order.id} delivery status -> {status.value}" + (f" ({reason})" if reason else ""))
    return order
