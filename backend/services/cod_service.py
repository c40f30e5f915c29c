"""
Cash-on-delivery verification.

Flow:
    1. Checkout stores a PendingCodOrder holding a bcrypt hash of a random
       numeric code (15 minute expiry) and emails the plaintext code
    2. Resend replaces code, hash and expiry; the previous code stops working
    3. Verify checks the code against the hash and the expiry, then promotes
       the pending order to a real Order
    4. Unverified pending orders are purged after PENDING_COD_RETENTION_HOURS,
       on the next COD checkout

Wrong and expired codes produce the same error so callers cannot tell
which check failed.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any

import bcrypt
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Order, PendingCodOrder, User
from domain.enums import OrderStatus, PaymentMethod
from domain.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid or expired verification code."


def generate_code(length: int | None = None) -> str:
    length = length or settings.cod_code_length
    return f"{secrets.randbelow(10**length):0{length}d}"


def hash_code(code: str) -> str:
    return bcrypt.hashpw(code.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_code(code: str, code_hash: str) -> bool:
    if not code or not code_hash:
        return False
    try:
        return bcrypt.checkpw(code.encode("utf-8"), code_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def _new_code() -> tuple[str, str, datetime]:
    code = generate_code()
    expires_at = datetime.utcnow() + timedelta(minutes=settings.cod_code_ttl_minutes)
    return code, hash_code(code), expires_at


async def purge_expired_pending_orders(
    db: AsyncSession,
    *,
    older_than: timedelta | None = None,
    now: datetime | None = None,
) -> int:
    """
    Delete pending COD orders created more than `older_than` ago
    (default PENDING_COD_RETENTION_HOURS). Returns the number removed.
    """
    older_than = older_than or timedelta(hours=settings.pending_cod_retention_hours)
    cutoff = (now or datetime.utcnow()) - older_than
    result = await db.execute(
        delete(PendingCodOrder)
        .where(PendingCodOrder.created_at < cutoff)
        .execution_options(synchronize_session="fetch")
    )
    purged = result.rowcount or 0
    if purged:
        logger.info(f"Purged {purged} unverified COD order(s) created before {cutoff.isoformat()}")
    return purged


async def create_pending_order(
    db: AsyncSession,
    *,
    user_id: int,
    quote: dict,
    shipping_address: dict,
    coupon_code: str | None = None,
) -> tuple[PendingCodOrder, str]:
    """Store a pending COD order. Returns the row and the plaintext code."""
    await purge_expired_pending_orders(db)
    code, code_hash, expires_at = _new_code()
    pending = PendingCodOrder(
        user_id=user_id,
        items=quote["items"],
        shipping_address=shipping_address,
        items_price=quote["items_price"],
        shipping_price=quote["shipping_price"],
        tax_price=quote["tax_price"],
        discount_amount=quote["discount_amount"],
        total_amount=quote["total_amount"],
        coupon_code=coupon_code,
        code_hash=code_hash,
        code_expires_at=expires_at,
    )
    db.add(pending)
    await db.flush()
    logger.info(f"Pending COD order {pending.id} created for user {user_id}")
    return pending, code


async def get_pending_order(db: AsyncSession, *, pending_id: Any, user_id: int) -> PendingCodOrder:
    try:
        pid = int(str(pending_id).strip())
    except (TypeError, ValueError):
        raise NotFoundError("Pending COD order", pending_id)
    pending = await db.get(PendingCodOrder, pid)
    if not pending or pending.user_id != user_id:
        raise NotFoundError("Pending COD order", pending_id)
    return pending


async def regenerate_code(db: AsyncSession, *, pending: PendingCodOrder) -> str:
    """Replace the stored hash; returns the new plaintext code."""
    code, code_hash, expires_at = _new_code()
    pending.code_hash = code_hash
    pending.code_expires_at = expires_at
    await db.flush()
    logger.info(f"COD verification code regenerated for pending order {pending.id}")
    return code


def verify_code(pending: PendingCodOrder, code: str, *, now: datetime | None = None) -> None:
    now = now or datetime.utcnow()
    expired = pending.code_expires_at is None or pending.code_expires_at <= now
    # hash check runs even for expired codes so both failures cost the same
    matches = check_code((code or "").strip(), pending.code_hash)
    if expired or not matches:
        logger.warning(f"COD verification failed for pending order {pending.id}")
        raise ValidationError(INVALID_CODE_MESSAGE)


async def promote(db: AsyncSession, *, pending: PendingCodOrder) -> Order:
    """
    Turn a verified pending order into a real Order.

    Stock is reserved here rather than at checkout, so an unverified COD
    order never holds inventory.
    """
    from services import order_service

    await order_service.reserve_stock(db, lines=pending.items)
    quote = {
        "items": pending.items,
        "items_price": pending.items_price,
        "shipping_price": pending.shipping_price,
        "tax_price": pending.tax_price,
        "discount_amount": pending.discount_amount,
        "total_amount": pending.total_amount,
    }
    order = await order_service.create_order(
        db,
        user_id=pending.user_id,
        quote=quote,
        shipping_address=pending.shipping_address,
        payment_method=PaymentMethod.COD,
        status=OrderStatus.PROCESSING,
        coupon_code=pending.coupon_code,
    )
    await order_service.clear_cart(db, user_id=pending.user_id)
    await db.delete(pending)
    await db.flush()
    logger.info(f"Pending COD order {pending.id} promoted to order {order.id}")
    return order


async def verify_and_promote(db: AsyncSession, *, pending_id: Any, code: str, user: User) -> Order:
    pending = await get_pending_order(db, pending_id=pending_id, user_id=user.id)
    verify_code(pending, code)
    return await promote(db, pending=pending)
