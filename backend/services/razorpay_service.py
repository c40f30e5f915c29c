"""
Razorpay payment gateway service.

Handles:
    1. Gateway order creation (amount in paise, notes.order_id for correlation)
    2. Webhook signature verification (HMAC-SHA256 of the raw body)
    3. Checkout signature verification (HMAC of "order_id|payment_id")
    4. Webhook event routing with an explicit allow-list

Both verifiers FAIL CLOSED when their secret is not configured.
"""
import hashlib
import hmac
import logging
from typing import Any, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from domain.constants import WEBHOOK_ACKNOWLEDGED_EVENTS, WEBHOOK_PAYMENT_EVENTS
from domain.errors import ValidationError
from exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

PROVIDER = "razorpay"


# ════════════════════════════════════════════════════════════════════
# Signatures
# ════════════════════════════════════════════════════════════════════


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _signature_matches(expected: str, signature: str) -> bool:
    # header values may carry non-ASCII text; compare as bytes
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("utf-8", "surrogateescape"))


def verify_webhook_signature(payload: bytes, signature: Optional[str]) -> bool:
    """Check `x-razorpay-signature` against the exact bytes received."""
    if not settings.razorpay_webhook_secret:
        logger.error("RAZORPAY_WEBHOOK_SECRET not configured; rejecting webhook")
        return False
    if not signature:
        logger.warning("Webhook received without signature header")
        return False

    expected = _hmac_hex(settings.razorpay_webhook_secret, payload)
    return _signature_matches(expected, signature)


def verify_payment_signature(razorpay_order_id: str, razorpay_payment_id: str, signature: Optional[str]) -> bool:
    """Check the signature the checkout widget hands back to the browser."""
    if not settings.razorpay_key_secret:
        logger.error("RAZORPAY_KEY_SECRET not configured; rejecting payment verification")
        return False
    if not signature:
        return False

    message = f"{razorpay_order_id}|{razorpay_payment_id}".encode("utf-8")
    expected = _hmac_hex(settings.razorpay_key_secret, message)
    return _signature_matches(expected, signature)


# ════════════════════════════════════════════════════════════════════
# Gateway orders
# ════════════════════════════════════════════════════════════════════


def to_paise(amount: float) -> int:
    return int(round(float(amount) * 100))


async def create_gateway_order(*, order_id: int, amount: float, currency: Optional[str] = None) -> dict:
    """
    Create a Razorpay order for a stored order.

    `notes.order_id` is what the webhook uses to find our order again.

    Returns:
        dict: the gateway order ({id, amount, currency, receipt, ...})
    """
    if not settings.razorpay_key_id or not settings.razorpay_key_secret:
        raise PaymentGatewayError(
            "Razorpay key id and secret must be set in .env "
            "(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET)"
        )

    body = {
        "amount": to_paise(amount),
        "currency": currency or settings.payment_currency,
        "receipt": f"order_{order_id}",
        "notes": {"order_id": str(order_id)},
    }

    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            response = await client.post(
                f"{settings.razorpay_api_base}/orders",
                json=body,
                auth=(settings.razorpay_key_id, settings.razorpay_key_secret),
            )
    except httpx.HTTPError as e:
        logger.error(f"Razorpay order creation failed for order {order_id}: {e}")
        raise PaymentGatewayError(f"Payment gateway unreachable: {e}") from e

    if response.status_code >= 400:
        logger.error(
            f"Razorpay order creation rejected for order {order_id}: "
            f"{response.status_code} {response.text[:200]}"
        )
        raise PaymentGatewayError(f"Payment gateway rejected order ({response.status_code})")

    data = response.json()
    logger.info(f"Razorpay order {data.get('id')} created for order {order_id} ({body['amount']} paise)")
    return data


# ════════════════════════════════════════════════════════════════════
# Webhook events
# ════════════════════════════════════════════════════════════════════


def _entity(payload: dict, name: str) -> dict:
    section = payload.get(name) or {}
    entity = section.get("entity") if isinstance(section, dict) else None
    return entity if isinstance(entity, dict) else {}


def extract_order_id(event: dict) -> Optional[str]:
    """`notes.order_id` from the order entity, else from the payment entity."""
    payload = event.get("payload") or {}
    for name in ("order", "payment"):
        notes = _entity(payload, name).get("notes") or {}
        if isinstance(notes, dict) and notes.get("order_id"):
            return str(notes["order_id"])
    return None


def build_payment_result(event: dict) -> dict[str, Any]:
    payment = _entity(event.get("payload") or {}, "payment")
    return {
        "id": payment.get("id"),
        "status": payment.get("status"),
        "method": payment.get("method"),
        "email": payment.get("email"),
        "contact": payment.get("contact"),
    }


def classify_event(event_type: Optional[str]) -> str:
    """Return payment, acknowledged (known, no action) or unknown."""
    if event_type in WEBHOOK_PAYMENT_EVENTS:
        return "payment"
    if event_type in WEBHOOK_ACKNOWLEDGED_EVENTS:
        return "acknowledged"
    return "unknown"


async def process_webhook_event(event: dict, db: AsyncSession) -> dict:
    """
    Route a verified webhook event.

    Raises:
        ValidationError: a payment event without notes.order_id (400)
        Exception: anything the payment handler raises; the router turns it
            into a 500 so Razorpay redelivers
    """
    from services import order_service

    event_type = event.get("event")
    kind = classify_event(event_type)

    if kind == "acknowledged":
        logger.info(f"Razorpay webhook {event_type} acknowledged (no action)")
        return {"status": "ok"}
    if kind == "unknown":
        logger.warning(f"Razorpay webhook with unhandled event type {event_type!r} acknowledged")
        return {"status": "ok"}

    order_id = extract_order_id(event)
    if not order_id:
        logger.warning(f"Razorpay webhook {event_type} without notes.order_id")
        raise ValidationError("Missing order_id in notes")

    logger.info(f"Razorpay webhook {event_type} for order {order_id}")
    await order_service.handle_payment_success(
        db,
        order_id=order_id,
        payment_result=build_payment_result(event),
        provider=PROVIDER,
    )
    return {"status": "ok"}
