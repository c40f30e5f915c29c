"""
Transactional email via Resend.

Every sender raises EmailDeliveryError on failure; callers decide whether
the failure is fatal (COD code resend) or best-effort (confirmations,
admin notifications). Verification codes are never logged.
"""
import asyncio
import html
import logging
from typing import Any

import resend

from config import settings
from exceptions import EmailDeliveryError
from services.async_executor import run_blocking

logger = logging.getLogger(__name__)


def _send_sync(payload: dict[str, Any]) -> str:
    if not settings.resend_api_key:
        raise EmailDeliveryError("RESEND_API_KEY is not configured")

    resend.api_key = settings.resend_api_key
    try:
        response = resend.Emails.send(payload)
    except Exception as e:
        raise EmailDeliveryError(str(e)) from e

    if not isinstance(response, dict) or not response.get("id"):
        raise EmailDeliveryError(f"Unexpected Resend response: {response!r}")
    return response["id"]


async def send_email(*, to: str, subject: str, html_body: str, text_body: str) -> str:
    """Send one email; returns the provider message id."""
    if not to:
        raise EmailDeliveryError("Recipient address is missing")

    payload = {
        "from": settings.email_from,
        "to": [to],
        "subject": subject,
        "html": html_body,
        "text": text_body,
    }
    try:
        message_id = await run_blocking(_send_sync, payload, timeout=settings.email_timeout_seconds)
    except asyncio.TimeoutError as e:
        raise EmailDeliveryError(f"Resend did not answer within {settings.email_timeout_seconds}s") from e
    logger.info(f"Email '{subject}' sent (id={message_id})")
    return message_id


def _money(value: float) -> str:
    return f"{settings.payment_currency} {float(value or 0):.2f}"


async def send_cod_verification_email(*, to: str, code: str, pending_order_id: int, total_amount: float) -> str:
    minutes = settings.cod_code_ttl_minutes
    text_body = (
        f"Your cash-on-delivery verification code is {code}.\n"
        f"Enter it within {minutes} minutes to confirm your order of {_money(total_amount)}.\n"
        "If you did not place this order, you can ignore this email."
    )
    html_body = (
        "<p>Use this code to confirm your cash-on-delivery order:</p>"
        f"<p style=\"font-size:24px;letter-spacing:4px\"><strong>{html.escape(code)}</strong></p>"
        f"<p>The code expires in {minutes} minutes. Order total: {html.escape(_money(total_amount))}.</p>"
    )
    return await send_email(
        to=to,
        subject=f"Verify your COD order #{pending_order_id}",
        html_body=html_body,
        text_body=text_body,
    )


async def send_order_confirmation_email(*, to: str, order: dict[str, Any]) -> str:
    """`order` is the legacy order document (see domain.legacy_shape)."""
    lines = [
        f"{item.get('name') or 'Item'} x{item.get('quantity', 1)} ({_money(item.get('price', 0))})"
        for item in order.get("orderItems") or []
    ]
    order_url = f"{settings.app_url}/order/{order.get('_id')}"
    text_body = (
        f"Thank you for your order #{order.get('_id')}.\n"
        f"Items: {', '.join(lines)}.\n"
        f"Total: {_money(order.get('totalAmount', 0))}.\n"
        f"Track it at {order_url}"
    )
    rows = "".join(f"<li>{html.escape(line)}</li>" for line in lines)
    html_body = (
        f"<p>Thank you for your order <strong>#{html.escape(str(order.get('_id')))}</strong>.</p>"
        f"<ul>{rows}</ul>"
        f"<p>Total: {html.escape(_money(order.get('totalAmount', 0)))}</p>"
        f"<p><a href=\"{html.escape(order_url)}\">View your order</a></p>"
    )
    return await send_email(to=to, subject="Order confirmed", html_body=html_body, text_body=text_body)


async def send_cancel_request_email(
    *,
    to: str,
    order_id: int,
    product_name: str,
    customer_name: str,
    customer_email: str,
    reason: str,
) -> str:
    text_body = (
        f"Cancellation requested for order #{order_id}.\n"
        f"Product: {product_name}\n"
        f"Customer: {customer_name} <{customer_email}>\n"
        f"Reason: {reason}"
    )
    html_body = (
        f"<p>Cancellation requested for order <strong>#{order_id}</strong>.</p>"
        f"<p>Product: {html.escape(product_name)}<br>"
        f"Customer: {html.escape(customer_name)} &lt;{html.escape(customer_email)}&gt;<br>"
        f"Reason: {html.escape(reason)}</p>"
        f"<p><a href=\"{html.escape(settings.app_url)}/admin/orders/{order_id}\">Review in the admin panel</a></p>"
    )
    return await send_email(
        to=to,
        subject=f"Cancellation request for order #{order_id}",
        html_body=html_body,
        text_body=text_body,
    )
