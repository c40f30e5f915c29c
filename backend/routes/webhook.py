"""
Razorpay webhook.

    POST /api/webhook/razorpay   (also /api/webhooks/razorpay)

The signature covers the raw body, so the body is read as bytes and only
parsed after verification. Handler failures answer 500 so Razorpay
redelivers the event.
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from domain.errors import ConfigurationError, ValidationError
from domain.responses import error_response
from services import razorpay_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])


@router.post("/api/webhook/razorpay")
@router.post("/api/webhooks/razorpay", include_in_schema=False)
async def razorpay_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    if not settings.razorpay_webhook_secret:
        logger.error("Razorpay webhook received but RAZORPAY_WEBHOOK_SECRET is not set")
        raise ConfigurationError("Webhook secret not configured")

    body = await request.body()
    signature = request.headers.get("x-razorpay-signature")
    if not signature:
        raise ValidationError("Missing signature")
    if not razorpay_service.verify_webhook_signature(body, signature):
        logger.warning("Razorpay webhook signature mismatch")
        raise ValidationError("Invalid signature")

    try:
        event = json.loads(body)
    except ValueError:
        raise ValidationError("Invalid JSON payload")
    if not isinstance(event, dict):
        raise ValidationError("Invalid JSON payload")

    try:
        result = await razorpay_service.process_webhook_event(event, db)
        await db.commit()
    except ValidationError:
        raise
    except Exception as e:
        logger.error(f"Razorpay webhook {event.get('event')} failed: {e}", exc_info=True)
        await db.rollback()
        return JSONResponse(
            status_code=500,
            content=error_response("payment_processing_failed", "Payment processing failed"),
        )

    return result
