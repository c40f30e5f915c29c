"""
Liveness probe: database round-trip plus which integrations are configured.
"""
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from database import engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _integrations() -> dict[str, bool]:
    # Presence only; secret values never leave the process
    return {
        "razorpay": bool(settings.razorpay_key_id and settings.razorpay_key_secret),
        "razorpayWebhook": bool(settings.razorpay_webhook_secret),
        "resend": bool(settings.resend_api_key),
        "delhivery": bool(settings.delhivery_auth_token),
    }


@router.get("/health")
async def health_check():
    checked_at = datetime.now(timezone.utc).isoformat()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check: database unreachable: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": False, "timestamp": checked_at},
        )

    return {
        "status": "healthy",
        "database": True,
        "environment": settings.environment,
        "integrations": _integrations(),
        "timestamp": checked_at,
    }
