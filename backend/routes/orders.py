"""
Checkout and payment confirmation endpoints.

Endpoints:
    POST /api/order                              — Checkout (Razorpay or COD)
    POST /api/order/verify-payment               — Razorpay checkout signature
    POST /api/order/verify-cod                   — Promote a pending COD order
    POST /api/order/resend-cod-verification      — New COD code by email

These routes keep the storefront's `{success, message, ...}` response shape.
"""
import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from db_models import User
from deps import get_current_user
from domain.enums import PaymentMethod
from domain.errors import ConfigurationError, ExternalServiceError, ValidationError
from domain.legacy_shape import render_order
from domain.responses import ERROR_RESPONSES
from exceptions import EmailDeliveryError, PaymentGatewayError
from middleware.rate_limit import rate_limit
from services import cod_service, email_service, order_service, razorpay_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/order", tags=["orders"], responses=ERROR_RESPONSES)


# ════════════════════════════════════════════════════════════════════
# Request Models
# ════════════════════════════════════════════════════════════════════


class CheckoutItem(BaseModel):
    product_id: int = Field(..., gt=0, alias="productId")
    quantity: int = Field(1, ge=1, le=50)
    size: str | None = None

    model_config = {"populate_by_name": True}


class CheckoutRequest(BaseModel):
    items: list[CheckoutItem]
    shipping_address: dict = Field(..., alias="shippingAddress")
    payment_method: Literal["razorpay", "cod"] = Field(..., alias="paymentMethod")
    shipping_price: float = Field(0.0, ge=0, alias="shippingPrice")
    tax_price: float = Field(0.0, ge=0, alias="taxPrice")
    discount_amount: float = Field(0.0, ge=0, alias="discountAmount")
    coupon_code: str | None = Field(None, alias="couponCode")

    model_config = {"populate_by_name": True}


class VerifyPaymentRequest(BaseModel):
    order_id: int | str = Field(..., alias="orderId")
    razorpay_order_id: str = Field(..., min_length=1, alias="razorpayOrderId")
    razorpay_payment_id: str = Field(..., min_length=1, alias="razorpayPaymentId")
    razorpay_signature: str = Field(..., min_length=1, alias="razorpaySignature")

    model_config = {"populate_by_name": True}


class VerifyCodRequest(BaseModel):
    order_id: int | str | None = Field(None, alias="orderId")
    verification_code: str | None = Field(None, alias="verificationCode")

    model_config = {"populate_by_name": True}


class ResendCodRequest(BaseModel):
    order_id: int | str | None = Field(None, alias="orderId")

    model_config = {"populate_by_name": True}


async def _send_confirmation(order, user: User) -> None:
    """Best effort: a failed confirmation email never fails the request."""
    if not user.email:
        return
    try:
        await email_service.send_order_confirmation_email(to=user.email, order=render_order(order))
    except EmailDeliveryError as e:
        logger.warning(f"Confirmation email for order {order.id} failed: {e}")


# ════════════════════════════════════════════════════════════════════
# Checkout
# ════════════════════════════════════════════════════════════════════


@router.post("")
async def checkout(
    req: CheckoutRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    address = order_service.normalize_address(req.shipping_address)
    quote = await order_service.build_quote(
        db,
        items=[
            {"product_id": i.product_id, "quantity": i.quantity, "size": i.size}
            for i in req.items
        ],
        shipping_price=req.shipping_price,
        tax_price=req.tax_price,
        discount_amount=req.discount_amount,
    )

    if req.payment_method == PaymentMethod.COD.value:
        pending, code = await cod_service.create_pending_order(
            db,
            user_id=user.id,
            quote=quote,
            shipping_address=address,
            coupon_code=req.coupon_code,
        )
        await db.commit()

        if user.email:
            try:
                await email_service.send_cod_verification_email(
                    to=user.email,
                    code=code,
                    pending_order_id=pending.id,
                    total_amount=pending.total_amount,
                )
            except EmailDeliveryError as e:
                logger.warning(f"COD code email for pending order {pending.id} failed: {e}")
        else:
            logger.warning(f"User {user.id} has no email; COD code for pending order {pending.id} not sent")

        return {
            "success": True,
            "message": "Verification code sent to your email.",
            "orderId": pending.id,
            "requiresCodVerification": True,
            "total": pending.total_amount,
        }

    await order_service.reserve_stock(db, lines=quote["items"])
    order = await order_service.create_order(
        db,
        user_id=user.id,
        quote=quote,
        shipping_address=address,
        payment_method=PaymentMethod.RAZORPAY,
        coupon_code=req.coupon_code,
    )
    try:
        gateway_order = await razorpay_service.create_gateway_order(
            order_id=order.id,
            amount=order.total_amount,
        )
    except PaymentGatewayError as e:
        raise ExternalServiceError(str(e))

    order.payment_intent_id = gateway_order.get("id")
    await db.commit()

    return {
        "success": True,
        "orderId": order.id,
        "razorpayOrderId": gateway_order.get("id"),
        "razorpayKey": settings.razorpay_key_id,
        "amount": gateway_order.get("amount", razorpay_service.to_paise(order.total_amount)),
        "currency": gateway_order.get("currency", settings.payment_currency),
    }


# ════════════════════════════════════════════════════════════════════
# Payment confirmation
# ════════════════════════════════════════════════════════════════════


@router.post("/verify-payment")
async def verify_payment(
    req: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not settings.razorpay_key_secret:
        raise ConfigurationError("Payment verification is not configured")

    if not razorpay_service.verify_payment_signature(
        req.razorpay_order_id, req.razorpay_payment_id, req.razorpay_signature
    ):
        logger.warning(f"Payment signature mismatch for order {req.order_id}")
        raise ValidationError("Invalid payment signature")

    order = await order_service.get_order_for_user(db, order_id=req.order_id, user=user)
    # the signed gateway order must be the one created for this order
    if order.payment_intent_id != req.razorpay_order_id:
        logger.warning(
            f"Gateway order {req.razorpay_order_id} does not belong to order {order.id} "
            f"(expected {order.payment_intent_id})"
        )
        raise ValidationError("Invalid payment signature")

    result = await order_service.handle_payment_success(
        db,
        order_id=order.id,
        payment_result={
            "id": req.razorpay_payment_id,
            "status": "captured",
            "method": "razorpay",
            "email": user.email,
            "contact": None,
        },
        provider=razorpay_service.PROVIDER,
    )
    await db.commit()

    if not result["alreadyPaid"]:
        await _send_confirmation(order, user)

    return {"success": True, "message": "Payment verified successfully", "orderId": order.id}


# ════════════════════════════════════════════════════════════════════
# Cash on delivery
# ════════════════════════════════════════════════════════════════════


@router.post("/verify-cod", dependencies=[Depends(rate_limit(10, 300))])
async def verify_cod(
    req: VerifyCodRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not req.order_id or not req.verification_code:
        raise ValidationError("Order ID and verification code are required.")

    order = await cod_service.verify_and_promote(
        db,
        pending_id=req.order_id,
        code=req.verification_code,
        user=user,
    )
    await db.commit()

    await _send_confirmation(order, user)

    return {
        "success": True,
        "message": "COD order verified and created successfully. Your order is now processing.",
        "orderId": order.id,
    }


@router.post("/resend-cod-verification", dependencies=[Depends(rate_limit(5, 900))])
async def resend_cod_verification(
    req: ResendCodRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not req.order_id:
        raise ValidationError("Order ID is required")

    pending = await cod_service.get_pending_order(db, pending_id=req.order_id, user_id=user.id)
    if not user.email:
        raise ValidationError("User email not found")

    code = await cod_service.regenerate_code(db, pending=pending)
    try:
        await email_service.send_cod_verification_email(
            to=user.email,
            code=code,
            pending_order_id=pending.id,
            total_amount=pending.total_amount,
        )
    except EmailDeliveryError as e:
        logger.error(f"Failed to resend COD code for pending order {pending.id}: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Failed to send verification email")

    await db.commit()
    return {"success": True, "message": "Verification code resent successfully"}
