"""
Customer order endpoints: history, cancellations and review flags.
"""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from db_models import User
from deps import Pagination, get_current_user, pagination_params
from domain.constants import DEFAULT_CANCEL_REASON
from domain.enums import UserRole
from domain.errors import ValidationError
from domain.legacy_shape import render_order
from domain.responses import ERROR_RESPONSES, paginated_response, success_response
from exceptions import EmailDeliveryError
from services import email_service, order_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["user-orders"], responses=ERROR_RESPONSES)


class CancelOrderRequest(BaseModel):
    order_id: int | str | None = Field(None, alias="orderId")

    model_config = {"populate_by_name": True}


class CancelItemRequest(BaseModel):
    order_id: int | str | None = Field(None, alias="orderId")
    product_id: int | str | None = Field(None, alias="productId")
    reason: str | None = Field(None, max_length=1000)

    model_config = {"populate_by_name": True}


def _require_ids(order_id: int | str | None, product_id: int | str | None) -> None:
    if not order_id or not product_id:
        raise ValidationError("Missing orderId or productId")


async def _admin_recipient(db: AsyncSession) -> str | None:
    res = await db.execute(
        select(User.email)
        .where(User.role == UserRole.ADMIN.value, User.email.is_not(None))
        .order_by(User.id)
        .limit(1)
    )
    return res.scalar_one_or_none() or settings.admin_email or None


# ════════════════════════════════════════════════════════════════════
# Reads
# ════════════════════════════════════════════════════════════════════


@router.get("/api/user/orders")
async def list_my_orders(
    page: Pagination = Depends(pagination_params),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await order_service.list_user_orders(
        db, user_id=user.id, limit=page["limit"], offset=page["offset"]
    )
    return paginated_response(
        [render_order(o) for o in orders],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.get("/api/orders/{order_id}")
async def get_my_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order_for_user(db, order_id=order_id, user=user)
    return success_response(render_order(order))


# ════════════════════════════════════════════════════════════════════
# Cancellation
# ════════════════════════════════════════════════════════════════════


@router.post("/api/user/order/cancel-order")
async def cancel_order(
    req: CancelOrderRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not req.order_id:
        raise ValidationError("Invalid order ID format")

    order = await order_service.get_order_for_user(db, order_id=req.order_id, user=user)
    await order_service.cancel_order(db, order=order)
    await db.commit()

    return {
        "success": True,
        "message": "Order cancelled successfully.",
        "updatedOrderStatus": order.status,
    }


@router.post("/api/user/order/product/cancel")
async def cancel_order_item(
    req: CancelItemRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _require_ids(req.order_id, req.product_id)

    order = await order_service.get_order_for_user(db, order_id=req.order_id, user=user)
    item = await order_service.cancel_item(db, order=order, item_id=req.product_id)
    await db.commit()

    return {
        "success": True,
        "message": "Product cancelled successfully",
        "newStatus": "Cancelled",
        "orderStatus": order.status,
        "itemId": item.id,
    }


@router.post("/api/user/order/product/cancel-request")
async def request_item_cancellation(
    req: CancelItemRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _require_ids(req.order_id, req.product_id)

    order = await order_service.get_order_for_user(db, order_id=req.order_id, user=user)
    item = await order_service.request_item_cancellation(
        db, order=order, item_id=req.product_id, reason=req.reason
    )
    await db.commit()

    recipient = await _admin_recipient(db)
    if recipient:
        customer = order.user
        try:
            await email_service.send_cancel_request_email(
                to=recipient,
                order_id=order.id,
                product_name=item.name or "Product",
                customer_name=(customer.name if customer else None) or "Customer",
                customer_email=(customer.email if customer else None) or "No email provided",
                reason=item.cancel_reason or DEFAULT_CANCEL_REASON,
            )
        except EmailDeliveryError as e:
            logger.error(f"Cancel request email for order {order.id} failed: {e}")
    else:
        logger.warning(f"No admin recipient configured; cancel request for order {order.id} not emailed")

    return {
        "success": True,
        "message": "Cancellation request submitted. An administrator will review it.",
        "itemId": item.id,
    }


# ════════════════════════════════════════════════════════════════════
# Reviews
# ════════════════════════════════════════════════════════════════════


@router.post("/api/orders/{order_id}/items/{item_id}/mark-reviewed")
async def mark_item_reviewed(
    order_id: str,
    item_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_owned_order(db, order_id=order_id, user_id=user.id)

    await order_service.mark_item_reviewed(db, order=order, item_id=item_id)
    await db.commit()
    return {"success": True, "message": "Order item marked as reviewed"}
