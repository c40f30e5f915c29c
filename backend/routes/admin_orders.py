"""
Staff order endpoints.

Endpoints:
    GET   /api/admin/orders/{id}                 — Normalized admin view
    PATCH /api/admin/orders/{id}/update-status   — Set one item's status
"""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_staff_user
from domain.errors import ValidationError
from domain.legacy_shape import render_order_for_admin
from domain.responses import ERROR_RESPONSES
from services import order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/orders", tags=["admin-orders"], responses=ERROR_RESPONSES)


class UpdateStatusRequest(BaseModel):
    """`status` may be written in either vocabulary."""
    status: str | None = None
    product_id: int | str | None = Field(None, alias="productId")

    model_config = {"populate_by_name": True}


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    staff: User = Depends(get_staff_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order(db, order_id=order_id)
    return {
        "message": "Order retrieved successfully",
        "order": render_order_for_admin(order),
    }


@router.patch("/{order_id}/update-status")
async def update_item_status(
    order_id: str,
    req: UpdateStatusRequest,
    staff: User = Depends(get_staff_user),
    db: AsyncSession = Depends(get_db),
):
    if not req.status:
        raise ValidationError("Status is required", field="status")
    if not req.product_id:
        raise ValidationError("Product ID is required", field="productId")

    order = await order_service.update_item_status(
        db,
        order_id=order_id,
        item_id=req.product_id,
        status=req.status,
    )
    await db.commit()
    logger.info(f"Staff {staff.id} set order {order.id} item {req.product_id} to {req.status}")

    return {
        "message": "Order status updated successfully",
        "order": {"id": order.id, "status": order.status},
    }
