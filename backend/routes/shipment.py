"""
Shipment endpoints (staff only).

Endpoints:
    POST /api/shipment          — Create a Delhivery shipment for an order
    POST /api/shipment/status   — Apply a carrier / staff delivery status
"""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_staff_user
from domain.constants import SHIPPABLE_ORDER_STATUSES
from domain.enums import OrderStatus
from domain.errors import ExternalServiceError, ValidationError
from domain.legacy_shape import render_order
from domain.responses import ERROR_RESPONSES
from exceptions import ShippingPartnerError
from services import delivery_service, order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shipment", tags=["shipment"], responses=ERROR_RESPONSES)


class Dimensions(BaseModel):
    length: float | None = Field(None, gt=0)
    width: float | None = Field(None, gt=0)
    height: float | None = Field(None, gt=0)


class CreateShipmentRequest(BaseModel):
    order_id: int | str = Field(..., alias="orderId")
    shipping_mode: str | None = Field(None, alias="shippingMode")
    weight: float | None = Field(None, gt=0)
    dimensions: Dimensions | None = None
    pickup_location: str | None = Field(None, alias="pickupLocation")

    model_config = {"populate_by_name": True}


class ShipmentStatusRequest(BaseModel):
    order_id: int | str = Field(..., alias="orderId")
    new_status: str = Field(..., min_length=1, alias="newStatus")
    reason: str | None = None

    model_config = {"populate_by_name": True}


@router.post("")
async def create_shipment(
    req: CreateShipmentRequest,
    staff: User = Depends(get_staff_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order(db, order_id=req.order_id)

    if OrderStatus.parse(order.status) not in SHIPPABLE_ORDER_STATUSES:
        raise ValidationError('Order must be in "Confirmed" or "Processing" status to create shipment')
    if order.tracking_number:
        raise ValidationError("Shipment already created for this order")

    document = render_order(order)
    if not document["shippingAddress"].get("zipCode"):
        raise ValidationError("Invalid shipping address")

    payload = delivery_service.build_shipment_payload(
        document,
        weight=req.weight,
        dimensions=req.dimensions.model_dump() if req.dimensions else None,
        shipping_mode=req.shipping_mode,
    )
    try:
        result = await delivery_service.create_shipment(payload, pickup_location=req.pickup_location)
    except ShippingPartnerError as e:
        raise ExternalServiceError(str(e), details={"remark": e.remark} if e.remark else None)

    await order_service.record_shipment(
        db,
        order=order,
        waybill=result["waybills"][0],
        manifest_id=result["manifest_id"],
        delivery_status="Manifested",
    )
    await db.commit()
    logger.info(f"Staff {staff.id} created shipment for order {order.id}")

    return {
        "success": True,
        "message": "Shipment created successfully",
        "data": {
            "orderId": order.id,
            "waybillNumbers": result["waybills"],
            "manifestId": result["manifest_id"],
            "status": order.status,
        },
    }


@router.post("/status")
async def update_shipment_status(
    req: ShipmentStatusRequest,
    staff: User = Depends(get_staff_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.apply_shipment_status(
        db,
        order_id=req.order_id,
        new_status=req.new_status,
        reason=req.reason,
    )
    await db.commit()

    return {
        "success": True,
        "message": "Shipment status updated",
        "data": {
            "orderId": order.id,
            "status": order.status,
            "deliveryStatus": order.delivery_status,
            "deliveredAt": order.delivered_at.isoformat() if order.delivered_at else None,
        },
    }
