"""
Delhivery shipment client.

Creates forward shipments through the CMU API:

    POST {base}/api/cmu/create.json
    Authorization: Token <DELHIVERY_AUTH_TOKEN>
    body: format=json&data=<json {shipments: [...], pickup_location: {name}}>

The carrier answers 200 even for rejected manifests; success is read
from the `success` flag and the waybills from `packages[].waybill`.
"""
import json
import logging
from typing import Any, Optional

import httpx

from config import settings
from exceptions import ShippingPartnerError

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT_GRAMS = 500
DEFAULT_DIMENSION_CM = 10
DEFAULT_SHIPPING_MODE = "Surface"


def _get_headers() -> dict:
    if not settings.delhivery_auth_token:
        raise ShippingPartnerError("Delhivery auth token not configured (DELHIVERY_AUTH_TOKEN)")
    return {
        "Authorization": f"Token {settings.delhivery_auth_token}",
        "Accept": "application/json",
        "Content-Type": "application/x-www-form-urlencoded",
    }


def build_shipment_payload(
    order: dict[str, Any],
    *,
    weight: Optional[float] = None,
    dimensions: Optional[dict[str, Any]] = None,
    shipping_mode: Optional[str] = None,
) -> dict[str, Any]:
    """
    Build one entry of the `shipments` array from a legacy order document.

    COD amount is only set for cash-on-delivery orders.
    """
    address = order.get("shippingAddress") or order.get("deliveryAddress") or {}
    items = order.get("orderItems") or []
    dimensions = dimensions or {}
    total = order.get("totalAmount") or order.get("total") or 0
    is_cod = order.get("paymentMethod") == "cod"

    street = address.get("address1", "")
    if address.get("address2"):
        street = f"{street}, {address['address2']}"

    created = order.get("createdAt") or ""
    return {
        "name": f"{address.get('firstName', '')} {address.get('lastName', '')}".strip(),
        "add": street,
        "pin": address.get("zipCode"),
        "city": address.get("city"),
        "state": address.get("state"),
        "country": address.get("country") or "India",
        "phone": address.get("phoneNumber"),
        "order": str(order.get("_id")),
        "payment_mode": "COD" if is_cod else "Prepaid",
        "cod_amount": str(total if is_cod else 0),
        "total_amount": str(total),
        "order_date": created[:10],
        "products_desc": ", ".join(i.get("name") or "" for i in items) or "Order Items",
        "quantity": str(sum(int(i.get("quantity") or i.get("qty") or 1) for i in items) or 1),
        "return_pin": settings.warehouse_pincode,
        "return_add": settings.warehouse_return_address,
        "return_city": settings.warehouse_return_city,
        "return_state": settings.warehouse_return_state,
        "return_country": settings.warehouse_return_country,
        "return_phone": settings.warehouse_return_phone,
        "seller_name": settings.seller_name,
        "seller_add": settings.warehouse_return_address,
        "seller_inv": f"INV-{order.get('_id')}",
        "weight": str(weight or DEFAULT_WEIGHT_GRAMS),
        "shipment_width": str(dimensions.get("width") or DEFAULT_DIMENSION_CM),
        "shipment_height": str(dimensions.get("height") or DEFAULT_DIMENSION_CM),
        "shipment_length": str(dimensions.get("length") or DEFAULT_DIMENSION_CM),
        "shipping_mode": shipping_mode or DEFAULT_SHIPPING_MODE,
        "address_type": "home",
    }


async def create_shipment(shipment: dict[str, Any], *, pickup_location: Optional[str] = None) -> dict[str, Any]:
    """
    Submit one shipment.

    Returns:
        dict: {waybills: [str], manifest_id: str|None, raw: <carrier response>}

    Raises:
        ShippingPartnerError: transport failure, HTTP error or carrier rejection
    """
    headers = _get_headers()
    data = {
        "shipments": [shipment],
        "pickup_location": {"name": pickup_location or settings.warehouse_return_address},
    }
    body = f"format=json&data={json.dumps(data)}"

    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            response = await client.post(
                f"{settings.delhivery_base_url}/api/cmu/create.json",
                content=body,
                headers=headers,
            )
    except httpx.HTTPError as e:
        logger.error(f"Delhivery unreachable for order {shipment.get('order')}: {e}")
        raise ShippingPartnerError("Delivery partner unreachable", remark=str(e)) from e

    if response.status_code >= 400:
        logger.error(
            f"Delhivery HTTP {response.status_code} for order {shipment.get('order')}: "
            f"{response.text[:200]}"
        )
        raise ShippingPartnerError(
            f"Delhivery API error: {response.status_code}",
            remark=response.text[:500],
        )

    result = response.json()
    if result.get("error") or not result.get("success"):
        remark = result.get("rmk") or "Failed to create shipment"
        logger.warning(f"Delhivery rejected shipment for order {shipment.get('order')}: {remark}")
        raise ShippingPartnerError(f"Delhivery API error: {remark}", remark=remark)

    waybills = [p.get("waybill") for p in result.get("packages") or [] if p.get("waybill")]
    if not waybills and result.get("waybill"):
        waybills = [result["waybill"]]
    if not waybills:
        raise ShippingPartnerError("No waybill numbers received from Delhivery", remark=result.get("rmk"))

    logger.info(f"Delhivery shipment created for order {shipment.get('order')}: waybill {waybills[0]}")
    return {
        "waybills": waybills,
        "manifest_id": result.get("upload_wbn"),
        "raw": result,
    }
