"""
Normalize legacy order documents for the staff UI.

Legacy documents were written by two generations of the storefront and
may carry either half of several field pairs:

    orderItems       <-> products
    shippingAddress  <-> deliveryAddress
    totalAmount      <-> total

normalize_order_for_admin() backfills whichever half is missing and
renders statuses in the admin vocabulary. Every branch only writes a
field that is absent or empty, so the function is idempotent.
"""
import json
from typing import Any

from domain.status_mapping import WEBSITE_STATUSES, map_website_status_to_admin, to_admin_status


def _admin_item(item: dict[str, Any]) -> dict[str, Any]:
    status = item.get("status")
    return {
        **item,
        "status": to_admin_status(status) if status else map_website_status_to_admin(None),
        "qty": item.get("qty") or item.get("quantity") or 1,
        "quantity": item.get("quantity") or item.get("qty") or 1,
    }


def _copy(value: Any) -> Any:
    # addresses may be stored as dicts or as plain strings
    return json.loads(json.dumps(value))


def normalize_order_for_admin(order: dict[str, Any] | None) -> dict[str, Any] | None:
    """
    Return a normalized deep copy of a legacy order document.

    The input is never mutated; the copy is made with a JSON round-trip
    so datetimes and other non-JSON values must already be serialized.
    """
    if not order:
        return None

    normalized = json.loads(json.dumps(order))
    normalized["products"] = normalized.get("products") or []
    normalized["orderItems"] = normalized.get("orderItems") or []

    if normalized["orderItems"] and not normalized["products"]:
        normalized["products"] = [_admin_item(item) for item in normalized["orderItems"]]

    status = normalized.get("status")
    if isinstance(status, str) and status in WEBSITE_STATUSES:
        normalized["status"] = map_website_status_to_admin(status)

    if normalized.get("deliveryAddress") and not normalized.get("shippingAddress"):
        normalized["shippingAddress"] = _copy(normalized["deliveryAddress"])
    elif normalized.get("shippingAddress") and not normalized.get("deliveryAddress"):
        normalized["deliveryAddress"] = _copy(normalized["shippingAddress"])

    if normalized.get("totalAmount") and not normalized.get("total"):
        normalized["total"] = normalized["totalAmount"]
    elif normalized.get("total") and not normalized.get("totalAmount"):
        normalized["totalAmount"] = normalized["total"]

    return normalized
