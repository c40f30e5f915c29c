"""
Response envelopes.

Errors from every route share one envelope:
    { "success": false, "message": "...", "error": { "code", "message", "details" } }

The user order listing and detail use `{ "success": true, "data", "meta" }`.
The webhook and the order-level status routes keep the bare shapes the
storefront frontend already parses.
"""
from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    code: str = Field(..., description="Exception class name without 'Error', lowercased")
    message: str
    details: dict[str, Any] | None = None


class StandardErrorResponse(BaseModel):
    success: bool = False
    message: str = Field(..., description="Copy of error.message for older clients")
    error: ErrorDetail


# OpenAPI documentation for the error statuses shared by the order routers
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    code: {"model": StandardErrorResponse}
    for code in (400, 401, 403, 404, 500)
}


def success_response(data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    body = {"success": True, "data": data}
    if meta:
        body["meta"] = meta
    return body


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the error envelope used by every exception handler."""
    return {
        "success": False,
        "message": message,
        "error": {"code": code, "message": message, "details": details or {}},
    }


def paginated_response(items: list[Any], limit: int, offset: int = 0, total: int | None = None) -> dict[str, Any]:
    """Wrap one page of results; `hasMore` is true while rows remain past this page."""
    if total is None:
        total = len(items)
    return success_response(
        data=items,
        meta={"limit": limit, "offset": offset, "total": total, "hasMore": offset + limit < total},
    )
