"""
Status vocabulary mapping.

Two legacy vocabularies describe the same order lifecycle:

    website (customer-facing)   admin (staff-facing)
    pending                     Not Processed
    processing                  Processing
    shipped                     Dispatched
    delivered                   Delivered
    cancelled                   Cancelled
    refunded                    Processing Refund
    completed                   Completed

Admin "Confirmed" has no website counterpart and reads as "processing".

The map_* functions are exact-match lookups that never raise; unknown
strings collapse to the default of the target vocabulary. Use
OrderStatus.parse() when an unknown string must be rejected instead.
"""
from domain.enums import OrderStatus

DEFAULT_ADMIN_STATUS = OrderStatus.PENDING.admin_label
DEFAULT_WEBSITE_STATUS = OrderStatus.PENDING.website_label

WEBSITE_TO_ADMIN: dict[str, str] = {
    status.website_label: status.admin_label
    for status in OrderStatus
    if status is not OrderStatus.CONFIRMED
}

ADMIN_TO_WEBSITE: dict[str, str] = {
    status.admin_label: status.website_label for status in OrderStatus
}

WEBSITE_STATUSES = frozenset(WEBSITE_TO_ADMIN)
ADMIN_STATUSES = frozenset(ADMIN_TO_WEBSITE)


def map_website_status_to_admin(status: str | None) -> str:
    return WEBSITE_TO_ADMIN.get(status, DEFAULT_ADMIN_STATUS)


def map_admin_status_to_website(status: str | None) -> str:
    return ADMIN_TO_WEBSITE.get(status, DEFAULT_WEBSITE_STATUS)


def to_admin_status(value: str | None) -> str:
    """Render a status written in either vocabulary as an admin label."""
    try:
        return OrderStatus.parse(value).admin_label
    except ValueError:
        return DEFAULT_ADMIN_STATUS


def to_website_status(value: str | None) -> str:
    """Render a status written in either vocabulary as a website label."""
    try:
        return OrderStatus.parse(value).website_label
    except ValueError:
        return DEFAULT_WEBSITE_STATUS
