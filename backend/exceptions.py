"""
Custom exception classes for outbound integrations.

Service modules raise these; routers translate them into domain errors.
"""


class PaymentGatewayError(Exception):
    """Raised when the payment gateway rejects a request or is unreachable."""
    pass


class ShippingPartnerError(Exception):
    """Raised when the delivery partner rejects a shipment request."""

    def __init__(self, message: str, remark: str | None = None):
        super().__init__(message)
        self.remark = remark


class EmailDeliveryError(Exception):
    """Raised when a transactional email could not be sent."""
    pass
