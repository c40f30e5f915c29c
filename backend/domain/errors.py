"""
Domain exceptions.

Every class here is an HTTPException, so FastAPI routes them through the
handler in main.py, which renders the `{success: false, message, error}`
envelope. The envelope's error code is the class name without the
"Error" suffix, lowercased (NotFoundError -> "notfound").
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: dict | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message = message
        self.details = details or {}


class ValidationError(DomainError):
    """Bad input or a state transition the order does not allow (400)."""
    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        if field:
            details = {**(details or {}), "field": field}
        super().__init__(message, details=details)


class UnauthorizedError(DomainError):
    """Missing, malformed or expired bearer token (401)."""
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED)


class PermissionDeniedError(DomainError):
    """Authenticated, but the role may not use this endpoint (403)."""
    def __init__(self, message: str = "Permission denied", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN, details=details)


class NotFoundError(DomainError):
    """
    Order, item or pending COD order is absent (404).

    Also used for rows that exist but belong to someone else.
    """
    def __init__(self, resource_type: str, identifier: str | int | None = None):
        message = f"{resource_type} not found"
        if identifier is not None:
            message = f"{message}: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class RateLimitError(DomainError):
    """Too many attempts from one client on a throttled route (429)."""
    def __init__(self, message: str, *, limit: int, window_seconds: int):
        super().__init__(
            message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details={"limit": limit, "windowSeconds": window_seconds},
            headers={
                "Retry-After": str(window_seconds),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
            },
        )


class ExternalServiceError(DomainError):
    """Payment gateway / carrier / email provider failure (502)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


class ConfigurationError(DomainError):
    """Server is missing a required secret or endpoint (500)."""
    def __init__(self, message: str):
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
