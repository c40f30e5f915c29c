"""
Bearer-token authentication.

Tokens are issued by the storefront's identity service (login, OTP and
password flows live there). This service only verifies them:

  - Authorization: Bearer <jwt>, HS256, signed with JWT_SECRET
  - `sub` is the user id, `role` is customer | staff | admin
  - optional `email` / `name` claims are mirrored into the users table
"""
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional, TypedDict

from fastapi import Depends, Header

import jwt

from config import settings
from domain.constants import STAFF_ROLES
from domain.enums import UserRole
from domain.errors import ConfigurationError, PermissionDeniedError, UnauthorizedError

logger = logging.getLogger(__name__)


class SessionUser(TypedDict):
    user_id: int
    role: str
    email: Optional[str]
    name: Optional[str]


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def _require_secret() -> str:
    if not settings.jwt_secret:
        raise ConfigurationError("Server auth misconfigured (JWT secret missing).")
    return settings.jwt_secret


def decode_access_token(token: str) -> dict:
    secret = _require_secret()
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Access token expired.")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid access token.")


def issue_access_token(
    *,
    user_id: int,
    role: str = UserRole.CUSTOMER.value,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> str:
    """Mint a token the way the identity service does. Used by tooling and tests."""
    secret = _require_secret()
    now = _now_utc()
    exp = now.replace(microsecond=0) + timedelta(minutes=settings.jwt_access_ttl_minutes)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": str(user_id),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if email:
        payload["email"] = email
    if name:
        payload["name"] = name
    return jwt.encode(payload, secret, algorithm="HS256")


async def require_session_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> SessionUser:
    token = _parse_bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Authentication required. Provide Authorization: Bearer <token>.")
    payload = decode_access_token(token)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid access token.")
    return {
        "user_id": user_id,
        "role": payload.get("role") or UserRole.CUSTOMER.value,
        "email": payload.get("email"),
        "name": payload.get("name"),
    }


async def require_staff(session: SessionUser = Depends(require_session_user)) -> SessionUser:
    if session["role"] not in STAFF_ROLES:
        logger.warning(f"Staff endpoint denied for user {session['user_id']} (role={session['role']})")
        raise PermissionDeniedError("Staff or admin role required for this endpoint.")
    return session
