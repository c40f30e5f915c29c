"""
Shared FastAPI dependencies.

Routers import DB session, auth guards and pagination from here.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from middleware.auth import SessionUser, require_session_user, require_staff


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


async def _load_or_mirror_user(db: AsyncSession, session: SessionUser) -> User:
    result = await db.execute(select(User).where(User.id == session["user_id"]))
    user = result.scalar_one_or_none()
    if not user:
        # Accounts live in the identity service; mirror on first use.
        user = User(
            id=session["user_id"],
            email=session.get("email"),
            name=session.get("name"),
            role=session["role"],
        )
        db.add(user)
        await db.flush()
    elif session.get("email") and not user.email:
        user.email = session["email"]
    return user


async def get_current_user(
    session: SessionUser = Depends(require_session_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The authenticated user's row, created on demand."""
    return await _load_or_mirror_user(db, session)


async def get_staff_user(
    session: SessionUser = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await _load_or_mirror_user(db, session)
