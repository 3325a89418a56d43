"""
User service: application users and their application-level role.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import paginate
from app.core.errors import NotFoundError
from app.models.user import User
from teamspace_shared.schemas.common import AppRole, Pagination

log = structlog.get_logger()


async def list_users(session: AsyncSession) -> list[User]:
    """All users that have not been deleted, oldest first."""
    result = await session.execute(
        select(User).where(User.deleted_at.is_(None)).order_by(User.created_at, User.id)
    )
    return list(result.scalars().all())


def user_search_clause(query: str):
    """Case-insensitive substring match on id, name or email; None for a blank query."""
    query = query.strip()
    if not query:
        return None
    return or_(
        User.id.icontains(query, autoescape=True),
        User.name.icontains(query, autoescape=True),
        User.email.icontains(query, autoescape=True),
    )


async def search_users(
    query: str, page: int, per_page: int, session: AsyncSession
) -> tuple[list[User], Pagination]:
    stmt = select(User).where(User.deleted_at.is_(None))
    clause = user_search_clause(query)
    if clause is not None:
        stmt = stmt.where(clause)
    return await paginate(session, stmt.order_by(User.created_at, User.id), page, per_page)


async def get_user(user_id: str, session: AsyncSession) -> User:
    result = await session.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    )
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def get_or_create_user(
    user_id: str,
    session: AsyncSession,
    email: Optional[str] = None,
    name: Optional[str] = None,
    role: Optional[AppRole] = None,
) -> tuple[User, bool]:
    """Fetch a user by id, creating it if missing. Returns (user, created)."""
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user:
        return user, False

    user = User(
        id=user_id,
        email=email,
        name=name,
        role=role.value if role else None,
    )
    session.add(user)
    await session.flush()

    log.info("user.created", user_id=user_id, role=user.role)
    return user, True


async def set_app_role(
    user_id: str,
    role: Optional[AppRole],
    actor_id: str,
    session: AsyncSession,
) -> User:
    """Set or clear a user's application-level role.

    Takes effect on the user's next permission check; nothing is cached.
    """
    user = await get_user(user_id, session)
    previous = user.role
    user.role = role.value if role else None
    session.add(user)
    await session.flush()

    log.info(
        "user.app_role_changed",
        user_id=user_id,
        previous=previous,
        role=user.role,
        actor=actor_id,
    )
    return user
