"""
Teamspace membership store: async engine, sessions and paging.

Authorization reads memberships live inside the request's session, so a
store error surfaces to the caller and the check fails closed. Sessions
commit when the request (or script block) finishes and roll back on any
exception.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings
from teamspace_shared.schemas.common import Pagination

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

session_factory = async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def _unit_of_work() -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one unit of work per request."""
    async with _unit_of_work() as session:
        yield session


def get_session_context():
    """The same unit of work for scripts and health checks outside a request."""
    return _unit_of_work()


async def paginate(session: AsyncSession, stmt, page: int, per_page: int) -> tuple[list, Pagination]:
    """Run ``stmt`` for one page and count the full result set.

    A single-entity select yields the entities themselves; a select of
    several entities or columns yields row tuples.
    """
    total = (
        await session.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    ).scalar_one()
    result = await session.execute(stmt.offset((page - 1) * per_page).limit(per_page))
    if len(stmt.column_descriptions) == 1:
        items = list(result.scalars().all())
    else:
        items = [tuple(row) for row in result.all()]
    pagination = Pagination(
        page=page,
        per_page=per_page,
        total=total,
        total_pages=(total + per_page - 1) // per_page,
    )
    return items, pagination
