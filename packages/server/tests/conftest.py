"""
Shared fixtures: in-memory SQLite for fast tests.

The app's own engine points at PostgreSQL; every test that touches the
database overrides ``get_session`` with a StaticPool SQLite engine instead.
"""

from __future__ import annotations

from typing import Optional

import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.config import get_settings
from app.core.database import get_session
from app.core.policy import PolicyEngine, get_policy_engine
from app.main import app as fastapi_app
from app.models.membership import GroupMember, OrganizationMember
from app.models.organization import Organization, OrganizationGroup
from app.models.user import User

settings = get_settings()


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def policy_engine() -> PolicyEngine:
    """A fresh, not-yet-loaded engine over the shipped model and policy."""
    return PolicyEngine(settings.rbac_model_path, settings.rbac_policy_path)


@pytest.fixture
async def client(session_factory, policy_engine):
    async def override_get_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = override_get_session
    fastapi_app.dependency_overrides[get_policy_engine] = lambda: policy_engine
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_token(user_id: str, secret: Optional[str] = None) -> str:
    return jwt.encode(
        {"sub": user_id},
        secret or settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture
def auth_headers():
    """``auth_headers("alice")`` -> Bearer headers for that user."""

    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers


@pytest.fixture
def seed(session):
    """Small builder for rows the tests need, flushed immediately."""

    class Seeder:
        async def user(self, user_id: str, role: Optional[str] = None) -> User:
            user = User(id=user_id, email=f"{user_id}@example.com", name=user_id.title(), role=role)
            session.add(user)
            await session.flush()
            return user

        async def org(self, name: str = "Acme", created_by: str = "system") -> Organization:
            org = Organization(name=name, type="company", created_by=created_by)
            session.add(org)
            await session.flush()
            return org

        async def group(self, org_id: int, name: str = "Reviewers", created_by: str = "system") -> OrganizationGroup:
            group = OrganizationGroup(organization_id=org_id, name=name, created_by=created_by)
            session.add(group)
            await session.flush()
            return group

        async def org_member(self, org_id: int, user_id: str, role: str = "member") -> OrganizationMember:
            row = OrganizationMember(
                organization_id=org_id, user_id=user_id, role=role, created_by="system"
            )
            session.add(row)
            await session.flush()
            return row

        async def group_member(self, group: OrganizationGroup, user_id: str, role: str = "member") -> GroupMember:
            row = GroupMember(
                group_id=group.id,
                organization_id=group.organization_id,
                user_id=user_id,
                role=role,
                created_by="system",
            )
            session.add(row)
            await session.flush()
            return row

        async def commit(self) -> None:
            await session.commit()

    return Seeder()
