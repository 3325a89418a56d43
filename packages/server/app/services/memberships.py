"""
Membership store: role lookups and the membership lifecycle.

Organization and group memberships are soft-deleted. A soft-deleted row is
treated as absent by every lookup here, and re-adding that member restores
the same row instead of inserting a duplicate.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence, Type, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import paginate
from app.core.errors import MembershipConflictError, NotFoundError
from app.models.membership import GroupMember, OrganizationMember
from app.models.organization import Organization, OrganizationGroup
from app.models.user import User
from app.services.users import user_search_clause
from teamspace_shared.schemas.common import MEMBERSHIP_TRANSITIONS, MembershipStatus, Pagination
from teamspace_shared.schemas.organizations import GroupMemberItem, OrgMemberItem

log = structlog.get_logger()

MembershipRow = Union[OrganizationMember, GroupMember]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Lookups (soft-deleted rows count as absent)
# ---------------------------------------------------------------------------

async def get_app_role(session: AsyncSession, user_id: str) -> Optional[str]:
    """Application-level role of a user, or None."""
    result = await session.execute(
        select(User.role).where(User.id == user_id, User.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def get_organization_role(
    session: AsyncSession, user_id: str, organization_id: int
) -> Optional[str]:
    result = await session.execute(
        select(OrganizationMember.role).where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.deleted_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def get_group_role(
    session: AsyncSession, user_id: str, group_id: int
) -> Optional[str]:
    result = await session.execute(
        select(GroupMember.role).where(
            GroupMember.user_id == user_id,
            GroupMember.group_id == group_id,
            GroupMember.deleted_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def get_group_organization_id(
    session: AsyncSession, group_id: int
) -> Optional[int]:
    """Owning organization of a group."""
    result = await session.execute(
        select(OrganizationGroup.organization_id).where(OrganizationGroup.id == group_id)
    )
    return result.scalar_one_or_none()


async def get_group_organization_ids(
    session: AsyncSession, group_ids: Sequence[int]
) -> dict[int, int]:
    """Owning organization for each of several groups, keyed by group id."""
    if not group_ids:
        return {}
    result = await session.execute(
        select(OrganizationGroup.id, OrganizationGroup.organization_id).where(
            OrganizationGroup.id.in_(list(group_ids))
        )
    )
    return {group_id: org_id for group_id, org_id in result.all()}


async def list_user_organization_roles(
    session: AsyncSession, user_id: str
) -> list[tuple[int, str]]:
    """(organization_id, role) for every active organization membership."""
    result = await session.execute(
        select(OrganizationMember.organization_id, OrganizationMember.role)
        .where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.deleted_at.is_(None),
        )
        .order_by(OrganizationMember.organization_id)
    )
    return [(org_id, role) for org_id, role in result.all()]


async def list_user_group_roles(
    session: AsyncSession, user_id: str
) -> list[tuple[int, str]]:
    """(group_id, role) for every active group membership."""
    result = await session.execute(
        select(GroupMember.group_id, GroupMember.role)
        .where(GroupMember.user_id == user_id, GroupMember.deleted_at.is_(None))
        .order_by(GroupMember.group_id)
    )
    return [(group_id, role) for group_id, role in result.all()]


async def list_organization_group_ids(
    session: AsyncSession, organization_id: int
) -> list[int]:
    """Ids of the live groups owned by an organization."""
    result = await session.execute(
        select(OrganizationGroup.id)
        .where(
            OrganizationGroup.organization_id == organization_id,
            OrganizationGroup.deleted_at.is_(None),
        )
        .order_by(OrganizationGroup.id)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def membership_status(row: Optional[MembershipRow]) -> MembershipStatus:
    if row is None:
        return MembershipStatus.ABSENT
    if row.deleted_at is not None:
        return MembershipStatus.DELETED
    return MembershipStatus.ACTIVE


def _check_transition(
    row: Optional[MembershipRow], target: MembershipStatus, user_id: str, noun: str
) -> MembershipStatus:
    current = membership_status(row)
    if target in MEMBERSHIP_TRANSITIONS[current]:
        return current
    if current == MembershipStatus.ACTIVE:
        raise MembershipConflictError(f"User {user_id} is already a member of this {noun}")
    raise NotFoundError(f"{noun.capitalize()} member not found or already deleted")


async def _ensure_users_exist(session: AsyncSession, user_ids: list[str]) -> None:
    result = await session.execute(
        select(User.id).where(User.id.in_(user_ids), User.deleted_at.is_(None))
    )
    missing = set(user_ids) - set(result.scalars().all())
    if missing:
        raise NotFoundError(f"User {sorted(missing)[0]} not found")


async def _add_members(
    session: AsyncSession,
    model: Type[MembershipRow],
    scope: dict[str, int],
    members: Sequence[Union[OrgMemberItem, GroupMemberItem]],
    actor_id: str,
    noun: str,
) -> list[MembershipRow]:
    """Insert absent members and restore soft-deleted ones.

    ``scope`` holds the column values identifying the parent; its first key
    is the column the uniqueness constraint is scoped by. The whole batch is
    rejected if any member is already active.
    """
    scope_field = next(iter(scope))
    user_ids = [m.user_id for m in members]
    if len(set(user_ids)) != len(user_ids):
        raise MembershipConflictError("Each user may only be listed once")

    await _ensure_users_exist(session, user_ids)

    result = await session.execute(
        select(model).where(
            getattr(model, scope_field) == scope[scope_field],
            model.user_id.in_(user_ids),
        )
    )
    existing = {row.user_id: row for row in result.scalars().all()}

    plan = [
        (member, _check_transition(existing.get(member.user_id), MembershipStatus.ACTIVE, member.user_id, noun))
        for member in members
    ]

    now = _utcnow()
    rows: list[MembershipRow] = []
    for member, current in plan:
        if current == MembershipStatus.ABSENT:
            row = model(
                **scope,
                user_id=member.user_id,
                role=member.role.value,
                created_by=actor_id,
            )
            session.add(row)
            log.info(f"{noun}_member.added", user_id=member.user_id, role=row.role, **scope)
        else:
            row = existing[member.user_id]
            row.role = member.role.value
            row.deleted_at = None
            row.deleted_by = None
            row.updated_by = actor_id
            row.updated_at = now
            session.add(row)
            log.info(f"{noun}_member.restored", user_id=member.user_id, role=row.role, **scope)
        rows.append(row)

    await session.flush()
    return rows


async def _remove_member(
    session: AsyncSession,
    model: Type[MembershipRow],
    scope_field: str,
    scope_id: int,
    user_id: str,
    actor_id: str,
    noun: str,
) -> MembershipRow:
    result = await session.execute(
        select(model).where(
            getattr(model, scope_field) == scope_id, model.user_id == user_id
        )
    )
    row = result.scalar_one_or_none()
    _check_transition(row, MembershipStatus.DELETED, user_id, noun)

    now = _utcnow()
    row.deleted_at = now
    row.deleted_by = actor_id
    row.updated_at = now
    session.add(row)
    await session.flush()

    log.info(f"{noun}_member.removed", user_id=user_id, **{scope_field: scope_id})
    return row


async def _update_member_role(
    session: AsyncSession,
    model: Type[MembershipRow],
    scope_field: str,
    scope_id: int,
    user_id: str,
    role: str,
    actor_id: str,
    noun: str,
) -> MembershipRow:
    result = await session.execute(
        select(model).where(
            getattr(model, scope_field) == scope_id,
            model.user_id == user_id,
            model.deleted_at.is_(None),
        )
    )
    row = result.scalar_one_or_none()
    if not row:
        raise NotFoundError(f"{noun.capitalize()} member not found")

    row.role = role
    row.updated_by = actor_id
    row.updated_at = _utcnow()
    session.add(row)
    await session.flush()

    log.info(f"{noun}_member.role_updated", user_id=user_id, role=role, **{scope_field: scope_id})
    return row


async def get_live_organization(session: AsyncSession, organization_id: int) -> Organization:
    result = await session.execute(
        select(Organization).where(
            Organization.id == organization_id, Organization.deleted_at.is_(None)
        )
    )
    org = result.scalar_one_or_none()
    if not org:
        raise NotFoundError("Organization not found")
    return org


async def get_live_group(session: AsyncSession, group_id: int) -> OrganizationGroup:
    result = await session.execute(
        select(OrganizationGroup).where(
            OrganizationGroup.id == group_id, OrganizationGroup.deleted_at.is_(None)
        )
    )
    group = result.scalar_one_or_none()
    if not group:
        raise NotFoundError("Group not found")
    return group


# -- organizations ----------------------------------------------------------

async def add_organization_members(
    session: AsyncSession,
    organization_id: int,
    members: Sequence[OrgMemberItem],
    actor_id: str,
) -> list[OrganizationMember]:
    await get_live_organization(session, organization_id)
    return await _add_members(
        session,
        OrganizationMember,
        {"organization_id": organization_id},
        members,
        actor_id,
        "organization",
    )


async def remove_organization_member(
    session: AsyncSession, organization_id: int, user_id: str, actor_id: str
) -> OrganizationMember:
    return await _remove_member(
        session, OrganizationMember, "organization_id", organization_id, user_id, actor_id, "organization"
    )


async def update_organization_member_role(
    session: AsyncSession, organization_id: int, user_id: str, role: str, actor_id: str
) -> OrganizationMember:
    return await _update_member_role(
        session, OrganizationMember, "organization_id", organization_id, user_id, role, actor_id, "organization"
    )


async def list_organization_members(
    session: AsyncSession, organization_id: int
) -> list[OrganizationMember]:
    await get_live_organization(session, organization_id)
    result = await session.execute(
        select(OrganizationMember)
        .where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.deleted_at.is_(None),
        )
        .order_by(OrganizationMember.id)
    )
    return list(result.scalars().all())


# -- groups -----------------------------------------------------------------

async def add_group_members(
    session: AsyncSession,
    group_id: int,
    members: Sequence[GroupMemberItem],
    actor_id: str,
) -> list[GroupMember]:
    group = await get_live_group(session, group_id)
    return await _add_members(
        session,
        GroupMember,
        {"group_id": group_id, "organization_id": group.organization_id},
        members,
        actor_id,
        "group",
    )


async def remove_group_member(
    session: AsyncSession, group_id: int, user_id: str, actor_id: str
) -> GroupMember:
    return await _remove_member(
        session, GroupMember, "group_id", group_id, user_id, actor_id, "group"
    )


async def update_group_member_role(
    session: AsyncSession, group_id: int, user_id: str, role: str, actor_id: str
) -> GroupMember:
    return await _update_member_role(
        session, GroupMember, "group_id", group_id, user_id, role, actor_id, "group"
    )


async def list_group_members(session: AsyncSession, group_id: int) -> list[GroupMember]:
    await get_live_group(session, group_id)
    result = await session.execute(
        select(GroupMember)
        .where(GroupMember.group_id == group_id, GroupMember.deleted_at.is_(None))
        .order_by(GroupMember.id)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Member search and add candidates (paginated)
# ---------------------------------------------------------------------------

def _active_org_members_with_users(organization_id: int):
    return (
        select(User, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.user_id == User.id)
        .where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.deleted_at.is_(None),
            User.deleted_at.is_(None),
        )
    )


def _matching(stmt, query: str):
    clause = user_search_clause(query)
    return stmt if clause is None else stmt.where(clause)


async def search_organization_members(
    session: AsyncSession, organization_id: int, query: str, page: int, per_page: int
) -> tuple[list[tuple[User, str]], Pagination]:
    """Active members of the organization as (user, role) rows."""
    await get_live_organization(session, organization_id)
    stmt = _matching(_active_org_members_with_users(organization_id), query)
    return await paginate(session, stmt.order_by(OrganizationMember.id), page, per_page)


async def available_users_for_organization(
    session: AsyncSession, organization_id: int, query: str, page: int, per_page: int
) -> tuple[list[User], Pagination]:
    """Users that could be added: not deleted and not an active member.

    Former members whose row was soft-deleted are included; adding them
    restores that row.
    """
    await get_live_organization(session, organization_id)
    active = select(OrganizationMember.user_id).where(
        OrganizationMember.organization_id == organization_id,
        OrganizationMember.deleted_at.is_(None),
    )
    stmt = select(User).where(User.deleted_at.is_(None), User.id.not_in(active))
    stmt = _matching(stmt, query)
    return await paginate(session, stmt.order_by(User.created_at, User.id), page, per_page)


async def available_members_for_group(
    session: AsyncSession, group_id: int, query: str, page: int, per_page: int
) -> tuple[list[tuple[User, str]], Pagination]:
    """Active members of the group's organization that are not active in the group."""
    group = await get_live_group(session, group_id)
    in_group = select(GroupMember.user_id).where(
        GroupMember.group_id == group_id,
        GroupMember.deleted_at.is_(None),
    )
    stmt = _active_org_members_with_users(group.organization_id).where(User.id.not_in(in_group))
    stmt = _matching(stmt, query)
    return await paginate(session, stmt.order_by(OrganizationMember.id), page, per_page)
