"""
Organization service: business logic for organization and group CRUD.

Deletion is soft throughout: deleting an organization stamps the
organization, its memberships, its groups and their memberships; deleting
a group stamps the group and its memberships.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import paginate
from app.models.membership import GroupMember, OrganizationMember
from app.models.organization import Organization, OrganizationGroup
from app.services import memberships
from teamspace_shared.schemas.common import OrganizationRole, Pagination
from teamspace_shared.schemas.organizations import (
    GroupCreateRequest,
    GroupMemberItem,
    GroupUpdateRequest,
    OrgCreateRequest,
    OrgMemberItem,
    OrgUpdateRequest,
)

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _soft_delete_where(session: AsyncSession, model, actor_id: str, now: datetime, *criteria) -> int:
    result = await session.execute(
        update(model)
        .where(*criteria, model.deleted_at.is_(None))
        .values(deleted_at=now, deleted_by=actor_id, updated_at=now)
    )
    return result.rowcount


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

async def create_organization(
    req: OrgCreateRequest, creator_id: str, session: AsyncSession
) -> Organization:
    """Create an organization and make the creator its admin."""
    org = Organization(
        name=req.name,
        description=req.description,
        type=req.type,
        created_by=creator_id,
    )
    session.add(org)
    await session.flush()

    await memberships.add_organization_members(
        session,
        org.id,
        [OrgMemberItem(user_id=creator_id, role=OrganizationRole.ADMIN)],
        creator_id,
    )

    log.info("org.created", org_id=org.id, name=org.name, creator=creator_id)
    return org


async def get_organization(organization_id: int, session: AsyncSession) -> Organization:
    """Get a live organization; raises 404 if missing or deleted."""
    return await memberships.get_live_organization(session, organization_id)


async def list_user_organizations(
    user_id: str, session: AsyncSession
) -> list[tuple[Organization, str]]:
    """Live organizations the user actively belongs to, with the user's role."""
    result = await session.execute(
        select(Organization, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.deleted_at.is_(None),
            Organization.deleted_at.is_(None),
        )
        .order_by(Organization.id)
    )
    return [(org, role) for org, role in result.all()]


async def search_organizations(
    query: str, page: int, per_page: int, session: AsyncSession
) -> tuple[list[Organization], Pagination]:
    """Live organizations whose name, description or type contains ``query``."""
    stmt = select(Organization).where(Organization.deleted_at.is_(None))
    query = query.strip()
    if query:
        stmt = stmt.where(
            or_(
                Organization.name.icontains(query, autoescape=True),
                Organization.description.icontains(query, autoescape=True),
                Organization.type.icontains(query, autoescape=True),
            )
        )
    return await paginate(session, stmt.order_by(Organization.id), page, per_page)


async def update_organization(
    organization_id: int,
    req: OrgUpdateRequest,
    actor_id: str,
    session: AsyncSession,
) -> Organization:
    org = await get_organization(organization_id, session)

    changes = req.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(org, field, value)

    org.updated_by = actor_id
    org.updated_at = _utcnow()
    session.add(org)
    await session.flush()

    log.info("org.updated", org_id=org.id, fields=sorted(changes))
    return org


async def delete_organization(
    organization_id: int, actor_id: str, session: AsyncSession
) -> None:
    """Soft-delete an organization together with everything nested in it."""
    org = await get_organization(organization_id, session)
    now = _utcnow()

    group_members = await _soft_delete_where(
        session, GroupMember, actor_id, now, GroupMember.organization_id == organization_id
    )
    groups = await _soft_delete_where(
        session, OrganizationGroup, actor_id, now, OrganizationGroup.organization_id == organization_id
    )
    members = await _soft_delete_where(
        session, OrganizationMember, actor_id, now, OrganizationMember.organization_id == organization_id
    )

    org.deleted_at = now
    org.deleted_by = actor_id
    org.updated_at = now
    session.add(org)
    await session.flush()

    log.info(
        "org.deleted",
        org_id=organization_id,
        actor=actor_id,
        members=members,
        groups=groups,
        group_members=group_members,
    )


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------

async def list_groups(organization_id: int, session: AsyncSession) -> list[OrganizationGroup]:
    await get_organization(organization_id, session)
    result = await session.execute(
        select(OrganizationGroup)
        .where(
            OrganizationGroup.organization_id == organization_id,
            OrganizationGroup.deleted_at.is_(None),
        )
        .order_by(OrganizationGroup.id)
    )
    return list(result.scalars().all())


async def create_group(
    organization_id: int,
    req: GroupCreateRequest,
    actor_id: str,
    session: AsyncSession,
) -> OrganizationGroup:
    """Create a group inside an organization, optionally with initial members."""
    await get_organization(organization_id, session)

    group = OrganizationGroup(
        organization_id=organization_id,
        name=req.name,
        description=req.description,
        created_by=actor_id,
    )
    session.add(group)
    await session.flush()

    if req.members:
        await memberships.add_group_members(
            session,
            group.id,
            [GroupMemberItem(user_id=user_id) for user_id in req.members],
            actor_id,
        )

    log.info(
        "group.created",
        group_id=group.id,
        org_id=organization_id,
        members=len(req.members),
    )
    return group


async def get_group(group_id: int, session: AsyncSession) -> OrganizationGroup:
    return await memberships.get_live_group(session, group_id)


async def update_group(
    group_id: int,
    req: GroupUpdateRequest,
    actor_id: str,
    session: AsyncSession,
) -> OrganizationGroup:
    group = await get_group(group_id, session)

    changes = req.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(group, field, value)

    group.updated_by = actor_id
    group.updated_at = _utcnow()
    session.add(group)
    await session.flush()

    log.info("group.updated", group_id=group.id, fields=sorted(changes))
    return group


async def delete_group(group_id: int, actor_id: str, session: AsyncSession) -> None:
    """Soft-delete a group and its memberships."""
    group = await get_group(group_id, session)
    now = _utcnow()

    members = await _soft_delete_where(
        session, GroupMember, actor_id, now, GroupMember.group_id == group_id
    )

    group.deleted_at = now
    group.deleted_by = actor_id
    group.updated_at = now
    session.add(group)
    await session.flush()

    log.info("group.deleted", group_id=group_id, org_id=group.organization_id, members=members)
