"""
Role resolution and permission checks.

Subjects are recomputed from the membership store on every check; nothing
about a user's roles is cached between requests. Any store error propagates
and fails the check.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ForbiddenError, UnauthenticatedError
from app.core.policy import PolicyEngine, get_policy_engine
from app.core.resources import decode_resource
from app.services import memberships
from teamspace_shared.schemas.common import AppRole

log = structlog.get_logger()


def user_subject(user_id: str) -> str:
    return f"user:{user_id}"


def app_subject(role: str) -> str:
    return f"app:{role}"


def org_subjects(organization_id: int, role: str) -> list[str]:
    """Organization-specific token plus the generic role class."""
    return [f"org:{organization_id}:{role}", f"org:{role}"]


def group_subjects(group_id: int, role: str) -> list[str]:
    return [f"group:{group_id}:{role}", f"group:{role}"]


# ---------------------------------------------------------------------------
# Role resolver
# ---------------------------------------------------------------------------

async def get_role_subjects(
    session: AsyncSession,
    user_id: str,
    organization_id: Optional[int] = None,
    group_id: Optional[int] = None,
) -> list[str]:
    """Every subject the user holds in the given organization/group context.

    A group context also pulls in the user's role in the group's owning
    organization, so an org admin holds ``org:admin`` for every group
    nested in that organization without a group membership row.
    """
    subjects = [user_subject(user_id)]

    app_role = await memberships.get_app_role(session, user_id)
    if app_role:
        subjects.append(app_subject(app_role))

    if organization_id is not None:
        org_role = await memberships.get_organization_role(session, user_id, organization_id)
        if org_role:
            subjects.extend(org_subjects(organization_id, org_role))

    if group_id is not None:
        group_role = await memberships.get_group_role(session, user_id, group_id)
        if group_role:
            subjects.extend(group_subjects(group_id, group_role))

        owner_id = await memberships.get_group_organization_id(session, group_id)
        if owner_id is not None:
            org_role = await memberships.get_organization_role(session, user_id, owner_id)
            if org_role:
                subjects.extend(org_subjects(owner_id, org_role))

    return list(dict.fromkeys(subjects))


async def check_permission(
    session: AsyncSession,
    user_id: str,
    resource: str,
    action: str,
    engine: Optional[PolicyEngine] = None,
) -> bool:
    """True if any of the user's subjects may perform ``action`` on ``resource``."""
    engine = engine or get_policy_engine()
    # Policy must load before any store read.
    await engine.get_enforcer()

    scope = decode_resource(resource)
    subjects = await get_role_subjects(
        session,
        user_id,
        organization_id=scope.organization_id,
        group_id=scope.group_id,
    )

    for subject in subjects:
        if await engine.enforce(subject, resource, action):
            log.debug(
                "rbac.allowed",
                user_id=user_id,
                resource=resource,
                action=action,
                subject=subject,
            )
            return True

    log.info(
        "rbac.denied",
        user_id=user_id,
        resource=resource,
        action=action,
        subjects=subjects,
    )
    return False


async def get_user_app_role(session: AsyncSession, user_id: str) -> Optional[str]:
    return await memberships.get_app_role(session, user_id)


async def is_organization_member(
    session: AsyncSession, user_id: str, organization_id: int
) -> bool:
    return await memberships.get_organization_role(session, user_id, organization_id) is not None


async def is_group_member(session: AsyncSession, user_id: str, group_id: int) -> bool:
    return await memberships.get_group_role(session, user_id, group_id) is not None


# ---------------------------------------------------------------------------
# Gate procedures (framework independent)
# ---------------------------------------------------------------------------

def require_actor(actor_id: Optional[str]) -> str:
    """The actor id, or UnauthenticatedError when the request is anonymous."""
    if not actor_id:
        raise UnauthenticatedError()
    return actor_id


async def authorize_permission(
    session: AsyncSession,
    actor_id: Optional[str],
    resource: str,
    action: str,
    engine: Optional[PolicyEngine] = None,
) -> str:
    """Raise unless the actor may perform ``action`` on ``resource``."""
    user_id = require_actor(actor_id)
    if not await check_permission(session, user_id, resource, action, engine=engine):
        raise ForbiddenError()
    return user_id


async def authorize_app_admin(session: AsyncSession, actor_id: Optional[str]) -> str:
    user_id = require_actor(actor_id)
    if await get_user_app_role(session, user_id) != AppRole.ADMIN.value:
        log.info("rbac.denied", user_id=user_id, gate="app_admin")
        raise ForbiddenError()
    return user_id


async def authorize_organization_member(
    session: AsyncSession, actor_id: Optional[str], organization_id: int
) -> str:
    """Application admins pass; everyone else needs an active org membership."""
    user_id = require_actor(actor_id)
    if await get_user_app_role(session, user_id) == AppRole.ADMIN.value:
        return user_id
    if not await is_organization_member(session, user_id, organization_id):
        log.info("rbac.denied", user_id=user_id, gate="organization_member", organization_id=organization_id)
        raise ForbiddenError("You are not a member of this organization")
    return user_id


async def authorize_group_member(
    session: AsyncSession, actor_id: Optional[str], group_id: int
) -> str:
    """Application admins pass; everyone else needs an active group membership."""
    user_id = require_actor(actor_id)
    if await get_user_app_role(session, user_id) == AppRole.ADMIN.value:
        return user_id
    if not await is_group_member(session, user_id, group_id):
        log.info("rbac.denied", user_id=user_id, gate="group_member", group_id=group_id)
        raise ForbiddenError("You are not a member of this group")
    return user_id
