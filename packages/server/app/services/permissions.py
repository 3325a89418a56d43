"""
Permission aggregation for client-side UI filtering.

The descriptor only tells a presentation layer which controls to hide.
It is never consulted when a protected operation actually runs.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.services import memberships
from teamspace_shared.schemas.common import OrganizationRole
from teamspace_shared.schemas.permissions import (
    GroupRoleEntry,
    OrgRoleEntry,
    PermissionDescriptor,
)

log = structlog.get_logger()


async def describe_permissions(session: AsyncSession, user_id: str) -> PermissionDescriptor:
    """Flatten a user's app, organization and group roles.

    Groups inside organizations the user administers are listed even without
    a group membership row; their ``role`` is None to mark the right as
    inherited rather than explicit.
    """
    app_role = await memberships.get_app_role(session, user_id)
    org_roles = await memberships.list_user_organization_roles(session, user_id)
    explicit_group_roles = dict(await memberships.list_user_group_roles(session, user_id))

    inherited_group_ids: list[int] = []
    for org_id, role in org_roles:
        if role == OrganizationRole.ADMIN.value:
            inherited_group_ids.extend(
                await memberships.list_organization_group_ids(session, org_id)
            )

    group_ids = sorted(set(explicit_group_roles) | set(inherited_group_ids))
    owners = await memberships.get_group_organization_ids(session, group_ids)

    group_roles = [
        GroupRoleEntry(
            group_id=group_id,
            org_id=owners[group_id],
            role=explicit_group_roles.get(group_id),
        )
        for group_id in group_ids
        if group_id in owners
    ]

    log.debug(
        "permissions.described",
        user_id=user_id,
        orgs=len(org_roles),
        groups=len(group_roles),
    )
    return PermissionDescriptor(
        app_role=app_role,
        org_roles=[OrgRoleEntry(org_id=org_id, role=role) for org_id, role in org_roles],
        group_roles=group_roles,
    )
