"""
Permission descriptor returned to clients for UI pre-filtering.

Never an authorization decision: the server re-checks every protected
operation at request time.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from .common import AppRole, GroupRole, OrganizationRole


class OrgRoleEntry(BaseModel):
    org_id: int
    role: OrganizationRole


class GroupRoleEntry(BaseModel):
    group_id: int
    org_id: int
    # None when the right is inherited from being an admin of the owning org.
    role: Optional[GroupRole] = None


class PermissionDescriptor(BaseModel):
    app_role: Optional[AppRole] = None
    org_roles: list[OrgRoleEntry] = []
    group_roles: list[GroupRoleEntry] = []
