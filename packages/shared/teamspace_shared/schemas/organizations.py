"""
Organization and group Pydantic schemas shared between server and clients.

Covers: organization/group CRUD request/response and membership
add/update/list payloads for both levels of the hierarchy.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import GroupRole, OrganizationRole, Pagination


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    description: Optional[str] = Field(None, max_length=2000)
    type: str = Field(..., min_length=1, max_length=50, description="Free-form organization type")


class OrgUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)


class OrgResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    type: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MyOrganizationResponse(OrgResponse):
    """An organization the caller belongs to, with the caller's role in it."""
    role: OrganizationRole


class MyOrganizationListResponse(BaseModel):
    data: list[MyOrganizationResponse]


class OrgPageResponse(BaseModel):
    data: list[OrgResponse]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Organization memberships
# ---------------------------------------------------------------------------

class OrgMemberItem(BaseModel):
    user_id: str = Field(..., min_length=1)
    role: OrganizationRole = OrganizationRole.MEMBER


class OrgMembersAddRequest(BaseModel):
    members: list[OrgMemberItem] = Field(..., min_length=1)


class OrgMemberRoleUpdateRequest(BaseModel):
    role: OrganizationRole


class OrgMemberResponse(BaseModel):
    user_id: str
    organization_id: int
    role: OrganizationRole
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgMemberListResponse(BaseModel):
    data: list[OrgMemberResponse]


class MemberSummary(BaseModel):
    """An organization member as shown in search and group-add pickers."""
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: OrganizationRole


class MemberSummaryPageResponse(BaseModel):
    data: list[MemberSummary]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------

class GroupCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    members: list[str] = Field(
        default=[],
        description="User ids added to the new group with the member role",
    )


class GroupUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)


class GroupResponse(BaseModel):
    id: int
    organization_id: int
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class GroupListResponse(BaseModel):
    data: list[GroupResponse]


# ---------------------------------------------------------------------------
# Group memberships
# ---------------------------------------------------------------------------

class GroupMemberItem(BaseModel):
    user_id: str = Field(..., min_length=1)
    role: GroupRole = GroupRole.MEMBER


class GroupMembersAddRequest(BaseModel):
    members: list[GroupMemberItem] = Field(..., min_length=1)


class GroupMemberRoleUpdateRequest(BaseModel):
    role: GroupRole


class GroupMemberResponse(BaseModel):
    user_id: str
    group_id: int
    organization_id: int
    role: GroupRole
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class GroupMemberListResponse(BaseModel):
    data: list[GroupMemberResponse]
