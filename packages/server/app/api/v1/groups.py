"""
Group API endpoints.

GET    /api/v1/groups/{groupId}                      Get group details
PATCH  /api/v1/groups/{groupId}                      Update group name/description
DELETE /api/v1/groups/{groupId}                      Soft-delete group and memberships
GET    /api/v1/groups/{groupId}/members              List group members
GET    /api/v1/groups/{groupId}/members/candidates   Org members that can be added (paginated)
POST   /api/v1/groups/{groupId}/members              Add (or restore) members
PATCH  /api/v1/groups/{groupId}/members/{userId}     Change a member's role
DELETE /api/v1/groups/{groupId}/members/{userId}     Remove a member

Admins of the owning organization pass every permission gate here through
role inheritance, without a group membership of their own.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.organizations import member_summaries
from app.core.auth import (
    AuthenticatedUser,
    path_param,
    require_group_member,
    require_permission,
)
from app.core.database import get_session
from app.core.resources import group_resource
from app.services import memberships
from app.services import organizations as org_service
from teamspace_shared.schemas.organizations import (
    GroupMemberListResponse,
    GroupMemberResponse,
    GroupMemberRoleUpdateRequest,
    GroupMembersAddRequest,
    GroupResponse,
    GroupUpdateRequest,
    MemberSummaryPageResponse,
)

router = APIRouter()

_group_id = path_param("groupId")


def group_target(*subpath: str):
    return lambda params: group_resource(_group_id(params), *subpath)


@router.get("/{groupId:int}", response_model=GroupResponse)
async def get_group(
    groupId: int,
    auth: AuthenticatedUser = Depends(require_permission(group_target(), "read")),
    session: AsyncSession = Depends(get_session),
):
    group = await org_service.get_group(groupId, session)
    return GroupResponse.model_validate(group)


@router.patch("/{groupId:int}", response_model=GroupResponse)
async def update_group(
    groupId: int,
    body: GroupUpdateRequest,
    auth: AuthenticatedUser = Depends(require_permission(group_target(), "update")),
    session: AsyncSession = Depends(get_session),
):
    group = await org_service.update_group(groupId, body, auth.user_id, session)
    return GroupResponse.model_validate(group)


@router.delete("/{groupId:int}", status_code=204)
async def delete_group(
    groupId: int,
    auth: AuthenticatedUser = Depends(require_permission(group_target(), "delete")),
    session: AsyncSession = Depends(get_session),
):
    await org_service.delete_group(groupId, auth.user_id, session)
    return Response(status_code=204)


@router.get("/{groupId:int}/members", response_model=GroupMemberListResponse)
async def list_group_members(
    groupId: int,
    auth: AuthenticatedUser = Depends(require_group_member(_group_id)),
    session: AsyncSession = Depends(get_session),
):
    rows = await memberships.list_group_members(session, groupId)
    return GroupMemberListResponse(data=[GroupMemberResponse.model_validate(r) for r in rows])


@router.get("/{groupId:int}/members/candidates", response_model=MemberSummaryPageResponse)
async def list_group_member_candidates(
    groupId: int,
    q: str = Query("", max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100),
    auth: AuthenticatedUser = Depends(require_permission(group_target("members"), "create")),
    session: AsyncSession = Depends(get_session),
):
    """Members of the owning organization not yet active in this group."""
    rows, pagination = await memberships.available_members_for_group(
        session, groupId, q, page, per_page
    )
    return MemberSummaryPageResponse(data=member_summaries(rows), pagination=pagination)


@router.post("/{groupId:int}/members", response_model=GroupMemberListResponse, status_code=201)
async def add_group_members(
    groupId: int,
    body: GroupMembersAddRequest,
    auth: AuthenticatedUser = Depends(require_permission(group_target("members"), "create")),
    session: AsyncSession = Depends(get_session),
):
    rows = await memberships.add_group_members(session, groupId, body.members, auth.user_id)
    return GroupMemberListResponse(data=[GroupMemberResponse.model_validate(r) for r in rows])


@router.patch("/{groupId:int}/members/{userId}", response_model=GroupMemberResponse)
async def update_group_member(
    groupId: int,
    userId: str,
    body: GroupMemberRoleUpdateRequest,
    auth: AuthenticatedUser = Depends(require_permission(group_target("members"), "update")),
    session: AsyncSession = Depends(get_session),
):
    row = await memberships.update_group_member_role(
        session, groupId, userId, body.role.value, auth.user_id
    )
    return GroupMemberResponse.model_validate(row)


@router.delete("/{groupId:int}/members/{userId}", status_code=204)
async def remove_group_member(
    groupId: int,
    userId: str,
    auth: AuthenticatedUser = Depends(require_permission(group_target("members"), "delete")),
    session: AsyncSession = Depends(get_session),
):
    await memberships.remove_group_member(session, groupId, userId, auth.user_id)
    return Response(status_code=204)
