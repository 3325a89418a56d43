"""
Organization API endpoints.

GET    /api/v1/orgs                                       Orgs the caller belongs to, with role
GET    /api/v1/orgs/search                                Search all orgs (paginated)
POST   /api/v1/orgs                                       Create an org (app admin)
GET    /api/v1/orgs/{organizationId}                      Get org details
PATCH  /api/v1/orgs/{organizationId}                      Update org name/description
DELETE /api/v1/orgs/{organizationId}                      Soft-delete org and its contents
GET    /api/v1/orgs/{organizationId}/members              List org members
GET    /api/v1/orgs/{organizationId}/members/search       Search org members (paginated)
GET    /api/v1/orgs/{organizationId}/members/candidates   Users that can be added (paginated)
POST   /api/v1/orgs/{organizationId}/members              Add (or restore) members
PATCH  /api/v1/orgs/{organizationId}/members/{userId}     Change a member's role
DELETE /api/v1/orgs/{organizationId}/members/{userId}     Remove a member
GET    /api/v1/orgs/{organizationId}/groups               List groups
POST   /api/v1/orgs/{organizationId}/groups               Create a group
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    AuthenticatedUser,
    path_param,
    require_app_admin,
    require_authenticated,
    require_organization_member,
    require_permission,
)
from app.core.database import get_session
from app.core.resources import org_resource
from app.services import memberships
from app.services import organizations as org_service
from teamspace_shared.schemas.organizations import (
    GroupCreateRequest,
    GroupListResponse,
    GroupResponse,
    MemberSummary,
    MemberSummaryPageResponse,
    MyOrganizationListResponse,
    MyOrganizationResponse,
    OrgCreateRequest,
    OrgMemberListResponse,
    OrgMemberResponse,
    OrgMemberRoleUpdateRequest,
    OrgMembersAddRequest,
    OrgPageResponse,
    OrgResponse,
    OrgUpdateRequest,
)
from teamspace_shared.schemas.users import UserSummary, UserSummaryPageResponse

router = APIRouter()

_organization_id = path_param("organizationId")


def org_target(*subpath: str):
    """Resource extractor for ``org:<organizationId>[:subpath]``."""
    return lambda params: org_resource(_organization_id(params), *subpath)


def member_summaries(rows) -> list[MemberSummary]:
    """(user, organization role) rows as picker entries."""
    return [
        MemberSummary(user_id=user.id, name=user.name, email=user.email, role=role)
        for user, role in rows
    ]


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

@router.get("/orgs", response_model=MyOrganizationListResponse)
async def list_my_orgs(
    auth: AuthenticatedUser = Depends(require_authenticated),
    session: AsyncSession = Depends(get_session),
):
    """Organizations the caller is an active member of, with their role."""
    rows = await org_service.list_user_organizations(auth.user_id, session)
    return MyOrganizationListResponse(
        data=[
            MyOrganizationResponse(**OrgResponse.model_validate(org).model_dump(), role=role)
            for org, role in rows
        ]
    )


@router.get("/orgs/search", response_model=OrgPageResponse)
async def search_orgs(
    q: str = Query("", max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100),
    auth: AuthenticatedUser = Depends(require_authenticated),
    session: AsyncSession = Depends(get_session),
):
    orgs, pagination = await org_service.search_organizations(q, page, per_page, session)
    return OrgPageResponse(
        data=[OrgResponse.model_validate(o) for o in orgs],
        pagination=pagination,
    )


@router.post("/orgs", response_model=OrgResponse, status_code=201)
async def create_org(
    body: OrgCreateRequest,
    auth: AuthenticatedUser = Depends(require_app_admin),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes its admin."""
    org = await org_service.create_organization(body, auth.user_id, session)
    return OrgResponse.model_validate(org)


@router.get("/orgs/{organizationId:int}", response_model=OrgResponse)
async def get_org(
    organizationId: int,
    auth: AuthenticatedUser = Depends(require_organization_member(_organization_id)),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.get_organization(organizationId, session)
    return OrgResponse.model_validate(org)


@router.patch("/orgs/{organizationId:int}", response_model=OrgResponse)
async def update_org(
    organizationId: int,
    body: OrgUpdateRequest,
    auth: AuthenticatedUser = Depends(require_permission(org_target(), "update")),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.update_organization(organizationId, body, auth.user_id, session)
    return OrgResponse.model_validate(org)


@router.delete("/orgs/{organizationId:int}", status_code=204)
async def delete_org(
    organizationId: int,
    auth: AuthenticatedUser = Depends(require_permission(org_target(), "delete")),
    session: AsyncSession = Depends(get_session),
):
    """Soft-delete the org, its memberships, its groups and their memberships."""
    await org_service.delete_organization(organizationId, auth.user_id, session)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Organization members
# ---------------------------------------------------------------------------

@router.get("/orgs/{organizationId:int}/members", response_model=OrgMemberListResponse)
async def list_org_members(
    organizationId: int,
    auth: AuthenticatedUser = Depends(require_organization_member(_organization_id)),
    session: AsyncSession = Depends(get_session),
):
    rows = await memberships.list_organization_members(session, organizationId)
    return OrgMemberListResponse(data=[OrgMemberResponse.model_validate(r) for r in rows])


@router.get(
    "/orgs/{organizationId:int}/members/search",
    response_model=MemberSummaryPageResponse,
)
async def search_org_members(
    organizationId: int,
    q: str = Query("", max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100),
    auth: AuthenticatedUser = Depends(require_organization_member(_organization_id)),
    session: AsyncSession = Depends(get_session),
):
    """Search active members, e.g. to pick people for a group."""
    rows, pagination = await memberships.search_organization_members(
        session, organizationId, q, page, per_page
    )
    return MemberSummaryPageResponse(data=member_summaries(rows), pagination=pagination)


@router.get(
    "/orgs/{organizationId:int}/members/candidates",
    response_model=UserSummaryPageResponse,
)
async def list_org_member_candidates(
    organizationId: int,
    q: str = Query("", max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100),
    auth: AuthenticatedUser = Depends(require_permission(org_target("members"), "create")),
    session: AsyncSession = Depends(get_session),
):
    """Users that are not active members and so can be added."""
    users, pagination = await memberships.available_users_for_organization(
        session, organizationId, q, page, per_page
    )
    return UserSummaryPageResponse(
        data=[UserSummary.model_validate(u) for u in users],
        pagination=pagination,
    )


@router.post(
    "/orgs/{organizationId:int}/members",
    response_model=OrgMemberListResponse,
    status_code=201,
)
async def add_org_members(
    organizationId: int,
    body: OrgMembersAddRequest,
    auth: AuthenticatedUser = Depends(require_permission(org_target("members"), "create")),
    session: AsyncSession = Depends(get_session),
):
    """Add members. Previously removed members are restored in place."""
    rows = await memberships.add_organization_members(
        session, organizationId, body.members, auth.user_id
    )
    return OrgMemberListResponse(data=[OrgMemberResponse.model_validate(r) for r in rows])


@router.patch(
    "/orgs/{organizationId:int}/members/{userId}",
    response_model=OrgMemberResponse,
)
async def update_org_member(
    organizationId: int,
    userId: str,
    body: OrgMemberRoleUpdateRequest,
    auth: AuthenticatedUser = Depends(require_permission(org_target("members"), "update")),
    session: AsyncSession = Depends(get_session),
):
    row = await memberships.update_organization_member_role(
        session, organizationId, userId, body.role.value, auth.user_id
    )
    return OrgMemberResponse.model_validate(row)


@router.delete("/orgs/{organizationId:int}/members/{userId}", status_code=204)
async def remove_org_member(
    organizationId: int,
    userId: str,
    auth: AuthenticatedUser = Depends(require_permission(org_target("members"), "delete")),
    session: AsyncSession = Depends(get_session),
):
    await memberships.remove_organization_member(session, organizationId, userId, auth.user_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Organization groups
# ---------------------------------------------------------------------------

@router.get("/orgs/{organizationId:int}/groups", response_model=GroupListResponse)
async def list_org_groups(
    organizationId: int,
    auth: AuthenticatedUser = Depends(require_organization_member(_organization_id)),
    session: AsyncSession = Depends(get_session),
):
    groups = await org_service.list_groups(organizationId, session)
    return GroupListResponse(data=[GroupResponse.model_validate(g) for g in groups])


@router.post(
    "/orgs/{organizationId:int}/groups",
    response_model=GroupResponse,
    status_code=201,
)
async def create_org_group(
    organizationId: int,
    body: GroupCreateRequest,
    auth: AuthenticatedUser = Depends(require_permission(org_target("groups"), "create")),
    session: AsyncSession = Depends(get_session),
):
    group = await org_service.create_group(organizationId, body, auth.user_id, session)
    return GroupResponse.model_validate(group)
