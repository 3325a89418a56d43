"""
Tests for listing, search and add-candidate operations.

Covers:
- "My organizations" with the caller's role
- Paginated organization, user and member search
- Add candidates for organizations and groups (active members excluded)
- The gates in front of each of these endpoints
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from app.core.errors import NotFoundError
from app.services import memberships
from app.services import organizations as org_service
from app.services import users as user_service


@pytest.fixture
async def directory(seed):
    """Two live orgs and one deleted org; one group; a deleted user."""
    await seed.user("root", role="admin")
    await seed.user("owner", role="user")
    await seed.user("member", role="user")
    await seed.user("evaluator", role="user")
    await seed.user("outsider", role="user")
    ghost = await seed.user("ghost", role="user")
    ghost.deleted_at = datetime.now(timezone.utc)

    acme = await seed.org("Acme")
    beta = await seed.org("Beta Labs")
    beta.type = "research"
    beta.description = "Applied 100% research"
    gone = await seed.org("Gone Corp")
    gone.deleted_at = datetime.now(timezone.utc)

    group = await seed.group(acme.id)
    await seed.org_member(acme.id, "owner", "admin")
    await seed.org_member(acme.id, "member", "member")
    await seed.org_member(acme.id, "evaluator", "member")
    await seed.org_member(acme.id, "ghost", "member")
    former = await seed.org_member(acme.id, "outsider", "member")
    former.deleted_at = datetime.now(timezone.utc)
    await seed.org_member(beta.id, "owner", "member")
    await seed.org_member(gone.id, "owner", "admin")
    await seed.group_member(group, "evaluator", "evaluator")
    await seed.commit()
    return {"acme": acme.id, "beta": beta.id, "gone": gone.id, "group": group.id}


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

class TestOrganizationListing:
    @pytest.mark.asyncio
    async def test_user_organizations_with_role(self, session, directory):
        rows = await org_service.list_user_organizations("owner", session)
        assert [(org.id, role) for org, role in rows] == [
            (directory["acme"], "admin"),
            (directory["beta"], "member"),
        ]

    @pytest.mark.asyncio
    async def test_removed_membership_not_listed(self, session, directory):
        assert await org_service.list_user_organizations("outsider", session) == []

    @pytest.mark.asyncio
    async def test_search_matches_name_description_and_type(self, session, directory):
        for query in ("beta", "RESEARCH", "applied"):
            orgs, pagination = await org_service.search_organizations(query, 1, 25, session)
            assert [o.id for o in orgs] == [directory["beta"]]
            assert pagination.total == 1

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, session, directory):
        orgs, _ = await org_service.search_organizations("100%", 1, 25, session)
        assert [o.id for o in orgs] == [directory["beta"]]

        orgs, _ = await org_service.search_organizations("_", 1, 25, session)
        assert orgs == []

    @pytest.mark.asyncio
    async def test_blank_query_pages_all_live_orgs(self, session, directory):
        first, pagination = await org_service.search_organizations("  ", 1, 1, session)
        second, _ = await org_service.search_organizations("", 2, 1, session)
        third, _ = await org_service.search_organizations("", 3, 1, session)

        assert [o.id for o in first + second] == [directory["acme"], directory["beta"]]
        assert third == []
        assert pagination.model_dump() == {"page": 1, "per_page": 1, "total": 2, "total_pages": 2}


class TestUserSearch:
    @pytest.mark.asyncio
    async def test_case_insensitive_and_skips_deleted(self, session, directory):
        users, pagination = await user_service.search_users("EXAMPLE.COM", 1, 25, session)
        assert sorted(u.id for u in users) == ["evaluator", "member", "outsider", "owner", "root"]
        assert pagination.total == 5

    @pytest.mark.asyncio
    async def test_pagination(self, session, directory):
        users, pagination = await user_service.search_users("", 3, 2, session)
        assert len(users) == 1
        assert (pagination.total, pagination.total_pages) == (5, 3)


class TestMemberSearch:
    @pytest.mark.asyncio
    async def test_active_members_with_role(self, session, directory):
        rows, pagination = await memberships.search_organization_members(
            session, directory["acme"], "", 1, 25
        )
        assert [(u.id, role) for u, role in rows] == [
            ("owner", "admin"),
            ("member", "member"),
            ("evaluator", "member"),
        ]
        assert pagination.total == 3

    @pytest.mark.asyncio
    async def test_query_filters(self, session, directory):
        rows, _ = await memberships.search_organization_members(
            session, directory["acme"], "eval", 1, 25
        )
        assert [u.id for u, _ in rows] == ["evaluator"]

    @pytest.mark.asyncio
    async def test_deleted_org_is_404(self, session, directory):
        with pytest.raises(NotFoundError):
            await memberships.search_organization_members(session, directory["gone"], "", 1, 25)


class TestAddCandidates:
    @pytest.mark.asyncio
    async def test_org_candidates_exclude_active_members(self, session, directory):
        users, pagination = await memberships.available_users_for_organization(
            session, directory["acme"], "", 1, 25
        )
        # outsider's membership was removed, so adding them again is a restore.
        assert sorted(u.id for u in users) == ["outsider", "root"]
        assert pagination.total == 2

    @pytest.mark.asyncio
    async def test_org_candidates_query(self, session, directory):
        users, _ = await memberships.available_users_for_organization(
            session, directory["beta"], "mem", 1, 25
        )
        assert [u.id for u in users] == ["member"]

    @pytest.mark.asyncio
    async def test_group_candidates_come_from_owning_org(self, session, directory):
        rows, pagination = await memberships.available_members_for_group(
            session, directory["group"], "", 1, 25
        )
        assert [(u.id, role) for u, role in rows] == [("owner", "admin"), ("member", "member")]
        assert pagination.total == 2

    @pytest.mark.asyncio
    async def test_group_candidates_missing_group(self, session, directory):
        with pytest.raises(NotFoundError):
            await memberships.available_members_for_group(session, 9999, "", 1, 25)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestOrganizationEndpoints:
    @pytest.mark.asyncio
    async def test_my_orgs(self, client: AsyncClient, directory, auth_headers):
        assert (await client.get("/api/v1/orgs")).status_code == 401

        resp = await client.get("/api/v1/orgs", headers=auth_headers("owner"))
        assert resp.status_code == 200
        assert [(o["id"], o["name"], o["role"]) for o in resp.json()["data"]] == [
            (directory["acme"], "Acme", "admin"),
            (directory["beta"], "Beta Labs", "member"),
        ]

    @pytest.mark.asyncio
    async def test_org_search(self, client: AsyncClient, directory, auth_headers):
        resp = await client.get(
            "/api/v1/orgs/search",
            params={"q": "labs", "per_page": 10},
            headers=auth_headers("outsider"),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [o["id"] for o in body["data"]] == [directory["beta"]]
        assert body["pagination"] == {"page": 1, "per_page": 10, "total": 1, "total_pages": 1}

    @pytest.mark.asyncio
    async def test_org_search_rejects_bad_paging(self, client: AsyncClient, directory, auth_headers):
        resp = await client.get(
            "/api/v1/orgs/search", params={"per_page": 500}, headers=auth_headers("owner")
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_FAILED"

    @pytest.mark.asyncio
    async def test_member_search_requires_membership(self, client: AsyncClient, directory, auth_headers):
        url = f"/api/v1/orgs/{directory['acme']}/members/search"
        assert (await client.get(url, headers=auth_headers("outsider"))).status_code == 403

        resp = await client.get(url, params={"q": "own"}, headers=auth_headers("member"))
        assert resp.status_code == 200
        assert resp.json()["data"] == [
            {"user_id": "owner", "name": "Owner", "email": "owner@example.com", "role": "admin"}
        ]

    @pytest.mark.asyncio
    async def test_member_candidates_need_member_create(self, client: AsyncClient, directory, auth_headers):
        url = f"/api/v1/orgs/{directory['acme']}/members/candidates"
        assert (await client.get(url, headers=auth_headers("member"))).status_code == 403

        for user in ("owner", "root"):
            resp = await client.get(url, headers=auth_headers(user))
            assert resp.status_code == 200
            assert sorted(u["id"] for u in resp.json()["data"]) == ["outsider", "root"]


class TestGroupEndpoints:
    @pytest.mark.asyncio
    async def test_get_group(self, client: AsyncClient, directory, auth_headers):
        url = f"/api/v1/groups/{directory['group']}"
        for user in ("evaluator", "owner", "root"):
            resp = await client.get(url, headers=auth_headers(user))
            assert resp.status_code == 200
            assert resp.json()["organization_id"] == directory["acme"]

        # An org member with no group role gets nothing on the group itself.
        assert (await client.get(url, headers=auth_headers("member"))).status_code == 403
        assert (await client.get(url, headers=auth_headers("outsider"))).status_code == 403

    @pytest.mark.asyncio
    async def test_get_missing_group_as_app_admin(self, client: AsyncClient, directory, auth_headers):
        resp = await client.get("/api/v1/groups/9999", headers=auth_headers("root"))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_group_candidates(self, client: AsyncClient, directory, auth_headers):
        url = f"/api/v1/groups/{directory['group']}/members/candidates"
        assert (await client.get(url, headers=auth_headers("evaluator"))).status_code == 403

        resp = await client.get(url, headers=auth_headers("owner"))
        assert resp.status_code == 200
        body = resp.json()
        assert [m["user_id"] for m in body["data"]] == ["owner", "member"]
        assert body["pagination"]["total"] == 2


class TestUserSearchEndpoint:
    @pytest.mark.asyncio
    async def test_needs_app_role(self, client: AsyncClient, seed, directory, auth_headers):
        await seed.user("norole")
        await seed.commit()

        url = "/api/v1/users/search"
        assert (await client.get(url, headers=auth_headers("norole"))).status_code == 403

        resp = await client.get(url, params={"q": "root"}, headers=auth_headers("outsider"))
        assert resp.status_code == 200
        assert [u["id"] for u in resp.json()["data"]] == ["root"]
