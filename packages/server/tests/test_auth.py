"""
Tests for Authentication and Authorization dependencies.

Covers:
- JWT decoding and actor resolution (Bearer header, session cookie)
- Gate factories wired into a minimal app (constant and extracted resources)
- CSRF middleware
- Security headers middleware
"""

from __future__ import annotations

from typing import Optional

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from app.core.auth import (
    AuthenticatedUser,
    decode_jwt,
    get_actor_id,
    path_param,
    require_app_admin,
    require_authenticated,
    require_group_member,
    require_organization_member,
    require_permission,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import register_exception_handlers
from app.core.middleware import (
    CSRF_COOKIE_NAME,
    CSRF_HEADER_NAME,
    CSRFMiddleware,
    SECURITY_HEADERS,
    SecurityHeadersMiddleware,
)
from app.core.policy import get_policy_engine

settings = get_settings()


def make_token(user_id: str, secret: Optional[str] = None) -> str:
    return jwt.encode({"sub": user_id}, secret or settings.secret_key, algorithm=settings.jwt_algorithm)


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_decode_roundtrip(self):
        payload = decode_jwt(make_token("alice"))
        assert payload["sub"] == "alice"

    def test_wrong_secret_rejected(self):
        with pytest.raises(jwt.PyJWTError):
            decode_jwt(make_token("alice", secret="some-other-secret"))


# ---------------------------------------------------------------------------
# Integration Tests: Gates on a minimal app
# ---------------------------------------------------------------------------

def _gate_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/whoami")
    async def whoami(actor_id=Depends(get_actor_id)):
        return {"actor": actor_id}

    @app.get("/me")
    async def me(auth: AuthenticatedUser = Depends(require_authenticated)):
        return {"user": auth.user_id}

    @app.get("/admin")
    async def admin(auth: AuthenticatedUser = Depends(require_app_admin)):
        return {"user": auth.user_id}

    @app.get("/users")
    async def users(auth: AuthenticatedUser = Depends(require_permission("user:*", "read"))):
        return {"resource": auth.resource, "action": auth.action}

    @app.post("/orgs/{orgId:int}/members")
    async def add_members(
        orgId: int,
        auth: AuthenticatedUser = Depends(
            require_permission(lambda params: f"org:{params['orgId']}:members", "create")
        ),
    ):
        return {"resource": auth.resource, "user": auth.user_id}

    @app.get("/orgs/{orgId:int}")
    async def org(
        orgId: int,
        auth: AuthenticatedUser = Depends(require_organization_member(path_param("orgId"))),
    ):
        return {"user": auth.user_id}

    @app.get("/groups/{groupId:int}")
    async def group(
        groupId: int,
        auth: AuthenticatedUser = Depends(require_group_member(path_param("groupId"))),
    ):
        return {"user": auth.user_id}

    return app


@pytest.fixture
async def gate_client(session_factory, policy_engine):
    app = _gate_app()

    async def override_get_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_policy_engine] = lambda: policy_engine
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def people(seed):
    await seed.user("root", role="admin")
    await seed.user("alice", role="user")
    await seed.user("bob")
    org = await seed.org()
    group = await seed.group(org.id)
    await seed.org_member(org.id, "alice", "admin")
    await seed.group_member(group, "bob", "member")
    await seed.commit()
    return {"org": org.id, "group": group.id}


class TestActorResolution:
    @pytest.mark.asyncio
    async def test_anonymous(self, gate_client):
        resp = await gate_client.get("/whoami")
        assert resp.json() == {"actor": None}

    @pytest.mark.asyncio
    async def test_bearer_token(self, gate_client, auth_headers):
        resp = await gate_client.get("/whoami", headers=auth_headers("alice"))
        assert resp.json() == {"actor": "alice"}

    @pytest.mark.asyncio
    async def test_session_cookie(self, gate_client):
        gate_client.cookies.set(settings.session_cookie_name, make_token("bob"))
        resp = await gate_client.get("/whoami")
        assert resp.json() == {"actor": "bob"}

    @pytest.mark.asyncio
    async def test_tampered_token_is_anonymous(self, gate_client):
        token = make_token("alice", secret="forged")
        resp = await gate_client.get("/whoami", headers={"Authorization": f"Bearer {token}"})
        assert resp.json() == {"actor": None}

    @pytest.mark.asyncio
    async def test_token_without_subject_is_anonymous(self, gate_client):
        token = jwt.encode({"scope": "x"}, settings.secret_key, algorithm=settings.jwt_algorithm)
        resp = await gate_client.get("/whoami", headers={"Authorization": f"Bearer {token}"})
        assert resp.json() == {"actor": None}


class TestGateDependencies:
    @pytest.mark.asyncio
    async def test_require_authenticated(self, gate_client, auth_headers):
        assert (await gate_client.get("/me")).status_code == 401
        resp = await gate_client.get("/me", headers=auth_headers("anyone"))
        assert resp.json() == {"user": "anyone"}

    @pytest.mark.asyncio
    async def test_require_app_admin(self, gate_client, people, auth_headers):
        assert (await gate_client.get("/admin")).status_code == 401
        assert (await gate_client.get("/admin", headers=auth_headers("alice"))).status_code == 403
        assert (await gate_client.get("/admin", headers=auth_headers("root"))).status_code == 200

    @pytest.mark.asyncio
    async def test_constant_resource(self, gate_client, people, auth_headers):
        resp = await gate_client.get("/users", headers=auth_headers("alice"))
        assert resp.status_code == 200
        assert resp.json() == {"resource": "user:*", "action": "read"}

        # bob has no application role, so no app:user subject.
        assert (await gate_client.get("/users", headers=auth_headers("bob"))).status_code == 403

    @pytest.mark.asyncio
    async def test_extracted_resource(self, gate_client, people, auth_headers):
        org = people["org"]
        resp = await gate_client.post(f"/orgs/{org}/members", headers=auth_headers("alice"))
        assert resp.status_code == 200
        assert resp.json() == {"resource": f"org:{org}:members", "user": "alice"}

        assert (await gate_client.post(f"/orgs/{org}/members", headers=auth_headers("bob"))).status_code == 403

    @pytest.mark.asyncio
    async def test_unauthenticated_before_extraction(self, gate_client, people):
        resp = await gate_client.post(f"/orgs/{people['org']}/members")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_anonymous_never_reaches_extractors(self, session_factory, policy_engine):
        calls = []

        def extractor(params):
            calls.append(dict(params))
            raise AssertionError("extractor ran for an anonymous request")

        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/o/{orgId:int}", dependencies=[Depends(require_organization_member(extractor))])
        async def org_gate(orgId: int):
            return {}

        @app.get("/g/{groupId:int}", dependencies=[Depends(require_group_member(extractor))])
        async def group_gate(groupId: int):
            return {}

        @app.get("/p/{orgId:int}", dependencies=[Depends(require_permission(extractor, "read"))])
        async def permission_gate(orgId: int):
            return {}

        async def override_get_session():
            async with session_factory() as s:
                yield s

        app.dependency_overrides[get_session] = override_get_session
        app.dependency_overrides[get_policy_engine] = lambda: policy_engine
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            for path in ("/o/1", "/g/1", "/p/1"):
                resp = await ac.get(path)
                assert resp.status_code == 401
                assert resp.json()["error"]["code"] == "UNAUTHENTICATED"

        assert calls == []

    @pytest.mark.asyncio
    async def test_membership_gates(self, gate_client, people, auth_headers):
        org, group = people["org"], people["group"]
        assert (await gate_client.get(f"/orgs/{org}", headers=auth_headers("alice"))).status_code == 200
        assert (await gate_client.get(f"/orgs/{org}", headers=auth_headers("bob"))).status_code == 403
        assert (await gate_client.get(f"/orgs/{org}", headers=auth_headers("root"))).status_code == 200

        assert (await gate_client.get(f"/groups/{group}", headers=auth_headers("bob"))).status_code == 200
        # Org admins pass permission gates on groups, not the group-membership gate.
        assert (await gate_client.get(f"/groups/{group}", headers=auth_headers("alice"))).status_code == 403
        assert (await gate_client.get(f"/groups/{group}", headers=auth_headers("root"))).status_code == 200


# ---------------------------------------------------------------------------
# Integration Tests: Middleware
# ---------------------------------------------------------------------------

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        for header, value in SECURITY_HEADERS.items():
            assert resp.headers.get(header) == value


class TestCSRFMiddleware:
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(CSRFMiddleware)

        @app.get("/test")
        async def get_test():
            return {"ok": True}

        @app.post("/test")
        async def post_test():
            return {"ok": True}

        return app

    def test_get_passes_without_csrf(self):
        client = TestClient(self._make_app())
        resp = client.get("/test")
        assert resp.status_code == 200

    def test_post_with_bearer_skips_csrf(self):
        client = TestClient(self._make_app())
        resp = client.post("/test", headers={"Authorization": "Bearer some-jwt"})
        assert resp.status_code == 200

    def test_post_without_session_cookie_passes(self):
        client = TestClient(self._make_app())
        resp = client.post("/test")
        assert resp.status_code == 200

    def test_post_with_session_but_no_csrf_fails(self):
        client = TestClient(self._make_app(), cookies={settings.session_cookie_name: "some-jwt"})
        resp = client.post("/test")
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "CSRF_VALIDATION_FAILED"

    def test_post_with_matching_csrf_passes(self):
        csrf_token = "test-csrf-token"
        client = TestClient(
            self._make_app(),
            cookies={settings.session_cookie_name: "some-jwt", CSRF_COOKIE_NAME: csrf_token},
        )
        resp = client.post("/test", headers={CSRF_HEADER_NAME: csrf_token})
        assert resp.status_code == 200

    def test_post_with_mismatched_csrf_fails(self):
        client = TestClient(
            self._make_app(),
            cookies={settings.session_cookie_name: "some-jwt", CSRF_COOKIE_NAME: "token-a"},
        )
        resp = client.post("/test", headers={CSRF_HEADER_NAME: "token-b"})
        assert resp.status_code == 403
