"""
Authentication and authorization dependencies for Teamspace.

Supports:
- Actor resolution from a session JWT (Bearer header or session cookie)
- Application-admin gate
- Organization/group membership gates (application admins bypass)
- Fine-grained permission gate backed by the static policy

Every gate checks for an actor before it looks at resources or roles, so
"not logged in" (401) is always distinguishable from "not allowed" (403).
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Union

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.policy import PolicyEngine, get_policy_engine
from app.services import rbac

log = structlog.get_logger()
settings = get_settings()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

PathParams = Mapping[str, Any]
ResourceExtractor = Callable[[PathParams], str]
IdExtractor = Callable[[PathParams], int]


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def _subject_from_token(token: str) -> Optional[str]:
    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError as exc:
        log.info("auth.invalid_token", reason=type(exc).__name__)
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None


# ---------------------------------------------------------------------------
# Actor resolution
# ---------------------------------------------------------------------------

class AuthenticatedUser:
    """Execution context handed to a protected operation once its gate passed."""

    def __init__(
        self,
        user_id: str,
        resource: Optional[str] = None,
        action: Optional[str] = None,
    ):
        self.user_id = user_id
        self.resource = resource
        self.action = action


async def get_actor_id(
    request: Request,
    authorization: Optional[str] = Depends(api_key_header),
) -> Optional[str]:
    """Resolve the acting user id, or None when the request is anonymous."""
    if authorization and authorization.startswith("Bearer "):
        return _subject_from_token(authorization[7:].strip())

    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return _subject_from_token(token)

    return None


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------

def path_param(name: str) -> IdExtractor:
    """Extractor reading a numeric path parameter, e.g. ``path_param("groupId")``."""
    return lambda params: int(params[name])


async def require_authenticated(
    actor_id: Optional[str] = Depends(get_actor_id),
) -> AuthenticatedUser:
    """Any logged-in user."""
    return AuthenticatedUser(rbac.require_actor(actor_id))


async def require_app_admin(
    actor_id: Optional[str] = Depends(get_actor_id),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Requires the application-level admin role. No policy lookup."""
    user_id = await rbac.authorize_app_admin(session, actor_id)
    return AuthenticatedUser(user_id)


def require_organization_member(extract_organization_id: IdExtractor):
    """Any active member of the organization (or an application admin)."""

    async def dependency(
        request: Request,
        actor_id: Optional[str] = Depends(get_actor_id),
        session: AsyncSession = Depends(get_session),
    ) -> AuthenticatedUser:
        rbac.require_actor(actor_id)
        organization_id = extract_organization_id(request.path_params)
        user_id = await rbac.authorize_organization_member(session, actor_id, organization_id)
        return AuthenticatedUser(user_id)

    return dependency


def require_group_member(extract_group_id: IdExtractor):
    """Any active member of the group (or an application admin)."""

    async def dependency(
        request: Request,
        actor_id: Optional[str] = Depends(get_actor_id),
        session: AsyncSession = Depends(get_session),
    ) -> AuthenticatedUser:
        rbac.require_actor(actor_id)
        group_id = extract_group_id(request.path_params)
        user_id = await rbac.authorize_group_member(session, actor_id, group_id)
        return AuthenticatedUser(user_id)

    return dependency


def require_permission(
    resource: Union[str, ResourceExtractor],
    action: str,
):
    """Fine-grained gate: some subject of the actor must be allowed by policy.

    ``resource`` is either a constant resource string or a callable that
    builds one from the request's path parameters.
    """

    async def dependency(
        request: Request,
        actor_id: Optional[str] = Depends(get_actor_id),
        session: AsyncSession = Depends(get_session),
        engine: PolicyEngine = Depends(get_policy_engine),
    ) -> AuthenticatedUser:
        rbac.require_actor(actor_id)
        target = resource(request.path_params) if callable(resource) else resource
        user_id = await rbac.authorize_permission(
            session, actor_id, target, action, engine=engine
        )
        return AuthenticatedUser(user_id, resource=target, action=action)

    return dependency
