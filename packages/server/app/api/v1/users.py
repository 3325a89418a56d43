"""
User Management API endpoints.

GET    /api/v1/users                  List users (any app user)
GET    /api/v1/users/search           Search users (paginated, any app user)
PATCH  /api/v1/users/{userId}/role    Set or clear the application role (app admin)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_app_admin, require_permission
from app.core.database import get_session
from app.services import users as user_service
from teamspace_shared.schemas.users import (
    AppRoleUpdateRequest,
    UserListResponse,
    UserPageResponse,
    UserResponse,
)

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    auth: AuthenticatedUser = Depends(require_permission("user:*", "read")),
    session: AsyncSession = Depends(get_session),
):
    users = await user_service.list_users(session)
    return UserListResponse(data=[UserResponse.model_validate(u) for u in users])


@router.get("/search", response_model=UserPageResponse)
async def search_users(
    q: str = Query("", max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100),
    auth: AuthenticatedUser = Depends(require_permission("user:*", "read")),
    session: AsyncSession = Depends(get_session),
):
    """Search users by id, name or email."""
    users, pagination = await user_service.search_users(q, page, per_page, session)
    return UserPageResponse(
        data=[UserResponse.model_validate(u) for u in users],
        pagination=pagination,
    )


@router.patch("/{userId}/role", response_model=UserResponse)
async def update_app_role(
    userId: str,
    body: AppRoleUpdateRequest,
    auth: AuthenticatedUser = Depends(require_app_admin),
    session: AsyncSession = Depends(get_session),
):
    """Grant, change or revoke a user's application role (App admin only)."""
    user = await user_service.set_app_role(userId, body.role, auth.user_id, session)
    return UserResponse.model_validate(user)
