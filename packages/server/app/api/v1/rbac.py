"""
RBAC API endpoints.

GET    /api/v1/rbac/permissions   Describe the caller's roles for UI filtering
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_authenticated
from app.core.database import get_session
from app.services.permissions import describe_permissions
from teamspace_shared.schemas.permissions import PermissionDescriptor

router = APIRouter()


@router.get("/permissions", response_model=PermissionDescriptor)
async def get_permissions(
    response: Response,
    auth: AuthenticatedUser = Depends(require_authenticated),
    session: AsyncSession = Depends(get_session),
):
    """Flattened role descriptor. Hints only; every operation re-checks."""
    response.headers["Cache-Control"] = "no-store"
    return await describe_permissions(session, auth.user_id)
