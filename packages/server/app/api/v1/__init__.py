"""
API v1 Router

Organization-scoped endpoints live under /orgs/{organizationId}; group
endpoints are addressed directly by /groups/{groupId}.
"""

from fastapi import APIRouter
from . import groups, organizations, rbac, users

router = APIRouter()

router.include_router(organizations.router, tags=["Organizations"])
router.include_router(groups.router, prefix="/groups", tags=["Groups"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(rbac.router, prefix="/rbac", tags=["RBAC"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/orgs",
            "/orgs/search",
            "/orgs/{organizationId}/members",
            "/orgs/{organizationId}/groups",
            "/groups/{groupId}",
            "/groups/{groupId}/members",
            "/users",
            "/users/search",
            "/rbac/permissions",
        ],
    }
