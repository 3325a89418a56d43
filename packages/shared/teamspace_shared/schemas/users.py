"""User management schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel

from .common import AppRole, Pagination


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class AppRoleUpdateRequest(BaseModel):
    """Set or clear a user's application-level role."""
    role: Optional[AppRole] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """Single user response."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[AppRole] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    """List of users known to the application."""
    data: List[UserResponse]


class UserPageResponse(BaseModel):
    """One page of a user search."""
    data: List[UserResponse]
    pagination: Pagination


class UserSummary(BaseModel):
    """Identity fields only, for membership pickers."""
    id: str
    name: Optional[str] = None
    email: Optional[str] = None

    model_config = {"from_attributes": True}


class UserSummaryPageResponse(BaseModel):
    data: List[UserSummary]
    pagination: Pagination
