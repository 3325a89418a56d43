"""User model."""

from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True, nullable=False)
    email: Optional[str] = Field(default=None, unique=True, index=True)
    name: Optional[str] = None
    role: Optional[str] = Field(default=None)  # admin | user | None (application-level)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_column_kwargs={"server_default": sa.text("CURRENT_TIMESTAMP")},
        sa_type=sa.DateTime(timezone=True),
    )
    deleted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
