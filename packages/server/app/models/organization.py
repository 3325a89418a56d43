"""Organization and organization group models."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import AuditMixin, IntIdMixin, TimestampMixin


class Organization(IntIdMixin, TimestampMixin, AuditMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, index=True)
    description: Optional[str] = None
    type: str = Field(nullable=False)


class OrganizationGroup(IntIdMixin, TimestampMixin, AuditMixin, SQLModel, table=True):
    __tablename__ = "organization_groups"

    organization_id: int = Field(foreign_key="organizations.id", nullable=False, index=True)
    name: str = Field(nullable=False)
    description: Optional[str] = None
