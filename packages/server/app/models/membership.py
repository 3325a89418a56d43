"""Organization and group membership rows (soft-deletable, restored on re-add)."""

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import AuditMixin, IntIdMixin, TimestampMixin


class OrganizationMember(IntIdMixin, TimestampMixin, AuditMixin, SQLModel, table=True):
    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_organization_member"),
    )

    organization_id: int = Field(foreign_key="organizations.id", nullable=False, index=True)
    user_id: str = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(nullable=False)  # member | admin


class GroupMember(IntIdMixin, TimestampMixin, AuditMixin, SQLModel, table=True):
    __tablename__ = "organization_group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
    )

    group_id: int = Field(foreign_key="organization_groups.id", nullable=False, index=True)
    organization_id: int = Field(foreign_key="organizations.id", nullable=False, index=True)
    user_id: str = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(nullable=False)  # member | admin | evaluator
