# SQLModel definitions: imported here to ensure metadata is populated for Alembic.
from .base import AuditMixin, IntIdMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization, OrganizationGroup  # noqa: F401
from .membership import GroupMember, OrganizationMember  # noqa: F401
