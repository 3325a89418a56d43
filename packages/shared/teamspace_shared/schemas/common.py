from enum import Enum

from pydantic import BaseModel


class AppRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class OrganizationRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


class GroupRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"
    EVALUATOR = "evaluator"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class MembershipStatus(str, Enum):
    ABSENT = "absent"
    ACTIVE = "active"
    DELETED = "deleted"


# Valid state transitions for organization and group memberships.
# Re-adding a deleted member restores the same row; ACTIVE -> ACTIVE is a conflict.
MEMBERSHIP_TRANSITIONS: dict[MembershipStatus, list[MembershipStatus]] = {
    MembershipStatus.ABSENT: [MembershipStatus.ACTIVE],
    MembershipStatus.ACTIVE: [MembershipStatus.DELETED],
    MembershipStatus.DELETED: [MembershipStatus.ACTIVE],
}


class Pagination(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int
