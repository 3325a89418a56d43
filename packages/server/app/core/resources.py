"""
Hierarchical resource addressing.

Resources are colon-separated strings:

    org:<id>                 an organization
    org:<id>:<subpath...>    a collection inside an organization
    group:<id>               a group
    group:<id>:<subpath...>  a collection inside a group
    <noun>:*                 an application-wide noun (e.g. ``user:*``)

Only the leading ``org:<digits>`` / ``group:<digits>`` prefix carries meaning
for role resolution; everything after it is an opaque target for policy
matching.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

SEPARATOR = ":"

RESOURCE_KINDS = ("org", "group")

_ORG_PREFIX = re.compile(r"^org:(\d+)")
_GROUP_PREFIX = re.compile(r"^group:(\d+)")


@dataclass(frozen=True)
class ResourceScope:
    """Organization/group context decoded from a resource string."""

    organization_id: Optional[int] = None
    group_id: Optional[int] = None

    @property
    def is_scoped(self) -> bool:
        return self.organization_id is not None or self.group_id is not None


def encode_resource(kind: str, id: int, *subpath: str) -> str:
    """Build ``<kind>:<id>[:<subpath>...]``.

    >>> encode_resource("org", 42, "projects", "tasks")
    'org:42:projects:tasks'
    """
    if kind not in RESOURCE_KINDS:
        raise ValueError(f"Unknown resource kind '{kind}'")
    return SEPARATOR.join([kind, str(int(id)), *subpath])


def org_resource(organization_id: int, *subpath: str) -> str:
    return encode_resource("org", organization_id, *subpath)


def group_resource(group_id: int, *subpath: str) -> str:
    return encode_resource("group", group_id, *subpath)


def decode_resource(resource: str) -> ResourceScope:
    """Extract the organization or group id a resource is scoped to.

    Malformed and application-wide resources decode to an empty scope.
    """
    match = _ORG_PREFIX.match(resource)
    if match:
        return ResourceScope(organization_id=int(match.group(1)))
    match = _GROUP_PREFIX.match(resource)
    if match:
        return ResourceScope(group_id=int(match.group(1)))
    return ResourceScope()


def is_unscoped_pattern(pattern: str) -> bool:
    """True when a policy resource pattern lives outside any org/group.

    Patterns are anchored regular expressions, so a leading ``^`` is skipped.
    """
    head = pattern.lstrip("^").split(SEPARATOR, 1)[0]
    return head not in RESOURCE_KINDS
