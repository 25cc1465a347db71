"""
Role gate.

Every role check in the service goes through ``has_access`` so the
guest < subscriber < admin ordering lives in one place.
"""

from enum import Enum
from typing import Any


class Role(str, Enum):
    """Caller roles, ordered from least to most privileged"""
    GUEST = "guest"
    SUBSCRIBER = "subscriber"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _RANK[self]


_RANK = {
    Role.GUEST: 0,
    Role.SUBSCRIBER: 1,
    Role.ADMIN: 2,
}


def parse_role(claim: Any, default: Role = Role.GUEST) -> Role:
    """
    Turn a raw role claim into a Role.

    Missing, unknown or non-string claims resolve to ``default``.
    Matching is case-insensitive since providers differ ("ADMIN" vs "admin").
    """
    if isinstance(claim, Role):
        return claim
    if not isinstance(claim, str):
        return default
    try:
        return Role(claim.strip().lower())
    except ValueError:
        return default


def has_access(caller_role: Any, required_role: Any) -> bool:
    """
    True iff the caller's role is at least the required role.

    Fails closed on both sides: an unreadable caller role counts as guest,
    an unreadable requirement counts as admin.
    """
    caller = parse_role(caller_role, default=Role.GUEST)
    required = parse_role(required_role, default=Role.ADMIN)
    return caller.rank >= required.rank
