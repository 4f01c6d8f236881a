from dataclasses import dataclass
from enum import Enum


class AccessLevel(str, Enum):
    STAFF_ONLY = "STAFF_ONLY"
    ACTIVE_MEMBER = "ACTIVE_MEMBER"
    OWNER_ONLY = "OWNER_ONLY"


class MemberRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    VIEWER = "VIEWER"


class MemberStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INVITED = "INVITED"
    DISABLED = "DISABLED"


MANAGER_ROLES = frozenset({MemberRole.OWNER, MemberRole.ADMIN})

_LEGACY_ROLES = {
    "client": MemberRole.VIEWER,
    "investor": MemberRole.VIEWER,
    "admin": MemberRole.ADMIN,
    "owner": MemberRole.OWNER,
}


def normalize_member_role(value: str | MemberRole | None) -> MemberRole:
    if isinstance(value, MemberRole):
        return value
    cleaned = str(value or "").strip()
    if not cleaned:
        return MemberRole.VIEWER
    member = MemberRole._value2member_map_.get(cleaned.upper())
    if member is not None:
        return member
    return _LEGACY_ROLES.get(cleaned.lower(), MemberRole.VIEWER)


def normalize_member_status(value: str | MemberStatus | None) -> MemberStatus:
    if isinstance(value, MemberStatus):
        return value
    cleaned = str(value or "").strip().upper()
    member = MemberStatus._value2member_map_.get(cleaned)
    return member if member is not None else MemberStatus.DISABLED


@dataclass(frozen=True, slots=True)
class MembershipGrant:
    role: MemberRole
    status: MemberStatus

    @classmethod
    def from_raw(cls, role: str | None, status: str | None) -> "MembershipGrant":
        return cls(role=normalize_member_role(role), status=normalize_member_status(status))

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    @property
    def can_manage(self) -> bool:
        return self.is_active and self.role in MANAGER_ROLES


def is_allowed(
    actor_is_staff: bool,
    membership: MembershipGrant | None,
    required_level: AccessLevel,
) -> bool:
    """Pure allow/deny decision for one action class."""
    if actor_is_staff:
        return True
    if required_level == AccessLevel.STAFF_ONLY or membership is None:
        return False
    if not membership.is_active:
        return False
    if required_level == AccessLevel.ACTIVE_MEMBER:
        return True
    return membership.role == MemberRole.OWNER
