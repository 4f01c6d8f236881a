import pytest

from factoring.core.permissions import (
    AccessLevel,
    MemberRole,
    MemberStatus,
    MembershipGrant,
    is_allowed,
    normalize_member_role,
    normalize_member_status,
)


def _grant(role: str, status: str = "ACTIVE") -> MembershipGrant:
    return MembershipGrant.from_raw(role, status)


@pytest.mark.parametrize("level", list(AccessLevel))
def test_staff_is_allowed_everything_without_membership(level):
    assert is_allowed(True, None, level) is True


def test_staff_only_rejects_every_member():
    assert is_allowed(False, _grant("OWNER"), AccessLevel.STAFF_ONLY) is False
    assert is_allowed(False, _grant("ADMIN"), AccessLevel.STAFF_ONLY) is False


def test_active_member_level_requires_active_status():
    assert is_allowed(False, _grant("VIEWER"), AccessLevel.ACTIVE_MEMBER) is True
    assert is_allowed(False, _grant("OWNER", "INVITED"), AccessLevel.ACTIVE_MEMBER) is False
    assert is_allowed(False, _grant("OWNER", "DISABLED"), AccessLevel.ACTIVE_MEMBER) is False
    assert is_allowed(False, None, AccessLevel.ACTIVE_MEMBER) is False


def test_owner_only_rejects_admins_and_inactive_owners():
    assert is_allowed(False, _grant("OWNER"), AccessLevel.OWNER_ONLY) is True
    assert is_allowed(False, _grant("ADMIN"), AccessLevel.OWNER_ONLY) is False
    assert is_allowed(False, _grant("OWNER", "INVITED"), AccessLevel.OWNER_ONLY) is False


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("owner", MemberRole.OWNER),
        ("OWNER", MemberRole.OWNER),
        (" admin ", MemberRole.ADMIN),
        ("operator", MemberRole.OPERATOR),
        ("client", MemberRole.VIEWER),
        ("investor", MemberRole.VIEWER),
        ("superuser", MemberRole.VIEWER),
        (None, MemberRole.VIEWER),
    ],
)
def test_normalize_member_role(raw, expected):
    assert normalize_member_role(raw) is expected


def test_unknown_status_is_treated_as_disabled():
    assert normalize_member_status("active") is MemberStatus.ACTIVE
    assert normalize_member_status("suspended") is MemberStatus.DISABLED
    assert normalize_member_status(None) is MemberStatus.DISABLED


def test_can_manage_needs_active_manager_role():
    assert _grant("ADMIN").can_manage is True
    assert _grant("OWNER", "INVITED").can_manage is False
    assert _grant("OPERATOR").can_manage is False
