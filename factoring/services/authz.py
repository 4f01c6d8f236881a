from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.core.permissions import AccessLevel, MembershipGrant, is_allowed
from factoring.core.settings import settings
from factoring.models.membership import Membership
from factoring.models.profile import Profile

if TYPE_CHECKING:
    from factoring.api.deps import IdentityContext


@dataclass(frozen=True, slots=True)
class ResolvedAccess:
    is_staff: bool
    membership: MembershipGrant | None

    def allows(self, level: AccessLevel) -> bool:
        return is_allowed(self.is_staff, self.membership, level)


def is_backoffice_allowed(email: str | None) -> bool:
    """An empty allow-list admits every staff profile."""
    allowed = settings.backoffice_allow_list
    if not allowed:
        return True
    return bool(email) and email.strip().lower() in allowed


async def resolve_access(
    db: AsyncSession,
    identity: "IdentityContext",
    company_id: UUID,
) -> ResolvedAccess:
    """Look up the staff flag and the caller's membership in one organization.

    Store failures propagate; callers must not read them as a denial.
    """
    profile_result = await db.execute(
        select(Profile.is_staff, Profile.email).where(Profile.user_id == identity.user_id)
    )
    profile_row = profile_result.first()
    is_staff = False
    if profile_row is not None and profile_row[0]:
        is_staff = is_backoffice_allowed(identity.email or profile_row[1])

    membership_result = await db.execute(
        select(Membership.role, Membership.status).where(
            Membership.company_id == company_id,
            Membership.user_id == identity.user_id,
        )
    )
    membership_row = membership_result.first()
    membership = None
    if membership_row is not None:
        membership = MembershipGrant.from_raw(membership_row[0], membership_row[1])
    return ResolvedAccess(is_staff=is_staff, membership=membership)


async def check_access(
    db: AsyncSession,
    identity: "IdentityContext",
    company_id: UUID,
    level: AccessLevel,
) -> ResolvedAccess | None:
    """Return the resolved access when ``level`` is granted, ``None`` otherwise."""
    access = await resolve_access(db, identity, company_id)
    return access if access.allows(level) else None
