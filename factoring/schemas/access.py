from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel

from factoring.core.permissions import MemberRole, MemberStatus


class MembershipSummary(BaseModel):
    role: MemberRole
    status: MemberStatus


class AccessSummary(BaseModel):
    company_id: UUID
    user_id: UUID
    email: str | None = None
    is_staff: bool
    membership: MembershipSummary | None = None
    can_manage: bool = False
