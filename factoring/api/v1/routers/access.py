from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.api import deps
from factoring.api.errors import database_failure
from factoring.core.response_envelope import success
from factoring.db.session import get_db
from factoring.schemas.access import AccessSummary, MembershipSummary
from factoring.services.authz import resolve_access


router = APIRouter(prefix="/c/{org_id}", tags=["access"])


@router.get("/me", summary="Caller's staff flag and membership in the company")
async def read_access(
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        access = await resolve_access(db, identity, company.company_id)
    except SQLAlchemyError as exc:
        return database_failure(exc)
    membership = None
    if access.membership is not None:
        membership = MembershipSummary(
            role=access.membership.role, status=access.membership.status
        )
    summary = AccessSummary(
        company_id=company.company_id,
        user_id=identity.user_id,
        email=identity.email,
        is_staff=access.is_staff,
        membership=membership,
        can_manage=access.is_staff
        or (access.membership is not None and access.membership.can_manage),
    )
    return success(access=summary)
