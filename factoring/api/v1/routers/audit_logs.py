from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.api import deps
from factoring.api.errors import database_failure, lifecycle_failure
from factoring.core.permissions import AccessLevel
from factoring.core.response_envelope import success
from factoring.db.session import get_db
from factoring.models.audit_log import AuditLog
from factoring.schemas.audit import AuditLogEntry
from factoring.services.errors import LifecycleError
from factoring.services.lifecycle import authorize


router = APIRouter(prefix="/c/{org_id}/audit-logs", tags=["audit-logs"])


@router.get("", summary="List audit logs for the company")
async def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    entity: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    action: list[str] | None = Query(default=None),
    actor_id: UUID | None = Query(default=None),
    created_from: datetime | None = Query(default=None),
    created_to: datetime | None = Query(default=None),
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        await authorize(db, identity, company.company_id, AccessLevel.STAFF_ONLY)
    except LifecycleError as exc:
        return lifecycle_failure(exc)

    conditions = [AuditLog.company_id == company.company_id]
    if entity:
        conditions.append(AuditLog.entity == entity)
    if entity_id:
        conditions.append(AuditLog.entity_id == entity_id)
    if action:
        conditions.append(AuditLog.action.in_(action))
    if actor_id:
        conditions.append(AuditLog.actor_id == actor_id)
    if created_from:
        conditions.append(AuditLog.created_at >= created_from)
    if created_to:
        conditions.append(AuditLog.created_at <= created_to)

    try:
        count_stmt = select(func.count()).select_from(AuditLog).where(*conditions)
        total = int((await db.execute(count_stmt)).scalar_one() or 0)
        stmt = (
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        rows = (await db.execute(stmt)).scalars().all()
    except SQLAlchemyError as exc:
        return database_failure(exc)
    return success(
        items=[AuditLogEntry.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )
