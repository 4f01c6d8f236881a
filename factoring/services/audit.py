from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.core.logging import get_audit_logger
from factoring.models.audit_log import AuditLog


class AuditEntity(str, Enum):
    REQUEST = "request"
    OFFER = "offer"
    DOCUMENT = "document"
    CONTRACT = "contract"
    INTEGRATION = "integration"


class AuditAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    DELETED = "deleted"
    SIGNED = "signed"
    FUNDED = "funded"
    ARCHIVED = "archived"
    INTEGRATION_WARNING = "integration_warning"


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            Decimal: lambda v: str(v),
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
            UUID: lambda v: str(v),
        },
    )


def model_snapshot(model: Any, *, exclude: Iterable[str] | None = None) -> dict[str, Any]:
    if model is None:
        return {}
    excluded = set(exclude or [])
    data: dict[str, Any] = {}
    for column in model.__table__.columns:
        if column.name in excluded:
            continue
        data[column.name] = getattr(model, column.name)
    return serialize_for_audit(data)


def record_audit_log(
    db: AsyncSession,
    *,
    company_id: UUID | None,
    actor_id: UUID | None,
    entity: AuditEntity | str,
    entity_id: Any,
    action: AuditAction | str,
    data: dict[str, Any] | None = None,
) -> AuditLog:
    entity_value = entity.value if isinstance(entity, AuditEntity) else str(entity)
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    payload = serialize_for_audit(data) if data is not None else None
    entry = AuditLog(
        company_id=company_id,
        actor_id=actor_id,
        entity=entity_value,
        entity_id=str(entity_id) if entity_id is not None else None,
        action=action_value,
        data=payload,
    )
    db.add(entry)
    get_audit_logger().info(
        "%s %s %s",
        entity_value,
        action_value,
        entry.entity_id or "-",
        extra={"data": payload},
    )
    return entry


def log_status_change(
    db: AsyncSession,
    *,
    company_id: UUID,
    actor_id: UUID | None,
    request_id: UUID,
    from_status: str | None,
    to_status: str,
    extra: dict[str, Any] | None = None,
) -> AuditLog:
    data: dict[str, Any] = {"from_status": from_status, "to_status": to_status}
    if extra:
        data.update(extra)
    return record_audit_log(
        db,
        company_id=company_id,
        actor_id=actor_id,
        entity=AuditEntity.REQUEST,
        entity_id=request_id,
        action=AuditAction.STATUS_CHANGED,
        data=data,
    )


def log_integration_warning(
    db: AsyncSession,
    *,
    company_id: UUID | None,
    actor_id: UUID | None,
    provider: str,
    message: str,
    meta: dict[str, Any] | None = None,
) -> AuditLog:
    return record_audit_log(
        db,
        company_id=company_id,
        actor_id=actor_id,
        entity=AuditEntity.INTEGRATION,
        entity_id=None,
        action=AuditAction.INTEGRATION_WARNING,
        data={"provider": provider, "message": message, "meta": meta or {}},
    )
