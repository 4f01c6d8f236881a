"""Guarded state transitions for funding requests.

Each operation re-resolves the caller's access from the identity it is given,
applies one organization-scoped write, commits, and only then schedules its
audit and notification side effects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.api import deps
from factoring.core.logging import get_integration_logger
from factoring.core.permissions import AccessLevel
from factoring.core.settings import Settings
from factoring.models.document import Document
from factoring.models.funding_request import FundingRequest
from factoring.schemas.documents import DocumentProvider, DocumentStatus
from factoring.schemas.funding_requests import FundingRequestPatch, RequestStatus
from factoring.services import audit, authz, contracts, funding_requests, notifications
from factoring.services.errors import (
    LifecycleError,
    document_not_found,
    forbidden,
    invalid_transition,
)
from factoring.services.pandadoc import PROVIDER_NAME, PandaDocClient, PandaDocError
from factoring.services.side_effects import SideEffects
from factoring.services.storage.service import (
    PLACEHOLDER_PDF,
    StorageBucket,
    contract_object_key,
    get_storage_adapter,
)

logger = logging.getLogger(__name__)
integration_logger = get_integration_logger()

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.REVIEW: frozenset({RequestStatus.OFFERED, RequestStatus.CANCELLED}),
    RequestStatus.OFFERED: frozenset(
        {RequestStatus.ACCEPTED, RequestStatus.SIGNED, RequestStatus.CANCELLED}
    ),
    RequestStatus.ACCEPTED: frozenset({RequestStatus.SIGNED, RequestStatus.CANCELLED}),
    RequestStatus.SIGNED: frozenset({RequestStatus.FUNDED, RequestStatus.CANCELLED}),
    RequestStatus.FUNDED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class LifecyclePolicy:
    fund_requires_signed: bool = True
    force_sign_allowed: bool = False
    update_level: AccessLevel = AccessLevel.ACTIVE_MEMBER
    delete_level: AccessLevel = AccessLevel.OWNER_ONLY

    @classmethod
    def from_settings(cls, config: Settings) -> LifecyclePolicy:
        return cls(
            fund_requires_signed=config.fund_requires_signed,
            force_sign_allowed=config.pandadoc_allow_force_sign or not config.is_production,
            update_level=config.request_update_access,
            delete_level=config.request_delete_access,
        )


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: RequestStatus, target: RequestStatus) -> bool:
    """Raise on an illegal move; return False for a same-state no-op."""
    if current == target:
        return False
    if target not in ALLOWED_TRANSITIONS[current]:
        raise invalid_transition(current.value, target.value)
    return True


def _fundable(current: RequestStatus, policy: LifecyclePolicy) -> bool:
    if policy.fund_requires_signed:
        return current == RequestStatus.SIGNED
    return not current.is_terminal


async def authorize(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    level: AccessLevel,
) -> authz.ResolvedAccess:
    access = await authz.check_access(db, identity, company_id, level)
    if access is None:
        raise forbidden()
    return access


async def _reload(db: AsyncSession, funding_request: FundingRequest) -> FundingRequest:
    await db.refresh(funding_request)
    return funding_request


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_request(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
) -> FundingRequest:
    await authorize(db, identity, company_id, AccessLevel.ACTIVE_MEMBER)
    return await funding_requests.require_request(db, company_id, request_id)


async def archive_request(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    *,
    effects: SideEffects,
    expected_version: int | None = None,
) -> FundingRequest:
    await authorize(db, identity, company_id, AccessLevel.STAFF_ONLY)
    funding_request = await funding_requests.require_request(db, company_id, request_id)
    current = RequestStatus.parse(funding_request.status)
    if current.is_terminal:
        raise LifecycleError(
            "invalid_transition",
            f"Cannot archive a {current.value} request",
            409,
            {"from_status": current.value},
        )

    archived_at = _utcnow()
    await funding_requests.update_request(
        db,
        company_id,
        request_id,
        {"archived_at": archived_at, "archived_by": identity.user_id},
        expected_version=expected_version,
    )
    await db.commit()

    effects.schedule(
        "audit.archived",
        audit.record_audit_log,
        company_id=company_id,
        actor_id=identity.user_id,
        entity=audit.AuditEntity.REQUEST,
        entity_id=request_id,
        action=audit.AuditAction.ARCHIVED,
        data={"archived_at": archived_at, "status": current.value},
    )
    return await _reload(db, funding_request)


async def deny_request(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    *,
    effects: SideEffects,
    expected_version: int | None = None,
) -> FundingRequest:
    """Cancel the request and clear its archive marker; funded requests are protected."""
    await authorize(db, identity, company_id, AccessLevel.STAFF_ONLY)
    funding_request = await funding_requests.require_request(db, company_id, request_id)
    current = RequestStatus.parse(funding_request.status)
    if current == RequestStatus.FUNDED:
        raise invalid_transition(current.value, RequestStatus.CANCELLED.value)

    await funding_requests.update_request(
        db, company_id, request_id, _cancel_values(), expected_version=expected_version
    )
    await db.commit()

    _schedule_status_change(
        effects, identity, company_id, request_id, current, RequestStatus.CANCELLED
    )
    return await _reload(db, funding_request)


def _cancel_values() -> dict[str, Any]:
    return {"status": RequestStatus.CANCELLED.value, "archived_at": None, "archived_by": None}


def _schedule_status_change(
    effects: SideEffects,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    current: RequestStatus,
    target: RequestStatus,
) -> None:
    effects.schedule(
        "audit.status_changed",
        audit.log_status_change,
        company_id=company_id,
        actor_id=identity.user_id,
        request_id=request_id,
        from_status=current.value,
        to_status=target.value,
    )


def _schedule_funded(
    effects: SideEffects,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    current: RequestStatus,
) -> None:
    effects.schedule(
        "notify.request_funded",
        notifications.notify_client_funded,
        company_id,
        request_id,
    )
    effects.schedule(
        "audit.funded",
        audit.record_audit_log,
        company_id=company_id,
        actor_id=identity.user_id,
        entity=audit.AuditEntity.REQUEST,
        entity_id=request_id,
        action=audit.AuditAction.FUNDED,
        data={"from_status": current.value, "to_status": RequestStatus.FUNDED.value},
    )


async def fund_request(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    *,
    effects: SideEffects,
    policy: LifecyclePolicy,
    expected_version: int | None = None,
) -> FundingRequest:
    await authorize(db, identity, company_id, AccessLevel.STAFF_ONLY)
    funding_request = await funding_requests.require_request(db, company_id, request_id)
    current = RequestStatus.parse(funding_request.status)
    if current == RequestStatus.FUNDED:
        return funding_request
    if not _fundable(current, policy):
        raise invalid_transition(current.value, RequestStatus.FUNDED.value)

    await funding_requests.update_request(
        db,
        company_id,
        request_id,
        {"status": RequestStatus.FUNDED.value},
        expected_version=expected_version,
    )
    await db.commit()

    _schedule_funded(effects, identity, company_id, request_id, current)
    return await _reload(db, funding_request)


def _ensure_placeholder_file(document: Document) -> None:
    """Upload a stand-in PDF for a force-signed contract when none is stored yet."""
    object_key = document.file_path or contract_object_key(document.company_id, document.id)
    try:
        storage = get_storage_adapter(StorageBucket.CONTRACTS)
        if not storage.object_exists(object_key):
            storage.upload_bytes(object_key, PLACEHOLDER_PDF, "application/pdf")
        document.file_path = object_key
    except Exception as exc:
        logger.warning(
            "Placeholder upload failed for document %s: %s", document.id, exc, exc_info=True
        )


async def force_sign_request(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    *,
    effects: SideEffects,
    policy: LifecyclePolicy,
    expected_version: int | None = None,
) -> FundingRequest:
    """Operational override marking the latest contract and its request as signed."""
    await authorize(db, identity, company_id, AccessLevel.STAFF_ONLY)
    if not policy.force_sign_allowed:
        raise LifecycleError(
            "forbidden_in_env", "Force-sign is disabled in this environment", 403
        )
    funding_request = await funding_requests.require_request(db, company_id, request_id)
    current = RequestStatus.parse(funding_request.status)
    if not can_transition(current, RequestStatus.SIGNED):
        raise invalid_transition(current.value, RequestStatus.SIGNED.value)

    document = await funding_requests.latest_contract_document(db, company_id, request_id)
    if document is None:
        raise document_not_found()

    document.status = DocumentStatus.SIGNED.value
    _ensure_placeholder_file(document)
    await funding_requests.update_request(
        db,
        company_id,
        request_id,
        {"status": RequestStatus.SIGNED.value},
        expected_version=expected_version,
    )
    await db.commit()

    effects.schedule(
        "audit.status_changed",
        audit.log_status_change,
        company_id=company_id,
        actor_id=identity.user_id,
        request_id=request_id,
        from_status=current.value,
        to_status=RequestStatus.SIGNED.value,
        extra={"forced": True, "document_id": str(document.id)},
    )
    return await _reload(db, funding_request)


async def generate_contract(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    *,
    effects: SideEffects,
    client: PandaDocClient,
    skip_if_exists: bool = False,
) -> contracts.ContractGenerationResult:
    await authorize(db, identity, company_id, AccessLevel.STAFF_ONLY)
    try:
        return await contracts.generate_contract_for_request(
            db,
            company_id,
            request_id,
            actor_id=identity.user_id,
            fallback_email=identity.email,
            client=client,
            effects=effects,
            skip_if_exists=skip_if_exists,
        )
    except contracts.ContractGenerationError as exc:
        _record_integration_warning(effects, identity, company_id, request_id, exc.message, exc.code)
        raise
    except Exception as exc:
        _record_integration_warning(effects, identity, company_id, request_id, str(exc), None)
        integration_logger.error(
            "Unexpected contract generation failure for company=%s request=%s",
            company_id,
            request_id,
            exc_info=True,
        )
        raise LifecycleError(
            "contract_generation_failed", "Contract generation failed", 500
        ) from exc


def _record_integration_warning(
    effects: SideEffects,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    message: str,
    code: str | None,
) -> None:
    integration_logger.warning(
        "Contract generation failed for company=%s: %s", company_id, message
    )
    meta: dict[str, Any] = {"request_id": str(request_id)}
    if code:
        meta["code"] = code
    effects.schedule(
        "audit.integration_warning",
        audit.log_integration_warning,
        company_id=company_id,
        actor_id=identity.user_id,
        provider=PROVIDER_NAME,
        message=message,
        meta=meta,
    )


async def _require_provider_document(
    db: AsyncSession, company_id: UUID, request_id: UUID
) -> Document:
    document = await funding_requests.latest_contract_document(
        db, company_id, request_id, provider=DocumentProvider.PANDADOC
    )
    if document is None or not document.provider_envelope_id:
        raise document_not_found()
    return document


async def send_contract(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    *,
    effects: SideEffects,
    client: PandaDocClient,
) -> Document:
    await authorize(db, identity, company_id, AccessLevel.STAFF_ONLY)
    await funding_requests.require_request(db, company_id, request_id)
    document = await _require_provider_document(db, company_id, request_id)
    try:
        await client.send_document(
            document.provider_envelope_id,
            subject=contracts.SEND_SUBJECT,
            message=contracts.SEND_MESSAGE,
        )
    except PandaDocError as exc:
        raise LifecycleError(exc.code or "contract_send_failed", exc.message, 400) from exc

    previous = document.status
    document.status = DocumentStatus.SENT.value
    await db.commit()
    await db.refresh(document)

    effects.schedule(
        "audit.document_sent",
        audit.record_audit_log,
        company_id=company_id,
        actor_id=identity.user_id,
        entity=audit.AuditEntity.DOCUMENT,
        entity_id=document.id,
        action=audit.AuditAction.STATUS_CHANGED,
        data={"from_status": previous, "to_status": document.status},
    )
    return document


async def contract_link(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    *,
    client: PandaDocClient,
) -> str:
    """Recipient signing session for the caller's own e-mail."""
    await authorize(db, identity, company_id, AccessLevel.ACTIVE_MEMBER)
    document = await _require_provider_document(db, company_id, request_id)
    if not identity.email:
        raise LifecycleError("missing_email", "The signed-in user has no e-mail address", 422)
    try:
        return await client.create_recipient_session(
            document.provider_envelope_id, recipient_email=identity.email
        )
    except PandaDocError as exc:
        raise LifecycleError(exc.code or "contract_link_failed", exc.message, 400) from exc


async def contract_open_url(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
) -> str:
    await authorize(db, identity, company_id, AccessLevel.ACTIVE_MEMBER)
    document = await _require_provider_document(db, company_id, request_id)
    return contracts.viewer_url(document.provider_envelope_id)


async def update_request(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    patch: FundingRequestPatch,
    *,
    effects: SideEffects,
    policy: LifecyclePolicy,
    expected_version: int | None = None,
) -> FundingRequest:
    access = await authorize(db, identity, company_id, policy.update_level)
    values = patch.to_values()
    if not values:
        raise LifecycleError("empty_patch", "No fields to update", 400)

    funding_request = await funding_requests.require_request(db, company_id, request_id)
    current = RequestStatus.parse(funding_request.status)
    target = None
    if "status" in values:
        if not access.is_staff:
            raise forbidden("Only staff may change a request's status")
        target = _patch_target(current, RequestStatus.parse(values.pop("status")), policy)
    if current.is_terminal and values:
        raise LifecycleError(
            "invalid_transition", f"A {current.value} request can no longer be edited", 409
        )
    if target == RequestStatus.CANCELLED:
        values.update(_cancel_values())
    elif target is not None:
        values["status"] = target.value
    if not values:
        return funding_request

    before = audit.model_snapshot(funding_request, exclude={"created_at", "updated_at"})
    await funding_requests.update_request(
        db, company_id, request_id, values, expected_version=expected_version
    )
    await db.commit()
    funding_request = await _reload(db, funding_request)

    changes = {
        name: {"from": before.get(name), "to": value}
        for name, value in audit.serialize_for_audit(values).items()
    }
    effects.schedule(
        "audit.updated",
        audit.record_audit_log,
        company_id=company_id,
        actor_id=identity.user_id,
        entity=audit.AuditEntity.REQUEST,
        entity_id=request_id,
        action=audit.AuditAction.UPDATED,
        data={"changes": changes},
    )
    if target == RequestStatus.FUNDED:
        _schedule_funded(effects, identity, company_id, request_id, current)
    elif target is not None:
        _schedule_status_change(effects, identity, company_id, request_id, current, target)
    return funding_request


def _patch_target(
    current: RequestStatus, target: RequestStatus, policy: LifecyclePolicy
) -> RequestStatus | None:
    """Apply the rules of the dedicated operation for a status set through PATCH."""
    if target == current:
        return None
    if target == RequestStatus.SIGNED:
        raise LifecycleError(
            "invalid_transition",
            "Requests are signed through the contract webhook or force-signed",
            409,
            {"from_status": current.value, "to_status": target.value},
        )
    if target == RequestStatus.FUNDED:
        if not _fundable(current, policy):
            raise invalid_transition(current.value, target.value)
        return target
    ensure_transition(current, target)
    return target


def _remove_stored_files(funding_request: FundingRequest, documents: list[Document]) -> None:
    targets: list[tuple[StorageBucket, str]] = []
    if funding_request.file_path:
        targets.append((StorageBucket.REQUESTS, funding_request.file_path))
    for document in documents:
        if not document.file_path:
            continue
        bucket = (
            StorageBucket.REQUESTS
            if document.provider == DocumentProvider.STORAGE.value
            else StorageBucket.CONTRACTS
        )
        targets.append((bucket, document.file_path))
    for bucket, object_key in targets:
        try:
            get_storage_adapter(bucket).delete_object(object_key)
        except Exception as exc:
            logger.warning(
                "Failed to remove %s/%s for request %s: %s",
                bucket.value,
                object_key,
                funding_request.id,
                exc,
            )


async def delete_request(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    *,
    effects: SideEffects,
    policy: LifecyclePolicy,
) -> None:
    """Remove stored files first, then the row; file removal is never rolled back."""
    await authorize(db, identity, company_id, policy.delete_level)
    funding_request = await funding_requests.require_request(db, company_id, request_id)
    documents = await funding_requests.list_documents(db, company_id, request_id)
    snapshot = audit.model_snapshot(funding_request)

    _remove_stored_files(funding_request, documents)
    try:
        await funding_requests.delete_request(db, company_id, request_id)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise LifecycleError(
            "conflict", "Request is still referenced by other records", 409
        ) from exc

    effects.schedule(
        "audit.deleted",
        audit.record_audit_log,
        company_id=company_id,
        actor_id=identity.user_id,
        entity=audit.AuditEntity.REQUEST,
        entity_id=request_id,
        action=audit.AuditAction.DELETED,
        data={"request": snapshot, "documents": len(documents)},
    )
