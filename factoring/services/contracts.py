from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.core.settings import settings
from factoring.models.company import Company
from factoring.models.document import Document
from factoring.models.funding_request import FundingRequest
from factoring.schemas.documents import DocumentProvider, DocumentStatus, DocumentType
from factoring.schemas.funding_requests import RequestStatus
from factoring.services import audit, funding_requests, notifications
from factoring.services.errors import LifecycleError
from factoring.services.pandadoc import Envelope, PandaDocClient, PandaDocError, Recipient
from factoring.services.side_effects import SideEffects

logger = logging.getLogger(__name__)

CONTRACT_ELIGIBLE_STATUSES = frozenset({RequestStatus.OFFERED, RequestStatus.ACCEPTED})
SEND_SUBJECT = "Your contract is ready for signature"
SEND_MESSAGE = "Please review and sign the document."


@dataclass(eq=False)
class ContractGenerationError(LifecycleError):
    """Generation refused for a domain reason; code and status reach the caller unchanged."""

    status_code: int = 500


@dataclass
class ContractGenerationResult:
    document: Document
    envelope_id: str | None
    skipped: bool = False
    skip_reason: str | None = None


def viewer_url(envelope_id: str) -> str:
    return f"{settings.pandadoc_app_url}{envelope_id}"


async def _resolve_recipient_email(
    db: AsyncSession, company_id: UUID, fallback_email: str | None
) -> str:
    recipients = await notifications.get_company_recipients(db, company_id)
    for candidate in (*recipients.clients, *recipients.managers):
        if candidate.email:
            return candidate.email
    if fallback_email:
        return fallback_email
    raise ContractGenerationError(
        "missing_recipient_email", "No e-mail address available for the contract signer", 422
    )


async def generate_contract_for_request(
    db: AsyncSession,
    company_id: UUID,
    request_id: UUID,
    *,
    actor_id: UUID,
    fallback_email: str | None,
    client: PandaDocClient,
    effects: SideEffects,
    skip_if_exists: bool = False,
) -> ContractGenerationResult:
    """Create the master-agreement envelope for an offered or accepted request."""
    funding_request = await funding_requests.get_request(db, company_id, request_id)
    if funding_request is None:
        raise ContractGenerationError("not_found", "Funding request not found", 404)
    status = RequestStatus.parse(funding_request.status)
    if status not in CONTRACT_ELIGIBLE_STATUSES:
        raise ContractGenerationError(
            "invalid_status",
            f"Contracts can only be generated for offered or accepted requests (status={status.value})",
            400,
        )

    existing = await funding_requests.latest_contract_document(db, company_id, request_id)
    if existing is not None and skip_if_exists:
        envelope_id = existing.provider_envelope_id
        effects.schedule(
            "notify.contract_ready",
            notifications.notify_client_contract_ready,
            company_id,
            request_id,
            envelope_id=envelope_id,
            app_url=viewer_url(envelope_id) if envelope_id else None,
        )
        return ContractGenerationResult(
            document=existing,
            envelope_id=existing.provider_envelope_id,
            skipped=True,
            skip_reason="already_exists",
        )

    template_id = settings.pandadoc_template_master_agreement
    if not template_id:
        raise ContractGenerationError(
            "missing_template_env", "PANDADOC_TEMPLATE_MASTER_AGREEMENT is not configured", 500
        )

    email = await _resolve_recipient_email(db, company_id, fallback_email)
    company_name = (
        await db.execute(select(Company.name).where(Company.id == company_id))
    ).scalar_one_or_none()

    try:
        envelope = await client.create_document(
            name=f"Master factoring agreement - {company_name or company_id}",
            template_id=template_id,
            recipients=[Recipient(email=email, role=settings.pandadoc_sign_role)],
            tokens=_contract_tokens(funding_request, company_name),
            metadata={"company_id": str(company_id), "request_id": str(request_id)},
        )
        if settings.pandadoc_send:
            await client.send_document(
                envelope.envelope_id, subject=SEND_SUBJECT, message=SEND_MESSAGE
            )
    except PandaDocError as exc:
        if not exc.is_rejection:
            raise
        raise ContractGenerationError(
            exc.code or "provider_rejected", exc.message, exc.status_code or 502
        ) from exc

    document = await _persist_contract(db, company_id, request_id, envelope, actor_id)

    app_url = viewer_url(envelope.envelope_id)
    effects.schedule(
        "notify.contract_ready",
        notifications.notify_client_contract_ready,
        company_id,
        request_id,
        envelope_id=envelope.envelope_id,
        app_url=app_url,
    )
    effects.schedule(
        "audit.document_created",
        audit.record_audit_log,
        company_id=company_id,
        actor_id=actor_id,
        entity=audit.AuditEntity.DOCUMENT,
        entity_id=document.id,
        action=audit.AuditAction.CREATED,
        data={
            "request_id": str(request_id),
            "type": document.type,
            "provider": document.provider,
            "provider_envelope_id": envelope.envelope_id,
        },
    )
    return ContractGenerationResult(document=document, envelope_id=envelope.envelope_id)


def _contract_tokens(funding_request: FundingRequest, company_name: str | None) -> dict[str, str]:
    tokens = {
        "Company.Name": company_name or "",
        "Request.Id": str(funding_request.id),
        "Request.Amount": str(funding_request.requested_amount),
        "Request.Currency": funding_request.currency or "",
    }
    if funding_request.default_advance_pct is not None:
        tokens["Request.AdvancePct"] = str(funding_request.default_advance_pct)
    if funding_request.default_discount_rate is not None:
        tokens["Request.DiscountRate"] = str(funding_request.default_discount_rate)
    return tokens


async def _persist_contract(
    db: AsyncSession,
    company_id: UUID,
    request_id: UUID,
    envelope: Envelope,
    actor_id: UUID,
) -> Document:
    document = Document(
        company_id=company_id,
        request_id=request_id,
        type=DocumentType.MASTER_AGREEMENT.value,
        status=DocumentStatus.SENT.value if settings.pandadoc_send else DocumentStatus.CREATED.value,
        provider=DocumentProvider.PANDADOC.value,
        provider_envelope_id=envelope.envelope_id,
        uploaded_by=actor_id,
    )
    db.add(document)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ContractGenerationError(
            "contract_already_exists", "A contract already exists for this request", 409
        ) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Failed to persist contract for request %s: %s", request_id, exc)
        raise ContractGenerationError("contract_persist_failed", str(exc), 500) from exc
    await db.refresh(document)
    return document
