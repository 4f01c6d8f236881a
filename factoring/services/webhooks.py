from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from factoring.core.settings import settings
from factoring.models.document import Document
from factoring.schemas.documents import DocumentStatus
from factoring.schemas.funding_requests import RequestStatus
from factoring.services import audit, funding_requests
from factoring.services.errors import LifecycleError
from factoring.services.lifecycle import can_transition
from factoring.services.pandadoc import PandaDocClient
from factoring.services.side_effects import SideEffects
from factoring.services.storage.service import StorageBucket, contract_object_key, get_storage_adapter

logger = logging.getLogger(__name__)

COMPLETED_MARKER = "document.completed"
COMPLETED_EVENTS = frozenset({"recipient_completed"})
COMPLETED_STATES = frozenset({COMPLETED_MARKER, "completed", "completed_document"})


@dataclass
class WebhookOutcome:
    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def ignored(self) -> bool:
        return not self.processed


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str | None, body: bytes, header_value: str | None) -> None:
    if not secret:
        if settings.is_production:
            raise LifecycleError("webhook_not_configured", "Webhook secret is not configured", 401)
        return
    provided = (header_value or "").strip()
    if provided.lower().startswith("sha256="):
        provided = provided[len("sha256="):]
    if not provided or not hmac.compare_digest(compute_signature(secret, body), provided.lower()):
        raise LifecycleError("invalid_signature", "Webhook signature mismatch", 401)


def is_completion_event(event: dict[str, Any]) -> bool:
    """PandaDoc reports completion through the event name, its tags or the document state."""
    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    event_type = str(event.get("event") or event.get("event_type") or "")
    state = data.get("status") or event.get("status")
    tags = event.get("tags") or data.get("tags") or []
    return (
        COMPLETED_MARKER in event_type
        or event_type in COMPLETED_EVENTS
        or state in COMPLETED_STATES
        or (isinstance(tags, list) and COMPLETED_MARKER in tags)
    )


def _envelope_id(event: dict[str, Any]) -> str:
    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    return str(data.get("id") or event.get("id") or "")


def _events(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        return [payload]
    return []


async def store_signed_pdf(
    db: AsyncSession, document_id: Any, envelope_id: str, client: PandaDocClient
) -> None:
    """Download the executed contract and attach it to its document row."""
    document = await db.get(Document, document_id)
    if document is None:
        return
    content = await client.download_document(envelope_id)
    object_key = contract_object_key(document.company_id, document.id)
    get_storage_adapter(StorageBucket.CONTRACTS).upload_bytes(object_key, content, "application/pdf")
    document.file_path = object_key


async def handle_pandadoc_event(
    db: AsyncSession,
    payload: Any,
    *,
    effects: SideEffects,
    client: PandaDocClient,
) -> WebhookOutcome:
    outcome = WebhookOutcome()
    for event in _events(payload):
        envelope_id = _envelope_id(event)
        if not envelope_id or not is_completion_event(event):
            outcome.skipped.append(envelope_id or "-")
            continue
        document = await funding_requests.find_document_by_envelope(db, envelope_id)
        if document is None:
            logger.info("Ignoring PandaDoc completion for unknown envelope %s", envelope_id)
            outcome.skipped.append(envelope_id)
            continue
        await _complete_contract(db, document, envelope_id, effects=effects, client=client)
        outcome.processed.append(envelope_id)
    return outcome


async def _complete_contract(
    db: AsyncSession,
    document: Document,
    envelope_id: str,
    *,
    effects: SideEffects,
    client: PandaDocClient,
) -> None:
    company_id, request_id = document.company_id, document.request_id
    document.status = DocumentStatus.SIGNED.value

    funding_request = await funding_requests.get_request(db, company_id, request_id)
    previous = None
    if funding_request is not None:
        current = RequestStatus.parse(funding_request.status)
        if current != RequestStatus.SIGNED and can_transition(current, RequestStatus.SIGNED):
            previous = current
            await funding_requests.update_request(
                db, company_id, request_id, {"status": RequestStatus.SIGNED.value}
            )
        elif current != RequestStatus.SIGNED:
            logger.warning(
                "Contract %s completed but request %s is %s; status left unchanged",
                envelope_id,
                request_id,
                current.value,
            )
    await db.commit()

    effects.schedule("contract.store_signed_pdf", store_signed_pdf, document.id, envelope_id, client)
    effects.schedule(
        "audit.contract_signed",
        audit.record_audit_log,
        company_id=company_id,
        actor_id=None,
        entity=audit.AuditEntity.CONTRACT,
        entity_id=document.id,
        action=audit.AuditAction.SIGNED,
        data={"request_id": str(request_id), "provider_envelope_id": envelope_id},
    )
    if previous is not None:
        effects.schedule(
            "audit.status_changed",
            audit.log_status_change,
            company_id=company_id,
            actor_id=None,
            request_id=request_id,
            from_status=previous.value,
            to_status=RequestStatus.SIGNED.value,
            extra={"source": "webhook"},
        )
