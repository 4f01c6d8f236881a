from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from factoring.api import deps
from factoring.core.permissions import AccessLevel
from factoring.models.document import Document
from factoring.schemas.documents import (
    DocumentProvider,
    DocumentStatus,
    DocumentType,
    SupportDocumentInput,
)
from factoring.services import audit, funding_requests
from factoring.services.errors import LifecycleError
from factoring.services.lifecycle import authorize
from factoring.services.side_effects import SideEffects
from factoring.services.storage.service import is_company_scoped_key


def _dedupe(items: list[SupportDocumentInput]) -> list[SupportDocumentInput]:
    by_path: dict[str, SupportDocumentInput] = {}
    for item in items:
        if item.file_path:
            by_path[item.file_path] = item
    return list(by_path.values())


async def attach_support_documents(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    items: list[SupportDocumentInput],
    *,
    effects: SideEffects,
) -> list[Document]:
    """Register files the client already uploaded to the requests bucket."""
    await authorize(db, identity, company_id, AccessLevel.ACTIVE_MEMBER)
    documents = _dedupe(items)
    if not documents:
        raise LifecycleError("missing_documents", "At least one document with a file_path is required", 400)
    outside = [item.file_path for item in documents if not is_company_scoped_key(company_id, item.file_path)]
    if outside:
        raise LifecycleError(
            "invalid_file_path",
            "Document paths must live under the company's folder",
            400,
            {"file_paths": outside},
        )
    await funding_requests.require_request(db, company_id, request_id)

    rows = [
        Document(
            company_id=company_id,
            request_id=request_id,
            type=DocumentType.REQUEST_SUPPORT.value,
            status=DocumentStatus.UPLOADED.value,
            provider=DocumentProvider.STORAGE.value,
            file_path=item.file_path,
            file_name=item.name,
            size_bytes=item.size,
            content_type=item.content_type,
            uploaded_by=identity.user_id,
        )
        for item in documents
    ]
    db.add_all(rows)
    await db.commit()
    for row in rows:
        await db.refresh(row)

    for row in rows:
        effects.schedule(
            "audit.document_created",
            audit.record_audit_log,
            company_id=company_id,
            actor_id=identity.user_id,
            entity=audit.AuditEntity.DOCUMENT,
            entity_id=row.id,
            action=audit.AuditAction.CREATED,
            data={"request_id": str(request_id), "type": row.type, "file_path": row.file_path},
        )
    return rows
