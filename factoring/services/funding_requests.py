"""Organization-scoped access to funding requests and their documents.

Every predicate pairs the row id with the company id, so an id that belongs to
another organization behaves exactly like a missing one.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.models.document import Document
from factoring.models.funding_request import FundingRequest
from factoring.schemas.documents import DocumentProvider, DocumentType
from factoring.services.errors import not_found, version_conflict


async def get_request(
    db: AsyncSession,
    company_id: UUID,
    request_id: UUID,
) -> FundingRequest | None:
    stmt = select(FundingRequest).where(
        FundingRequest.id == request_id,
        FundingRequest.company_id == company_id,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def require_request(db: AsyncSession, company_id: UUID, request_id: UUID) -> FundingRequest:
    funding_request = await get_request(db, company_id, request_id)
    if funding_request is None:
        raise not_found("request")
    return funding_request


async def _exists(db: AsyncSession, company_id: UUID, request_id: UUID) -> bool:
    stmt = select(FundingRequest.id).where(
        FundingRequest.id == request_id,
        FundingRequest.company_id == company_id,
    )
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def update_request(
    db: AsyncSession,
    company_id: UUID,
    request_id: UUID,
    values: dict[str, Any],
    *,
    expected_version: int | None = None,
) -> None:
    """Apply ``values`` and bump the version; zero matched rows is never a success."""
    conditions = [FundingRequest.id == request_id, FundingRequest.company_id == company_id]
    if expected_version is not None:
        conditions.append(FundingRequest.version == expected_version)
    stmt = (
        update(FundingRequest)
        .where(*conditions)
        .values(**values, version=FundingRequest.version + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount:
        return
    if expected_version is not None and await _exists(db, company_id, request_id):
        raise version_conflict(expected_version)
    raise not_found("request")


async def delete_request(db: AsyncSession, company_id: UUID, request_id: UUID) -> None:
    stmt = delete(FundingRequest).where(
        FundingRequest.id == request_id,
        FundingRequest.company_id == company_id,
    ).execution_options(synchronize_session=False)
    result = await db.execute(stmt)
    if not result.rowcount:
        raise not_found("request")


async def list_documents(db: AsyncSession, company_id: UUID, request_id: UUID) -> list[Document]:
    stmt = (
        select(Document)
        .where(Document.company_id == company_id, Document.request_id == request_id)
        .order_by(Document.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def latest_contract_document(
    db: AsyncSession,
    company_id: UUID,
    request_id: UUID,
    *,
    provider: DocumentProvider | None = None,
) -> Document | None:
    """Most recent contract document for the request, optionally for one provider."""
    conditions = [
        Document.company_id == company_id,
        Document.request_id == request_id,
        Document.type == DocumentType.MASTER_AGREEMENT.value,
    ]
    if provider is not None:
        conditions.append(Document.provider == provider.value)
    stmt = select(Document).where(*conditions).order_by(Document.created_at.desc()).limit(1)
    return (await db.execute(stmt)).scalars().first()


async def find_document_by_envelope(db: AsyncSession, envelope_id: str) -> Document | None:
    stmt = (
        select(Document)
        .where(
            Document.provider == DocumentProvider.PANDADOC.value,
            Document.provider_envelope_id == envelope_id,
        )
        .order_by(Document.created_at.desc())
        .limit(1)
    )
    return (await db.execute(stmt)).scalars().first()
