from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.api import deps
from factoring.api.errors import database_failure, effects_task, lifecycle_failure
from factoring.core.response_envelope import success
from factoring.db.session import get_db
from factoring.schemas.documents import DocumentDTO, SupportDocumentsCreateRequest
from factoring.schemas.funding_requests import FundingRequestDTO, FundingRequestPatch
from factoring.schemas.offers import OfferDTO
from factoring.services import documents as documents_service
from factoring.services import lifecycle
from factoring.services import offers as offers_service
from factoring.services.errors import LifecycleError
from factoring.services.side_effects import SideEffects


router = APIRouter(prefix="/c/{org_id}/requests", tags=["requests"])


def _request_payload(funding_request) -> FundingRequestDTO:
    return FundingRequestDTO.model_validate(funding_request)


@router.get("/{request_id}", summary="Get a funding request")
async def get_request(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        funding_request = await lifecycle.get_request(db, identity, company.company_id, request_id)
    except LifecycleError as exc:
        return lifecycle_failure(exc)
    except SQLAlchemyError as exc:
        return database_failure(exc)
    return success(request=_request_payload(funding_request))


@router.patch("/{request_id}", summary="Update a funding request")
async def update_request(
    request_id: UUID,
    payload: FundingRequestPatch,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    policy=Depends(deps.get_lifecycle_policy),
    expected_version: int | None = Depends(deps.get_expected_version),
):
    try:
        funding_request = await lifecycle.update_request(
            db,
            identity,
            company.company_id,
            request_id,
            payload,
            effects=effects,
            policy=policy,
            expected_version=expected_version,
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(request=_request_payload(funding_request), background=effects_task(effects))


@router.delete("/{request_id}", summary="Delete a funding request and its stored files")
async def delete_request(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    policy=Depends(deps.get_lifecycle_policy),
):
    try:
        await lifecycle.delete_request(
            db, identity, company.company_id, request_id, effects=effects, policy=policy
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(deleted=True, request_id=request_id, background=effects_task(effects))


@router.post("/{request_id}/archive", summary="Archive a funding request")
async def archive_request(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    expected_version: int | None = Depends(deps.get_expected_version),
):
    try:
        funding_request = await lifecycle.archive_request(
            db,
            identity,
            company.company_id,
            request_id,
            effects=effects,
            expected_version=expected_version,
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(request=_request_payload(funding_request), background=effects_task(effects))


@router.post("/{request_id}/deny", summary="Cancel a funding request")
async def deny_request(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    expected_version: int | None = Depends(deps.get_expected_version),
):
    try:
        funding_request = await lifecycle.deny_request(
            db,
            identity,
            company.company_id,
            request_id,
            effects=effects,
            expected_version=expected_version,
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(request=_request_payload(funding_request), background=effects_task(effects))


@router.post("/{request_id}/fund", summary="Mark a funding request as funded")
async def fund_request(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    policy=Depends(deps.get_lifecycle_policy),
    expected_version: int | None = Depends(deps.get_expected_version),
):
    try:
        funding_request = await lifecycle.fund_request(
            db,
            identity,
            company.company_id,
            request_id,
            effects=effects,
            policy=policy,
            expected_version=expected_version,
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(request=_request_payload(funding_request), background=effects_task(effects))


@router.post("/{request_id}/force-signed", summary="Force the contract and request to signed")
async def force_sign_request(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    policy=Depends(deps.get_lifecycle_policy),
    expected_version: int | None = Depends(deps.get_expected_version),
):
    try:
        funding_request = await lifecycle.force_sign_request(
            db,
            identity,
            company.company_id,
            request_id,
            effects=effects,
            policy=policy,
            expected_version=expected_version,
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(request=_request_payload(funding_request), background=effects_task(effects))


@router.post("/{request_id}/offer", status_code=201, summary="Price the request and issue an offer")
async def make_offer(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    expected_version: int | None = Depends(deps.get_expected_version),
):
    try:
        offer = await offers_service.make_offer(
            db,
            identity,
            company.company_id,
            request_id,
            effects=effects,
            expected_version=expected_version,
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(201, offer=OfferDTO.model_validate(offer), background=effects_task(effects))


@router.post("/{request_id}/documents", status_code=201, summary="Register uploaded support documents")
async def attach_documents(
    request_id: UUID,
    payload: SupportDocumentsCreateRequest,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
):
    try:
        rows = await documents_service.attach_support_documents(
            db, identity, company.company_id, request_id, payload.documents, effects=effects
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(
        201,
        documents=[DocumentDTO.model_validate(row) for row in rows],
        background=effects_task(effects),
    )
