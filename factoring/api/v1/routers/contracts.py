from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.api import deps
from factoring.api.errors import database_failure, effects_task, lifecycle_failure
from factoring.core.response_envelope import success
from factoring.db.session import get_db
from factoring.schemas.documents import DocumentDTO
from factoring.services import lifecycle
from factoring.services.errors import LifecycleError
from factoring.services.pandadoc import PandaDocClient
from factoring.services.side_effects import SideEffects


router = APIRouter(prefix="/c/{org_id}/requests/{request_id}/contract", tags=["contracts"])


@router.post("", summary="Generate the master agreement for a request")
async def generate_contract(
    request_id: UUID,
    skip_if_exists: bool = Query(default=False),
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    client: PandaDocClient = Depends(deps.get_pandadoc_client),
):
    try:
        result = await lifecycle.generate_contract(
            db,
            identity,
            company.company_id,
            request_id,
            effects=effects,
            client=client,
            skip_if_exists=skip_if_exists,
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    payload = {
        "document": DocumentDTO.model_validate(result.document),
        "envelope_id": result.envelope_id,
        "skipped": result.skipped,
    }
    if result.skip_reason:
        payload["reason"] = result.skip_reason
    return success(200 if result.skipped else 201, background=effects_task(effects), **payload)


@router.post("/send", summary="Send the generated contract for signature")
async def send_contract(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    client: PandaDocClient = Depends(deps.get_pandadoc_client),
):
    try:
        document = await lifecycle.send_contract(
            db, identity, company.company_id, request_id, effects=effects, client=client
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(document=DocumentDTO.model_validate(document), background=effects_task(effects))


@router.get("/link", summary="Signing session link for the current user")
async def contract_link(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    client: PandaDocClient = Depends(deps.get_pandadoc_client),
):
    try:
        url = await lifecycle.contract_link(
            db, identity, company.company_id, request_id, client=client
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc)
    except SQLAlchemyError as exc:
        return database_failure(exc)
    return success(url=url)


@router.get("/open", summary="Provider viewer URL for the contract")
async def contract_open(
    request_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        url = await lifecycle.contract_open_url(db, identity, company.company_id, request_id)
    except LifecycleError as exc:
        return lifecycle_failure(exc)
    except SQLAlchemyError as exc:
        return database_failure(exc)
    return success(url=url)
