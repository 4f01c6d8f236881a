from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.api import deps
from factoring.api.errors import database_failure, effects_task, lifecycle_failure
from factoring.core.response_envelope import success
from factoring.db.session import get_db
from factoring.schemas.offers import OfferDTO
from factoring.services import offers as offers_service
from factoring.services.errors import LifecycleError
from factoring.services.side_effects import SideEffects


router = APIRouter(prefix="/c/{org_id}/offers", tags=["offers"])


@router.post("/{offer_id}/accept", summary="Accept an open offer")
async def accept_offer(
    offer_id: UUID,
    identity: deps.IdentityContext = Depends(deps.get_identity),
    company: deps.CompanyContext = Depends(deps.get_company_context),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
):
    try:
        offer = await offers_service.accept_offer(
            db, identity, company.company_id, offer_id, effects=effects
        )
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    return success(offer=OfferDTO.model_validate(offer), background=effects_task(effects))
