from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.api import deps
from factoring.api.errors import database_failure, effects_task, lifecycle_failure
from factoring.core.logging import get_integration_logger
from factoring.core.response_envelope import failure, success
from factoring.core.settings import settings
from factoring.db.session import get_db
from factoring.services import webhooks
from factoring.services.errors import LifecycleError
from factoring.services.pandadoc import PandaDocClient
from factoring.services.side_effects import SideEffects

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
integration_logger = get_integration_logger()


@router.post("/pandadoc", summary="PandaDoc document state notifications")
async def pandadoc_webhook(
    request: Request,
    signature: str | None = Header(default=None, alias="X-PandaDoc-Signature"),
    alt_signature: str | None = Header(default=None, alias="X-Signature"),
    query_signature: str | None = Query(default=None, alias="signature"),
    db: AsyncSession = Depends(get_db),
    effects: SideEffects = Depends(deps.get_side_effects),
    client: PandaDocClient = Depends(deps.get_pandadoc_client),
):
    body = await request.body()
    try:
        webhooks.verify_signature(
            settings.pandadoc_webhook_secret, body, signature or alt_signature or query_signature
        )
    except LifecycleError as exc:
        integration_logger.warning("Rejected PandaDoc webhook: %s", exc.code)
        return lifecycle_failure(exc)
    try:
        payload = json.loads(body or b"null")
    except ValueError:
        return failure("invalid_payload", 400, message="Webhook body is not valid JSON")

    try:
        outcome = await webhooks.handle_pandadoc_event(db, payload, effects=effects, client=client)
    except LifecycleError as exc:
        return lifecycle_failure(exc, effects)
    except SQLAlchemyError as exc:
        return database_failure(exc, effects)
    integration_logger.info(
        "PandaDoc webhook processed=%d skipped=%d", len(outcome.processed), len(outcome.skipped)
    )
    return success(
        processed=outcome.processed,
        ignored=outcome.ignored,
        skipped=outcome.skipped,
        background=effects_task(effects),
    )
