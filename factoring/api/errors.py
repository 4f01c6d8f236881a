from __future__ import annotations

import logging

from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.background import BackgroundTask

from factoring.core.response_envelope import failure
from factoring.services.errors import LifecycleError
from factoring.services.side_effects import SideEffects

logger = logging.getLogger(__name__)


def effects_task(effects: SideEffects | None) -> BackgroundTask | None:
    if effects is None or not effects.pending:
        return None
    return BackgroundTask(effects.run)


def lifecycle_failure(exc: LifecycleError, effects: SideEffects | None = None) -> JSONResponse:
    return failure(
        exc.code,
        exc.status_code,
        message=exc.message,
        details=exc.details or None,
        background=effects_task(effects),
    )


def database_failure(exc: SQLAlchemyError, effects: SideEffects | None = None) -> JSONResponse:
    logger.error("Database error: %s", exc)
    message = str(getattr(exc, "orig", None) or exc)
    return failure("database_error", 500, message=message, background=effects_task(effects))
