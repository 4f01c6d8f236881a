from __future__ import annotations

from decimal import Decimal
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask


def _encode(content: dict[str, Any]) -> Any:
    return jsonable_encoder(content, custom_encoder={Decimal: lambda value: str(value)})


def success_payload(**payload: Any) -> dict[str, Any]:
    return _encode({"ok": True, **payload})


def success(
    status_code: int = 200,
    *,
    background: BackgroundTask | None = None,
    **payload: Any,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=success_payload(**payload),
        background=background,
    )


def failure(
    code: str,
    status_code: int,
    *,
    message: str | None = None,
    details: dict[str, Any] | None = None,
    background: BackgroundTask | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"ok": False, "error": code}
    if message and message != code:
        content["message"] = message
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=_encode(content), background=background)
