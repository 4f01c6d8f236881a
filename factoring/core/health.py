from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text

from factoring.core.settings import settings
from factoring.db.session import engine

APP_VERSION = "0.1.0"


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:  # pragma: no cover - exercised in runtime
        return {"status": "error", "error": str(exc)}


async def _check_api() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}


def _integration_checks() -> dict[str, dict[str, Any]]:
    return {
        "pandadoc": {"status": "ok" if settings.pandadoc_api_key else "unconfigured"},
        "email": {"status": "ok" if settings.resend_api_key else "unconfigured"},
    }


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def live_payload() -> dict[str, str]:
    return {"status": "ok", "timestamp": _timestamp()}


async def ready_payload() -> dict[str, Any]:
    checks = {
        "api": await _check_api(),
        "database": await _check_db(),
    }
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": _timestamp(),
        "checks": checks,
    }


async def status_summary_payload() -> dict[str, Any]:
    """Readiness plus integration configuration; unconfigured providers do not degrade it."""
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    payload["integrations"] = _integration_checks()
    return payload


async def health_payload() -> dict[str, Any]:
    return await ready_payload()
