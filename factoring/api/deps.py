from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from factoring.core.context import set_company_id
from factoring.core.settings import settings
from factoring.core.security import JWTKeyError, decode_token
from factoring.db.session import AsyncSessionLocal
from factoring.services.pandadoc import PandaDocClient
from factoring.services.pandadoc import get_pandadoc_client as build_pandadoc_client
from factoring.services.side_effects import SideEffects


@dataclass(frozen=True, slots=True)
class IdentityContext:
    """Authenticated caller, built once per request and passed into every operation."""

    user_id: UUID
    email: str | None = None


@dataclass(frozen=True, slots=True)
class CompanyContext:
    company_id: UUID


bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "unauthorized", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> IdentityContext:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")
    try:
        payload = decode_token(credentials.credentials)
    except (ValueError, JWTKeyError) as exc:
        raise _unauthorized(str(exc)) from exc
    subject = payload.get("sub")
    try:
        user_id = UUID(str(subject))
    except (TypeError, ValueError) as exc:
        raise _unauthorized("Invalid token subject") from exc
    email = payload.get("email")
    return IdentityContext(user_id=user_id, email=email.strip().lower() if email else None)


async def get_company_context(org_id: UUID) -> CompanyContext:
    set_company_id(str(org_id))
    return CompanyContext(company_id=org_id)


def get_side_effects() -> SideEffects:
    return SideEffects(session_factory=AsyncSessionLocal)


def get_lifecycle_policy():
    # Imported here: the lifecycle module depends on this one.
    from factoring.services.lifecycle import LifecyclePolicy

    return LifecyclePolicy.from_settings(settings)


def get_pandadoc_client() -> PandaDocClient:
    return build_pandadoc_client()


def get_expected_version(if_match: str | None = Header(default=None, alias="If-Match")) -> int | None:
    """Optional optimistic-concurrency precondition; accepts ``3`` or ``"3"`` / ``W/"3"``."""
    if if_match is None or not if_match.strip():
        return None
    cleaned = if_match.strip()
    if cleaned.startswith("W/"):
        cleaned = cleaned[2:]
    cleaned = cleaned.strip('"')
    try:
        version = int(cleaned)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_if_match", "message": "If-Match must carry a request version"},
        ) from exc
    if version < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_if_match", "message": "If-Match must carry a request version"},
        )
    return version
