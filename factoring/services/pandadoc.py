"""Thin async client for the PandaDoc public API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from factoring.core.settings import settings

logger = logging.getLogger(__name__)

PROVIDER_NAME = "pandadoc"


class PandaDocError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    @property
    def is_rejection(self) -> bool:
        """True when the provider refused the request itself (4xx), not when it failed."""
        return self.status_code is not None and 400 <= self.status_code < 500


@dataclass(frozen=True)
class Envelope:
    envelope_id: str
    status: str
    name: str | None = None


@dataclass(frozen=True)
class Recipient:
    email: str
    role: str
    first_name: str | None = None
    last_name: str | None = None

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"email": self.email, "role": self.role}
        if self.first_name:
            payload["first_name"] = self.first_name
        if self.last_name:
            payload["last_name"] = self.last_name
        return payload


def _error_from_response(response: httpx.Response) -> PandaDocError:
    code = None
    message = response.text or f"PandaDoc request failed with status {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code") or body.get("type")
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, dict):
            detail = "; ".join(f"{key}: {value}" for key, value in detail.items())
        if detail:
            message = str(detail)
    return PandaDocError(message, status_code=response.status_code, code=code)


class PandaDocClient:
    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = "https://api.pandadoc.com",
        session_base_url: str = "https://app.pandadoc.com/s/",
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.session_base_url = session_base_url
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if not self.api_key:
            raise PandaDocError("PandaDoc API key is not configured", code="missing_api_key")
        headers = {"Authorization": f"API-Key {self.api_key}"}
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(method, path, **kwargs)
        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.warning(
                "PandaDoc %s %s failed with %s: %s",
                method,
                path,
                response.status_code,
                error.message,
            )
            raise error
        return response

    async def create_document(
        self,
        *,
        name: str,
        template_id: str,
        recipients: list[Recipient],
        tokens: dict[str, str] | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Envelope:
        payload: dict[str, Any] = {
            "name": name,
            "template_uuid": template_id,
            "recipients": [recipient.as_payload() for recipient in recipients],
            "tokens": [{"name": key, "value": value} for key, value in (tokens or {}).items()],
        }
        if metadata:
            payload["metadata"] = metadata
        response = await self._request("POST", "/public/v1/documents", json=payload)
        body = response.json()
        return Envelope(
            envelope_id=str(body["id"]),
            status=str(body.get("status") or "document.uploaded"),
            name=body.get("name"),
        )

    async def send_document(self, envelope_id: str, *, subject: str, message: str) -> None:
        await self._request(
            "POST",
            f"/public/v1/documents/{envelope_id}/send",
            json={"subject": subject, "message": message, "silent": False},
        )

    async def create_recipient_session(
        self, envelope_id: str, *, recipient_email: str, lifetime_seconds: int = 900
    ) -> str:
        response = await self._request(
            "POST",
            f"/public/v1/documents/{envelope_id}/session",
            json={"recipient": recipient_email, "lifetime": lifetime_seconds},
        )
        session_id = response.json().get("id")
        if not session_id:
            raise PandaDocError("PandaDoc did not return a session id", code="missing_session")
        return f"{self.session_base_url}{session_id}"

    async def download_document(self, envelope_id: str) -> bytes:
        response = await self._request("GET", f"/public/v1/documents/{envelope_id}/download")
        return response.content


def get_pandadoc_client() -> PandaDocClient:
    return PandaDocClient(
        settings.pandadoc_api_key,
        base_url=settings.pandadoc_base_url,
        timeout=settings.pandadoc_timeout_seconds,
    )
