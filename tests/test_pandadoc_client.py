import json

import httpx
import pytest

from factoring.services.pandadoc import PandaDocClient, PandaDocError, Recipient


def _client(handler) -> PandaDocClient:
    return PandaDocClient(
        "pd-key",
        base_url="https://pandadoc.test",
        session_base_url="https://app.pandadoc.test/s/",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_create_document_sends_template_and_tokens():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "env-1", "status": "document.uploaded", "name": "MA"})

    envelope = await _client(handler).create_document(
        name="MA",
        template_id="tmpl-1",
        recipients=[Recipient(email="payer@acme.test", role="signer")],
        tokens={"Company.Name": "Acme"},
        metadata={"request_id": "r-1"},
    )

    assert envelope.envelope_id == "env-1"
    assert seen["auth"] == "API-Key pd-key"
    assert seen["path"] == "/public/v1/documents"
    assert seen["body"]["template_uuid"] == "tmpl-1"
    assert seen["body"]["recipients"] == [{"email": "payer@acme.test", "role": "signer"}]
    assert seen["body"]["tokens"] == [{"name": "Company.Name", "value": "Acme"}]
    assert seen["body"]["metadata"] == {"request_id": "r-1"}


@pytest.mark.asyncio
async def test_domain_errors_carry_code_and_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"type": "MISSING_PAYER", "detail": "Payer details are missing"})

    with pytest.raises(PandaDocError) as excinfo:
        await _client(handler).send_document("env-1", subject="s", message="m")

    assert excinfo.value.code == "MISSING_PAYER"
    assert excinfo.value.status_code == 422
    assert excinfo.value.message == "Payer details are missing"
    assert excinfo.value.is_rejection


@pytest.mark.asyncio
async def test_server_errors_are_not_rejections():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(PandaDocError) as excinfo:
        await _client(handler).download_document("env-1")

    assert excinfo.value.is_rejection is False
    assert excinfo.value.message == "bad gateway"


@pytest.mark.asyncio
async def test_recipient_session_url():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"recipient": "payer@acme.test", "lifetime": 900}
        return httpx.Response(201, json={"id": "sess-9"})

    url = await _client(handler).create_recipient_session("env-1", recipient_email="payer@acme.test")

    assert url == "https://app.pandadoc.test/s/sess-9"


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_any_request():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    client = PandaDocClient(None, transport=httpx.MockTransport(handler))
    with pytest.raises(PandaDocError) as excinfo:
        await client.download_document("env-1")

    assert excinfo.value.code == "missing_api_key"
    assert excinfo.value.is_rejection is False
