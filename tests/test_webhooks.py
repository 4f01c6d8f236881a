import json

import pytest

from factoring.core.settings import settings
from factoring.models import Document, FundingRequest
from factoring.services import webhooks
from factoring.services.errors import LifecycleError
from factoring.services.storage.service import contract_object_key

SECRET = "whsec-test"


def _completed(envelope_id: str) -> list[dict]:
    return [
        {
            "event": "document_state_changed",
            "data": {"id": envelope_id, "status": "document.completed", "name": "Master agreement"},
        }
    ]


def _post(client, payload, *, secret: str | None = SECRET, signature: str | None = None):
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    if signature is None and secret:
        signature = webhooks.compute_signature(secret, body)
    if signature is not None:
        headers["X-PandaDoc-Signature"] = signature
    return client.post("/api/v1/webhooks/pandadoc", content=body, headers=headers)


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "pandadoc_webhook_secret", SECRET)
    return SECRET


def test_verify_signature_accepts_prefixed_digest():
    body = b'{"event": "ping"}'
    digest = webhooks.compute_signature(SECRET, body)
    webhooks.verify_signature(SECRET, body, digest)
    webhooks.verify_signature(SECRET, body, f"sha256={digest.upper()}")


def test_verify_signature_rejects_mismatch():
    with pytest.raises(LifecycleError) as excinfo:
        webhooks.verify_signature(SECRET, b"{}", "deadbeef")
    assert excinfo.value.code == "invalid_signature"
    assert excinfo.value.status_code == 401

    with pytest.raises(LifecycleError):
        webhooks.verify_signature(SECRET, b"{}", None)


def test_missing_secret_only_tolerated_outside_production(monkeypatch):
    webhooks.verify_signature(None, b"{}", None)

    monkeypatch.setattr(settings, "environment", "production")
    with pytest.raises(LifecycleError) as excinfo:
        webhooks.verify_signature(None, b"{}", None)
    assert excinfo.value.code == "webhook_not_configured"


def test_completed_contract_signs_request(client, world, seeder, pandadoc, webhook_secret, storage_root):
    request = seeder.request(company_id=world.company_id, status="accepted")
    document = seeder.document(
        company_id=world.company_id, request_id=request.id, status="sent", provider_envelope_id="env-777"
    )

    response = _post(client, _completed("env-777"))

    assert response.status_code == 200
    assert response.json() == {"ok": True, "processed": ["env-777"], "ignored": False, "skipped": []}
    assert seeder.get(FundingRequest, request.id).status == "signed"
    stored = seeder.get(Document, document.id)
    assert stored.status == "signed"
    assert pandadoc.downloads == ["env-777"]
    object_key = contract_object_key(world.company_id, document.id)
    assert stored.file_path == object_key
    assert (storage_root / "contracts" / object_key).read_bytes() == pandadoc.pdf
    assert len(seeder.audit_logs(entity="contract", action="signed")) == 1
    (change,) = seeder.audit_logs(entity_id=str(request.id), action="status_changed")
    assert change.data["source"] == "webhook"


def test_bad_signature_is_rejected(client, world, seeder, webhook_secret):
    request = seeder.request(company_id=world.company_id, status="accepted")
    seeder.document(company_id=world.company_id, request_id=request.id, provider_envelope_id="env-888")

    response = _post(client, _completed("env-888"), signature="sha256=0000")

    assert response.status_code == 401
    assert response.json()["error"] == "invalid_signature"
    assert seeder.get(FundingRequest, request.id).status == "accepted"


def test_other_events_are_skipped(client, world, seeder, webhook_secret):
    payload = [
        {"event": "document_state_changed", "data": {"id": "env-2", "status": "document.viewed"}},
        {"event": "document_state_changed", "data": {"id": "env-unknown", "status": "document.completed"}},
    ]

    response = _post(client, payload)

    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "processed": [],
        "ignored": True,
        "skipped": ["env-2", "env-unknown"],
    }


@pytest.mark.parametrize(
    "event",
    [
        {"event": "recipient_completed", "data": {"id": "env-321", "status": "document.sent"}},
        {"event": "document_state_changed", "data": {"id": "env-321", "status": "completed"}},
        {"event_type": "document.completed", "id": "env-321"},
        {"event": "document_updated", "data": {"id": "env-321", "tags": ["document.completed"]}},
    ],
)
def test_completion_forms_sign_the_request(client, world, seeder, webhook_secret, event):
    request = seeder.request(company_id=world.company_id, status="offered")
    seeder.document(company_id=world.company_id, request_id=request.id, provider_envelope_id="env-321")

    response = _post(client, event)

    assert response.json()["processed"] == ["env-321"]
    assert seeder.get(FundingRequest, request.id).status == "signed"


def test_signature_from_alternate_header_and_query(client, world, seeder, webhook_secret):
    body = json.dumps(_completed("env-none")).encode()
    digest = webhooks.compute_signature(SECRET, body)

    via_header = client.post(
        "/api/v1/webhooks/pandadoc",
        content=body,
        headers={"Content-Type": "application/json", "X-Signature": digest},
    )
    via_query = client.post(
        "/api/v1/webhooks/pandadoc",
        params={"signature": f"sha256={digest}"},
        content=body,
        headers={"Content-Type": "application/json"},
    )
    tampered = client.post(
        "/api/v1/webhooks/pandadoc",
        params={"signature": "0" * 64},
        content=body,
        headers={"Content-Type": "application/json"},
    )

    assert via_header.status_code == 200
    assert via_query.status_code == 200
    assert via_query.json()["ignored"] is True
    assert tampered.status_code == 401


def test_invalid_json_body(client, world):
    response = client.post(
        "/api/v1/webhooks/pandadoc", content=b"not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_payload"
