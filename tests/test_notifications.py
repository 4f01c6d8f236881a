from uuid import uuid4

import pytest

from factoring.models import Notification
from factoring.services import notifications


@pytest.mark.asyncio
async def test_recipients_accept_legacy_status_spelling(seeder, session_factory):
    company = seeder.company()
    legacy_client = uuid4()
    disabled_client = uuid4()
    owner = uuid4()
    seeder.profile(user_id=legacy_client, email="legacy@acme.test")
    seeder.profile(user_id=disabled_client, email="gone@acme.test")
    seeder.profile(user_id=owner, email="owner@acme.test")
    seeder.membership(company_id=company.id, user_id=legacy_client, role="client", status="active")
    seeder.membership(company_id=company.id, user_id=disabled_client, role="OPERATOR", status="disabled")
    seeder.membership(company_id=company.id, user_id=owner, role="owner", status=" Active ")

    async with session_factory() as db:
        recipients = await notifications.get_company_recipients(db, company.id)

    assert [r.email for r in recipients.clients] == ["legacy@acme.test"]
    assert [r.email for r in recipients.managers] == ["owner@acme.test"]


@pytest.mark.asyncio
async def test_funded_notice_reaches_legacy_active_member(seeder, session_factory):
    company = seeder.company()
    member = uuid4()
    seeder.profile(user_id=member, email="legacy@acme.test")
    seeder.membership(company_id=company.id, user_id=member, role="VIEWER", status="active")
    request = seeder.request(company_id=company.id, status="funded")

    async with session_factory() as db:
        rows = await notifications.notify_client_funded(db, company.id, request.id)
        await db.commit()

    assert [row.user_id for row in rows] == [member]
    (stored,) = seeder.all(Notification, type="request_funded")
    assert stored.data == {"request_id": str(request.id)}


@pytest.mark.asyncio
async def test_contract_ready_without_envelope(seeder, session_factory):
    company = seeder.company()
    member = uuid4()
    seeder.profile(user_id=member, email="client@acme.test")
    seeder.membership(company_id=company.id, user_id=member, role="OPERATOR")
    request = seeder.request(company_id=company.id, status="offered")

    async with session_factory() as db:
        rows = await notifications.notify_client_contract_ready(
            db, company.id, request.id, envelope_id=None, app_url=None
        )

    assert rows[0].data == {"request_id": str(request.id), "envelope_id": None, "url": None}
