from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.core.permissions import (
    MANAGER_ROLES,
    MemberStatus,
    normalize_member_role,
    normalize_member_status,
)
from factoring.core.settings import settings
from factoring.models.membership import Membership
from factoring.models.notification import Notification
from factoring.models.profile import Profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    user_id: UUID
    email: str | None


@dataclass
class CompanyRecipients:
    managers: list[Recipient] = field(default_factory=list)
    clients: list[Recipient] = field(default_factory=list)

    @property
    def client_audience(self) -> list[Recipient]:
        return self.clients or self.managers


async def get_company_recipients(db: AsyncSession, company_id: UUID) -> CompanyRecipients:
    """Active members of a company, split into managers (OWNER/ADMIN) and everyone else."""
    stmt = (
        select(Membership.user_id, Membership.role, Membership.status, Profile.email)
        .outerjoin(Profile, Profile.user_id == Membership.user_id)
        .where(Membership.company_id == company_id)
        .order_by(Membership.created_at)
    )
    recipients = CompanyRecipients()
    for user_id, role, status, email in (await db.execute(stmt)).all():
        if normalize_member_status(status) != MemberStatus.ACTIVE:
            continue
        recipient = Recipient(user_id=user_id, email=email)
        if normalize_member_role(role) in MANAGER_ROLES:
            recipients.managers.append(recipient)
        else:
            recipients.clients.append(recipient)
    return recipients


def create_notifications(
    db: AsyncSession,
    recipients: list[Recipient],
    *,
    company_id: UUID | None,
    type: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> list[Notification]:
    rows = [
        Notification(
            user_id=recipient.user_id,
            company_id=company_id,
            type=type,
            message=message,
            data=data,
        )
        for recipient in recipients
    ]
    db.add_all(rows)
    return rows


async def send_email(to: list[str], subject: str, html: str) -> bool:
    """Send through Resend; returns False when e-mail delivery is not configured."""
    addresses = [address for address in to if address]
    if not addresses:
        return False
    if not settings.resend_api_key:
        logger.debug("Skipping e-mail %r: RESEND_API_KEY not configured", subject)
        return False
    async with httpx.AsyncClient(base_url=settings.resend_base_url, timeout=10.0) as client:
        response = await client.post(
            "/emails",
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            json={"from": settings.email_from, "to": addresses, "subject": subject, "html": html},
        )
        response.raise_for_status()
    return True


async def _notify_company(
    db: AsyncSession,
    company_id: UUID,
    *,
    type: str,
    message: str,
    subject: str,
    html: str,
    data: dict[str, Any],
) -> list[Notification]:
    audience = (await get_company_recipients(db, company_id)).client_audience
    if not audience:
        logger.info("No active recipients for %s in company %s", type, company_id)
        return []
    rows = create_notifications(
        db, audience, company_id=company_id, type=type, message=message, data=data
    )
    await send_email([recipient.email for recipient in audience], subject, html)
    return rows


async def notify_client_funded(db: AsyncSession, company_id: UUID, request_id: UUID) -> list[Notification]:
    return await _notify_company(
        db,
        company_id,
        type="request_funded",
        message="Your funding request has been disbursed.",
        subject="Your funding request was funded",
        html=f"<p>Funding request <strong>{request_id}</strong> has been disbursed.</p>",
        data={"request_id": str(request_id)},
    )


async def notify_client_contract_ready(
    db: AsyncSession,
    company_id: UUID,
    request_id: UUID,
    *,
    envelope_id: str | None,
    app_url: str | None,
) -> list[Notification]:
    if app_url:
        html = f'<p>Your contract is ready. <a href="{app_url}">Review and sign it</a>.</p>'
    else:
        html = "<p>Your contract is ready. Open the portal to review and sign it.</p>"
    return await _notify_company(
        db,
        company_id,
        type="contract_ready",
        message="Your contract is ready for signature.",
        subject="Contract ready for signature",
        html=html,
        data={"request_id": str(request_id), "envelope_id": envelope_id, "url": app_url},
    )


async def notify_client_offer_generated(
    db: AsyncSession,
    company_id: UUID,
    request_id: UUID,
    offer_id: UUID,
) -> list[Notification]:
    return await _notify_company(
        db,
        company_id,
        type="offer_generated",
        message="A financing offer is available for your request.",
        subject="New financing offer",
        html=f"<p>A new offer is available for funding request <strong>{request_id}</strong>.</p>",
        data={"request_id": str(request_id), "offer_id": str(offer_id)},
    )


async def notify_staff_offer_accepted(
    db: AsyncSession,
    company_id: UUID,
    request_id: UUID,
    offer_id: UUID,
) -> list[Notification]:
    mailboxes = settings.backoffice_notification_list
    if not mailboxes:
        return []
    stmt = select(Profile.user_id, Profile.email).where(
        Profile.is_staff.is_(True), Profile.email.in_(mailboxes)
    )
    staff = [Recipient(user_id=row[0], email=row[1]) for row in (await db.execute(stmt)).all()]
    rows = create_notifications(
        db,
        staff,
        company_id=company_id,
        type="offer_accepted",
        message="A client accepted a financing offer.",
        data={"request_id": str(request_id), "offer_id": str(offer_id)},
    )
    await send_email(
        mailboxes,
        "Offer accepted",
        f"<p>Company {company_id} accepted offer {offer_id} for request {request_id}.</p>",
    )
    return rows
