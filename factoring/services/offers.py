from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from factoring.api import deps
from factoring.core.permissions import AccessLevel
from factoring.core.settings import settings
from factoring.models.company import Company
from factoring.models.funding_request import FundingRequest
from factoring.models.offer import Offer
from factoring.schemas.funding_requests import RequestStatus
from factoring.services import audit, funding_requests, notifications
from factoring.services.errors import LifecycleError, invalid_transition, not_found
from factoring.services.lifecycle import authorize, ensure_transition
from factoring.services.side_effects import SideEffects

TWOPLACES = Decimal("0.01")
PROCESSING_FEE_RATE = Decimal("0.005")
PROCESSING_FEE_MIN = Decimal("50000")
PROCESSING_FEE_MAX = Decimal("200000")
WIRE_FEE = Decimal("5000")
DAYS_PER_YEAR = Decimal("365")


@dataclass(frozen=True)
class PricingDefaults:
    discount_rate: Decimal
    advance_pct: Decimal
    operation_days: int
    source: str


@dataclass(frozen=True)
class OfferTerms:
    annual_rate: Decimal
    advance_pct: Decimal
    operation_days: int
    gross_amount: Decimal
    advance_amount: Decimal
    discount_amount: Decimal
    processing_fee: Decimal
    wire_fee: Decimal
    net_amount: Decimal


def _money(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


async def resolve_pricing_defaults(
    db: AsyncSession, funding_request: FundingRequest
) -> PricingDefaults:
    """Request values win, then company overrides, then platform settings."""
    if (
        funding_request.default_discount_rate is not None
        and funding_request.default_advance_pct is not None
        and funding_request.default_operation_days is not None
    ):
        return PricingDefaults(
            discount_rate=Decimal(funding_request.default_discount_rate),
            advance_pct=Decimal(funding_request.default_advance_pct),
            operation_days=int(funding_request.default_operation_days),
            source=funding_request.default_settings_source or "request",
        )
    company = (
        await db.execute(select(Company).where(Company.id == funding_request.company_id))
    ).scalar_one_or_none()
    overrides = (
        company is not None
        and company.default_discount_rate is not None
        and company.default_advance_pct is not None
        and company.default_operation_days is not None
    )
    if overrides:
        return PricingDefaults(
            discount_rate=Decimal(company.default_discount_rate),
            advance_pct=Decimal(company.default_advance_pct),
            operation_days=int(company.default_operation_days),
            source="company",
        )
    return PricingDefaults(
        discount_rate=settings.default_discount_rate,
        advance_pct=settings.default_advance_pct,
        operation_days=settings.default_operation_days,
        source="platform",
    )


def compute_offer_terms(amount: Decimal, defaults: PricingDefaults) -> OfferTerms:
    gross = _money(Decimal(amount))
    advance = _money(gross * defaults.advance_pct / Decimal("100"))
    discount = _money(
        advance
        * defaults.discount_rate
        / Decimal("100")
        * Decimal(defaults.operation_days)
        / DAYS_PER_YEAR
    )
    processing = _money(min(PROCESSING_FEE_MAX, max(PROCESSING_FEE_MIN, gross * PROCESSING_FEE_RATE)))
    net = advance - discount - processing - WIRE_FEE
    return OfferTerms(
        annual_rate=defaults.discount_rate,
        advance_pct=defaults.advance_pct,
        operation_days=defaults.operation_days,
        gross_amount=gross,
        advance_amount=advance,
        discount_amount=discount,
        processing_fee=processing,
        wire_fee=WIRE_FEE,
        net_amount=max(net, Decimal("0.00")),
    )


async def make_offer(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    request_id: UUID,
    *,
    effects: SideEffects,
    expected_version: int | None = None,
) -> Offer:
    await authorize(db, identity, company_id, AccessLevel.STAFF_ONLY)
    funding_request = await funding_requests.require_request(db, company_id, request_id)
    current = RequestStatus.parse(funding_request.status)
    if not ensure_transition(current, RequestStatus.OFFERED):
        raise LifecycleError("offer_exists", "The request already has an open offer", 409)

    defaults = await resolve_pricing_defaults(db, funding_request)
    terms = compute_offer_terms(funding_request.requested_amount, defaults)
    offer = Offer(
        company_id=company_id,
        request_id=request_id,
        status="offered",
        annual_rate=terms.annual_rate,
        advance_pct=terms.advance_pct,
        operation_days=terms.operation_days,
        gross_amount=terms.gross_amount,
        advance_amount=terms.advance_amount,
        discount_amount=terms.discount_amount,
        processing_fee=terms.processing_fee,
        wire_fee=terms.wire_fee,
        net_amount=terms.net_amount,
        valid_until=datetime.now(timezone.utc) + timedelta(days=settings.offer_validity_days),
        created_by=identity.user_id,
    )
    db.add(offer)
    await funding_requests.update_request(
        db,
        company_id,
        request_id,
        {
            "status": RequestStatus.OFFERED.value,
            "default_discount_rate": defaults.discount_rate,
            "default_advance_pct": defaults.advance_pct,
            "default_operation_days": defaults.operation_days,
            "default_settings_source": defaults.source,
        },
        expected_version=expected_version,
    )
    await db.commit()
    await db.refresh(offer)

    effects.schedule(
        "notify.offer_generated",
        notifications.notify_client_offer_generated,
        company_id,
        request_id,
        offer.id,
    )
    effects.schedule(
        "audit.offer_created",
        audit.record_audit_log,
        company_id=company_id,
        actor_id=identity.user_id,
        entity=audit.AuditEntity.OFFER,
        entity_id=offer.id,
        action=audit.AuditAction.CREATED,
        data=audit.model_snapshot(offer),
    )
    effects.schedule(
        "audit.status_changed",
        audit.log_status_change,
        company_id=company_id,
        actor_id=identity.user_id,
        request_id=request_id,
        from_status=current.value,
        to_status=RequestStatus.OFFERED.value,
    )
    return offer


async def accept_offer(
    db: AsyncSession,
    identity: deps.IdentityContext,
    company_id: UUID,
    offer_id: UUID,
    *,
    effects: SideEffects,
) -> Offer:
    await authorize(db, identity, company_id, AccessLevel.ACTIVE_MEMBER)
    offer = (
        await db.execute(select(Offer).where(Offer.id == offer_id, Offer.company_id == company_id))
    ).scalar_one_or_none()
    if offer is None:
        raise not_found("offer")
    if offer.status == "accepted":
        return offer
    if offer.status != "offered":
        raise invalid_transition(offer.status, "accepted")
    valid_until = offer.valid_until
    if valid_until.tzinfo is None:
        valid_until = valid_until.replace(tzinfo=timezone.utc)
    now = datetime.now(timezone.utc)
    if valid_until < now:
        raise LifecycleError("offer_expired", "The offer is no longer valid", 409)

    funding_request = await funding_requests.require_request(db, company_id, offer.request_id)
    current = RequestStatus.parse(funding_request.status)
    if current != RequestStatus.OFFERED:
        raise invalid_transition(current.value, RequestStatus.ACCEPTED.value)

    accepted = await db.execute(
        update(Offer)
        .where(Offer.id == offer_id, Offer.company_id == company_id, Offer.status == "offered")
        .values(status="accepted", accepted_by=identity.user_id, accepted_at=now)
        .execution_options(synchronize_session=False)
    )
    if not accepted.rowcount:
        raise LifecycleError("conflict", "The offer changed while it was being accepted", 409)
    await funding_requests.update_request(
        db, company_id, offer.request_id, {"status": RequestStatus.ACCEPTED.value}
    )
    await db.commit()
    await db.refresh(offer)

    effects.schedule(
        "audit.offer_accepted",
        audit.record_audit_log,
        company_id=company_id,
        actor_id=identity.user_id,
        entity=audit.AuditEntity.OFFER,
        entity_id=offer.id,
        action=audit.AuditAction.STATUS_CHANGED,
        data={"from_status": "offered", "to_status": "accepted"},
    )
    effects.schedule(
        "audit.status_changed",
        audit.log_status_change,
        company_id=company_id,
        actor_id=identity.user_id,
        request_id=offer.request_id,
        from_status=current.value,
        to_status=RequestStatus.ACCEPTED.value,
    )
    effects.schedule(
        "notify.offer_accepted",
        notifications.notify_staff_offer_accepted,
        company_id,
        offer.request_id,
        offer.id,
    )
    return offer
