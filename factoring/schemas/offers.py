from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class OfferDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    request_id: UUID
    status: str
    annual_rate: Decimal
    advance_pct: Decimal
    operation_days: int
    gross_amount: Decimal
    advance_amount: Decimal
    discount_amount: Decimal
    processing_fee: Decimal
    wire_fee: Decimal
    net_amount: Decimal
    valid_until: datetime
    accepted_at: datetime | None = None
