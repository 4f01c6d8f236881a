from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RequestStatus(str, Enum):
    REVIEW = "review"
    OFFERED = "offered"
    ACCEPTED = "accepted"
    SIGNED = "signed"
    FUNDED = "funded"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str | RequestStatus) -> RequestStatus:
        if isinstance(value, RequestStatus):
            return value
        return cls(str(value).strip().lower())

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.FUNDED, RequestStatus.CANCELLED)


class FundingRequestDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    requested_amount: Decimal
    currency: str
    invoice_id: UUID | None = None
    status: RequestStatus
    archived_at: datetime | None = None
    archived_by: UUID | None = None
    default_discount_rate: Decimal | None = None
    default_operation_days: int | None = None
    default_advance_pct: Decimal | None = None
    default_settings_source: str | None = None
    file_path: str | None = None
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FundingRequestPatch(BaseModel):
    """Closed set of patchable fields; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    requested_amount: Decimal | None = Field(default=None, gt=0, max_digits=18, decimal_places=2)
    invoice_id: UUID | None = None
    status: RequestStatus | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def _reject_null_required(self) -> FundingRequestPatch:
        for name in ("requested_amount", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def to_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            values[name] = value.value if isinstance(value, RequestStatus) else value
        return values
