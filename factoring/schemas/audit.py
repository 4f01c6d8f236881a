from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuditLogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID | None = None
    actor_id: UUID | None = None
    entity: str
    entity_id: str | None = None
    action: str
    data: dict[str, Any] | list[Any] | None = None
    created_at: datetime
