from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocumentType(str, Enum):
    REQUEST_SUPPORT = "REQUEST_SUPPORT"
    MASTER_AGREEMENT = "MASTER_AGREEMENT"


class DocumentStatus(str, Enum):
    UPLOADED = "uploaded"
    CREATED = "created"
    SENT = "sent"
    SIGNED = "signed"
    EXPIRED = "expired"


class DocumentProvider(str, Enum):
    STORAGE = "STORAGE"
    PANDADOC = "PANDADOC"


class DocumentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    request_id: UUID
    type: str
    status: str
    provider: str
    provider_envelope_id: str | None = None
    file_path: str | None = None
    file_name: str | None = None
    content_type: str | None = None
    size_bytes: int | None = None
    created_at: datetime | None = None


class SupportDocumentInput(BaseModel):
    file_path: str | None = None
    name: str | None = Field(default=None, max_length=255)
    size: int | None = Field(default=None, ge=0)
    content_type: str | None = Field(default=None, max_length=100)

    @field_validator("file_path")
    @classmethod
    def _strip_path(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


class SupportDocumentsCreateRequest(BaseModel):
    documents: list[SupportDocumentInput] = Field(default_factory=list)
