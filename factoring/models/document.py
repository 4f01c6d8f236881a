import uuid

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, String, func, text

from factoring.db.base import Base
from factoring.models.types import GUID

MASTER_AGREEMENT_PREDICATE = "type = 'MASTER_AGREEMENT'"


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        Index(
            "uq_documents_master_agreement_request",
            "request_id",
            unique=True,
            postgresql_where=text(MASTER_AGREEMENT_PREDICATE),
            sqlite_where=text(MASTER_AGREEMENT_PREDICATE),
        ),
        Index("ix_documents_request_created", "request_id", "created_at"),
        Index("ix_documents_provider_envelope", "provider", "provider_envelope_id"),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    request_id = Column(
        GUID, ForeignKey("funding_requests.id", ondelete="CASCADE"), nullable=False
    )
    type = Column(String(64), nullable=False)
    status = Column(String(32), nullable=False, default="uploaded")
    provider = Column(String(32), nullable=False, default="STORAGE")
    provider_envelope_id = Column(String(255), nullable=True)
    file_path = Column(String(1024), nullable=True)
    file_name = Column(String(255), nullable=True)
    content_type = Column(String(100), nullable=True)
    size_bytes = Column(BigInteger, nullable=True)
    uploaded_by = Column(GUID, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
