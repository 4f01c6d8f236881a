import uuid

from sqlalchemy import Column, DateTime, Index, String, func

from factoring.db.base import Base
from factoring.models.types import GUID, JSONDocument


class AuditLog(Base):
    """Append-only trail; rows are written by side effects and never updated."""

    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_company_created", "company_id", "created_at"),)

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID, nullable=True, index=True)
    actor_id = Column(GUID, nullable=True)
    entity = Column(String(64), nullable=False)
    entity_id = Column(String(255), nullable=True)
    action = Column(String(64), nullable=False)
    data = Column(JSONDocument, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
