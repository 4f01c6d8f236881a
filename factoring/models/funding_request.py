import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)

from factoring.db.base import Base
from factoring.models.types import GUID


class FundingRequest(Base):
    __tablename__ = "funding_requests"
    __table_args__ = (
        CheckConstraint("requested_amount > 0", name="ck_funding_request_amount_positive"),
        CheckConstraint("version >= 1", name="ck_funding_request_version_positive"),
        CheckConstraint(
            "status IN ('review', 'offered', 'accepted', 'signed', 'funded', 'cancelled')",
            name="ck_funding_request_status",
        ),
        CheckConstraint(
            "(archived_at IS NULL AND archived_by IS NULL) "
            "OR (archived_at IS NOT NULL AND archived_by IS NOT NULL)",
            name="ck_funding_request_archive_pair",
        ),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(GUID, nullable=True)
    requested_amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="COP")
    invoice_id = Column(GUID, nullable=True)
    status = Column(String(32), nullable=False, default="review")
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_by = Column(GUID, nullable=True)
    default_discount_rate = Column(Numeric(7, 4), nullable=True)
    default_operation_days = Column(Integer, nullable=True)
    default_advance_pct = Column(Numeric(7, 4), nullable=True)
    default_settings_source = Column(String(32), nullable=True)
    file_path = Column(String(1024), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
