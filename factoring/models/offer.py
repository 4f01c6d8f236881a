import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, func

from factoring.db.base import Base
from factoring.models.types import GUID


class Offer(Base):
    __tablename__ = "offers"
    __table_args__ = (
        CheckConstraint(
            "status IN ('offered', 'accepted', 'rejected', 'expired')",
            name="ck_offer_status",
        ),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    request_id = Column(
        GUID, ForeignKey("funding_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(32), nullable=False, default="offered")
    annual_rate = Column(Numeric(7, 4), nullable=False)
    advance_pct = Column(Numeric(7, 4), nullable=False)
    operation_days = Column(Integer, nullable=False)
    gross_amount = Column(Numeric(18, 2), nullable=False)
    advance_amount = Column(Numeric(18, 2), nullable=False)
    discount_amount = Column(Numeric(18, 2), nullable=False)
    processing_fee = Column(Numeric(18, 2), nullable=False)
    wire_fee = Column(Numeric(18, 2), nullable=False)
    net_amount = Column(Numeric(18, 2), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(GUID, nullable=True)
    accepted_by = Column(GUID, nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
