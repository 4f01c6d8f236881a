import uuid

from sqlalchemy import Column, DateTime, Integer, Numeric, String, func

from factoring.db.base import Base
from factoring.models.types import GUID


class Company(Base):
    __tablename__ = "companies"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    tax_id = Column(String(64), nullable=True)
    default_discount_rate = Column(Numeric(7, 4), nullable=True)
    default_advance_pct = Column(Numeric(7, 4), nullable=True)
    default_operation_days = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
