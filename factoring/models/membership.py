import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, func

from factoring.db.base import Base
from factoring.models.types import GUID


class Membership(Base):
    __tablename__ = "memberships"
    __table_args__ = (UniqueConstraint("company_id", "user_id", name="uq_membership_company_user"),)

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, nullable=False, index=True)
    role = Column(String(32), nullable=False, default="VIEWER")
    status = Column(String(32), nullable=False, default="INVITED")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
