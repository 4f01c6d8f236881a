from sqlalchemy import Boolean, Column, DateTime, String, false, func

from factoring.db.base import Base
from factoring.models.types import GUID


class Profile(Base):
    """Platform-wide user profile keyed by the identity provider's user id."""

    __tablename__ = "profiles"

    user_id = Column(GUID, primary_key=True)
    email = Column(String(320), nullable=True, index=True)
    full_name = Column(String(255), nullable=True)
    is_staff = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
