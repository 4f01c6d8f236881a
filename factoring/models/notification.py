import uuid

from sqlalchemy import Column, DateTime, String, Text, func

from factoring.db.base import Base
from factoring.models.types import GUID, JSONDocument


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID, nullable=False, index=True)
    company_id = Column(GUID, nullable=True, index=True)
    type = Column(String(64), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSONDocument, nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
