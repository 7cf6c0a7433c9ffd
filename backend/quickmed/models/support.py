from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from quickmed.db.base import Base

SUPPORT_STATUSES = ("pending", "resolved", "rejected")


class SupportTicket(Base):
    """Contact-form message. user_id is set when the sender was logged in."""
    __tablename__ = "support_tickets"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    user_id = Column(Integer, nullable=True)
    status = Column(String(32), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
