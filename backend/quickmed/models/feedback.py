from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from quickmed.db.base import Base

FEEDBACK_STATUSES = ("pending", "approved", "rejected")


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    feedback = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)  # 1..5
    product_id = Column(Integer, nullable=False, index=True)  # no FK, may outlive the product
    status = Column(String(32), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
