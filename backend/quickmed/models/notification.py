"""
Notification outbox.

A row is written in the same transaction as the change that caused it and
sent later by services.notification_service.dispatch_pending.
Status flow: pending -> sending -> sent, or back to pending on a failed
attempt, or failed after max attempts. A row is only sent by the pass that
moved it to sending.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from quickmed.db.base import Base

NOTIFICATION_PENDING = "pending"
NOTIFICATION_SENDING = "sending"
NOTIFICATION_SENT = "sent"
NOTIFICATION_FAILED = "failed"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(64), nullable=False)  # order_request | low_stock | out_of_stock | restock_request | test
    recipient = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)  # HTML
    status = Column(String(32), nullable=False, default=NOTIFICATION_PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    sent_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Notification {self.kind} to={self.recipient} status={self.status}>"
