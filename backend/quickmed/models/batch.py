"""
Batch: a dated lot of a product.

Every insert and update goes through _enforce_batch_rules, so after any
flush 0 <= remaining_quantity <= quantity holds, status matches the
remaining quantity and expiry date, and manufacturing_date < expiry_date.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Date, DateTime, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from quickmed.db.base import Base
from quickmed.services.batch_rules import (
    BATCH_ACTIVE,
    clamp_remaining,
    compute_batch_status,
    validate_batch_dates,
)


class Batch(Base):
    __tablename__ = "batches"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    batch_number = Column(String(64), unique=True, nullable=False, index=True)
    manufacturing_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False)
    quantity = Column(Integer, nullable=False)
    remaining_quantity = Column(Integer, nullable=False)
    cost_price = Column(Numeric(10, 2), nullable=False)
    selling_price = Column(Numeric(10, 2), nullable=False)
    status = Column(String(32), nullable=False, default=BATCH_ACTIVE)  # active | expired | depleted
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="batches")
    supplier = relationship("Supplier")

    def __repr__(self):
        return f"<Batch {self.batch_number} product={self.product_id} remaining={self.remaining_quantity}>"


@event.listens_for(Batch, "before_insert")
@event.listens_for(Batch, "before_update")
def _enforce_batch_rules(mapper, connection, target: Batch):
    validate_batch_dates(target.manufacturing_date, target.expiry_date)
    target.remaining_quantity = clamp_remaining(target.remaining_quantity, target.quantity)
    target.status = compute_batch_status(target.remaining_quantity, target.expiry_date)
