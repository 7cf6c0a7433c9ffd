"""
Order and its item snapshots.

OrderItem copies name and price at checkout. product_id is a plain
integer, not a foreign key: deleting a product leaves the snapshot intact.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, Boolean, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from quickmed.db.base import Base

ORDER_PENDING = "pending"
ORDER_PROCESSING = "processing"
ORDER_SHIPPED = "shipped"
ORDER_DELIVERED = "delivered"
ORDER_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_PENDING, ORDER_PROCESSING, ORDER_SHIPPED, ORDER_DELIVERED, ORDER_CANCELLED)
# Orders in these states hold stock that has not left the shelf yet
RESERVING_STATUSES = (ORDER_PENDING, ORDER_PROCESSING, ORDER_SHIPPED)
TERMINAL_STATUSES = (ORDER_DELIVERED, ORDER_CANCELLED)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    customer = Column(String(255), nullable=False)  # name at checkout
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(32), nullable=False, default=ORDER_PENDING, index=True)
    shipping_address = Column(String(512), nullable=False)
    payment_method = Column(String(32), nullable=False)  # visa | mastercard
    card_last4 = Column(String(4), nullable=True)
    tracking_number = Column(String(128), nullable=True)
    admin_notes = Column(Text, nullable=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    actual_delivery = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    user = relationship("User")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    # Set once the item has been taken out of a batch on shipment
    batch_id = Column(Integer, nullable=True)
    stock_consumed = Column(Boolean, nullable=False, default=False)

    order = relationship("Order", back_populates="items")
