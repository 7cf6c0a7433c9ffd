from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from quickmed.db.base import Base


class Product(Base):
    """
    Catalog product.

    total_stock is a cached value. It is written only by
    stock_service.reconcile_product_stock, never incremented in place.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    brand = Column(String(255), nullable=False)
    category = Column(String(32), nullable=False, index=True)  # medicine | supplements | equipment
    description = Column(Text, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    main_image = Column(String(512), nullable=True)
    sub_images = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    total_stock = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Deleting a product removes its batches; order item snapshots are untouched
    batches = relationship(
        "Batch",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="Batch.manufacturing_date.desc()",
    )

    __table_args__ = (
        UniqueConstraint("name", "brand", name="uq_product_name_brand"),
    )
