from datetime import date, datetime
from typing import Optional

from pydantic import Field

from quickmed.schemas.common import CamelModel


class BatchCreate(CamelModel):
    product_id: int
    supplier_id: Optional[int] = None
    batch_number: str = Field(min_length=1, max_length=64)
    manufacturing_date: date
    expiry_date: date
    quantity: int = Field(ge=1)
    remaining_quantity: Optional[int] = Field(None, ge=0)
    cost_price: float = Field(ge=0.01)
    selling_price: float = Field(ge=0.01)


class BatchUpdate(CamelModel):
    supplier_id: Optional[int] = None
    batch_number: Optional[str] = Field(None, min_length=1, max_length=64)
    manufacturing_date: Optional[date] = None
    expiry_date: Optional[date] = None
    quantity: Optional[int] = Field(None, ge=1)
    remaining_quantity: Optional[int] = Field(None, ge=0)
    cost_price: Optional[float] = Field(None, ge=0.01)
    selling_price: Optional[float] = Field(None, ge=0.01)


class BatchOut(CamelModel):
    id: int
    product_id: int
    supplier_id: Optional[int] = None
    batch_number: str
    manufacturing_date: date
    expiry_date: date
    quantity: int
    remaining_quantity: int
    cost_price: float
    selling_price: float
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductRef(CamelModel):
    id: int
    name: str
    brand: str


class BatchWithProductOut(BatchOut):
    product: Optional[ProductRef] = None
