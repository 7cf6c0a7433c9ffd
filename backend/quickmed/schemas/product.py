from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from quickmed.schemas.batch import BatchOut
from quickmed.schemas.common import CamelModel
from quickmed.services.upload_service import PRODUCTS, public_url

Category = Literal["medicine", "supplements", "equipment"]


class ProductFields(CamelModel):
    """Text fields of the multipart product form, validated after parsing."""
    name: str = Field(min_length=3, max_length=255)
    brand: str = Field(min_length=1, max_length=255)
    category: Category
    description: str = Field(min_length=1)
    price: float = Field(ge=0)
    tags: List[str] = []

    @field_validator('name', 'brand')
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class ProductUpdateFields(CamelModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    brand: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[Category] = None
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None


class ProductOut(CamelModel):
    id: int
    name: str
    brand: str
    category: str
    description: str
    price: float
    main_image: Optional[str] = None
    sub_images: List[str] = []
    tags: List[str] = []
    total_stock: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('main_image', mode='before')
    @classmethod
    def image_url(cls, v):
        return public_url(PRODUCTS, v)

    @field_validator('sub_images', mode='before')
    @classmethod
    def image_urls(cls, v):
        return [public_url(PRODUCTS, name) for name in (v or [])]


class ProductDetailOut(ProductOut):
    batches: List[BatchOut] = []


class BatchStockAdjust(CamelModel):
    batch_id: int
    remaining_quantity: int = Field(ge=0)


class RestockItem(CamelModel):
    product_id: int
    name: str
    brand: str
    category: str
    current_stock: int
    recommended_quantity: int
