from typing import List

from pydantic import Field

from quickmed.schemas.common import CamelModel


class CartAdd(CamelModel):
    product_id: int
    quantity: int = Field(1, ge=1)


class CartQuantity(CamelModel):
    quantity: int = Field(ge=1)


class CartItemOut(CamelModel):
    id: int
    product_id: int
    name: str
    price: float
    quantity: int
    subtotal: float
    available: int


class CartOut(CamelModel):
    items: List[CartItemOut] = []
    total: float = 0.0
