from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from quickmed.schemas.common import CamelModel

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]


class OrderItemIn(CamelModel):
    product_id: int
    quantity: int = Field(ge=1)


class OrderCreate(CamelModel):
    """
    Checkout request. Without items the user's cart is ordered.

    Only the last four digits of the card are kept; the rest of the number
    is checked for shape and discarded (payment is simulated).
    """
    items: Optional[List[OrderItemIn]] = None
    shipping_address: str = Field(min_length=1, max_length=512)
    payment_method: Literal["visa", "mastercard"]
    card_number: str

    @field_validator('card_number')
    @classmethod
    def card_digits(cls, v: str) -> str:
        digits = v.replace(" ", "").replace("-", "")
        if not digits.isdigit() or not 12 <= len(digits) <= 19:
            raise ValueError('Card number must be 12 to 19 digits')
        return digits

    @model_validator(mode='after')
    def unique_products(self):
        if self.items:
            ids = [i.product_id for i in self.items]
            if len(ids) != len(set(ids)):
                raise ValueError('Each product may appear only once in an order')
        return self


class OrderUpdate(CamelModel):
    status: Optional[OrderStatus] = None
    update_stock: bool = False
    tracking_number: Optional[str] = Field(None, max_length=128)
    admin_notes: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class OrderItemOut(CamelModel):
    id: int
    product_id: int
    name: str
    price: float
    quantity: int
    batch_id: Optional[int] = None
    stock_consumed: bool


class OrderOut(CamelModel):
    id: int
    order_number: str
    user_id: Optional[int] = None
    customer: str
    items: List[OrderItemOut] = []
    total_amount: float
    status: str
    shipping_address: str
    payment_method: str
    card_last4: Optional[str] = None
    tracking_number: Optional[str] = None
    admin_notes: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
