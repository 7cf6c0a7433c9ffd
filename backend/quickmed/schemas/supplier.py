from datetime import datetime
from typing import List, Literal, Optional

from pydantic import EmailStr, Field, field_validator

from quickmed.schemas.batch import ProductRef
from quickmed.schemas.common import CamelModel


class SupplierAddress(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class SupplierCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(min_length=1, max_length=64)
    address: SupplierAddress = SupplierAddress()
    products: List[int] = []
    status: Literal["active", "inactive"] = "active"
    payment_terms: str = "Net 30"

    @field_validator('email')
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class SupplierUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=1, max_length=64)
    address: Optional[SupplierAddress] = None
    products: Optional[List[int]] = None
    status: Optional[Literal["active", "inactive"]] = None
    payment_terms: Optional[str] = None

    @field_validator('email')
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v


class SupplierOut(CamelModel):
    id: int
    name: str
    email: str
    phone: str
    address: SupplierAddress
    products: List[ProductRef] = []
    status: str
    payment_terms: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, supplier) -> "SupplierOut":
        return cls(
            id=supplier.id,
            name=supplier.name,
            email=supplier.email,
            phone=supplier.phone,
            address=SupplierAddress(
                street=supplier.street,
                city=supplier.city,
                state=supplier.state,
                country=supplier.country,
                postal_code=supplier.postal_code,
            ),
            products=[ProductRef.model_validate(p) for p in supplier.products],
            status=supplier.status,
            payment_terms=supplier.payment_terms,
            created_at=supplier.created_at,
            updated_at=supplier.updated_at,
        )
