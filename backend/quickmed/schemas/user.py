from datetime import datetime
from typing import List, Literal, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from quickmed.core.config import settings
from quickmed.schemas.common import CamelModel


def _normalize_email(v: str) -> str:
    return v.strip().lower()


class AddressIn(CamelModel):
    label: str = Field(min_length=1, max_length=64)
    address: str = Field(min_length=1, max_length=512)
    is_default: bool = False


class AddressUpdate(CamelModel):
    label: Optional[str] = Field(None, min_length=1, max_length=64)
    address: Optional[str] = Field(None, min_length=1, max_length=512)
    is_default: Optional[bool] = None


class AddressOut(CamelModel):
    id: int
    label: str
    address: str
    is_default: bool


class UserRegister(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str
    phone: Optional[str] = None
    age: Optional[int] = Field(None, ge=0, le=150)
    role: Literal["user", "doctor", "pharmacy"] = "user"
    doctor_id: Optional[str] = None
    pharmacy_reg_number: Optional[str] = None

    @field_validator('email')
    @classmethod
    def lower_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator('password')
    @classmethod
    def password_min_length(cls, v: str) -> str:
        if len(v) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {settings.MIN_PASSWORD_LENGTH} characters')
        return v

    @model_validator(mode='after')
    def role_credentials(self):
        if self.role == "doctor" and not (self.doctor_id or "").strip():
            raise ValueError('Doctor ID is required for doctors')
        if self.role == "pharmacy" and not (self.pharmacy_reg_number or "").strip():
            raise ValueError('Pharmacy registration number is required for pharmacies')
        return self


class UserLogin(CamelModel):
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def lower_email(cls, v: str) -> str:
        return _normalize_email(v)


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = None
    age: Optional[int] = Field(None, ge=0, le=150)
    password: Optional[str] = None

    @field_validator('password')
    @classmethod
    def password_min_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {settings.MIN_PASSWORD_LENGTH} characters')
        return v


class UserAdminUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    age: Optional[int] = Field(None, ge=0, le=150)
    doctor_id: Optional[str] = None
    pharmacy_reg_number: Optional[str] = None

    @field_validator('email')
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_email(v) if v else v


class RoleUpdate(CamelModel):
    role: Literal["user", "pharmacy", "doctor", "admin"]


class StatusUpdate(CamelModel):
    status: Literal["active", "blocked"]


class UserOut(CamelModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    age: Optional[int] = None
    role: str
    status: str
    doctor_id: Optional[str] = None
    pharmacy_reg_number: Optional[str] = None
    addresses: List[AddressOut] = []
    created_at: Optional[datetime] = None


class TokenOut(CamelModel):
    token: str
    token_type: str = "bearer"
    user: UserOut
