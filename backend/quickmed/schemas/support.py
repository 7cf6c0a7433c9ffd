from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field

from quickmed.schemas.common import CamelModel

SupportStatus = Literal["pending", "resolved", "rejected"]


class SupportCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    subject: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)


class SupportUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    message: Optional[str] = Field(None, min_length=1)
    status: Optional[SupportStatus] = None


class SupportStatusUpdate(CamelModel):
    status: SupportStatus


class SupportOut(CamelModel):
    id: int
    name: str
    email: str
    subject: str
    message: str
    user_id: Optional[int] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
