from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import EmailStr, Field

from quickmed.schemas.common import CamelModel


class FeedbackCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    feedback: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    product_id: int


class FeedbackStatusUpdate(CamelModel):
    status: Literal["pending", "approved", "rejected"]


class FeedbackOut(CamelModel):
    id: int
    name: str
    email: str
    feedback: str
    rating: int
    product_id: int
    status: str
    created_at: Optional[datetime] = None


class FeedbackStats(CamelModel):
    total: int
    average_rating: float
    positive: int
    distribution: Dict[int, int]
