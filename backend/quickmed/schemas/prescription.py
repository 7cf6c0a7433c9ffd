from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, computed_field

from quickmed.schemas.common import CamelModel
from quickmed.services.upload_service import PRESCRIPTIONS, public_url


class PrescriptionReview(CamelModel):
    status: Literal["approved", "rejected"]
    notes: Optional[str] = None


class PrescriptionOut(CamelModel):
    id: int
    user_id: int
    patient_name: str
    patient_age: int
    file_paths: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def file_urls(self) -> List[str]:
        return [public_url(PRESCRIPTIONS, p) for p in self.file_paths]
