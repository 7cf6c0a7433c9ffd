from datetime import datetime
from typing import Optional

from quickmed.schemas.common import CamelModel


class NotificationOut(CamelModel):
    id: int
    kind: str
    recipient: str
    subject: str
    status: str
    attempts: int
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None


class DispatchResult(CamelModel):
    sent: int
    failed: int
    retrying: int
