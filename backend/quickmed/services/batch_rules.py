"""
Batch status and expiry rules.

Pure functions with no DB access. The Batch model's save hooks and the
stock service both call these, so the rules live in one place:

    depleted  -> remaining_quantity <= 0 (wins over expiry)
    expired   -> expiry_date <= today
    active    -> otherwise
"""
from datetime import date, datetime
from typing import Optional

from quickmed.core.exceptions import BatchValidationError

BATCH_ACTIVE = "active"
BATCH_EXPIRED = "expired"
BATCH_DEPLETED = "depleted"
BATCH_STATUSES = (BATCH_ACTIVE, BATCH_EXPIRED, BATCH_DEPLETED)


def current_date() -> date:
    """Today's date as seen by every stock rule."""
    return date.today()


def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def compute_batch_status(remaining_quantity: int, expiry_date, today: Optional[date] = None) -> str:
    today = today or current_date()
    if (remaining_quantity or 0) <= 0:
        return BATCH_DEPLETED
    expiry = _as_date(expiry_date)
    if expiry is not None and expiry <= today:
        return BATCH_EXPIRED
    return BATCH_ACTIVE


def clamp_remaining(remaining_quantity: Optional[int], quantity: int) -> int:
    """Force remaining into [0, quantity]. A missing value means untouched, i.e. full."""
    if remaining_quantity is None:
        return quantity
    if remaining_quantity > quantity:
        return quantity
    if remaining_quantity < 0:
        return 0
    return remaining_quantity


def validate_batch_dates(manufacturing_date, expiry_date) -> None:
    mfg = _as_date(manufacturing_date)
    exp = _as_date(expiry_date)
    if mfg is None or exp is None:
        raise BatchValidationError("Manufacturing date and expiry date are required")
    if mfg >= exp:
        raise BatchValidationError("Expiry date must be after manufacturing date")


def is_sellable(status: str, expiry_date, today: Optional[date] = None) -> bool:
    """True when a batch counts toward available stock."""
    today = today or current_date()
    expiry = _as_date(expiry_date)
    return status == BATCH_ACTIVE and expiry is not None and expiry > today
