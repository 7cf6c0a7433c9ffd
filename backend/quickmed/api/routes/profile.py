"""Profile: the logged-in user's own account and order history."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, get_current_user
from quickmed.core.audit import AuditLog
from quickmed.core.security import get_password_hash
from quickmed.models.order import Order
from quickmed.models.user import User
from quickmed.schemas.common import ok, ok_list
from quickmed.schemas.order import OrderOut
from quickmed.schemas.user import ProfileUpdate, UserOut

router = APIRouter()


@router.get("")
def get_profile(current_user: User = Depends(get_current_user)):
    return ok(UserOut.model_validate(current_user))


@router.patch("")
def update_profile(
    data: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Email and role are not editable here."""
    changes = data.model_dump(exclude_unset=True)
    password = changes.pop("password", None)
    for field, value in changes.items():
        setattr(current_user, field, value)
    if password:
        current_user.hashed_password = get_password_hash(password)
    db.commit()
    db.refresh(current_user)
    if password:
        AuditLog.log_action("password_change", "user", current_user.id, current_user)
    return ok(UserOut.model_validate(current_user))


@router.get("/orders")
def my_orders(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    orders = (
        db.query(Order)
        .filter(Order.user_id == current_user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return ok_list([OrderOut.model_validate(o) for o in orders])
