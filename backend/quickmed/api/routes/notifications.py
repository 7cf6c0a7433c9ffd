"""Notification outbox (admin): inspect queued emails and flush them on demand."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, require_admin
from quickmed.models.notification import Notification
from quickmed.models.user import User
from quickmed.schemas.common import ok, ok_list
from quickmed.schemas.notification import DispatchResult, NotificationOut
from quickmed.services.notification_service import dispatch_pending

router = APIRouter()


@router.get("")
def list_notifications(
    status_filter: str | None = Query(None, alias="status"),
    kind: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(Notification)
    if status_filter:
        q = q.filter(Notification.status == status_filter)
    if kind:
        q = q.filter(Notification.kind == kind)
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    return ok_list([NotificationOut.model_validate(n) for n in rows])


@router.post("/dispatch")
def dispatch_now(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Run one dispatch pass right away instead of waiting for the loop."""
    return ok(DispatchResult(**dispatch_pending(db)))
