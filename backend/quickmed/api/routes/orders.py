"""Orders: checkout, the customer's own orders, and admin fulfillment."""
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, get_current_user, require_admin
from quickmed.core.audit import AuditLog
from quickmed.core.exceptions import BusinessError
from quickmed.core.permissions import ensure_owner_or_admin
from quickmed.models.order import Order, ORDER_CANCELLED, ORDER_STATUSES
from quickmed.models.user import User
from quickmed.schemas.common import ok, ok_list
from quickmed.schemas.order import OrderCreate, OrderOut, OrderUpdate
from quickmed.services import order_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise BusinessError.not_found("Order")
    return order


def _list(orders) -> dict:
    return ok_list([OrderOut.model_validate(o) for o in orders])


@router.get("")
def my_orders(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    orders = (
        db.query(Order)
        .filter(Order.user_id == current_user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return _list(orders)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(data: OrderCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    order = order_service.create_order(db, current_user, data)
    AuditLog.log_action("create", "order", order.id, current_user, changes={
        "order_number": order.order_number, "total": float(order.total_amount),
    })
    return ok(OrderOut.model_validate(order))


@router.get("/admin/all")
def all_orders(
    status_filter: str | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(Order)
    if status_filter:
        q = q.filter(Order.status == status_filter)
    return _list(q.order_by(Order.created_at.desc(), Order.id.desc()).all())


@router.get("/status/{order_status}")
def orders_by_status(order_status: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if order_status not in ORDER_STATUSES:
        raise BusinessError.bad_request(f"Status must be one of: {', '.join(ORDER_STATUSES)}")
    orders = (
        db.query(Order)
        .filter(Order.status == order_status)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return _list(orders)


@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    order = _get_order(db, order_id)
    ensure_owner_or_admin(current_user, order.user_id, "order", order.id)
    return ok(OrderOut.model_validate(order))


@router.patch("/{order_id}")
def update_order(
    order_id: int,
    data: OrderUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Customers may only cancel their own pending orders. Admins may change
    status, tracking number, notes and estimated delivery; setting status
    to shipped with updateStock=true takes stock out of batches.
    """
    order = _get_order(db, order_id)
    ensure_owner_or_admin(current_user, order.user_id, "order", order.id, action="write")

    if not current_user.is_admin:
        changes = data.model_dump(exclude_unset=True)
        if data.status != ORDER_CANCELLED or set(changes) - {"status"}:
            AuditLog.log_access_denied("write", "order", order.id, current_user.id, "Customers may only cancel")
            raise BusinessError.forbidden(f"user {current_user.id} editing order {order.id}")
        order = order_service.cancel_own_order(db, order)
        AuditLog.log_action("cancel", "order", order.id, current_user)
        return ok(OrderOut.model_validate(order))

    previous = order.status
    order = order_service.admin_update_order(db, order, data)
    AuditLog.log_action("update", "order", order.id, current_user, changes={
        "status": [previous, order.status],
        "batches": [i.batch_id for i in order.items if i.batch_id],
    })
    return ok(OrderOut.model_validate(order))


@router.delete("/{order_id}")
def delete_order(order_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    order = _get_order(db, order_id)
    order_service.delete_order(db, order)
    AuditLog.log_action("delete", "order", order_id, admin)
    return ok(None)
