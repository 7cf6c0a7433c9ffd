"""Batches (admin): CRUD for dated stock lots.

Every write reconciles the owning product's totalStock in the same
transaction, so the cached figure never lags a batch change.
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from quickmed.api.deps import get_db, require_admin
from quickmed.core.audit import AuditLog
from quickmed.core.exceptions import BusinessError
from quickmed.models.batch import Batch
from quickmed.models.product import Product
from quickmed.models.supplier import Supplier
from quickmed.models.user import User
from quickmed.schemas.batch import BatchCreate, BatchOut, BatchUpdate, BatchWithProductOut
from quickmed.schemas.common import ok, ok_list
from quickmed.services.batch_rules import BATCH_STATUSES, clamp_remaining
from quickmed.services.stock_service import reconcile_product_stock, refresh_batch_statuses

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_batch(db: Session, batch_id: int) -> Batch:
    batch = db.query(Batch).filter(Batch.id == batch_id).first()
    if not batch:
        raise BusinessError.not_found("Batch")
    return batch


def _check_dates(manufacturing_date, expiry_date):
    if manufacturing_date >= expiry_date:
        raise BusinessError.bad_request("Expiry date must be after manufacturing date")


def _check_supplier(db: Session, supplier_id):
    if supplier_id is not None and not db.query(Supplier.id).filter(Supplier.id == supplier_id).first():
        raise BusinessError.not_found("Supplier")


def _check_batch_number(db: Session, batch_number: str, exclude_id=None):
    q = db.query(Batch.id).filter(Batch.batch_number == batch_number)
    if exclude_id is not None:
        q = q.filter(Batch.id != exclude_id)
    if q.first():
        raise BusinessError.conflict("Batch number already exists")


def _refreshed(db: Session, batches):
    """Bring statuses up to date before showing them."""
    for product_id in {b.product_id for b in batches}:
        refresh_batch_statuses(db, product_id)
    db.commit()
    return batches


def _save(db: Session, product_id: int):
    """Flush, reconcile and commit. A unique clash from a concurrent write is a 409."""
    try:
        db.flush()
        reconcile_product_stock(db, product_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BusinessError.conflict("Batch number already exists")


@router.get("")
def list_batches(
    status_filter: str | None = Query(None, alias="status"),
    product_id: int | None = Query(None, alias="productId"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(Batch).options(joinedload(Batch.product))
    if product_id is not None:
        q = q.filter(Batch.product_id == product_id)
    batches = _refreshed(db, q.order_by(Batch.expiry_date.asc(), Batch.id.asc()).all())
    if status_filter:
        batches = [b for b in batches if b.status == status_filter]
    return ok_list([BatchWithProductOut.model_validate(b) for b in batches])


@router.get("/status/{batch_status}")
def batches_by_status(batch_status: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if batch_status not in BATCH_STATUSES:
        raise BusinessError.bad_request(f"Status must be one of: {', '.join(BATCH_STATUSES)}")
    batches = _refreshed(db, db.query(Batch).options(joinedload(Batch.product)).all())
    matching = sorted(
        (b for b in batches if b.status == batch_status),
        key=lambda b: (b.expiry_date, b.id),
    )
    return ok_list([BatchWithProductOut.model_validate(b) for b in matching])


@router.get("/product/{product_id}")
def product_batches(product_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if not db.query(Product.id).filter(Product.id == product_id).first():
        raise BusinessError.not_found("Product")
    refresh_batch_statuses(db, product_id)
    db.commit()
    batches = (
        db.query(Batch)
        .filter(Batch.product_id == product_id)
        .order_by(Batch.manufacturing_date.asc(), Batch.id.asc())
        .all()
    )
    return ok_list([BatchOut.model_validate(b) for b in batches])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_batch(data: BatchCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if not db.query(Product.id).filter(Product.id == data.product_id).first():
        raise BusinessError.not_found("Product")
    _check_supplier(db, data.supplier_id)
    _check_dates(data.manufacturing_date, data.expiry_date)
    _check_batch_number(db, data.batch_number)

    batch = Batch(
        product_id=data.product_id,
        supplier_id=data.supplier_id,
        batch_number=data.batch_number.strip(),
        manufacturing_date=data.manufacturing_date,
        expiry_date=data.expiry_date,
        quantity=data.quantity,
        remaining_quantity=clamp_remaining(data.remaining_quantity, data.quantity),
        cost_price=data.cost_price,
        selling_price=data.selling_price,
    )
    db.add(batch)
    _save(db, data.product_id)
    db.refresh(batch)

    AuditLog.log_action("create", "batch", batch.id, admin, changes={
        "product_id": batch.product_id, "batch_number": batch.batch_number, "quantity": batch.quantity,
    })
    return ok(BatchOut.model_validate(batch))


@router.get("/{batch_id}")
def get_batch(batch_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    batch = _get_batch(db, batch_id)
    _refreshed(db, [batch])
    return ok(BatchWithProductOut.model_validate(batch))


@router.patch("/{batch_id}")
def update_batch(
    batch_id: int,
    data: BatchUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    batch = _get_batch(db, batch_id)
    changes = data.model_dump(exclude_unset=True)

    _check_dates(
        changes.get("manufacturing_date") or batch.manufacturing_date,
        changes.get("expiry_date") or batch.expiry_date,
    )
    if "supplier_id" in changes:
        _check_supplier(db, changes["supplier_id"])
    if changes.get("batch_number"):
        changes["batch_number"] = changes["batch_number"].strip()
        _check_batch_number(db, changes["batch_number"], exclude_id=batch.id)

    for field, value in changes.items():
        if value is None and field != "supplier_id":
            continue
        setattr(batch, field, value)
    batch.remaining_quantity = clamp_remaining(batch.remaining_quantity, batch.quantity)

    _save(db, batch.product_id)
    db.refresh(batch)

    AuditLog.log_action("update", "batch", batch.id, admin, changes=changes)
    return ok(BatchOut.model_validate(batch))


@router.delete("/{batch_id}")
def delete_batch(batch_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    batch = _get_batch(db, batch_id)
    product_id = batch.product_id
    db.delete(batch)
    db.flush()
    reconcile_product_stock(db, product_id)
    db.commit()
    logger.info(f"Batch {batch_id} deleted, product {product_id} reconciled")
    AuditLog.log_action("delete", "batch", batch_id, admin)
    return ok(None)
