"""Suppliers (admin): CRUD, the products they supply, and counts by status."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, require_admin
from quickmed.core.audit import AuditLog
from quickmed.core.exceptions import BusinessError
from quickmed.models.product import Product
from quickmed.models.supplier import Supplier, SUPPLIER_STATUSES
from quickmed.models.user import User
from quickmed.schemas.common import ok, ok_list
from quickmed.schemas.supplier import SupplierCreate, SupplierOut, SupplierUpdate

router = APIRouter()

ADDRESS_FIELDS = ("street", "city", "state", "country", "postal_code")


def _get_supplier(db: Session, supplier_id: int) -> Supplier:
    supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise BusinessError.not_found("Supplier")
    return supplier


def _products(db: Session, product_ids) -> list:
    ids = set(product_ids)
    products = db.query(Product).filter(Product.id.in_(ids)).all() if ids else []
    missing = ids - {p.id for p in products}
    if missing:
        raise BusinessError.bad_request(f"Unknown product ids: {sorted(missing)}")
    return products


def _check_email(db: Session, email: str, exclude_id=None):
    q = db.query(Supplier.id).filter(Supplier.email == email)
    if exclude_id is not None:
        q = q.filter(Supplier.id != exclude_id)
    if q.first():
        raise BusinessError.conflict("A supplier with this email already exists")


@router.get("")
def list_suppliers(
    status_filter: str | None = Query(None, alias="status"),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(Supplier)
    if status_filter:
        q = q.filter(Supplier.status == status_filter)
    if search:
        q = q.filter(Supplier.name.ilike(f"%{search}%") | Supplier.email.ilike(f"%{search}%"))
    suppliers = q.order_by(Supplier.name.asc()).all()
    return ok_list([SupplierOut.from_model(s) for s in suppliers])


@router.get("/stats")
def supplier_stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    counts = dict(
        db.query(Supplier.status, func.count(Supplier.id)).group_by(Supplier.status).all()
    )
    by_status = {s: counts.get(s, 0) for s in SUPPLIER_STATUSES}
    return ok({"byStatus": by_status, "total": sum(counts.values())})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_supplier(data: SupplierCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    _check_email(db, data.email)
    supplier = Supplier(
        name=data.name.strip(),
        email=data.email,
        phone=data.phone,
        status=data.status,
        payment_terms=data.payment_terms,
        **data.address.model_dump(),
    )
    supplier.products = _products(db, data.products)
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    AuditLog.log_action("create", "supplier", supplier.id, admin, changes={"name": supplier.name})
    return ok(SupplierOut.from_model(supplier))


@router.get("/{supplier_id}")
def get_supplier(supplier_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return ok(SupplierOut.from_model(_get_supplier(db, supplier_id)))


@router.patch("/{supplier_id}")
def update_supplier(
    supplier_id: int,
    data: SupplierUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    supplier = _get_supplier(db, supplier_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("email") and changes["email"] != supplier.email:
        _check_email(db, changes["email"], exclude_id=supplier.id)
    address = changes.pop("address", None)
    if address:
        for field in ADDRESS_FIELDS:
            if field in address:
                setattr(supplier, field, address[field])
    product_ids = changes.pop("products", None)
    if product_ids is not None:
        supplier.products = _products(db, product_ids)
    for field, value in changes.items():
        if value is not None:
            setattr(supplier, field, value)

    db.commit()
    db.refresh(supplier)
    AuditLog.log_action("update", "supplier", supplier.id, admin, changes=data.model_dump(exclude_unset=True))
    return ok(SupplierOut.from_model(supplier))


@router.delete("/{supplier_id}")
def delete_supplier(supplier_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Batches from this supplier stay; their supplier is cleared."""
    supplier = _get_supplier(db, supplier_id)
    db.delete(supplier)
    db.commit()
    AuditLog.log_action("delete", "supplier", supplier_id, admin)
    return ok(None)
