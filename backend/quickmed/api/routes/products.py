"""Products: public catalog, admin management, stock tools and stock emails.

Create and update take multipart forms so images can ride along with the
text fields (mainImage: one file, subImages: several).
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, require_admin
from quickmed.core.audit import AuditLog
from quickmed.core.config import settings
from quickmed.core.exceptions import BusinessError
from quickmed.models.batch import Batch
from quickmed.models.product import Product
from quickmed.models.user import User
from quickmed.schemas.batch import BatchOut
from quickmed.schemas.common import ok, ok_list
from quickmed.schemas.product import (
    BatchStockAdjust,
    ProductDetailOut,
    ProductFields,
    ProductOut,
    ProductUpdateFields,
    RestockItem,
)
from quickmed.services import notification_service, restock_service, stock_service, upload_service
from quickmed.services.upload_service import PRODUCTS

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise BusinessError.not_found("Product")
    return product


def _parse_tags(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    return [t.strip() for t in raw.split(",") if t.strip()]


def _validate(schema, **fields):
    """Run a form through its schema; failures read like any other 400."""
    try:
        return schema(**{k: v for k, v in fields.items() if v is not None})
    except ValidationError as e:
        raise RequestValidationError(e.errors())


def _ensure_unique(db: Session, name: str, brand: str, exclude_id: Optional[int] = None):
    q = db.query(Product).filter(Product.name == name, Product.brand == brand)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first():
        raise BusinessError.conflict("A product with this name and brand already exists")


def _detail(db: Session, product: Product) -> dict:
    data = ProductDetailOut.model_validate(product)
    batches = (
        db.query(Batch)
        .filter(Batch.product_id == product.id)
        .order_by(Batch.manufacturing_date.desc(), Batch.id.desc())
        .all()
    )
    data.batches = [BatchOut.model_validate(b) for b in batches]
    return ok(data)


# ==============================================================================
# PUBLIC CATALOG
# ==============================================================================

@router.get("")
def list_products(
    category: str | None = Query(None),
    brand: str | None = Query(None),
    search: str | None = Query(None),
    stock_status: str | None = Query(None, alias="stockStatus", pattern="^(low|out|in)$"),
    db: Session = Depends(get_db),
):
    q = db.query(Product)
    if category:
        q = q.filter(Product.category == category)
    if brand:
        q = q.filter(Product.brand.ilike(f"%{brand}%"))
    if search:
        term = f"%{search}%"
        q = q.filter(or_(
            Product.name.ilike(term),
            Product.description.ilike(term),
            Product.brand.ilike(term),
        ))
    if stock_status == "low":
        q = q.filter(Product.total_stock < settings.LOW_STOCK_THRESHOLD)
    elif stock_status == "out":
        q = q.filter(Product.total_stock == 0)
    elif stock_status == "in":
        q = q.filter(Product.total_stock > 0)

    products = q.order_by(Product.created_at.desc(), Product.id.desc()).all()
    return ok_list([ProductOut.model_validate(p) for p in products])


# ==============================================================================
# STOCK EMAILS (before /{product_id} so the literal paths win)
# ==============================================================================

@router.get("/low-stock")
def low_stock(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Products under the low-stock threshold with a suggested reorder quantity."""
    products = restock_service.low_stock_products(db)
    recommendations = restock_service.restock_recommendations(products)
    return ok_list([RestockItem.model_validate(r) for r in recommendations])


@router.post("/low-stock-alert", status_code=status.HTTP_202_ACCEPTED)
def send_low_stock_alert(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    products = restock_service.low_stock_products(db)
    if not products:
        raise BusinessError.bad_request("No products are below the low stock threshold")
    notification = notification_service.enqueue_low_stock(db, products)
    if notification is None:
        raise BusinessError.bad_request("Admin email address is not configured")
    db.commit()
    return ok({"notificationId": notification.id, "products": len(products)})


@router.post("/restock-request", status_code=status.HTTP_202_ACCEPTED)
def send_restock_request(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if not settings.SUPPLIER_EMAIL:
        raise BusinessError.bad_request("Supplier email address is not configured")
    products = restock_service.low_stock_products(db)
    if not products:
        raise BusinessError.bad_request("No products need restocking")
    recommendations = restock_service.restock_recommendations(products)
    notification = notification_service.enqueue_restock_request(db, recommendations)
    db.commit()
    AuditLog.log_action("restock_request", "product", None, admin, changes={"products": len(products)})
    return ok({
        "notificationId": notification.id,
        "products": [RestockItem.model_validate(r) for r in recommendations],
    })


@router.get("/test-email", status_code=status.HTTP_202_ACCEPTED)
def test_email(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Queue a test message to the admin address to check SMTP settings."""
    notification = notification_service.enqueue_configuration_check(db)
    if notification is None:
        raise BusinessError.bad_request("Admin email address is not configured")
    db.commit()
    return ok({"notificationId": notification.id, "emailConfigured": settings.email_configured})


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    return _detail(db, _get_product(db, product_id))


# ==============================================================================
# ADMIN
# ==============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    name: str = Form(...),
    brand: str = Form(...),
    category: str = Form(...),
    description: str = Form(...),
    price: float = Form(...),
    tags: Optional[str] = Form(None),
    main_image: Optional[UploadFile] = File(None, alias="mainImage"),
    sub_images: Optional[List[UploadFile]] = File(None, alias="subImages"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    fields = _validate(
        ProductFields, name=name, brand=brand, category=category,
        description=description, price=price, tags=_parse_tags(tags),
    )
    _ensure_unique(db, fields.name, fields.brand)

    stored = []
    try:
        main_name = upload_service.save_upload(main_image, PRODUCTS) if main_image and main_image.filename else None
        if main_name:
            stored.append(main_name)
        sub_names = upload_service.save_uploads([f for f in (sub_images or []) if f.filename], PRODUCTS)
        stored.extend(sub_names)

        product = Product(
            name=fields.name,
            brand=fields.brand,
            category=fields.category,
            description=fields.description,
            price=fields.price,
            tags=fields.tags,
            main_image=main_name,
            sub_images=sub_names,
            total_stock=0,
        )
        db.add(product)
        db.commit()
    except Exception:
        db.rollback()
        upload_service.delete_files(stored, PRODUCTS)
        raise

    db.refresh(product)
    AuditLog.log_action("create", "product", product.id, admin, changes={"name": product.name})
    return _detail(db, product)


@router.patch("/{product_id}")
def update_product(
    product_id: int,
    name: Optional[str] = Form(None),
    brand: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    tags: Optional[str] = Form(None),
    main_image: Optional[UploadFile] = File(None, alias="mainImage"),
    sub_images: Optional[List[UploadFile]] = File(None, alias="subImages"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """New images replace the old ones; old files are removed after commit."""
    product = _get_product(db, product_id)
    fields = _validate(
        ProductUpdateFields, name=name, brand=brand, category=category,
        description=description, price=price, tags=_parse_tags(tags),
    )
    changes = fields.model_dump(exclude_unset=True)
    if "name" in changes or "brand" in changes:
        _ensure_unique(db, changes.get("name", product.name), changes.get("brand", product.brand), product.id)

    stored, replaced = [], []
    try:
        if main_image and main_image.filename:
            new_main = upload_service.save_upload(main_image, PRODUCTS)
            stored.append(new_main)
            if product.main_image:
                replaced.append(product.main_image)
            product.main_image = new_main
        new_subs = [f for f in (sub_images or []) if f.filename]
        if new_subs:
            sub_names = upload_service.save_uploads(new_subs, PRODUCTS)
            stored.extend(sub_names)
            replaced.extend(product.sub_images or [])
            product.sub_images = sub_names

        for field, value in changes.items():
            setattr(product, field, value)
        db.commit()
    except Exception:
        db.rollback()
        upload_service.delete_files(stored, PRODUCTS)
        raise

    upload_service.delete_files(replaced, PRODUCTS)
    db.refresh(product)
    AuditLog.log_action("update", "product", product.id, admin, changes=changes)
    return _detail(db, product)


@router.delete("/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Batches go with the product; order item snapshots stay."""
    product = _get_product(db, product_id)
    images = [product.main_image] + list(product.sub_images or [])
    batch_count = len(product.batches)
    db.delete(product)
    db.commit()
    upload_service.delete_files(images, PRODUCTS)
    logger.info(f"Product {product_id} deleted with {batch_count} batches")
    AuditLog.log_action("delete", "product", product_id, admin, changes={"batches_deleted": batch_count})
    return ok(None)


@router.patch("/{product_id}/stock")
def recompute_stock(product_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Recompute totalStock from batches and open orders."""
    _get_product(db, product_id)
    product = stock_service.reconcile_product_stock(db, product_id)
    db.commit()
    return ok(ProductOut.model_validate(product))


@router.patch("/{product_id}/batch-stock")
def adjust_batch_stock(
    product_id: int,
    data: BatchStockAdjust,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Correct one batch's remaining quantity after a physical count."""
    _get_product(db, product_id)
    batch = stock_service.adjust_batch_remaining(db, product_id, data.batch_id, data.remaining_quantity)
    db.commit()
    AuditLog.log_action(
        "adjust_stock", "batch", batch.id, admin,
        changes={"remaining_quantity": batch.remaining_quantity},
    )
    return _detail(db, _get_product(db, product_id))
