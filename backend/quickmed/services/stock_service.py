"""
Stock reconciliation.

Product.total_stock is a cache. reconcile_product_stock is the only code
path that writes it:

    total_stock = max(0, sum(remaining of sellable batches) - reserved)

"reserved" is the quantity held by pending/processing/shipped orders whose
items have not been taken out of a batch yet. Consumed items are already
reflected in batch remaining quantities, so counting them again would
double-subtract.

Nothing here commits. Callers own the transaction.
"""
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from quickmed.core.exceptions import BusinessError
from quickmed.models.batch import Batch
from quickmed.models.order import Order, OrderItem, RESERVING_STATUSES
from quickmed.models.product import Product
from quickmed.services import batch_rules
from quickmed.services.batch_rules import (
    clamp_remaining,
    compute_batch_status,
    is_sellable,
)

logger = logging.getLogger(__name__)


def refresh_batch_statuses(db: Session, product_id: int) -> List[Batch]:
    """Recompute status for every batch of a product. Returns the batches."""
    today = batch_rules.current_date()
    batches = db.query(Batch).filter(Batch.product_id == product_id).all()
    for batch in batches:
        new_status = compute_batch_status(batch.remaining_quantity, batch.expiry_date, today)
        if new_status != batch.status:
            logger.info(f"Batch {batch.batch_number}: {batch.status} -> {new_status}")
            batch.status = new_status
    return batches


def reserved_quantity(db: Session, product_id: int, exclude_order_id: Optional[int] = None) -> int:
    query = (
        db.query(func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(
            OrderItem.product_id == product_id,
            OrderItem.stock_consumed.is_(False),
            Order.status.in_(RESERVING_STATUSES),
        )
    )
    if exclude_order_id is not None:
        query = query.filter(Order.id != exclude_order_id)
    return int(query.scalar() or 0)


def sellable_quantity(batches: List[Batch]) -> int:
    today = batch_rules.current_date()
    return sum(
        b.remaining_quantity or 0
        for b in batches
        if is_sellable(b.status, b.expiry_date, today)
    )


def reconcile_product_stock(db: Session, product_id: int) -> Product:
    """
    Recompute and persist Product.total_stock.

    Raises:
        HTTPException 404 if the product does not exist
    """
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise BusinessError.not_found("Product", reason=f"reconcile product_id={product_id}")

    batches = refresh_batch_statuses(db, product_id)
    available = sellable_quantity(batches)
    reserved = reserved_quantity(db, product_id)
    total = max(0, available - reserved)

    if product.total_stock != total:
        logger.info(
            f"Stock for product {product.id} ({product.name}): "
            f"{product.total_stock} -> {total} (batches={available}, reserved={reserved})"
        )
    product.total_stock = total
    db.flush()
    return product


def reconcile_many(db: Session, product_ids) -> None:
    """Reconcile each distinct product that still exists."""
    for product_id in sorted(set(product_ids)):
        if db.query(Product.id).filter(Product.id == product_id).first():
            reconcile_product_stock(db, product_id)


def adjust_batch_remaining(db: Session, product_id: int, batch_id: int, remaining_quantity: int) -> Batch:
    """Set a batch's remaining quantity by hand (stock count correction), then reconcile."""
    batch = db.query(Batch).filter(Batch.id == batch_id, Batch.product_id == product_id).first()
    if not batch:
        raise BusinessError.not_found("Batch", reason=f"batch {batch_id} of product {product_id}")
    batch.remaining_quantity = clamp_remaining(remaining_quantity, batch.quantity)
    batch.status = compute_batch_status(batch.remaining_quantity, batch.expiry_date)
    db.flush()
    reconcile_product_stock(db, product_id)
    return batch
