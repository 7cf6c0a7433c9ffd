"""
Order shipment: take stock out of batches, oldest first.

Each unconsumed item is served from exactly one batch, the active one with
the earliest manufacturing date. An item is never split across batches; if
that batch cannot cover it the whole shipment fails.

ship_order does the work without committing. ship_order_atomically wraps it
in one transaction: any failure rolls back every batch, product and order
change from the request, then the out-of-stock alert is queued on its own.
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from quickmed.core.config import settings
from quickmed.core.exceptions import InsufficientStockError
from quickmed.models.batch import Batch
from quickmed.models.order import Order, ORDER_SHIPPED
from quickmed.models.product import Product
from quickmed.services import batch_rules
from quickmed.services.batch_rules import BATCH_ACTIVE, compute_batch_status
from quickmed.services.notification_service import enqueue_low_stock, enqueue_out_of_stock
from quickmed.services.stock_service import refresh_batch_statuses, reconcile_product_stock

logger = logging.getLogger(__name__)


def low_stock_threshold(item_quantity: int) -> float:
    return max(settings.LOW_STOCK_THRESHOLD, item_quantity * 0.2)


def oldest_active_batch(db: Session, product_id: int):
    refresh_batch_statuses(db, product_id)
    return (
        db.query(Batch)
        .filter(
            Batch.product_id == product_id,
            Batch.status == BATCH_ACTIVE,
            Batch.remaining_quantity > 0,
            Batch.expiry_date > batch_rules.current_date(),
        )
        .order_by(Batch.manufacturing_date.asc(), Batch.id.asc())
        .first()
    )


def _consume(db: Session, batch: Batch, quantity: int) -> bool:
    """Guarded decrement. False when another writer got there first."""
    updated = (
        db.query(Batch)
        .filter(Batch.id == batch.id, Batch.remaining_quantity >= quantity)
        .update(
            {Batch.remaining_quantity: Batch.remaining_quantity - quantity},
            synchronize_session=False,
        )
    )
    if updated != 1:
        return False
    db.refresh(batch)
    batch.status = compute_batch_status(batch.remaining_quantity, batch.expiry_date)
    return True


def ship_order(db: Session, order: Order) -> List[Product]:
    """
    Consume stock for every unconsumed item and mark the order shipped.

    Returns:
        Products that fell below their low-stock threshold

    Raises:
        InsufficientStockError: an item has no batch able to cover it
    """
    low_stock = {}

    for item in order.items:
        if item.stock_consumed:
            continue

        batch = oldest_active_batch(db, item.product_id)
        available = batch.remaining_quantity if batch else 0
        if batch is None or available < item.quantity or not _consume(db, batch, item.quantity):
            raise InsufficientStockError(
                f"Insufficient stock for {item.name}. Requested {item.quantity}, "
                f"available in oldest batch {available}",
                product_id=item.product_id,
                product_name=item.name,
                requested=item.quantity,
                available=available,
            )

        item.batch_id = batch.id
        item.stock_consumed = True
        db.flush()
        logger.info(
            f"Order {order.order_number}: {item.quantity} x {item.name} from batch {batch.batch_number} "
            f"({batch.remaining_quantity} left)"
        )

        product = reconcile_product_stock(db, item.product_id)
        if product.total_stock < low_stock_threshold(item.quantity):
            low_stock[product.id] = product

    order.status = ORDER_SHIPPED
    if low_stock:
        enqueue_low_stock(db, list(low_stock.values()))
    db.flush()
    return list(low_stock.values())


def ship_order_atomically(db: Session, order: Order) -> Order:
    """
    Ship and commit, or roll back everything and queue an out-of-stock alert.

    Any pending changes already made to the order in this session (tracking
    number, notes) share the transaction.
    """
    order_id = order.id
    order_number = order.order_number
    try:
        ship_order(db, order)
        db.commit()
    except InsufficientStockError as e:
        db.rollback()
        logger.warning(f"Shipment of order {order_number} rolled back: {e.message}")
        enqueue_out_of_stock(db, e.product_name, order_number, e.requested, e.available)
        db.commit()
        raise
    except Exception:
        db.rollback()
        raise

    return db.query(Order).filter(Order.id == order_id).first()
