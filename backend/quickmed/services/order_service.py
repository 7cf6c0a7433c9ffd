"""Checkout and order lifecycle. Used by the orders routes.

Every function here leaves the session committed on success. Stock effects
go through stock_service.reconcile_many so reservations show up in
totalStock as soon as an order exists, and disappear when it is cancelled.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from quickmed.core.exceptions import BusinessError
from quickmed.models.cart import CartItem
from quickmed.models.order import (
    Order,
    OrderItem,
    ORDER_CANCELLED,
    ORDER_DELIVERED,
    ORDER_PENDING,
    ORDER_PROCESSING,
    ORDER_SHIPPED,
    TERMINAL_STATUSES,
)
from quickmed.models.product import Product
from quickmed.models.user import User
from quickmed.services.fulfillment_service import ship_order_atomically
from quickmed.services.notification_service import enqueue_order_request
from quickmed.services.stock_service import reconcile_many, reconcile_product_stock

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ORDER_PENDING: {ORDER_PROCESSING, ORDER_SHIPPED, ORDER_CANCELLED},
    ORDER_PROCESSING: {ORDER_PENDING, ORDER_SHIPPED, ORDER_CANCELLED},
    ORDER_SHIPPED: {ORDER_DELIVERED, ORDER_CANCELLED},
    ORDER_DELIVERED: set(),
    ORDER_CANCELLED: set(),
}


def generate_order_number() -> str:
    return f"ORD-{datetime.now(timezone.utc).strftime('%Y%m%d')}-{uuid.uuid4().hex[:8].upper()}"


def _requested_lines(db: Session, user: User, items) -> Tuple[List[Tuple[int, int]], bool]:
    """(product_id, quantity) pairs, and whether they came from the cart."""
    if items:
        return [(i.product_id, i.quantity) for i in items], False
    cart = db.query(CartItem).filter(CartItem.user_id == user.id).order_by(CartItem.id).all()
    if not cart:
        raise BusinessError.bad_request("Your cart is empty")
    return [(c.product_id, c.quantity) for c in cart], True


def create_order(db: Session, user: User, data) -> Order:
    """
    Check availability, snapshot names and prices, reserve stock.

    Raises:
        HTTPException 404 for an unknown product, 400 when stock is short
    """
    lines, from_cart = _requested_lines(db, user, data.items)

    order = Order(
        order_number=generate_order_number(),
        user_id=user.id,
        customer=user.name,
        status=ORDER_PENDING,
        shipping_address=data.shipping_address.strip(),
        payment_method=data.payment_method,
        card_last4=data.card_number[-4:],
        total_amount=0,
    )
    total = 0.0
    for product_id, quantity in lines:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise BusinessError.not_found("Product", reason=f"checkout product_id={product_id}")
        reconcile_product_stock(db, product_id)
        if quantity > product.total_stock:
            raise BusinessError.bad_request(
                f"Insufficient stock for {product.name}. Available: {product.total_stock}"
            )
        price = float(product.price)
        order.items.append(OrderItem(product_id=product.id, name=product.name, price=price, quantity=quantity))
        total += price * quantity

    order.total_amount = round(total, 2)
    db.add(order)
    db.flush()

    reconcile_many(db, [pid for pid, _ in lines])
    if from_cart:
        db.query(CartItem).filter(CartItem.user_id == user.id).delete(synchronize_session=False)
    enqueue_order_request(db, order, user.email)
    db.commit()
    db.refresh(order)

    logger.info(f"Order {order.order_number} created for user {user.id}: {len(lines)} items, total {order.total_amount}")
    return order


def _check_transition(order: Order, new_status: str):
    if new_status == order.status:
        return
    if order.status in TERMINAL_STATUSES:
        raise BusinessError.bad_request(f"Order is already {order.status} and cannot be changed")
    if new_status not in ALLOWED_TRANSITIONS[order.status]:
        raise BusinessError.bad_request(f"Cannot change order status from {order.status} to {new_status}")


def cancel_own_order(db: Session, order: Order) -> Order:
    if order.status != ORDER_PENDING:
        raise BusinessError.bad_request("Only pending orders can be cancelled")
    order.status = ORDER_CANCELLED
    db.flush()
    reconcile_many(db, [i.product_id for i in order.items])
    db.commit()
    db.refresh(order)
    return order


def admin_update_order(db: Session, order: Order, data) -> Order:
    """
    Apply an admin edit. shipped + updateStock consumes batches (FIFO) and
    commits atomically; any other change reconciles the order's products.
    """
    changes = data.model_dump(exclude_unset=True)
    new_status: Optional[str] = changes.get("status")

    if order.status in TERMINAL_STATUSES:
        if new_status not in (None, order.status) or "tracking_number" in changes or "estimated_delivery" in changes:
            raise BusinessError.bad_request(f"Order is already {order.status} and cannot be changed")
    if new_status:
        _check_transition(order, new_status)

    if "tracking_number" in changes:
        order.tracking_number = data.tracking_number
    if "admin_notes" in changes:
        order.admin_notes = data.admin_notes
    if "estimated_delivery" in changes:
        order.estimated_delivery = data.estimated_delivery

    if new_status == ORDER_SHIPPED and data.update_stock:
        return ship_order_atomically(db, order)

    if new_status:
        order.status = new_status
        if new_status == ORDER_DELIVERED and order.actual_delivery is None:
            order.actual_delivery = datetime.now(timezone.utc)
    db.flush()
    reconcile_many(db, [i.product_id for i in order.items])
    db.commit()
    db.refresh(order)
    return order


def delete_order(db: Session, order: Order) -> None:
    product_ids = [i.product_id for i in order.items]
    db.delete(order)
    db.flush()
    reconcile_many(db, product_ids)
    db.commit()
