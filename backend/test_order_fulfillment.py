"""Shipping an order: FIFO batch consumption, alerts, and all-or-nothing rollback."""
from datetime import date, timedelta

import pytest

from quickmed.core.exceptions import InsufficientStockError
from quickmed.models.batch import Batch
from quickmed.models.notification import Notification
from quickmed.models.order import Order
from quickmed.models.product import Product
from quickmed.services.fulfillment_service import low_stock_threshold, ship_order_atomically
from quickmed.services.stock_service import reconcile_product_stock

TODAY = date.today()


def _reconciled(db, *products):
    for p in products:
        reconcile_product_stock(db, p.id)
    db.commit()


def test_oldest_batch_is_consumed_first(db, make_product, make_batch, make_order, customer):
    product = make_product()
    newer = make_batch(product, quantity=50, mfg=TODAY - timedelta(days=10))
    older = make_batch(product, quantity=50, mfg=TODAY - timedelta(days=100))
    order = make_order(customer, [(product, 30)])
    _reconciled(db, product)

    order = ship_order_atomically(db, order)

    db.refresh(older)
    db.refresh(newer)
    assert order.status == "shipped"
    assert older.remaining_quantity == 20
    assert newer.remaining_quantity == 50
    assert order.items[0].batch_id == older.id
    assert order.items[0].stock_consumed is True
    assert db.get(Product, product.id).total_stock == 70


def test_expired_batch_is_skipped(db, make_product, make_batch, make_order, customer):
    product = make_product()
    stale = make_batch(product, quantity=50, mfg=TODAY - timedelta(days=400), exp=TODAY - timedelta(days=1))
    fresh = make_batch(product, quantity=50, mfg=TODAY - timedelta(days=5))
    order = make_order(customer, [(product, 10)])

    order = ship_order_atomically(db, order)

    db.refresh(stale)
    db.refresh(fresh)
    assert stale.remaining_quantity == 50
    assert fresh.remaining_quantity == 40
    assert order.items[0].batch_id == fresh.id


def test_batch_hits_zero_and_is_depleted(db, make_product, make_batch, make_order, customer):
    product = make_product()
    batch = make_batch(product, quantity=10)
    order = make_order(customer, [(product, 10)])

    ship_order_atomically(db, order)

    db.refresh(batch)
    assert batch.remaining_quantity == 0
    assert batch.status == "depleted"


def test_item_is_never_split_across_batches(db, make_product, make_batch, make_order, customer):
    product = make_product()
    first = make_batch(product, quantity=5, mfg=TODAY - timedelta(days=50))
    second = make_batch(product, quantity=5, mfg=TODAY - timedelta(days=20))
    order = make_order(customer, [(product, 8)])

    with pytest.raises(InsufficientStockError) as exc:
        ship_order_atomically(db, order)

    assert exc.value.requested == 8
    assert exc.value.available == 5
    db.refresh(first)
    db.refresh(second)
    assert (first.remaining_quantity, second.remaining_quantity) == (5, 5)


def test_failed_item_rolls_back_earlier_items(db, make_product, make_batch, make_order, customer):
    plenty = make_product(name="Cetirizine 10mg")
    scarce = make_product(name="Amoxicillin 500mg")
    plenty_batch = make_batch(plenty, quantity=100)
    make_batch(scarce, quantity=2)
    order = make_order(customer, [(plenty, 10), (scarce, 5)])
    _reconciled(db, plenty, scarce)
    stock_before = db.get(Product, plenty.id).total_stock
    order_id = order.id

    with pytest.raises(InsufficientStockError):
        ship_order_atomically(db, order)

    db.expire_all()
    assert db.get(Batch, plenty_batch.id).remaining_quantity == 100
    assert db.get(Product, plenty.id).total_stock == stock_before
    order = db.get(Order, order_id)
    assert order.status == "pending"
    assert all(not item.stock_consumed and item.batch_id is None for item in order.items)

    alerts = db.query(Notification).filter(Notification.kind == "out_of_stock").all()
    assert len(alerts) == 1
    assert "Amoxicillin 500mg" in alerts[0].subject


def test_missing_batch_fails(db, make_product, make_order, customer):
    product = make_product()
    order = make_order(customer, [(product, 1)])

    with pytest.raises(InsufficientStockError) as exc:
        ship_order_atomically(db, order)
    assert exc.value.available == 0


def test_low_stock_alert_after_shipment(db, make_product, make_batch, make_order, customer):
    product = make_product(name="Ibuprofen 200mg")
    make_batch(product, quantity=12)
    order = make_order(customer, [(product, 5)])

    ship_order_atomically(db, order)

    assert db.get(Product, product.id).total_stock == 7
    alerts = db.query(Notification).filter(Notification.kind == "low_stock").all()
    assert len(alerts) == 1
    assert "Ibuprofen 200mg" in alerts[0].body


def test_no_low_stock_alert_when_plenty_left(db, make_product, make_batch, make_order, customer):
    product = make_product()
    make_batch(product, quantity=200)
    order = make_order(customer, [(product, 5)])

    ship_order_atomically(db, order)

    assert db.query(Notification).filter(Notification.kind == "low_stock").count() == 0


def test_low_stock_threshold_scales_with_item_quantity():
    assert low_stock_threshold(5) == 10
    assert low_stock_threshold(50) == 10
    assert low_stock_threshold(100) == 20
