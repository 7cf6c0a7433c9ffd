"""Checkout, customer order access and admin fulfillment over HTTP."""
from conftest import auth_headers
from quickmed.models.batch import Batch
from quickmed.models.cart import CartItem
from quickmed.models.notification import Notification
from quickmed.models.product import Product

ORDERS = "/api/v1/orders"
CHECKOUT = {
    "shippingAddress": "12 Galle Road, Colombo 03",
    "paymentMethod": "visa",
    "cardNumber": "4242 4242 4242 4242",
}


def _checkout(client, headers, items=None):
    body = dict(CHECKOUT)
    if items is not None:
        body["items"] = [{"productId": pid, "quantity": q} for pid, q in items]
    return client.post(ORDERS, json=body, headers=headers)


def test_checkout_with_items_reserves_stock(client, db, customer, customer_headers, make_product, make_batch):
    product = make_product(name="Cetirizine", price=2.5)
    make_batch(product, quantity=40)

    resp = _checkout(client, customer_headers, [(product.id, 4)])

    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["status"] == "pending"
    assert data["orderNumber"].startswith("ORD-")
    assert data["cardLast4"] == "4242"
    assert data["totalAmount"] == 10.0
    assert data["customer"] == customer.name
    assert data["items"][0]["name"] == "Cetirizine"
    assert data["items"][0]["stockConsumed"] is False
    assert "cardNumber" not in data

    db.expire_all()
    assert db.get(Product, product.id).total_stock == 36
    kinds = [n.kind for n in db.query(Notification).all()]
    assert kinds == ["order_request"]


def test_checkout_from_cart_clears_it(client, db, customer, customer_headers, make_product, make_batch):
    product = make_product(price=3)
    make_batch(product, quantity=10)
    resp = client.post("/api/v1/cart", json={"productId": product.id, "quantity": 2}, headers=customer_headers)
    assert resp.status_code == 201
    assert resp.json()["data"]["total"] == 6.0

    resp = _checkout(client, customer_headers)
    assert resp.status_code == 201
    assert resp.json()["data"]["items"][0]["quantity"] == 2

    db.expire_all()
    assert db.query(CartItem).filter(CartItem.user_id == customer.id).count() == 0
    assert _checkout(client, customer_headers).status_code == 400


def test_checkout_beyond_available_stock_is_rejected(client, db, customer_headers, make_product, make_batch):
    product = make_product()
    make_batch(product, quantity=5)

    resp = _checkout(client, customer_headers, [(product.id, 6)])
    assert resp.status_code == 400
    assert "Available: 5" in resp.json()["message"]

    # A second order cannot claim stock the first one reserved
    assert _checkout(client, customer_headers, [(product.id, 3)]).status_code == 201
    assert _checkout(client, customer_headers, [(product.id, 3)]).status_code == 400
    db.expire_all()
    assert db.get(Product, product.id).total_stock == 2


def test_checkout_validation(client, customer_headers, make_product):
    product = make_product()
    bad_card = dict(CHECKOUT, cardNumber="1234")
    assert client.post(ORDERS, json=bad_card, headers=customer_headers).status_code == 400

    bad_method = dict(CHECKOUT, paymentMethod="cash")
    assert client.post(ORDERS, json=bad_method, headers=customer_headers).status_code == 400

    dupes = [(product.id, 1), (product.id, 2)]
    assert _checkout(client, customer_headers, dupes).status_code == 400

    assert _checkout(client, customer_headers, [(9999, 1)]).status_code == 404


def test_orders_are_private_to_their_owner(client, customer, make_user, make_product, make_batch, make_order):
    product = make_product()
    make_batch(product, quantity=10)
    order = make_order(customer, [(product, 1)])
    stranger = make_user("user")

    resp = client.get(f"{ORDERS}/{order.id}", headers=auth_headers(stranger))
    assert resp.status_code == 403
    assert client.get(f"{ORDERS}/{order.id}", headers=auth_headers(customer)).status_code == 200
    assert client.get(ORDERS, headers=auth_headers(stranger)).json()["results"] == 0
    assert client.get(f"{ORDERS}/admin/all", headers=auth_headers(customer)).status_code == 403


def test_customer_cancels_pending_order(client, db, customer, customer_headers, make_product, make_batch, make_order):
    product = make_product()
    make_batch(product, quantity=10)
    order = make_order(customer, [(product, 4)])

    resp = client.patch(f"{ORDERS}/{order.id}", json={"status": "processing"}, headers=customer_headers)
    assert resp.status_code == 403

    resp = client.patch(f"{ORDERS}/{order.id}", json={"status": "cancelled"}, headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "cancelled"
    db.expire_all()
    assert db.get(Product, product.id).total_stock == 10


def test_customer_cannot_cancel_processing_order(client, customer, customer_headers, make_product, make_order):
    order = make_order(customer, [(make_product(), 1)], status="processing")
    resp = client.patch(f"{ORDERS}/{order.id}", json={"status": "cancelled"}, headers=customer_headers)
    assert resp.status_code == 400


def test_admin_ships_with_stock_update(client, db, admin_headers, customer, make_product, make_batch, make_order):
    product = make_product()
    batch = make_batch(product, quantity=50)
    order = make_order(customer, [(product, 20)])

    resp = client.patch(
        f"{ORDERS}/{order.id}",
        json={"status": "shipped", "updateStock": True, "trackingNumber": "TRK-1"},
        headers=admin_headers,
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "shipped"
    assert data["trackingNumber"] == "TRK-1"
    assert data["items"][0]["batchId"] == batch.id
    assert data["items"][0]["stockConsumed"] is True
    db.expire_all()
    assert db.get(Batch, batch.id).remaining_quantity == 30
    assert db.get(Product, product.id).total_stock == 30


def test_failed_shipment_changes_nothing(client, db, admin_headers, customer, make_product, make_batch, make_order):
    plenty = make_product(name="Omeprazole")
    scarce = make_product(name="Salbutamol Inhaler")
    plenty_batch = make_batch(plenty, quantity=30)
    make_batch(scarce, quantity=1)
    order = make_order(customer, [(plenty, 5), (scarce, 2)])

    resp = client.patch(
        f"{ORDERS}/{order.id}",
        json={"status": "shipped", "updateStock": True, "trackingNumber": "TRK-9"},
        headers=admin_headers,
    )

    assert resp.status_code == 400
    assert "Salbutamol Inhaler" in resp.json()["message"]
    db.expire_all()
    assert db.get(Batch, plenty_batch.id).remaining_quantity == 30
    refreshed = client.get(f"{ORDERS}/{order.id}", headers=admin_headers).json()["data"]
    assert refreshed["status"] == "pending"
    assert refreshed["trackingNumber"] is None
    assert [n.kind for n in db.query(Notification).all()] == ["out_of_stock"]


def test_status_transitions(client, admin_headers, customer, make_product, make_order):
    product = make_product()
    order = make_order(customer, [(product, 1)])
    url = f"{ORDERS}/{order.id}"

    assert client.patch(url, json={"status": "delivered"}, headers=admin_headers).status_code == 400
    assert client.patch(url, json={"status": "processing"}, headers=admin_headers).status_code == 200
    assert client.patch(url, json={"status": "shipped"}, headers=admin_headers).status_code == 200

    resp = client.patch(url, json={"status": "delivered"}, headers=admin_headers)
    assert resp.status_code == 200
    delivered_at = resp.json()["data"]["actualDelivery"]
    assert delivered_at is not None

    resp = client.patch(url, json={"status": "pending"}, headers=admin_headers)
    assert resp.status_code == 400
    resp = client.patch(url, json={"adminNotes": "left at reception"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["actualDelivery"] == delivered_at


def test_orders_by_status_and_delete(client, db, admin_headers, customer, make_product, make_batch, make_order):
    product = make_product()
    make_batch(product, quantity=10)
    pending = make_order(customer, [(product, 3)])
    make_order(customer, [(product, 1)], status="cancelled")

    resp = client.get(f"{ORDERS}/status/cancelled", headers=admin_headers)
    assert resp.json()["results"] == 1
    assert client.get(f"{ORDERS}/status/lost", headers=admin_headers).status_code == 400

    assert client.delete(f"{ORDERS}/{pending.id}", headers=admin_headers).status_code == 200
    db.expire_all()
    assert db.get(Product, product.id).total_stock == 10
