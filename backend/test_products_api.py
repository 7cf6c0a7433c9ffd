"""Product catalog and admin product management."""
from pathlib import Path

from quickmed.core.config import settings
from quickmed.models.batch import Batch
from quickmed.models.order import OrderItem

PRODUCTS = "/api/v1/products"

FORM = {
    "name": "Panadol Extra",
    "brand": "GSK",
    "category": "medicine",
    "description": "Paracetamol with caffeine",
    "price": "4.50",
    "tags": "pain, fever ,",
}


def test_create_product_with_images(client, admin_headers):
    files = [
        ("mainImage", ("front.png", b"\x89PNG main", "image/png")),
        ("subImages", ("side.jpg", b"jpeg one", "image/jpeg")),
        ("subImages", ("back.jpg", b"jpeg two", "image/jpeg")),
    ]
    resp = client.post(PRODUCTS, data=FORM, files=files, headers=admin_headers)

    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["name"] == "Panadol Extra"
    assert data["tags"] == ["pain", "fever"]
    assert data["totalStock"] == 0
    assert data["batches"] == []
    assert data["mainImage"].startswith("/uploads/products/")
    assert len(data["subImages"]) == 2

    stored = Path(settings.UPLOAD_DIR) / "products" / Path(data["mainImage"]).name
    assert stored.read_bytes() == b"\x89PNG main"


def test_create_product_without_images(client, admin_headers):
    resp = client.post(PRODUCTS, data=FORM, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["data"]["mainImage"] is None


def test_duplicate_name_and_brand_conflicts(client, admin_headers):
    assert client.post(PRODUCTS, data=FORM, headers=admin_headers).status_code == 201
    resp = client.post(PRODUCTS, data=FORM, headers=admin_headers)
    assert resp.status_code == 409

    other_brand = dict(FORM, brand="Haleon")
    assert client.post(PRODUCTS, data=other_brand, headers=admin_headers).status_code == 201


def test_create_product_rejects_bad_fields(client, admin_headers):
    for bad in ({"category": "toys"}, {"price": "-1"}, {"name": "ab"}):
        resp = client.post(PRODUCTS, data=dict(FORM, **bad), headers=admin_headers)
        assert resp.status_code == 400, bad
        assert resp.json()["status"] == "fail"


def test_create_product_rejects_bad_image_type(client, admin_headers):
    files = {"mainImage": ("notes.txt", b"hello", "text/plain")}
    resp = client.post(PRODUCTS, data=FORM, files=files, headers=admin_headers)
    assert resp.status_code == 400
    assert client.get(PRODUCTS).json()["results"] == 0


def test_product_management_is_admin_only(client, customer_headers, make_product):
    product = make_product()
    assert client.post(PRODUCTS, data=FORM).status_code == 401
    assert client.post(PRODUCTS, data=FORM, headers=customer_headers).status_code == 403
    assert client.delete(f"{PRODUCTS}/{product.id}", headers=customer_headers).status_code == 403


def test_list_filters(client, make_product, make_batch):
    stocked = make_product(name="Vitamin C", brand="Nature", category="supplements")
    make_batch(stocked, quantity=50)
    make_product(name="Thermometer", brand="Omron", category="equipment")
    low = make_product(name="Cough Syrup", brand="Benadryl")
    make_batch(low, quantity=4)

    assert client.get(PRODUCTS).json()["results"] == 3
    names = [p["name"] for p in client.get(PRODUCTS, params={"category": "equipment"}).json()["data"]]
    assert names == ["Thermometer"]
    names = [p["name"] for p in client.get(PRODUCTS, params={"search": "vitamin"}).json()["data"]]
    assert names == ["Vitamin C"]

    out = client.get(PRODUCTS, params={"stockStatus": "out"}).json()["data"]
    assert [p["name"] for p in out] == ["Thermometer"]
    low_names = {p["name"] for p in client.get(PRODUCTS, params={"stockStatus": "low"}).json()["data"]}
    assert low_names == {"Thermometer", "Cough Syrup"}
    assert client.get(PRODUCTS, params={"stockStatus": "bogus"}).status_code == 400


def test_detail_lists_batches_newest_first(client, make_product, make_batch):
    product = make_product()
    older = make_batch(product, quantity=5)
    newer = make_batch(product, quantity=7)

    resp = client.get(f"{PRODUCTS}/{product.id}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [b["id"] for b in data["batches"]] == [newer.id, older.id]
    assert data["totalStock"] == 12

    assert client.get(f"{PRODUCTS}/9999").status_code == 404


def test_update_product_fields(client, admin_headers, make_product):
    product = make_product(name="Aspirin", brand="Bayer")
    resp = client.patch(f"{PRODUCTS}/{product.id}", data={"price": "12.75"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["price"] == 12.75
    assert resp.json()["data"]["name"] == "Aspirin"


def test_delete_product_removes_batches_keeps_order_snapshots(
    client, db, admin_headers, make_product, make_batch, make_order, customer,
):
    product = make_product(name="Ibuprofen")
    make_batch(product, quantity=20)
    order = make_order(customer, [(product, 2)], status="delivered")
    pid, oid = product.id, order.id

    resp = client.delete(f"{PRODUCTS}/{pid}", headers=admin_headers)
    assert resp.status_code == 200

    db.expire_all()
    assert db.query(Batch).filter(Batch.product_id == pid).count() == 0
    item = db.query(OrderItem).filter(OrderItem.order_id == oid).one()
    assert item.name == "Ibuprofen"
    assert item.product_id == pid


def test_recompute_and_adjust_batch_stock(client, db, admin_headers, make_product, make_batch):
    product = make_product()
    batch = make_batch(product, quantity=30)

    resp = client.patch(
        f"{PRODUCTS}/{product.id}/batch-stock",
        json={"batchId": batch.id, "remainingQuantity": 12},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["totalStock"] == 12

    resp = client.patch(f"{PRODUCTS}/{product.id}/stock", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["totalStock"] == 12

    resp = client.patch(
        f"{PRODUCTS}/{product.id}/batch-stock",
        json={"batchId": 9999, "remainingQuantity": 1},
        headers=admin_headers,
    )
    assert resp.status_code == 404


def test_low_stock_and_restock_emails(client, admin_headers, make_product, make_batch):
    product = make_product(name="Insulin Pen")
    make_batch(product, quantity=3)

    resp = client.get(f"{PRODUCTS}/low-stock", headers=admin_headers)
    assert resp.status_code == 200
    item = resp.json()["data"][0]
    assert item["currentStock"] == 3
    assert item["recommendedQuantity"] == 97

    assert client.post(f"{PRODUCTS}/low-stock-alert", headers=admin_headers).status_code == 202
    resp = client.post(f"{PRODUCTS}/restock-request", headers=admin_headers)
    assert resp.status_code == 202
    assert resp.json()["data"]["products"][0]["name"] == "Insulin Pen"
