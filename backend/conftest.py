"""
Shared fixtures: in-memory SQLite per test, a TestClient wired to it,
users with tokens, a recording mailer and small record factories.
"""
import os
from datetime import date, timedelta

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OUTBOX_ENABLED"] = "false"
os.environ["ADMIN_EMAIL"] = "alerts@quickmed.test"
os.environ["SUPPLIER_EMAIL"] = "supplier@quickmed.test"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from quickmed.api.deps import get_db
from quickmed.core.config import settings
from quickmed.core.security import create_access_token, get_password_hash
from quickmed.db.base import Base
from quickmed.db.session import enable_sqlite_foreign_keys
from quickmed.main import app
from quickmed.models.batch import Batch
from quickmed.models.order import Order, OrderItem
from quickmed.models.product import Product
from quickmed.models.user import User
from quickmed.services import batch_rules, mailer
from quickmed.services.stock_service import reconcile_product_stock

TODAY = date.today()


@pytest.fixture
def engine():
    engine = enable_sqlite_foreign_keys(create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ))
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sent_emails(monkeypatch):
    """Replace SMTP with a list of (recipient, subject, body)."""
    outbox = []

    def fake_send(recipient, subject, html_body):
        outbox.append((recipient, subject, html_body))

    monkeypatch.setattr(mailer, "send_email", fake_send)
    return outbox


@pytest.fixture
def freeze_today(monkeypatch):
    """Pin the date every stock rule sees. Usage: freeze_today(date(2024, 6, 1))."""

    def _freeze(day: date):
        monkeypatch.setattr(batch_rules, "current_date", lambda: day)
        return day

    return _freeze


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="user", status="active", name=None, password="secret123"):
        counter["n"] += 1
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            email=f"{role}{counter['n']}@quickmed.lk",
            hashed_password=get_password_hash(password),
            role=role,
            status=status,
            doctor_id="DOC-1" if role == "doctor" else None,
            pharmacy_reg_number="PH-1" if role == "pharmacy" else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def customer(make_user):
    return make_user("user")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(name=None, brand="Acme", price=10.0, category="medicine"):
        counter["n"] += 1
        product = Product(
            name=name or f"Paracetamol {counter['n']}",
            brand=brand,
            category=category,
            description="Pain relief",
            price=price,
            total_stock=0,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_batch(db):
    """Adds a batch and reconciles the product, as the batch endpoints do."""
    counter = {"n": 0}

    def _make(product, quantity=10, remaining=None, mfg=None, exp=None):
        counter["n"] += 1
        batch = Batch(
            product_id=product.id,
            batch_number=f"B-{product.id}-{counter['n']}",
            manufacturing_date=mfg or TODAY - timedelta(days=60 - counter["n"]),
            expiry_date=exp or TODAY + timedelta(days=365),
            quantity=quantity,
            remaining_quantity=remaining,
            cost_price=5,
            selling_price=8,
        )
        db.add(batch)
        db.flush()
        reconcile_product_stock(db, product.id)
        db.commit()
        db.refresh(batch)
        return batch

    return _make


@pytest.fixture
def make_order(db):
    counter = {"n": 0}

    def _make(user, lines, status="pending"):
        """lines: [(product, quantity), ...]"""
        counter["n"] += 1
        order = Order(
            order_number=f"ORD-TEST-{counter['n']}",
            user_id=user.id,
            customer=user.name,
            status=status,
            shipping_address="12 Galle Road, Colombo",
            payment_method="visa",
            card_last4="4242",
            total_amount=sum(float(p.price) * q for p, q in lines),
        )
        for product, quantity in lines:
            order.items.append(OrderItem(
                product_id=product.id, name=product.name, price=product.price, quantity=quantity,
            ))
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make
