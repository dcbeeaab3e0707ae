# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Sets the environment before the app is imported, gives every test a fresh
# in-memory database, and swaps S3 and Stripe for in-memory fakes.
# =============================================================================

import json
import os
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# app.core.config reads settings as soon as the database module is imported

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test-key")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test-secret")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_S3_BUCKET_NAME", "test-bucket")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_USERNAMES", "root")
os.environ.setdefault("APP_URL", "http://testserver")

import pytest
from fastapi.testclient import TestClient

from app.core.security import SESSION_COOKIE, hash_password, sign_value
from app.main import app
from app.models.database import Base, SessionLocal, engine
from app.models.file import CodeFile
from app.models.product import Product
from app.models.purchase import Purchase, PurchaseStatus
from app.models.transaction import Transaction, TransactionStatus
from app.models.user import User
from app.services.payments import get_payment_gateway
from app.services.storage import StorageError, get_storage


# =============================================================================
# Fakes
# =============================================================================

class FakeStorage:
    """In-memory bucket with the same interface as app.services.storage.Storage."""

    def __init__(self):
        self.objects = {}

    def put(self, key, content, content_type="application/octet-stream"):
        self.objects[key] = (content, content_type)

    def get(self, key):
        if key not in self.objects:
            raise StorageError(f"Could not fetch {key}")
        return self.objects[key]

    def delete(self, key):
        self.objects.pop(key, None)


class FakeGateway:
    """Records checkout requests instead of calling Stripe."""

    currency = "usd"

    def __init__(self):
        self.created = []
        self.payment_status = {}
        self.fail_create = False

    def create_checkout_session(self, **kwargs):
        from app.services.payments import PaymentError

        if self.fail_create:
            raise PaymentError("Could not start checkout")
        session_id = f"cs_test_{len(self.created) + 1}"
        self.created.append({"id": session_id, **kwargs})
        return SimpleNamespace(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    def retrieve_checkout_session(self, session_id):
        return SimpleNamespace(id=session_id, payment_status=self.payment_status.get(session_id, "paid"))

    def construct_event(self, payload, signature):
        if signature != "valid-signature":
            raise ValueError("No signatures found matching the expected signature")
        return json.loads(payload)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(storage, gateway):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(username="alice", is_admin=False, password="secret123"):
        user = User(username=username, password=hash_password(password), is_admin=is_admin)
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def login_as(client):
    def _login_as(user):
        client.cookies.set(SESSION_COOKIE, sign_value(str(user.id)))
        return client

    return _login_as


@pytest.fixture
def admin(make_user):
    return make_user("root", is_admin=True)


@pytest.fixture
def make_file(db, storage):
    def _make_file(uploader, name="Starter kit", price="9.99", content=b"PK\x03\x04zip-bytes"):
        key = f"files/{uploader.id}/{name.replace(' ', '_')}.zip"
        storage.put(key, content, "application/zip")
        file = CodeFile(
            name=name,
            description=f"{name} source code",
            price=Decimal(price),
            original_name=f"{name.replace(' ', '_')}.zip",
            stored_name=key,
            path=key,
            size=len(content),
            content_type="application/zip",
            uploader_id=uploader.id,
        )
        db.add(file)
        db.commit()
        return file

    return _make_file


@pytest.fixture
def make_product(db):
    def _make_product(file, title="Starter kit", is_active=True):
        product = Product(title=title, file_id=file.id, is_active=is_active)
        db.add(product)
        db.commit()
        return product

    return _make_product


@pytest.fixture
def make_purchase(db):
    def _make_purchase(user, product, completed=True, session_id=None):
        purchase = Purchase(
            user_id=user.id,
            product_id=product.id,
            file_id=product.file_id,
            status=PurchaseStatus.COMPLETED.value if completed else PurchaseStatus.PENDING.value,
            purchased_at=datetime.utcnow() if completed else None,
        )
        db.add(purchase)
        db.flush()
        transaction = Transaction(
            purchase_id=purchase.id,
            amount=product.file.price,
            currency="usd",
            stripe_session_id=session_id or f"cs_seed_{purchase.id}",
            status=TransactionStatus.PAID.value if completed else TransactionStatus.PENDING.value,
        )
        db.add(transaction)
        db.commit()
        return purchase

    return _make_purchase
