"""
Shared fixtures: in-memory SQLite database, FastAPI TestClient, seeded brands, webhook signing.
"""
import base64
import hashlib
import hmac
import json
import os

# Must be set before app.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["SHOPIFY_API_SECRET"] = ""
os.environ["ENCRYPTION_KEY"] = "test-encryption-key-for-pytest!!"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db, make_engine
from app import models  # noqa: F401 - register all models with Base
from app.dependencies import get_side_effect_dispatcher, get_shopify_client_factory
from app.models import Brand
from app.services.credentials import encrypt_token

WEBHOOK_SECRET = "whsec_acme_test"
ACCESS_TOKEN = "shpat_acme_test"
SHOP_DOMAIN = "acme.myshopify.com"

test_engine = make_engine("sqlite://", poolclass=StaticPool)
TestingSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Shopify-style signature header for body."""
    return base64.b64encode(hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()).decode("utf-8")


def webhook_headers(body: bytes, shop: str = SHOP_DOMAIN, secret: str = WEBHOOK_SECRET, topic: str = "orders/create") -> dict:
    return {
        "Content-Type": "application/json",
        "X-Shopify-Hmac-Sha256": sign(body, secret),
        "X-Shopify-Shop-Domain": shop,
        "X-Shopify-Topic": topic,
    }


def order_payload(order_id=987, total="100.00", financial_status="paid", source_name="shopscope", **extra) -> dict:
    payload = {
        "id": order_id,
        "order_number": 1001,
        "total_price": total,
        "currency": "USD",
        "financial_status": financial_status,
        "fulfillment_status": None,
        "source_name": source_name,
        "created_at": "2024-03-01T10:00:00-05:00",
        "customer": {"email": "buyer@example.com", "first_name": "Ada", "last_name": "Lovelace"},
        "line_items": [{"id": 1, "title": "Tee", "quantity": 1, "price": total}],
        "shipping_address": {"city": "Portland", "country_code": "US"},
    }
    payload.update(extra)
    return payload


class RecordingDispatcher:
    """Stands in for SideEffectDispatcher; records every dispatch call."""

    def __init__(self):
        self.calls = []

    async def dispatch(self, brand_id, event):
        self.calls.append((brand_id, event))


class FakeShopifyClient:
    """Returns canned pages instead of calling Shopify. fetch_error is raised from every fetch."""

    def __init__(self, orders=None, products=None, graphql_data=None, fetch_error=None):
        self.orders = orders or []
        self.products = products or []
        self.graphql_data = graphql_data or {}
        self.fetch_error = fetch_error
        self.shop_domain = None
        self.access_token = None

    def __call__(self, shop_domain, access_token):
        self.shop_domain = shop_domain
        self.access_token = access_token
        return self

    async def fetch_orders(self):
        if self.fetch_error:
            raise self.fetch_error
        return list(self.orders)

    async def fetch_products(self):
        if self.fetch_error:
            raise self.fetch_error
        return list(self.products)

    async def graphql(self, query, variables=None):
        if self.fetch_error:
            raise self.fetch_error
        return self.graphql_data


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def session_factory(db_session):
    """Factory for independent sessions on the same in-memory database."""
    return TestingSessionLocal


@pytest.fixture
def brand(db_session):
    brand = Brand(
        name="Acme",
        shopify_domain=SHOP_DOMAIN,
        commission_rate=Decimal("0.10"),
        shopify_access_token=encrypt_token(ACCESS_TOKEN),
        shopify_webhook_secret=encrypt_token(WEBHOOK_SECRET),
    )
    db_session.add(brand)
    db_session.commit()
    return brand


@pytest.fixture
def other_brand(db_session):
    brand = Brand(
        name="Globex",
        shopify_domain="globex.myshopify.com",
        commission_rate=Decimal("0.15"),
        shopify_webhook_secret=encrypt_token("whsec_globex_test"),
    )
    db_session.add(brand)
    db_session.commit()
    return brand


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def shopify_fake():
    return FakeShopifyClient()


@pytest.fixture
def client(db_session, dispatcher, shopify_fake):
    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_side_effect_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_shopify_client_factory] = lambda: shopify_fake
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def post_webhook(client):
    """POST a signed order webhook; body is serialized once so the signature covers the exact bytes."""

    def _post(payload, shop=SHOP_DOMAIN, secret=WEBHOOK_SECRET, topic="orders/create"):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        return client.post("/api/webhooks/orders", content=body, headers=webhook_headers(body, shop, secret, topic))

    return _post
