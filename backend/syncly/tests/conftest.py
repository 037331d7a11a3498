"""Pytest configuration for Syncly integration tests

WHAT: Provides shared fixtures for HTTP endpoint tests: an in-memory database,
      an app built around it, signed session tokens and shop factories.
WHY: Every test gets an isolated database and explicit settings, so no test
     depends on a local .env or on data left behind by another test.
REFERENCES:
    - syncly/main.py: create_app factory
    - syncly/database.py: Database client
    - syncly/deps.py: Settings / get_settings
"""

import base64
import os
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

BACKEND_ROOT = Path(__file__).resolve().parents[2]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Set test environment before syncly.security is imported
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
# Must be URL-safe base64-encoded 32-byte string (syncly.security validates at import time)
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA=")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OPENAI_API_KEY", "test-api-key")
# HS256 test tokens only verify when no Clerk public key is configured
os.environ.pop("CLERK_JWT_KEY", None)
os.environ.pop("SENTRY_DSN", None)


OWNER_ID = "user_owner_123"
OTHER_OWNER_ID = "user_other_456"
NEW_USER_ID = "user_new_789"
WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"syncly-test-webhook-signing-key!").decode("utf-8")


# ============================================================================
# Settings & Database Fixtures
# ============================================================================

@pytest.fixture
def test_settings(tmp_path):
    """Explicit settings; the local .env file is never read."""
    from syncly.deps import Settings

    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL="sqlite://",
        OPENAI_API_KEY="test-openai-key",
        PUBLIC_BASE_URL="http://testserver",
        FRONTEND_URL="http://localhost:3000",
        CLERK_WEBHOOK_SECRET=WEBHOOK_SECRET,
        FACEBOOK_APP_ID="test-fb-app",
        FACEBOOK_APP_SECRET="test-fb-secret",
        FACEBOOK_VERIFY_TOKEN="test-verify-token",
        VAPID_PUBLIC_KEY="test-vapid-public-key",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        MAX_UPLOAD_BYTES=1024,
        ENABLE_DEBUG_ENDPOINTS=True,
    )


@pytest.fixture
def test_database():
    """In-memory SQLite shared by every thread through a single connection."""
    from syncly.database import Database

    database = Database("sqlite://", poolclass=StaticPool)
    database.create_all()
    yield database
    database.drop_all()
    database.dispose()


@pytest.fixture
def test_db_session(test_database) -> Generator[Session, None, None]:
    """Session for arranging and inspecting data outside requests."""
    session = test_database.SessionLocal()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def app(test_database, test_settings):
    """Create FastAPI test application over the test database."""
    from syncly.database import get_db
    from syncly.deps import get_settings
    from syncly.main import create_app

    test_app = create_app(database=test_database, settings=test_settings)

    def override_get_db():
        with test_database.session() as db:
            yield db

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_settings] = lambda: test_settings
    return test_app


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing."""
    return TestClient(app)


# ============================================================================
# Authentication Fixtures
# ============================================================================

@pytest.fixture
def make_headers():
    """Build bearer headers for any Clerk user id."""
    from syncly.security import create_session_token

    def _make(user_id: str, shop_id=None) -> dict:
        headers = {"Authorization": f"Bearer {create_session_token(user_id)}"}
        if shop_id is not None:
            headers["x-shop-id"] = str(shop_id)
        return headers

    return _make


@pytest.fixture
def auth_headers(make_headers):
    return make_headers(OWNER_ID)


@pytest.fixture
def other_auth_headers(make_headers):
    return make_headers(OTHER_OWNER_ID)


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def make_shop(test_db_session):
    from syncly.models import Shop

    def _make(user_id: str = OWNER_ID, name: str = "Saraa's Shop", plan: str = "trial", **fields):
        fields.setdefault("created_at", datetime.utcnow())
        shop = Shop(user_id=user_id, name=name, subscription_plan=plan, **fields)
        test_db_session.add(shop)
        test_db_session.commit()
        test_db_session.refresh(shop)
        return shop

    return _make


@pytest.fixture
def test_shop(make_shop):
    """The owner's first shop."""
    return make_shop(created_at=datetime.utcnow() - timedelta(days=30))


@pytest.fixture
def other_shop(make_shop):
    """A shop owned by a different account (for isolation tests)."""
    return make_shop(user_id=OTHER_OWNER_ID, name="Other Shop")


@pytest.fixture
def make_customer(test_db_session):
    from syncly.models import Customer

    def _make(shop, name: str = "Bold", **fields):
        customer = Customer(shop_id=shop.id, name=name, **fields)
        test_db_session.add(customer)
        test_db_session.commit()
        test_db_session.refresh(customer)
        return customer

    return _make


@pytest.fixture
def make_product(test_db_session):
    from syncly.models import Product

    def _make(shop, name: str = "Cashmere scarf", price: float = 89000, **fields):
        fields.setdefault("stock", 5)
        product = Product(shop_id=shop.id, name=name, price=Decimal(str(price)), **fields)
        test_db_session.add(product)
        test_db_session.commit()
        test_db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def make_order(test_db_session):
    """Create an order; `items` is a list of (product, quantity) pairs."""
    from syncly.models import Order, OrderItem, OrderStatusEnum

    def _make(shop, status=OrderStatusEnum.pending, total: float = 0, customer=None, items=(), created_at=None):
        order = Order(
            shop_id=shop.id,
            customer_id=customer.id if customer else None,
            status=status,
            total_amount=Decimal(str(total)),
            created_at=created_at or datetime.utcnow(),
        )
        for product, quantity in items:
            order.items.append(OrderItem(product_id=product.id, quantity=quantity, unit_price=product.price))
        test_db_session.add(order)
        test_db_session.commit()
        test_db_session.refresh(order)
        return order

    return _make


# ============================================================================
# Constant Fixtures
# ============================================================================

@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def other_owner_id() -> str:
    return OTHER_OWNER_ID


@pytest.fixture
def webhook_secret() -> str:
    return WEBHOOK_SECRET
