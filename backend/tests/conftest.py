"""Pytest configuration and fixtures."""

import os

# Keep the app's own engine off the developer database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import datetime, timezone
from typing import Generator
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import get_db
from app.main import app
# Import all models to ensure they're registered with Base.metadata
from app.models import *
from app.models.product import Product
from app.schemas.campaign import LotteryCampaignCreate, TimedPromotionCreate
from app.schemas.order import OrderCreate
from app.services.campaign_service import CampaignService

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

RESTAURANT = "resto-1"
PARIS = ZoneInfo("Europe/Paris")


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiters during tests to avoid flaky failures
    from app.core.rate_limit import device_limiter, limiter as global_limiter
    global_limiter.enabled = False
    device_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    device_limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def now() -> datetime:
    """A fixed Wednesday afternoon, 2025-06-11 14:00 UTC (16:00 in Paris)."""
    return datetime(2025, 6, 11, 14, 0, tzinfo=timezone.utc)


def make_lottery(db: Session, **overrides):
    payload = {
        "restaurant_id": RESTAURANT,
        "name": "Summer scratch card",
        "win_probability": 100,
        "reward_kind": "percentage",
        "reward_value": 10,
        "reward_description": "10% off your next order",
        "validity_days": 30,
    }
    payload.update(overrides)
    return CampaignService(db).create(LotteryCampaignCreate(**payload))


def make_happy_hour(db: Session, **overrides):
    payload = {
        "restaurant_id": RESTAURANT,
        "name": "Friday happy hour",
        "recurrence": "recurring",
        "days_of_week": [5],
        "start_time": "17:00",
        "end_time": "20:00",
        "discount_type": "percentage",
        "discount_value": 20,
        "target_categories": [],
        "banner_text": "Happy hour: 20% off everything",
    }
    payload.update(overrides)
    return CampaignService(db).create(TimedPromotionCreate(**payload))


def order_payload(**overrides) -> dict:
    payload = {
        "restaurant_id": RESTAURANT,
        "table_id": "table-4",
        "table_label": "Table 4",
        "customer_session_id": "session-abc",
        "items": [
            {"product_id": 1, "product_name": "Burger", "unit_price": 4000, "quantity": 2},
            {"product_id": 2, "product_name": "Lemonade", "unit_price": 2000, "quantity": 1},
        ],
    }
    payload.update(overrides)
    return payload


def make_order_data(**overrides) -> OrderCreate:
    return OrderCreate(**order_payload(**overrides))


@pytest.fixture
def lottery(db_session):
    """Active lottery that always wins 10% off."""
    return make_lottery(db_session)


@pytest.fixture
def happy_hour(db_session):
    """Friday 17:00-20:00, 20% off every category."""
    return make_happy_hour(db_session)


@pytest.fixture
def menu_products(db_session):
    """Two dishes and a drink, one unavailable dessert."""
    products = [
        Product(restaurant_id=RESTAURANT, category_id="mains", name="Burger", price=1000, sort_order=1),
        Product(restaurant_id=RESTAURANT, category_id="mains", name="Salad", price=850, sort_order=2),
        Product(restaurant_id=RESTAURANT, category_id="drinks", name="Beer", price=300),
        Product(
            restaurant_id=RESTAURANT, category_id="desserts", name="Tiramisu", price=650, is_available=False
        ),
    ]
    db_session.add_all(products)
    db_session.commit()
    for product in products:
        db_session.refresh(product)
    return products
