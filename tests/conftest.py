"""
Shared test setup: SQLite ledger, dependency override and common fixtures
"""

import os

# Must be set before foodhub modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_MENU"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["VERIFY_ORDER_TOTAL"] = "false"
os.environ["DEBUG"] = "false"
os.environ.pop("ADMIN_PASSWORD", None)

import asyncio
import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from foodhub.database import Base, get_db
from foodhub.models.food_item import FoodItem
from foodhub.services.admin_service import AdminService
from foodhub.services.event_bus import event_bus
from foodhub.services.menu_service import seed_menu
from main import app

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Kitchen123!"


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def redis_server():
    """In-memory Redis shared by every client created during one test"""
    return fakeredis.FakeServer()


@pytest.fixture
def client(redis_server):
    event_bus.redis = fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def menu(db):
    """Sample menu keyed by name: {"Jollof Rice": {"id": 1, "price": Decimal(...)}, ...}"""
    seed_menu(db)
    return {item.name: {"id": item.id, "price": item.price} for item in db.query(FoodItem).all()}


@pytest.fixture
def admin_headers(db, client):
    asyncio.run(AdminService(db).create_admin(ADMIN_USERNAME, ADMIN_PASSWORD))
    response = client.post(
        "/api/v1/auth/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def session_headers():
    return {"X-Session-Id": "session-abc"}


@pytest.fixture
def order_payload(menu):
    """Builds a createOrder body; defaults to the Jollof Rice + Coca Cola order"""
    def build(tracking_code="FPI-AB12CD", session_id="session-abc", items=None, total_amount=None, note=None):
        if items is None:
            items = [
                {"food_item_id": menu["Jollof Rice"]["id"], "quantity": 2, "unit_price": "800"},
                {"food_item_id": menu["Coca Cola"]["id"], "quantity": 1, "unit_price": "250"},
            ]
        if total_amount is None:
            total_amount = "1850"
        payload = {
            "session_id": session_id,
            "total_amount": total_amount,
            "tracking_code": tracking_code,
            "items": items,
        }
        if note is not None:
            payload["customer_note"] = note
        return payload
    return build
