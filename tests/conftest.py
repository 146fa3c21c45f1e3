"""Pytest fixtures for testing"""

import pytest
from datetime import datetime
from typing import Generator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from vedi_payments.api.main import create_app
from vedi_payments.api.dependencies import get_processor_client
from vedi_payments.domain.exceptions import TransferError
from vedi_payments.domain.models import FeeConfig, PaymentRecord, PaymentSplit
from vedi_payments.infrastructure.clients.processor import ProcessorClient
from vedi_payments.infrastructure.database.models import Base, Restaurant, RestaurantVenueLink, Venue
from vedi_payments.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    """Opens sessions independent of the ``db`` fixture's transaction"""
    return TestingSessionLocal


@pytest.fixture
def processor() -> AsyncMock:
    """Fake processor: every charge gets a fresh id, transfers to acct_reject_* are refused"""
    fake = AsyncMock(spec=ProcessorClient)
    counter = {"intents": 0}

    async def create_payment_intent(amount_cents, currency, idempotency_key, metadata=None):
        counter["intents"] += 1
        intent_id = f"pi_test_{counter['intents']}"
        return {"id": intent_id, "client_secret": f"{intent_id}_secret", "status": "requires_payment_method"}

    async def create_transfer(intent_id, destination_account_id, amount_cents, currency):
        if destination_account_id.startswith("acct_reject"):
            raise TransferError("Destination cannot receive transfers", destination=destination_account_id)
        return f"tr_{intent_id[:8]}_{destination_account_id}"

    fake.create_payment_intent.side_effect = create_payment_intent
    fake.create_transfer.side_effect = create_transfer
    fake.retrieve_payment_intent.return_value = {"id": "pi_test", "status": "succeeded"}
    return fake


@pytest.fixture
def client(db: Session, processor: AsyncMock) -> TestClient:
    """Create FastAPI test client with test database and fake processor"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_processor_client] = lambda: processor
    return TestClient(app)


@pytest.fixture
def venue(db: Session) -> Venue:
    venue = Venue(id="venue_1", name="Harbour Market", manager_id="manager_1", payout_account_id="acct_venue_1")
    db.add(venue)
    db.commit()
    return venue


@pytest.fixture
def restaurant(db: Session) -> Restaurant:
    """Standalone restaurant on platform defaults"""
    restaurant = Restaurant(id="rest_1", name="Taco Stand", owner_id="owner_1", payout_account_id="acct_rest_1")
    db.add(restaurant)
    db.commit()
    return restaurant


@pytest.fixture
def linked_restaurant(db: Session, venue: Venue) -> Restaurant:
    """Restaurant with an active venue link at a 1% venue fee"""
    restaurant = Restaurant(
        id="rest_2",
        name="Noodle Bar",
        owner_id="owner_2",
        payout_account_id="acct_rest_2",
    )
    db.add(restaurant)
    db.add(RestaurantVenueLink(restaurant_id="rest_2", venue_id=venue.id, status="active", venue_fee_percentage=1))
    db.commit()
    return restaurant


@pytest.fixture
def default_config() -> FeeConfig:
    """Platform defaults: 3.5% commission, 2.9% + 30 processor fee, no venue"""
    return FeeConfig(
        fee_type="percentage",
        service_fee_fixed=0,
        service_fee_percentage=3.5,
        processor_fee_percentage=2.9,
        processor_flat_fee=30,
        venue_enabled=False,
        venue_fee_percentage=0,
    )


def _make_record(
    intent_id: str,
    restaurant_id: str,
    gross_cents: int,
    completed_at: datetime,
    venue_id: str | None = None,
    venue_fee_cents: int = 0,
) -> PaymentRecord:
    """Completed payment with a simple, internally consistent split"""
    processor_fee = 30
    platform_fee = 100
    return PaymentRecord(
        intent_id=intent_id,
        restaurant_id=restaurant_id,
        venue_id=venue_id,
        currency="usd",
        split=PaymentSplit(
            gross_cents=gross_cents,
            processor_fee_cents=processor_fee,
            platform_fee_cents=platform_fee,
            venue_fee_cents=venue_fee_cents,
            restaurant_cents=gross_cents - processor_fee - platform_fee - venue_fee_cents,
            net_cents=gross_cents - processor_fee,
            venue_enabled=venue_id is not None,
        ),
        completed_at=completed_at,
    )


@pytest.fixture
def make_record():
    return _make_record


@pytest.fixture
def headers() -> dict:
    """Caller identity headers by persona"""
    return {
        "operator": {"X-Caller-Id": "ops_1", "X-Caller-Role": "operator"},
        "owner": {"X-Caller-Id": "owner_1", "X-Caller-Role": "restaurant"},
        "other_owner": {"X-Caller-Id": "owner_2", "X-Caller-Role": "restaurant"},
        "manager": {"X-Caller-Id": "manager_1", "X-Caller-Role": "venue"},
        "customer": {"X-Caller-Id": "cust_1", "X-Caller-Role": "customer"},
    }
