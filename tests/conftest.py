"""
Shared fixtures: in-memory SQLite record store, fake Stripe gateway, settings.
"""
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dotts_api.core.config import BillingSettings
from dotts_api.db.base import Base
from dotts_api.db import models  # noqa: F401
from dotts_api.db.models import Profile
from dotts_api.db.store import RecordStore
from stripe_fakes import WEBHOOK_SECRET, FakeGateway


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def store(db):
    return RecordStore(TestSessionLocal)


@pytest.fixture
def make_profile(db):
    """Create a profile row as the identity system would."""
    def _make(user_id: str, email: Optional[str] = None) -> Profile:
        profile = Profile(id=user_id, email=email or f"{user_id}@example.com")
        db.add(profile)
        db.commit()
        return profile
    return _make


@pytest.fixture
def settings():
    return BillingSettings(
        database_url=TEST_DATABASE_URL,
        stripe_secret_key="sk_test_123",
        stripe_publishable_key="pk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        stripe_price_monthly="price_monthly_123",
        stripe_price_annual="price_annual_456",
        frontend_origin="https://www.mydotts.com",
        cors_origins=("http://localhost:5173", "https://www.mydotts.com"),
    )


@pytest.fixture
def gateway():
    return FakeGateway()
