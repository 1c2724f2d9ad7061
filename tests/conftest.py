# tests/conftest.py
"""
Fixtures and test setup for the Pytest suite.
"""

import os
from decimal import Decimal
from unittest.mock import MagicMock, AsyncMock

import pytest

# Set test environment variables BEFORE any application code is imported.
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ENV"] = "test"
os.environ["API_KEY"] = "test_api_key"
os.environ["ALERT_SCHEDULER_ENABLED"] = "false"
os.environ.pop("REDIS_URL", None)

from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cryptoadvisor.application.services.alert_service import SmartAlertService
from cryptoadvisor.application.services.lifecycle_service import AlertLifecycleService
from cryptoadvisor.application.services.notification_service import NotificationService
from cryptoadvisor.domain.value_objects import SentimentReading
from cryptoadvisor.infrastructure.db.alert_store import AlertStore
from cryptoadvisor.infrastructure.db.models.base import Base
from cryptoadvisor.infrastructure.db.repository import UserRepository
from cryptoadvisor.infrastructure.db.uow import build_engine, make_session_scope


@pytest.fixture
def db_engine():
    """A private in-memory database per test."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_scope(db_engine):
    return make_session_scope(sessionmaker(bind=db_engine, expire_on_commit=False))


@pytest.fixture
def make_user(session_scope):
    def _make(email: str = "alice@example.com", name: str = "Alice") -> int:
        with session_scope() as session:
            return UserRepository(session).find_or_create(email, name).id
    return _make


@pytest.fixture
def user_id(make_user):
    return make_user()


@pytest.fixture
def store(session_scope):
    return AlertStore(session_scope=session_scope)


@pytest.fixture
def lifecycle(session_scope):
    return AlertLifecycleService(session_scope=session_scope)


@pytest.fixture
def broadcaster():
    mock_broadcaster = MagicMock()
    mock_broadcaster.publish.return_value = True
    return mock_broadcaster


@pytest.fixture
def notification_service(broadcaster, session_scope):
    return NotificationService(broadcaster=broadcaster, session_scope=session_scope)


@pytest.fixture
def market_data():
    """Provider stub: flat market, empty portfolio, neutral sentiment."""
    provider = MagicMock()
    provider.current_price = AsyncMock(return_value=Decimal("50000"))
    provider.portfolio_allocations = AsyncMock(return_value={})
    provider.unrealized_losses = AsyncMock(return_value={})
    provider.unrealized_gains = AsyncMock(return_value={})
    provider.risk_measure = AsyncMock(return_value=Decimal("0"))
    provider.sentiment = AsyncMock(return_value=SentimentReading.from_score(50))
    return provider


@pytest.fixture
def alert_service(store, market_data, notification_service):
    return SmartAlertService(
        store=store,
        market_data=market_data,
        notification_service=notification_service,
        provider_timeout=1.0,
        batch_timeout=5.0,
        max_concurrency=4,
    )
