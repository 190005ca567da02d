"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Markers plus in-memory database, repository, governor, and orchestrator fixtures
WHY: Every test gets an isolated store and no real network access
HOW: Fresh sqlite:// engine per test; provider singleton reset around each test
"""

import pytest

from negotiator.core.database import build_engine, build_session_factory, init_db
from negotiator.core.repository import SqlNegotiationRepository
from negotiator.llm.provider_factory import reset_provider
from negotiator.services.market_data import MarketDataProvider
from negotiator.services.negotiation_orchestrator import NegotiationOrchestrator
from negotiator.services.request_governor import RequestGovernor


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components, in-memory database)"
    )
    config.addinivalue_line(
        "markers", "property: Property-based tests (hypothesis)"
    )


@pytest.fixture(autouse=True)
def reset_provider_singleton():
    """
    Reset provider singleton before each test.

    WHAT: Clear provider cache between tests
    WHY: Prevent test pollution and ensure clean state
    """
    reset_provider()
    yield
    reset_provider()


class RecordingNotifier:
    """Notification dispatcher that records calls instead of delivering them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple] = []

    def _record(self, *entry):
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append(entry)

    async def notify_offer(self, user_id, negotiation_id, price, message):
        self._record("offer", user_id, negotiation_id, price)

    async def notify_agreement_ready(self, user_id, negotiation_id, agreement_id=None):
        self._record("agreement_ready", user_id, negotiation_id)

    async def notify_rejection(self, user_id, negotiation_id, reasoning):
        self._record("rejection", user_id, negotiation_id, reasoning)

    def of_kind(self, kind: str) -> list[tuple]:
        return [entry for entry in self.sent if entry[0] == kind]


@pytest.fixture
def db_engine():
    """Private in-memory database with all tables created."""
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def repository(session_factory):
    return SqlNegotiationRepository(session_factory)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def governor():
    """Budget of 2 with instant retries."""
    return RequestGovernor(max_requests=2, max_attempts=2, retry_delay=0)


@pytest.fixture
def market_data(repository, governor):
    """No LLM provider and no comparables: snapshots are synthetic."""
    return MarketDataProvider(repository, governor, provider=None)


@pytest.fixture
def orchestrator(repository, notifier, market_data):
    """Chained rounds run immediately; tests call drain() to finish chains."""
    return NegotiationOrchestrator(
        repository, notifier, market_data, next_round_delay=0, max_rounds=10
    )
