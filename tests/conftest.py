"""Shared fixtures for HookGuard tests."""
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from hookguard.config import Settings
from hookguard.event_models import Event
from hookguard.main import create_app

TEST_SECRET = "test-secret"


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_event(
    source: str = "stripe",
    event_type: str = "payment.completed",
    received_at: datetime | None = None,
    payload: dict | None = None,
) -> Event:
    return Event(
        id=str(uuid.uuid4()),
        source=source,
        event_type=event_type,
        payload=payload or {"n": 1},
        received_at=received_at or datetime.now(timezone.utc),
        verified=False,
    )


def make_settings(**overrides) -> Settings:
    values = {
        "WEBHOOK_SECRET": TEST_SECRET,
        "RATE_LIMIT_MAX": 1000,
        "RATE_LIMIT_WINDOW_MS": 60000,
        "MAX_WEBHOOKS_STORAGE": 1000,
        "LOG_JSON": False,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app_factory():
    """Build an isolated app from settings overrides."""
    def _factory(**overrides):
        return create_app(make_settings(**overrides))
    return _factory


@pytest.fixture
def app(app_factory):
    return app_factory()


@pytest.fixture
def client(app):
    return TestClient(app)
