from datetime import datetime, timedelta, timezone

import pytest

from lothis.config import Settings
from lothis.database import create_db_engine, create_session_factory, init_db
from lothis.services.delivery_ledger import DeliveryLedger
from lothis.services.session_store import SessionStore

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class Ticker:
    """Wall-clock stand-in returning a strictly increasing datetime per call."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def settings():
    return Settings(
        openai_api_key="test-key",
        openai_assistant_id="asst_test",
        openai_base_url="https://openai.test/v1",
        whatsapp_token="wa-token",
        whatsapp_phone_number_id="1234567890",
        verify_token="verify-me",
        database_url="sqlite://",
        _env_file=None,
    )


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SessionStore(session_factory)


@pytest.fixture
def ledger(session_factory):
    return DeliveryLedger(session_factory)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def ticker():
    return Ticker()
