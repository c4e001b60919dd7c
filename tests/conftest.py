"""Shared fixtures: a throwaway SQLite store and the reference event."""

import os

os.environ.setdefault("SECRET_KEY", "secret")

import pytest

from yayahook.common.db import make_engine, make_session_factory
from yayahook.services.webhook.schemas import Event


REFERENCE_PAYLOAD = {
    "id": "abc123",
    "amount": "100",
    "currency": "ETB",
    "created_at_time": 1700000000,
    "timestamp": 1700000000,
    "cause": "Testing",
    "full_name": "Abebe Kebede",
    "account_name": "abebekebede1",
    "invoice_url": "https://yayawallet.com/en/invoice/xxxx",
}
REFERENCE_SIGNATURE = "f16684be073432042524784b8845fad85161c541de85338a3764c673431003cb"


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'webhooks.db'}")
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def reference_event() -> Event:
    return Event.model_validate(REFERENCE_PAYLOAD)


@pytest.fixture
def make_event():
    """Build an Event from the reference payload with overrides."""

    def _make(**overrides) -> Event:
        return Event.model_validate({**REFERENCE_PAYLOAD, **overrides})

    return _make
