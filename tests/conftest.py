"""Shared test fixtures."""

from datetime import datetime, timezone

import pytest

from mailsbe.app import create_app
from mailsbe.config import LoggingConfig, Settings
from mailsbe.dashboard import Dashboard
from mailsbe.stores.memory import MemoryTrackingStore
from mailsbe.stores.sql import SQLTrackingStore

OWNER = "user-alice"
OTHER_OWNER = "user-bob"
PIXEL_BASE = "https://track.example.com/update"


@pytest.fixture
def settings():
    """Settings for an in-memory deployment."""
    return Settings(
        backend="memory",
        endpoint_base_url=PIXEL_BASE,
        poll_interval=0.05,
        logging=LoggingConfig(console_output=False),
    )


@pytest.fixture
def memory_store():
    return MemoryTrackingStore()


@pytest.fixture
def sql_store():
    store = SQLTrackingStore("sqlite://")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Every store that runs without a network."""
    if request.param == "memory":
        yield MemoryTrackingStore()
    else:
        store = SQLTrackingStore("sqlite://")
        yield store
        store.close()


@pytest.fixture
def dashboard(store):
    return Dashboard(store, endpoint_base_url=PIXEL_BASE, poll_interval=0.05)


@pytest.fixture
def app(settings, store):
    app = create_app(settings=settings, store=store)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fixed_clock():
    """A clock frozen at a known instant."""
    instant = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)
    return lambda: instant
