"""
Pytest fixtures for stockbook backend tests.

Provides in-memory and on-disk storage contexts, a controllable clock, the
Flask app and its test client.
"""

import pytest

from stockbook import create_app
from stockbook.services.concurrency import MemoryLockManager
from stockbook.services.storage import MemoryStore, StorageContext, build_context
from stockbook.time_utils import MonotonicClock


class FakeClock:
    """Settable time source; wrapped in MonotonicClock so ticks stay unique."""

    def __init__(self, now: int = 1):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ctx(clock):
    """Fresh in-memory storage context per test."""
    return StorageContext(
        store=MemoryStore(),
        locks=MemoryLockManager(retries=5, min_timeout=0.005, factor=2),
        clock=MonotonicClock(source=clock),
    )


@pytest.fixture
def file_ctx(tmp_path, clock):
    """Storage context backed by JSON files under a temporary directory."""
    context = build_context({
        "STOCKBOOK_STORAGE": "file",
        "STOCKBOOK_DATA_DIR": str(tmp_path / "data"),
        "STOCKBOOK_LOCK_RETRIES": 5,
        "STOCKBOOK_LOCK_MIN_TIMEOUT": 0.005,
    })
    context.clock = MonotonicClock(source=clock)
    return context


@pytest.fixture
def app():
    """Application with an in-memory store, recreated per test."""
    app = create_app({
        "TESTING": True,
        "STOCKBOOK_STORAGE": "memory",
        "STOCKBOOK_LOCK_MIN_TIMEOUT": 0.005,
    })
    yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()
