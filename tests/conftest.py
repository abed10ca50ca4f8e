"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from loguru import logger

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.persistence.memory import InMemoryAdapter  # noqa: E402
from src.srs.card_store import CardStore  # noqa: E402

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (file and database adapters)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


class FakeClock:
    """Settable clock so tests control "now"."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture(autouse=True)
def setup_logging():
    """Keep loguru quiet unless something goes wrong."""
    logger.remove()
    logger.add(sys.stderr, level="WARNING")
    yield
    logger.remove()


@pytest.fixture
def t0():
    """The instant every fake clock starts at."""
    return T0


@pytest.fixture
def clock():
    """A clock frozen at T0 until advanced."""
    return FakeClock()


@pytest.fixture
def adapter():
    """Empty in-memory persistence."""
    return InMemoryAdapter()


@pytest.fixture
def store(adapter, clock):
    """Card store over in-memory persistence with a fake clock."""
    card_store = CardStore(adapter, clock=clock, persistence_timeout=2.0, lock_timeout=2.0)
    yield card_store
    card_store.close()


@pytest.fixture
def sample_card(store):
    """A card added at T0."""
    return store.add("What is 2+2?", "4", "maths")
