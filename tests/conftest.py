"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from braindeck.core import Card, start_of_day  # noqa: E402
from braindeck.delivery import DeckStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """A fixed mid-afternoon moment."""
    return datetime(2024, 3, 15, 14, 30, 0)


@pytest.fixture
def make_card(now):
    """Factory for cards with explicit scheduling state."""
    counter = {"n": 0}

    def _make(level=0, next_review_date=None, review_count=0, question=None, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        return Card(
            id=kwargs.pop("id", f"card-{n:03d}"),
            question=question or f"Question {n}?",
            answer=kwargs.pop("answer", f"Answer {n}"),
            level=level,
            next_review_date=next_review_date or start_of_day(now),
            created_at=kwargs.pop("created_at", now),
            last_review_date=kwargs.pop("last_review_date", None),
            review_count=review_count,
        )

    return _make


@pytest.fixture
def store(tmp_path):
    """A DeckStore backed by a temporary database."""
    deck_store = DeckStore(tmp_path / "deck.db")
    yield deck_store
    deck_store.close()
