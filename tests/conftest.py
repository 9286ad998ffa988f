"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from loguru import logger

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from recall_engine.core.models import Item, ItemState, ReviewOutcome, Topic
from recall_engine.storage.memory import InMemoryRepository


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def reset_logging():
    """Start every test without loguru sinks."""
    logger.remove()
    yield
    logger.remove()


@pytest.fixture
def loguru_messages():
    """Collect loguru records as (level, message) tuples."""
    messages: list[tuple[str, str]] = []
    handler_id = logger.add(
        lambda msg: messages.append((msg.record["level"].name, msg.record["message"])),
        level="DEBUG",
    )
    yield messages
    try:
        logger.remove(handler_id)
    except ValueError:
        pass


@pytest.fixture
def now():
    """A fixed review timestamp."""
    return datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


def make_item(item_id: str, topic_id: str, due: datetime, **state) -> Item:
    """Build an item with a (possibly customised) state."""
    return Item(item_id=item_id, topic_id=topic_id, state=ItemState(due=due, **state))


def make_outcomes(topic_id: str, ratings: list[int], start: datetime, item_id: str = "item-1"):
    """Outcomes one hour apart, oldest first."""
    return [
        ReviewOutcome.record(item_id, topic_id, rating, start + timedelta(hours=i))
        for i, rating in enumerate(ratings)
    ]


@pytest.fixture
def item_factory():
    """Factory for items with custom state."""
    return make_item


@pytest.fixture
def outcome_factory():
    """Factory for outcome histories."""
    return make_outcomes


@pytest.fixture
def sample_repository(now):
    """Repository with two topics and a handful of due items."""
    topics = [
        Topic(topic_id="neuro", name="Neurology", mastery_score=15.0),
        Topic(topic_id="cardio", name="Cardiology", mastery_score=90.0),
    ]
    items = [
        make_item("n1", "neuro", now - timedelta(days=1)),
        make_item("n2", "neuro", now - timedelta(hours=2)),
        make_item("c1", "cardio", now - timedelta(hours=1)),
        make_item("c2", "cardio", now + timedelta(days=3)),
    ]
    return InMemoryRepository(topics=topics, items=items)
