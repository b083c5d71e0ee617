"""Shared fixtures for unit tests."""

from datetime import UTC, datetime

import pytest

from waffle_intel.commons.cache import TTLCache
from waffle_intel.commons.settings.models import Settings
from waffle_intel.domain.models import SearchHit


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of config files."""
    return Settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(name="test", clock=clock)


def _make_hit(**overrides) -> SearchHit:
    """Build a SearchHit with sensible defaults."""
    data = {
        "waffle_id": "11111111-1111-1111-1111-111111111111",
        "user_id": "22222222-2222-2222-2222-222222222222",
        "group_id": "33333333-3333-3333-3333-333333333333",
        "group_name": "Family",
        "user_name": "Ana",
        "content_url": "waffles/g1/abc.mp4",
        "caption": "Weekend hike",
        "created_at": datetime(2024, 6, 10, 12, 0, tzinfo=UTC),
        "transcript": "We went hiking up the mountain and saw a lake.",
        "ai_recap": "Ana hiked a mountain.",
        "distance": 0.25,
    }
    data.update(overrides)
    return SearchHit(**data)


@pytest.fixture
def make_hit():
    """Factory for SearchHit rows."""
    return _make_hit
