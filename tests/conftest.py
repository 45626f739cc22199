"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from adaptive_metrics.config import EngineSettings
from adaptive_metrics.models import ActivitySample, ActivityType


AS_OF = datetime(2024, 6, 30, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    """Default settings, isolated from environment and .env files."""
    return EngineSettings(_env_file=None)


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def make_activity():
    """Factory for ActivitySample with sensible defaults."""
    counter = {"n": 0}

    def _make(
        days_ago: float = 1,
        duration: float = 3600,
        activity_type: ActivityType = ActivityType.RIDE,
        **kwargs,
    ) -> ActivitySample:
        counter["n"] += 1
        kwargs.setdefault("id", f"act_{counter['n']}")
        return ActivitySample(
            start_time=AS_OF - timedelta(days=days_ago),
            duration_seconds=duration,
            type=activity_type,
            **kwargs,
        )

    return _make


@pytest.fixture
def steady_effort(make_activity):
    """Factory for activities with a constant per-second power stream."""

    def _make(watts: float, seconds: int = 1200, days_ago: float = 1, **kwargs) -> ActivitySample:
        return make_activity(
            days_ago=days_ago,
            duration=seconds,
            power_stream=tuple([float(watts)] * seconds),
            **kwargs,
        )

    return _make
