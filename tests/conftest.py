# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from deadline_bot.tasks.cache import Cache
from deadline_bot.tasks.task_models import DEFAULT_LOCAL_TZ

from .fakes import FakeClock, FakeNotifier, FakeStore

# Fixed "now" in the sheet's local timezone (UTC+7).
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=DEFAULT_LOCAL_TZ)


def deadline_cell(delta: timedelta) -> str:
    """A deadline cell the way people type it in the sheet (naive local time)."""
    return (NOW + delta).strftime("%Y-%m-%d %H:%M")


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> Cache:
    return Cache(default_ttl=300.0, clock=clock)


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()
