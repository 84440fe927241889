"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import path for the los package plus fixtures
    for in-memory stores, a frozen clock and a no-wait retry policy.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]
_TESTS_DIR = _THIS_FILE.parent

for candidate in (str(_BACKEND_DIR), str(_TESTS_DIR)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

from _fakes import FakeFeed, FakeStore, FrozenClock, fast_retry  # noqa: E402


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 8, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def retry():
    return fast_retry()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()
