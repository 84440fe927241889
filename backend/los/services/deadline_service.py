"""
backend/los/services/deadline_service.py

Purpose:
    Round deadline derivation. A round's deadline is the earliest valid
    kickoff among its fixtures; it is computed on demand, never stored.

Dependencies:
    - los.models
    - los.errors
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from los.errors import DataIntegrityError
from los.models.fixture import Fixture
from los.models.round import DeadlineInfo
from los.utils import ensure_utc

logger = logging.getLogger("los.deadline_service")


def earliest_fixture(round_number: int, fixtures: Iterable[Fixture]) -> Fixture | None:
    """Fixture with the earliest valid kickoff.

    Returns None for a round without fixtures. Fixtures with a missing or
    unparseable kickoff are skipped and logged; if every fixture is invalid a
    DataIntegrityError is raised.
    """
    fixtures = list(fixtures)
    if not fixtures:
        return None

    earliest: Fixture | None = None
    for fixture in fixtures:
        if fixture.kickoff_time is None:
            logger.warning(
                "Invalid fixture date/time in round %d for %s: raw=%r",
                round_number, fixture.label, fixture.kickoff_raw,
            )
            continue
        if earliest is None or ensure_utc(fixture.kickoff_time) < ensure_utc(earliest.kickoff_time):
            earliest = fixture

    if earliest is None:
        raise DataIntegrityError(round_number, f"none of {len(fixtures)} fixtures has a valid kickoff time")
    return earliest


def compute_round_deadline(round_number: int, fixtures: Iterable[Fixture]) -> datetime | None:
    fixture = earliest_fixture(round_number, fixtures)
    if fixture is None:
        return None
    return ensure_utc(fixture.kickoff_time)


def is_deadline_passed(deadline: datetime | None, now: datetime) -> bool:
    if deadline is None:
        return False
    return ensure_utc(now) >= ensure_utc(deadline)


def format_time_until_deadline(seconds: float) -> str:
    if seconds <= 0:
        return "Deadline passed"

    total = int(seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60

    if hours > 24:
        return f"{hours // 24} days remaining"
    if hours > 0:
        return f"{hours}h {minutes}m remaining"
    if minutes > 0:
        return f"{minutes}m {secs}s remaining"
    return f"{secs}s remaining"


def build_deadline_info(round_number: int, fixtures: Iterable[Fixture], now: datetime) -> DeadlineInfo | None:
    """Deadline summary for display; None when no deadline can be derived."""
    try:
        fixture = earliest_fixture(round_number, fixtures)
    except DataIntegrityError as exc:
        logger.warning("No deadline for round %d: %s", round_number, exc)
        return None
    if fixture is None:
        return None

    deadline = ensure_utc(fixture.kickoff_time)
    remaining = (deadline - ensure_utc(now)).total_seconds()
    return DeadlineInfo(
        round_number=round_number,
        deadline=deadline,
        is_passed=remaining <= 0,
        seconds_until_deadline=remaining,
        time_remaining=format_time_until_deadline(remaining),
        earliest_fixture=fixture,
    )
