"""
backend/tests/test_pick_validator.py

Purpose:
    Eligibility checks and their fixed evaluation order.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from _fakes import pick
from los.errors import (
    DeadlinePassedError,
    DuplicatePickError,
    EliminatedParticipantError,
    TeamAlreadyUsedError,
)
from los.models.participant import Participant
from los.services.pick_validator import used_teams, validate_pick

DEADLINE = datetime(2025, 8, 16, 14, 0, tzinfo=timezone.utc)
BEFORE = DEADLINE - timedelta(hours=1)


def _participant(**kwargs) -> Participant:
    return Participant(id="p1", display_name="Alice", **kwargs)


def test_valid_pick_passes():
    validate_pick(_participant(), 2, "Arsenal", [pick("p1", 1, "Chelsea")], deadline=DEADLINE, now=BEFORE)


def test_deadline_checked_first():
    eliminated = _participant(lives=0, is_eliminated=True)
    with pytest.raises(DeadlinePassedError):
        validate_pick(eliminated, 1, "Arsenal", [pick("p1", 1, "Arsenal")], deadline=DEADLINE, now=DEADLINE)


def test_deadline_boundary_is_inclusive():
    with pytest.raises(DeadlinePassedError):
        validate_pick(_participant(), 1, "Arsenal", [], deadline=DEADLINE, now=DEADLINE)


def test_naive_now_treated_as_utc():
    naive_before = BEFORE.replace(tzinfo=None)
    validate_pick(_participant(), 1, "Arsenal", [], deadline=DEADLINE, now=naive_before)


def test_unknown_deadline_skips_deadline_check():
    validate_pick(_participant(), 1, "Arsenal", [], deadline=None, now=DEADLINE)


def test_elimination_checked_before_duplicate():
    with pytest.raises(EliminatedParticipantError):
        validate_pick(_participant(is_eliminated=True), 1, "Arsenal", [pick("p1", 1, "Chelsea")])


def test_zero_lives_counts_as_eliminated():
    with pytest.raises(EliminatedParticipantError):
        validate_pick(_participant(lives=0), 1, "Arsenal", [])


def test_duplicate_round_pick_rejected():
    with pytest.raises(DuplicatePickError) as exc_info:
        validate_pick(_participant(), 1, "Arsenal", [pick("p1", 1, "Chelsea")])
    assert exc_info.value.status_code == 409
    assert exc_info.value.round_number == 1


def test_duplicate_checked_before_team_reuse():
    with pytest.raises(DuplicatePickError):
        validate_pick(_participant(), 2, "Arsenal", [pick("p1", 1, "Arsenal"), pick("p1", 2, "Chelsea")])


def test_team_reuse_rejected_from_any_round():
    history = [pick("p1", 1, "Arsenal"), pick("p1", 2, "Chelsea"), pick("p1", 3, "Everton")]
    with pytest.raises(TeamAlreadyUsedError) as exc_info:
        validate_pick(_participant(), 4, "Arsenal", history)
    assert "round 1" in exc_info.value.message


def test_team_reuse_check_can_be_disabled():
    validate_pick(_participant(), 2, "Arsenal", [pick("p1", 1, "Arsenal")], check_team_reuse=False)


def test_other_participants_picks_ignored():
    others = [pick("p2", 1, "Arsenal"), pick("p2", 2, "Chelsea")]
    validate_pick(_participant(), 2, "Arsenal", others)


def test_used_teams_scoped_to_participant():
    picks = [pick("p1", 1, "Arsenal"), pick("p2", 1, "Chelsea"), pick("p1", 2, "Everton")]
    assert used_teams(picks, "p1") == {"Arsenal", "Everton"}


def test_team_used_in_later_round_rejected():
    with pytest.raises(TeamAlreadyUsedError):
        validate_pick(_participant(), 2, "Arsenal", [pick("p1", 5, "Arsenal")])
