"""
backend/los/services/pick_validator.py

Purpose:
    Eligibility gate for every pick write, manual or automatic. Checks run in a
    fixed order and stop at the first failure.

Dependencies:
    - los.errors
    - los.models
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from los.errors import (
    DeadlinePassedError,
    DuplicatePickError,
    EliminatedParticipantError,
    TeamAlreadyUsedError,
)
from los.models.participant import Participant
from los.models.pick import Pick
from los.utils import ensure_utc


def validate_pick(
    participant: Participant,
    round_number: int,
    team_picked: str,
    existing_picks: Iterable[Pick],
    *,
    deadline: datetime | None = None,
    now: datetime | None = None,
    check_deadline: bool = True,
    check_team_reuse: bool = True,
) -> None:
    """Raise a PickValidationError subclass if the pick may not be written.

    Order: deadline, elimination, duplicate round pick, team reuse. The
    auto-pick path passes check_deadline=False because it only runs once the
    deadline has passed.
    """
    pid = participant.id

    if check_deadline and deadline is not None and now is not None:
        if ensure_utc(now) >= ensure_utc(deadline):
            raise DeadlinePassedError(
                f"The deadline for round {round_number} has passed.",
                participant_id=pid, round_number=round_number,
            )

    if participant.is_eliminated or participant.lives <= 0:
        raise EliminatedParticipantError(
            "You have been eliminated.",
            participant_id=pid, round_number=round_number,
        )

    own_picks = [p for p in existing_picks if p.participant_id == pid]

    for pick in own_picks:
        if pick.round_number == round_number:
            raise DuplicatePickError(
                f"You already have a pick for round {round_number}.",
                participant_id=pid, round_number=round_number,
            )

    if check_team_reuse:
        for pick in own_picks:
            if pick.team_picked == team_picked:
                raise TeamAlreadyUsedError(
                    f"'{team_picked}' has already been used in round {pick.round_number}. "
                    "Choose a different team.",
                    participant_id=pid, round_number=round_number,
                )


def used_teams(picks: Iterable[Pick], participant_id: str) -> set[str]:
    return {p.team_picked for p in picks if p.participant_id == participant_id}
