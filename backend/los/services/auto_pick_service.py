"""
backend/los/services/auto_pick_service.py

Purpose:
    Auto-pick assignment for participants who missed a round deadline.
    Round 1 picks uniformly at random from the round's teams; later rounds take
    the team alphabetically after the participant's previous-round pick,
    wrapping to the first team. All picks of a round land in one atomic batch.

Dependencies:
    - random
    - los.stores.base
    - los.services.pick_validator
    - los.services.retry
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from typing import get_args

from los.config import AutoPickReusePolicy
from los.errors import (
    PartialAssignmentError,
    PickValidationError,
    StoreWriteError,
    TransientStoreError,
)
from los.models.fixture import Fixture
from los.models.participant import Participant
from los.models.pick import Pick
from los.services.pick_validator import used_teams, validate_pick
from los.services.retry import RetryPolicy
from los.stores.base import GameStore
from los.utils import Clock, utcnow

logger = logging.getLogger("los.auto_pick_service")

REUSE_POLICIES = frozenset(get_args(AutoPickReusePolicy))


def available_teams(fixtures: Iterable[Fixture]) -> list[str]:
    """Union of home and away teams, sorted alphabetically."""
    teams: set[str] = set()
    for fixture in fixtures:
        if fixture.home_team:
            teams.add(fixture.home_team)
        if fixture.away_team:
            teams.add(fixture.away_team)
    return sorted(teams)


def choose_auto_pick(
    round_number: int,
    teams: list[str],
    previous_pick: str | None,
    rng: random.Random,
    *,
    used: Iterable[str] = (),
    policy: AutoPickReusePolicy = "allow",
) -> str | None:
    """Pick a team for a participant with no pick in `round_number`.

    With policy "skip" teams in `used` are passed over; every other policy
    may return an already-used team.
    """
    ordered = sorted(set(teams))
    if not ordered:
        return None
    used_set = set(used) if policy == "skip" else set()

    if round_number <= 1:
        candidates = [t for t in ordered if t not in used_set]
        return rng.choice(candidates) if candidates else None

    start = 0
    if previous_pick in ordered:
        idx = ordered.index(previous_pick)
        if idx < len(ordered) - 1:
            start = idx + 1

    for offset in range(len(ordered)):
        team = ordered[(start + offset) % len(ordered)]
        if team not in used_set:
            return team
    return None


class AutoPickAssigner:
    def __init__(
        self,
        store: GameStore,
        *,
        rng: random.Random | None = None,
        clock: Clock = utcnow,
        retry: RetryPolicy | None = None,
        reuse_policy: AutoPickReusePolicy = "allow",
    ):
        if reuse_policy not in REUSE_POLICIES:
            raise ValueError(f"Unknown auto-pick reuse policy: {reuse_policy!r}")
        self._store = store
        self._rng = rng or random.Random()
        self._clock = clock
        self._retry = retry or RetryPolicy()
        self._reuse_policy = reuse_policy

    async def assign_auto_picks(
        self,
        round_number: int,
        fixtures: list[Fixture],
        participants: list[Participant],
        existing_picks: list[Pick],
    ) -> list[Pick]:
        """Create and persist auto-picks for every eligible participant.

        Returns only the picks this call inserted; a participant whose pick
        landed between the re-check and the batch write keeps that pick.

        Raises PartialAssignmentError when the batch write fails; in that case
        no pick of this round has been applied.
        """
        teams = available_teams(fixtures)
        if not teams:
            logger.warning("No teams available for auto-picks in round %d", round_number)
            return []

        picks_by_participant: dict[str, list[Pick]] = {}
        for pick in existing_picks:
            picks_by_participant.setdefault(pick.participant_id, []).append(pick)

        now = self._clock()
        planned: list[Pick] = []
        for participant in participants:
            own = picks_by_participant.get(participant.id, [])
            if participant.lives <= 0 or participant.is_eliminated:
                continue
            if any(p.round_number == round_number for p in own):
                continue
            # Re-check against the store: another instance may have written since our snapshot.
            current = await self._retry.run(
                "get_pick", lambda pid=participant.id: self._store.get_pick(pid, round_number),
            )
            if current is not None:
                logger.info(
                    "Participant %s already has a pick for round %d; skipping auto-pick",
                    participant.id, round_number,
                )
                continue

            previous = next((p.team_picked for p in own if p.round_number == round_number - 1), None)
            team = choose_auto_pick(
                round_number, teams, previous, self._rng,
                used=used_teams(own, participant.id), policy=self._reuse_policy,
            )
            if team is None:
                logger.warning(
                    "No auto-pick available for participant %s in round %d", participant.id, round_number,
                )
                continue

            try:
                validate_pick(
                    participant, round_number, team, own,
                    check_deadline=False,
                    check_team_reuse=self._reuse_policy != "allow",
                )
            except PickValidationError as exc:
                logger.warning(
                    "Auto-pick %s rejected for participant %s in round %d: %s",
                    team, participant.id, round_number, exc.message,
                )
                continue

            planned.append(Pick(
                participant_id=participant.id,
                round_number=round_number,
                team_picked=team,
                is_auto_pick=True,
                saved_at=now,
            ))

        if not planned:
            logger.info("No auto-picks needed for round %d", round_number)
            return []

        try:
            inserted = await self._retry.run(
                "write_auto_picks", lambda: self._store.write_auto_picks(planned),
            )
        except (TransientStoreError, StoreWriteError) as exc:
            raise PartialAssignmentError(round_number, len(planned), exc) from exc

        inserted_keys = set(inserted)
        created = []
        for pick in planned:
            if (pick.participant_id, pick.round_number) not in inserted_keys:
                logger.warning(
                    "Auto-pick for participant %s in round %d skipped; a pick already existed",
                    pick.participant_id, round_number,
                )
                continue
            created.append(pick)
            logger.info(
                "Auto-pick assigned: %s for participant %s in round %d",
                pick.team_picked, pick.participant_id, round_number,
            )
        return created
