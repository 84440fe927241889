"""
backend/los/services/pick_service.py

Purpose:
    Manual pick submission and per-participant pick status. Every write goes
    through the eligibility validator; rejections propagate to the caller.

Dependencies:
    - los.services.pick_validator
    - los.services.deadline_service
    - los.stores.base
"""

from __future__ import annotations

import logging

from los.errors import DataIntegrityError, ParticipantNotFoundError, TeamNotInRoundError
from los.models.fixture import Fixture
from los.models.pick import Pick, PickStatus
from los.services.auto_pick_service import available_teams
from los.services.deadline_service import compute_round_deadline, is_deadline_passed
from los.services.pick_validator import used_teams, validate_pick
from los.services.retry import RetryPolicy
from los.stores.base import FixtureFeed, GameStore
from los.utils import Clock, utcnow

logger = logging.getLogger("los.pick_service")


class PickService:
    def __init__(
        self,
        store: GameStore,
        feed: FixtureFeed,
        *,
        clock: Clock = utcnow,
        retry: RetryPolicy | None = None,
    ):
        self._store = store
        self._feed = feed
        self._clock = clock
        self._retry = retry or RetryPolicy()

    def _round_deadline(self, round_number: int, fixtures: list[Fixture]):
        try:
            return compute_round_deadline(round_number, fixtures)
        except DataIntegrityError as exc:
            logger.warning("Deadline unknown: %s", exc)
            return None

    async def make_pick(self, participant_id: str, round_number: int, team: str) -> Pick:
        """Validate and store a manual pick.

        Raises DeadlinePassedError, EliminatedParticipantError, DuplicatePickError,
        TeamAlreadyUsedError or TeamNotInRoundError on rejection.
        """
        participant = await self._retry.run(
            "get_participant", lambda: self._store.get_participant(participant_id),
        )
        if participant is None:
            raise ParticipantNotFoundError(participant_id)

        fixtures = await self._retry.run("get_fixtures", lambda: self._feed.get_fixtures(round_number))
        deadline = self._round_deadline(round_number, fixtures)
        history = await self._retry.run(
            "list_picks", lambda: self._store.list_picks(participant_id=participant_id),
        )
        now = self._clock()

        validate_pick(participant, round_number, team, history, deadline=deadline, now=now)
        if team not in available_teams(fixtures):
            raise TeamNotInRoundError(
                f"'{team}' does not play in round {round_number}.",
                participant_id=participant_id, round_number=round_number,
            )

        pick = Pick(
            participant_id=participant_id,
            round_number=round_number,
            team_picked=team,
            is_auto_pick=False,
            saved_at=now,
        )
        await self._retry.run("create_pick", lambda: self._store.create_pick(pick))
        logger.info("Pick saved: participant=%s team=%s round=%d", participant_id, team, round_number)
        return pick

    async def get_available_teams(self, participant_id: str, round_number: int) -> list[str]:
        """Teams of the round the participant has not used yet."""
        fixtures = await self._retry.run("get_fixtures", lambda: self._feed.get_fixtures(round_number))
        history = await self._retry.run(
            "list_picks", lambda: self._store.list_picks(participant_id=participant_id),
        )
        used = used_teams(history, participant_id)
        return [team for team in available_teams(fixtures) if team not in used]

    async def check_participant_deadline_status(self, participant_id: str, round_number: int) -> PickStatus:
        pick = await self._retry.run("get_pick", lambda: self._store.get_pick(participant_id, round_number))
        fixtures = await self._retry.run("get_fixtures", lambda: self._feed.get_fixtures(round_number))
        deadline = self._round_deadline(round_number, fixtures)
        return PickStatus(
            participant_id=participant_id,
            round_number=round_number,
            has_pick=pick is not None,
            is_deadline_passed=is_deadline_passed(deadline, self._clock()),
            pick=pick,
        )
