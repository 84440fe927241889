"""
backend/los/services/result_service.py

Purpose:
    Reconcile finished fixtures into pick outcomes, lives and elimination.
    Lives are always recomputed from the full pick history, so processing the
    same fixture again yields the same state.

Dependencies:
    - los.services.lives_calculator
    - los.stores.base
    - los.services.retry
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from los.models.fixture import Fixture
from los.models.participant import Participant, ParticipantUpdate
from los.models.pick import Pick, PickResult, PickResultUpdate
from los.services.lives_calculator import DEFAULT_STARTING_LIVES, compute_lives
from los.services.retry import RetryPolicy
from los.stores.base import FixtureFeed, GameStore
from los.utils import Clock, utcnow

logger = logging.getLogger("los.result_service")


class FixtureResultSummary(BaseModel):
    fixture_id: str
    round_number: int
    processed: bool = True
    updated_picks: int = 0
    participants_updated: int = 0
    eliminated: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


def derive_pick_result(team: str, fixture: Fixture) -> PickResult:
    """Outcome for `team` in a finished fixture."""
    if fixture.home_score is None or fixture.away_score is None:
        raise ValueError(f"Fixture {fixture.label} has no final score")
    if team == fixture.home_team:
        own, other = fixture.home_score, fixture.away_score
    elif team == fixture.away_team:
        own, other = fixture.away_score, fixture.home_score
    else:
        raise ValueError(f"{team!r} did not play in {fixture.label}")
    if own > other:
        return "win"
    if own < other:
        return "loss"
    return "draw"


class RoundResultProcessor:
    def __init__(
        self,
        store: GameStore,
        feed: FixtureFeed,
        *,
        clock: Clock = utcnow,
        retry: RetryPolicy | None = None,
        starting_lives: int = DEFAULT_STARTING_LIVES,
    ):
        self._store = store
        self._feed = feed
        self._clock = clock
        self._retry = retry or RetryPolicy()
        self._starting_lives = starting_lives

    async def process_fixture_result(self, fixture: Fixture) -> FixtureResultSummary:
        """Apply one finished fixture to every pick on either of its teams."""
        summary = FixtureResultSummary(fixture_id=fixture.id, round_number=fixture.round_number)
        if not fixture.is_finished:
            logger.debug("Fixture %s not finished or missing scores; skipping", fixture.label)
            summary.processed = False
            return summary

        round_number = fixture.round_number
        round_picks = await self._retry.run(
            "list_picks", lambda: self._store.list_picks(round_number=round_number),
        )
        affected = [p for p in round_picks if p.team_picked in (fixture.home_team, fixture.away_team)]
        if not affected:
            logger.debug("No picks on %s in round %d", fixture.label, round_number)
            return summary

        participants = {
            p.id: p for p in await self._retry.run("list_participants", self._store.list_participants)
        }
        now = self._clock()
        pick_updates: list[PickResultUpdate] = []
        participant_updates: list[ParticipantUpdate] = []

        for pick in affected:
            try:
                update, participant_update = await self._evaluate_pick(
                    pick, fixture, participants.get(pick.participant_id), now,
                )
            except Exception:
                logger.exception(
                    "Failed to process pick participant=%s round=%d team=%s",
                    pick.participant_id, round_number, pick.team_picked,
                )
                summary.failed.append(pick.participant_id)
                continue
            if update is not None:
                pick_updates.append(update)
            participant_updates.append(participant_update)
            if participant_update.is_eliminated and not participants[pick.participant_id].is_eliminated:
                summary.eliminated.append(participant_update.participant_id)

        await self._retry.run(
            "apply_fixture_results",
            lambda: self._store.apply_fixture_results(pick_updates, participant_updates),
        )

        summary.updated_picks = len(pick_updates)
        summary.participants_updated = len(participant_updates)
        logger.info(
            "Processed %s (round %d): %d picks updated, %d eliminated",
            fixture.label, round_number, summary.updated_picks, len(summary.eliminated),
        )
        return summary

    async def _evaluate_pick(
        self,
        pick: Pick,
        fixture: Fixture,
        participant: Participant | None,
        now,
    ) -> tuple[PickResultUpdate | None, ParticipantUpdate]:
        if participant is None:
            raise LookupError(f"participant {pick.participant_id} not found")

        # A set result is final; only fill in pending picks.
        result = pick.result or derive_pick_result(pick.team_picked, fixture)

        history = await self._retry.run(
            "list_picks", lambda: self._store.list_picks(participant_id=pick.participant_id),
        )
        resolved = [
            h.model_copy(update={"result": result}) if h.round_number == pick.round_number else h
            for h in history
        ]
        if not any(h.round_number == pick.round_number for h in resolved):
            resolved.append(pick.model_copy(update={"result": result}))

        lives = compute_lives(resolved, self._starting_lives)
        if lives > participant.lives:
            logger.warning(
                "Recomputed lives %d exceed stored %d for participant %s; keeping stored value",
                lives, participant.lives, participant.id,
            )
            lives = participant.lives

        if participant.is_eliminated:
            eliminated, elimination_round = True, participant.elimination_round
        elif lives == 0:
            eliminated, elimination_round = True, pick.round_number
            logger.info(
                "Participant eliminated: participant=%s round=%d team=%s",
                participant.id, pick.round_number, pick.team_picked,
            )
        else:
            eliminated, elimination_round = False, None

        pick_update = None
        if pick.result is None:
            pick_update = PickResultUpdate(
                participant_id=pick.participant_id,
                round_number=pick.round_number,
                result=result,
                lives_after_pick=lives,
                processed_at=now,
            )
        participant_update = ParticipantUpdate(
            participant_id=participant.id,
            lives=lives,
            is_eliminated=eliminated,
            elimination_round=elimination_round,
        )
        return pick_update, participant_update

    async def process_round_results(self, round_number: int) -> list[FixtureResultSummary]:
        """Process every finished fixture of a round; one failing fixture does not stop the rest."""
        fixtures = await self._retry.run(
            "get_finished_fixtures", lambda: self._feed.get_finished_fixtures(round_number),
        )
        summaries: list[FixtureResultSummary] = []
        for fixture in fixtures:
            try:
                summaries.append(await self.process_fixture_result(fixture))
            except Exception:
                logger.exception("Failed to process results for %s (round %d)", fixture.label, round_number)
        return summaries
