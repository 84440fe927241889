"""
backend/los/workers/deadline_monitor.py

Purpose:
    Periodic round deadline check. Flips a round OPEN -> PASSED once per engine
    instance when the earliest kickoff has been reached, then assigns auto-picks.
    A failed assignment is retried on later ticks without re-announcing the
    state change.

Dependencies:
    - apscheduler (via los.workers._periodic)
    - los.services.deadline_service
    - los.services.auto_pick_service
    - los.services.event_bus
"""

from __future__ import annotations

import logging

from los.errors import DataIntegrityError, EngineError, PartialAssignmentError
from los.models.fixture import Fixture
from los.models.pick import Pick
from los.models.round import Round, RoundState
from los.services.auto_pick_service import AutoPickAssigner
from los.services.deadline_service import compute_round_deadline, is_deadline_passed
from los.services.event_bus import InMemoryEventBus
from los.services.event_models import BaseEvent, PicksAssignedEvent, RoundStateChangedEvent
from los.services.retry import RetryPolicy
from los.stores.base import FixtureFeed, GameStore
from los.utils import Clock, utcnow
from los.workers._periodic import PeriodicJob

logger = logging.getLogger("los.deadline_monitor")


class DeadlineMonitor(PeriodicJob):
    job_id = "deadline_monitor"

    def __init__(
        self,
        store: GameStore,
        feed: FixtureFeed,
        assigner: AutoPickAssigner,
        *,
        bus: InMemoryEventBus | None = None,
        clock: Clock = utcnow,
        retry: RetryPolicy | None = None,
        interval_seconds: int = 60,
        club_id: str = "",
        edition_id: str = "",
    ):
        super().__init__(interval_seconds)
        self._store = store
        self._feed = feed
        self._assigner = assigner
        self._bus = bus
        self._clock = clock
        self._retry = retry or RetryPolicy()
        self._club_id = club_id
        self._edition_id = edition_id
        # In-memory, per instance: other instances keep their own flags.
        self._rounds: dict[int, Round] = {}
        self._assigned_rounds: set[int] = set()

    def round_state(self, round_number: int) -> RoundState:
        state = self._rounds.get(round_number)
        return state.state if state else RoundState.OPEN

    def is_assigned(self, round_number: int) -> bool:
        return round_number in self._assigned_rounds

    async def tick(self) -> None:
        round_number = await self._retry.run("get_current_round", self._store.get_current_round)
        if round_number is None:
            logger.debug("No active round; nothing to check")
            return
        await self.check_round(round_number)

    async def check_all_deadlines(self) -> dict[int, RoundState]:
        """Check every round with fixtures; one failing round does not stop the sweep."""
        states: dict[int, RoundState] = {}
        for round_number in await self._retry.run("get_rounds", self._feed.get_rounds):
            try:
                states[round_number] = await self.check_round(round_number)
            except Exception:
                logger.exception("Deadline check failed for round %d", round_number)
        return states

    async def check_round(self, round_number: int) -> RoundState:
        fixtures = await self._retry.run("get_fixtures", lambda: self._feed.get_fixtures(round_number))
        try:
            deadline = compute_round_deadline(round_number, fixtures)
        except DataIntegrityError as exc:
            logger.warning("Deadline unknown, no transition: %s", exc)
            return self.round_state(round_number)

        if deadline is None:
            logger.debug("Round %d has no fixtures; no deadline", round_number)
            return self.round_state(round_number)

        if not is_deadline_passed(deadline, self._clock()):
            if self.round_state(round_number) == RoundState.OPEN:
                self._rounds[round_number] = Round(number=round_number, deadline=deadline)
            return self.round_state(round_number)

        await self._mark_passed(round_number, deadline)
        if round_number not in self._assigned_rounds:
            await self._assign_after_deadline(round_number, fixtures)
        return RoundState.PASSED

    async def trigger_deadline(self, round_number: int) -> int:
        """Force the PASSED transition and auto-pick assignment for a round.

        Returns the number of auto-picks created. Raises PartialAssignmentError
        if the batch write fails.
        """
        logger.info("Manually triggering deadline for round %d", round_number)
        fixtures = await self._retry.run("get_fixtures", lambda: self._feed.get_fixtures(round_number))
        await self._mark_passed(round_number, None)
        picks = await self.assign_round(round_number, fixtures)
        return len(picks)

    async def assign_round(self, round_number: int, fixtures: list[Fixture] | None = None) -> list[Pick]:
        """Run the auto-pick assigner for a round regardless of its deadline."""
        if fixtures is None:
            fixtures = await self._retry.run("get_fixtures", lambda: self._feed.get_fixtures(round_number))
        participants = await self._retry.run("list_participants", self._store.list_participants)
        existing = await self._retry.run("list_picks", self._store.list_picks)

        created = await self._assigner.assign_auto_picks(round_number, fixtures, participants, existing)
        self._assigned_rounds.add(round_number)
        await self._publish(PicksAssignedEvent(
            source=self.job_id,
            club_id=self._club_id,
            edition_id=self._edition_id,
            round_number=round_number,
            count=len(created),
            participant_ids=[p.participant_id for p in created],
        ))
        logger.info("%d auto-picks assigned for round %d", len(created), round_number)
        return created

    async def _mark_passed(self, round_number: int, deadline) -> None:
        current = self._rounds.get(round_number)
        if current is not None and current.state == RoundState.PASSED:
            return
        self._rounds[round_number] = Round(
            number=round_number,
            deadline=deadline if deadline is not None else (current.deadline if current else None),
            state=RoundState.PASSED,
        )
        logger.info("Deadline has passed for round %d", round_number)
        await self._publish(RoundStateChangedEvent(
            source=self.job_id,
            club_id=self._club_id,
            edition_id=self._edition_id,
            round_number=round_number,
            state=RoundState.PASSED.value,
            deadline=deadline,
        ))

    async def _assign_after_deadline(self, round_number: int, fixtures: list[Fixture]) -> None:
        try:
            await self.assign_round(round_number, fixtures)
        except PartialAssignmentError as exc:
            logger.error("%s; retrying on next tick", exc)
        except EngineError as exc:
            logger.error("Auto-pick assignment for round %d failed: %s; retrying on next tick", round_number, exc)

    async def _publish(self, event: BaseEvent) -> None:
        if self._bus is not None:
            await self._bus.publish(event)

    def status(self) -> dict:
        payload = super().status()
        payload["rounds"] = {
            n: {"state": r.state.value, "deadline": r.deadline, "assigned": n in self._assigned_rounds}
            for n, r in sorted(self._rounds.items())
        }
        return payload
