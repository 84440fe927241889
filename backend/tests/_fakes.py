"""
backend/tests/_fakes.py

Purpose:
    In-memory GameStore/FixtureFeed doubles and small builders shared by the
    engine tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from los.errors import DuplicatePickError, TransientStoreError
from los.models.fixture import Fixture
from los.models.participant import Participant, ParticipantUpdate
from los.models.pick import Pick, PickResultUpdate
from los.services.retry import RetryPolicy
from los.stores.base import FixtureFeed, GameStore

KICKOFF = datetime(2025, 8, 16, 14, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


async def _no_sleep(_delay: float) -> None:
    return None


def fast_retry(max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, base_delay=0, max_delay=0, sleep=_no_sleep)


def fixture(
    round_number: int,
    home: str,
    away: str,
    kickoff: datetime | None = None,
    *,
    score: tuple[int, int] | None = None,
    fixture_id: str = "",
) -> Fixture:
    return Fixture(
        id=fixture_id or f"{round_number}-{home}-{away}",
        round_number=round_number,
        home_team=home,
        away_team=away,
        kickoff_time=kickoff,
        kickoff_raw=None if kickoff else "not-a-date",
        status="finished" if score else "scheduled",
        home_score=score[0] if score else None,
        away_score=score[1] if score else None,
    )


def pick(participant_id: str, round_number: int, team: str, result: str | None = None, **kwargs) -> Pick:
    return Pick(participant_id=participant_id, round_number=round_number, team_picked=team, result=result, **kwargs)


class FakeFeed(FixtureFeed):
    def __init__(self, fixtures=()):
        self.fixtures: list[Fixture] = list(fixtures)
        self.broken_rounds: set[int] = set()

    async def get_fixtures(self, round_number: int) -> list[Fixture]:
        if round_number in self.broken_rounds:
            raise RuntimeError(f"feed unavailable for round {round_number}")
        return [f for f in self.fixtures if f.round_number == round_number]

    async def get_finished_fixtures(self, round_number: int) -> list[Fixture]:
        return [f for f in await self.get_fixtures(round_number) if f.is_finished]

    async def get_rounds(self) -> list[int]:
        return sorted({f.round_number for f in self.fixtures})


class FakeStore(GameStore):
    def __init__(self, participants=(), picks=(), current_round: int | None = None):
        self.participants: dict[str, Participant] = {p.id: p for p in participants}
        self.picks: dict[tuple[str, int], Pick] = {(p.participant_id, p.round_number): p for p in picks}
        self.current_round = current_round
        # Transient failures to raise before write_auto_picks succeeds
        self.transient_write_failures = 0
        self.write_error: Exception | None = None
        self.write_calls = 0
        self.apply_calls = 0

    async def get_current_round(self) -> int | None:
        return self.current_round

    async def list_participants(self) -> list[Participant]:
        return [p.model_copy() for p in self.participants.values()]

    async def get_participant(self, participant_id: str) -> Participant | None:
        found = self.participants.get(participant_id)
        return found.model_copy() if found else None

    async def list_picks(self, participant_id: str | None = None, round_number: int | None = None) -> list[Pick]:
        return [
            p.model_copy()
            for p in self.picks.values()
            if (participant_id is None or p.participant_id == participant_id)
            and (round_number is None or p.round_number == round_number)
        ]

    async def get_pick(self, participant_id: str, round_number: int) -> Pick | None:
        found = self.picks.get((participant_id, round_number))
        return found.model_copy() if found else None

    async def create_pick(self, pick: Pick) -> Pick:
        key = (pick.participant_id, pick.round_number)
        if key in self.picks:
            raise DuplicatePickError("duplicate", participant_id=pick.participant_id, round_number=pick.round_number)
        self.picks[key] = pick
        return pick

    async def write_auto_picks(self, picks: list[Pick]) -> list[tuple[str, int]]:
        self.write_calls += 1
        if self.transient_write_failures:
            self.transient_write_failures -= 1
            raise TransientStoreError("write timed out")
        if self.write_error is not None:
            raise self.write_error
        inserted = []
        for p in picks:
            key = (p.participant_id, p.round_number)
            if key not in self.picks:
                self.picks[key] = p
                inserted.append(key)
        return inserted

    async def apply_fixture_results(
        self,
        pick_updates: list[PickResultUpdate],
        participant_updates: list[ParticipantUpdate],
    ) -> None:
        self.apply_calls += 1
        for u in pick_updates:
            key = (u.participant_id, u.round_number)
            existing = self.picks.get(key)
            if existing is not None and existing.result is None:
                self.picks[key] = existing.model_copy(update={
                    "result": u.result,
                    "lives_after_pick": u.lives_after_pick,
                    "processed_at": u.processed_at,
                })
        for u in participant_updates:
            current = self.participants[u.participant_id]
            changes = {"lives": u.lives}
            if u.is_eliminated:
                changes.update(is_eliminated=True, elimination_round=u.elimination_round)
            self.participants[u.participant_id] = current.model_copy(update=changes)


class RecordingBus:
    """Stands in for InMemoryEventBus where only published events matter."""

    def __init__(self):
        self.events = []

    async def publish(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list:
        return [e for e in self.events if e.event_type == event_type]
