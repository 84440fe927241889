"""
backend/tests/test_deadline_monitor.py

Purpose:
    Round OPEN -> PASSED transitions, auto-pick assignment after the deadline
    and tick failure isolation.
"""

from __future__ import annotations

import random
from datetime import timedelta

import pytest

from _fakes import KICKOFF, FakeFeed, FakeStore, FrozenClock, RecordingBus, fast_retry, fixture, pick
from los.errors import StoreWriteError
from los.models.participant import Participant
from los.models.round import RoundState
from los.services.auto_pick_service import AutoPickAssigner
from los.workers._periodic import PeriodicJob
from los.workers.deadline_monitor import DeadlineMonitor


def _build(store, feed, clock, bus=None):
    retry = fast_retry()
    assigner = AutoPickAssigner(store, rng=random.Random(0), clock=clock, retry=retry)
    return DeadlineMonitor(store, feed, assigner, bus=bus, clock=clock, retry=retry)


def _setup():
    feed = FakeFeed([
        fixture(1, "Arsenal", "Chelsea", KICKOFF),
        fixture(1, "Everton", "Fulham", KICKOFF + timedelta(hours=2)),
    ])
    store = FakeStore(
        [Participant(id="p1"), Participant(id="p2"), Participant(id="p3", lives=0, is_eliminated=True)],
        [pick("p1", 1, "Arsenal")],
        current_round=1,
    )
    return store, feed


@pytest.mark.asyncio
async def test_round_stays_open_before_deadline():
    store, feed = _setup()
    bus = RecordingBus()
    monitor = _build(store, feed, FrozenClock(KICKOFF - timedelta(minutes=1)), bus)

    assert await monitor.check_round(1) == RoundState.OPEN
    assert monitor.round_state(1) == RoundState.OPEN
    assert bus.events == []
    assert store.write_calls == 0


@pytest.mark.asyncio
async def test_deadline_transition_assigns_auto_picks_once():
    store, feed = _setup()
    bus = RecordingBus()
    clock = FrozenClock(KICKOFF - timedelta(minutes=1))
    monitor = _build(store, feed, clock, bus)

    await monitor.check_round(1)
    clock.advance(minutes=1)
    assert await monitor.check_round(1) == RoundState.PASSED

    assert monitor.round_state(1) == RoundState.PASSED
    assert monitor.is_assigned(1)
    assert store.picks[("p2", 1)].is_auto_pick
    assert ("p3", 1) not in store.picks
    assert not store.picks[("p1", 1)].is_auto_pick

    changed = bus.of_type("round.state_changed")
    assert len(changed) == 1
    assert changed[0].state == "passed"
    assert changed[0].deadline == KICKOFF
    assigned = bus.of_type("picks.assigned")
    assert assigned[0].participant_ids == ["p2"]

    clock.advance(hours=1)
    await monitor.check_round(1)
    assert len(bus.of_type("round.state_changed")) == 1
    assert len(bus.of_type("picks.assigned")) == 1
    assert store.write_calls == 1


@pytest.mark.asyncio
async def test_failed_assignment_retried_on_next_check():
    store, feed = _setup()
    store.write_error = StoreWriteError("rejected")
    bus = RecordingBus()
    monitor = _build(store, feed, FrozenClock(KICKOFF + timedelta(minutes=5)), bus)

    assert await monitor.check_round(1) == RoundState.PASSED
    assert not monitor.is_assigned(1)
    assert ("p2", 1) not in store.picks

    store.write_error = None
    await monitor.check_round(1)

    assert monitor.is_assigned(1)
    assert ("p2", 1) in store.picks
    assert len(bus.of_type("round.state_changed")) == 1


@pytest.mark.asyncio
async def test_unusable_fixture_data_keeps_round_open():
    feed = FakeFeed([fixture(1, "Arsenal", "Chelsea", None)])
    store = FakeStore([Participant(id="p1")], current_round=1)
    monitor = _build(store, feed, FrozenClock(KICKOFF + timedelta(days=1)))

    assert await monitor.check_round(1) == RoundState.OPEN
    assert store.write_calls == 0


@pytest.mark.asyncio
async def test_tick_checks_current_round():
    store, feed = _setup()
    monitor = _build(store, feed, FrozenClock(KICKOFF))

    await monitor.run_tick()

    assert monitor.ticks == 1
    assert monitor.failed_ticks == 0
    assert monitor.round_state(1) == RoundState.PASSED


@pytest.mark.asyncio
async def test_tick_never_raises():
    store, feed = _setup()
    feed.broken_rounds.add(1)
    monitor = _build(store, feed, FrozenClock(KICKOFF))

    await monitor.run_tick()

    assert monitor.failed_ticks == 1
    assert monitor.status()["failed_ticks"] == 1


@pytest.mark.asyncio
async def test_tick_without_current_round_is_noop():
    store, feed = _setup()
    store.current_round = None
    monitor = _build(store, feed, FrozenClock(KICKOFF))

    await monitor.run_tick()

    assert monitor.failed_ticks == 0
    assert monitor.round_state(1) == RoundState.OPEN


@pytest.mark.asyncio
async def test_check_all_deadlines_isolates_rounds():
    store, feed = _setup()
    feed.fixtures.append(fixture(2, "Leeds", "Wolves", KICKOFF + timedelta(days=7)))
    feed.fixtures.append(fixture(3, "Burnley", "Brighton", KICKOFF + timedelta(days=14)))
    feed.broken_rounds.add(2)
    monitor = _build(store, feed, FrozenClock(KICKOFF + timedelta(hours=1)))

    states = await monitor.check_all_deadlines()

    assert states == {1: RoundState.PASSED, 3: RoundState.OPEN}


@pytest.mark.asyncio
async def test_trigger_deadline_forces_transition():
    store, feed = _setup()
    bus = RecordingBus()
    clock = FrozenClock(KICKOFF - timedelta(days=1))
    monitor = _build(store, feed, clock, bus)

    count = await monitor.trigger_deadline(1)

    assert count == 1
    assert monitor.round_state(1) == RoundState.PASSED
    assert len(bus.of_type("round.state_changed")) == 1

    clock.advance(days=2)
    await monitor.check_round(1)
    assert store.write_calls == 1
    assert len(bus.of_type("round.state_changed")) == 1


@pytest.mark.asyncio
async def test_assigned_count_excludes_picks_written_by_another_instance():
    class StaleStore(FakeStore):
        # Reads miss p1's pick, as if it was written after they ran
        async def list_picks(self, participant_id=None, round_number=None):
            return []

        async def get_pick(self, participant_id, round_number):
            return None

    _, feed = _setup()
    store = StaleStore([Participant(id="p1"), Participant(id="p2")], [pick("p1", 1, "Arsenal")], current_round=1)
    bus = RecordingBus()
    monitor = _build(store, feed, FrozenClock(KICKOFF), bus)

    count = await monitor.trigger_deadline(1)

    assert count == 1
    assigned = bus.of_type("picks.assigned")[0]
    assert (assigned.count, assigned.participant_ids) == (1, ["p2"])
    assert not store.picks[("p1", 1)].is_auto_pick


def test_status_reports_rounds():
    store, feed = _setup()
    monitor = _build(store, feed, FrozenClock(KICKOFF))
    status = monitor.status()
    assert status["job_id"] == "deadline_monitor"
    assert status["running"] is False
    assert status["rounds"] == {}


def test_periodic_job_requires_tick():
    with pytest.raises(TypeError):
        PeriodicJob(60)
