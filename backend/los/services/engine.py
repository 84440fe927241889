"""
backend/los/services/engine.py

Purpose:
    Composition root for one club edition: wires store, fixture feed, clock,
    RNG and event bus into the deadline monitor, auto-pick assigner, pick
    service, result processor and standings. Collaborators are passed in;
    nothing is looked up globally.

Dependencies:
    - apscheduler
    - los.services.*
    - los.workers.*
"""

from __future__ import annotations

import logging
import random

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from los.config import AutoPickReusePolicy, Settings
from los.models.fixture import Fixture
from los.models.participant import StandingEntry
from los.models.pick import Pick, PickStatus
from los.models.round import DeadlineInfo, RoundState
from los.services.auto_pick_service import AutoPickAssigner
from los.services.deadline_service import build_deadline_info
from los.services.event_bus import AsyncEventHandler, InMemoryEventBus
from los.services.lives_calculator import DEFAULT_STARTING_LIVES
from los.services.pick_service import PickService
from los.services.result_service import FixtureResultSummary, RoundResultProcessor
from los.services.retry import RetryPolicy
from los.services.standings_service import build_standings
from los.stores.base import FixtureFeed, GameStore
from los.utils import Clock, utcnow
from los.workers.deadline_monitor import DeadlineMonitor
from los.workers.result_resolver import ResultResolver

logger = logging.getLogger("los.engine")


class RoundEngine:
    def __init__(
        self,
        store: GameStore,
        feed: FixtureFeed,
        *,
        clock: Clock = utcnow,
        rng: random.Random | None = None,
        bus: InMemoryEventBus | None = None,
        retry: RetryPolicy | None = None,
        starting_lives: int = DEFAULT_STARTING_LIVES,
        reuse_policy: AutoPickReusePolicy = "allow",
        deadline_interval_seconds: int = 60,
        result_interval_seconds: int = 300,
        club_id: str = "",
        edition_id: str = "",
    ):
        if not isinstance(store, GameStore):
            raise TypeError(f"store must implement GameStore, got {type(store).__name__}")
        if not isinstance(feed, FixtureFeed):
            raise TypeError(f"feed must implement FixtureFeed, got {type(feed).__name__}")

        self.store = store
        self.feed = feed
        self.clock = clock
        self.bus = bus or InMemoryEventBus()
        retry = retry or RetryPolicy()
        self._retry = retry

        self.assigner = AutoPickAssigner(
            store, rng=rng, clock=clock, retry=retry, reuse_policy=reuse_policy,
        )
        self.monitor = DeadlineMonitor(
            store, feed, self.assigner,
            bus=self.bus, clock=clock, retry=retry,
            interval_seconds=deadline_interval_seconds,
            club_id=club_id, edition_id=edition_id,
        )
        self.results = RoundResultProcessor(
            store, feed, clock=clock, retry=retry, starting_lives=starting_lives,
        )
        self.resolver = ResultResolver(
            store, self.results,
            bus=self.bus, retry=retry,
            interval_seconds=result_interval_seconds,
            club_id=club_id, edition_id=edition_id,
        )
        self.picks = PickService(store, feed, clock=clock, retry=retry)

    @classmethod
    def from_settings(
        cls,
        store: GameStore,
        feed: FixtureFeed,
        settings: Settings,
        **overrides,
    ) -> "RoundEngine":
        kwargs = dict(
            retry=RetryPolicy(
                max_attempts=settings.STORE_RETRY_MAX_ATTEMPTS,
                base_delay=settings.STORE_RETRY_BASE_DELAY_SECONDS,
                max_delay=settings.STORE_RETRY_MAX_DELAY_SECONDS,
            ),
            bus=InMemoryEventBus(
                ingress_maxsize=settings.EVENT_BUS_INGRESS_QUEUE_MAXSIZE,
                handler_maxsize=settings.EVENT_BUS_HANDLER_QUEUE_MAXSIZE,
                default_concurrency=settings.EVENT_BUS_HANDLER_DEFAULT_CONCURRENCY,
                error_buffer_size=settings.EVENT_BUS_ERROR_BUFFER_SIZE,
                handler_timeout=settings.EVENT_BUS_HANDLER_TIMEOUT_SECONDS,
            ),
            starting_lives=settings.STARTING_LIVES,
            reuse_policy=settings.AUTO_PICK_REUSE_POLICY,
            deadline_interval_seconds=settings.DEADLINE_CHECK_INTERVAL_SECONDS,
            result_interval_seconds=settings.RESULT_CHECK_INTERVAL_SECONDS,
            club_id=settings.CLUB_ID,
            edition_id=settings.EDITION_ID,
        )
        kwargs.update(overrides)
        return cls(store, feed, **kwargs)

    # ---- Subscriptions ----

    def on_round_state_changed(self, handler: AsyncEventHandler, *, name: str = "round_state_changed") -> None:
        self.bus.subscribe("round.state_changed", handler, handler_name=name)

    def on_picks_assigned(self, handler: AsyncEventHandler, *, name: str = "picks_assigned") -> None:
        self.bus.subscribe("picks.assigned", handler, handler_name=name)

    def on_results_processed(self, handler: AsyncEventHandler, *, name: str = "results_processed") -> None:
        self.bus.subscribe("results.processed", handler, handler_name=name)

    # ---- Lifecycle ----

    async def start(
        self,
        scheduler: AsyncIOScheduler,
        *,
        monitor_deadlines: bool = True,
        resolve_results: bool = True,
    ) -> None:
        await self.bus.start()
        if monitor_deadlines:
            self.monitor.start(scheduler)
        if resolve_results:
            self.resolver.start(scheduler)
        logger.info("Round engine started")

    async def stop(self) -> None:
        self.monitor.stop()
        self.resolver.stop()
        await self.bus.stop()
        logger.info("Round engine stopped")

    # ---- Operations ----

    def round_state(self, round_number: int) -> RoundState:
        return self.monitor.round_state(round_number)

    async def current_round(self) -> int | None:
        return await self._retry.run("get_current_round", self.store.get_current_round)

    async def make_pick(self, participant_id: str, round_number: int, team: str) -> Pick:
        return await self.picks.make_pick(participant_id, round_number, team)

    async def get_available_teams(self, participant_id: str, round_number: int) -> list[str]:
        return await self.picks.get_available_teams(participant_id, round_number)

    async def check_participant_deadline_status(self, participant_id: str, round_number: int) -> PickStatus:
        return await self.picks.check_participant_deadline_status(participant_id, round_number)

    async def get_deadline_info(self, round_number: int) -> DeadlineInfo | None:
        fixtures = await self._retry.run("get_fixtures", lambda: self.feed.get_fixtures(round_number))
        return build_deadline_info(round_number, fixtures, self.clock())

    async def check_deadlines(self) -> None:
        await self.monitor.run_tick()

    async def check_all_deadlines(self) -> dict[int, RoundState]:
        return await self.monitor.check_all_deadlines()

    async def trigger_deadline(self, round_number: int) -> int:
        return await self.monitor.trigger_deadline(round_number)

    async def assign_auto_picks(self, round_number: int) -> list[Pick]:
        return await self.monitor.assign_round(round_number)

    async def process_fixture_result(self, fixture: Fixture) -> FixtureResultSummary:
        return await self.results.process_fixture_result(fixture)

    async def process_round_results(self, round_number: int) -> list[FixtureResultSummary]:
        return await self.resolver.resolve_round(round_number)

    async def get_standings(self) -> list[StandingEntry]:
        participants = await self._retry.run("list_participants", self.store.list_participants)
        picks = await self._retry.run("list_picks", self.store.list_picks)
        return build_standings(participants, picks)
