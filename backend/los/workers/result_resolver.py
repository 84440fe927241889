"""Resolve picks for finished fixtures of the active round."""

import logging

from los.services.event_bus import InMemoryEventBus
from los.services.event_models import ResultsProcessedEvent
from los.services.result_service import FixtureResultSummary, RoundResultProcessor
from los.services.retry import RetryPolicy
from los.stores.base import GameStore
from los.workers._periodic import PeriodicJob

logger = logging.getLogger("los.result_resolver")


class ResultResolver(PeriodicJob):
    job_id = "result_resolver"

    def __init__(
        self,
        store: GameStore,
        processor: RoundResultProcessor,
        *,
        bus: InMemoryEventBus | None = None,
        retry: RetryPolicy | None = None,
        interval_seconds: int = 300,
        club_id: str = "",
        edition_id: str = "",
    ):
        super().__init__(interval_seconds)
        self._store = store
        self._processor = processor
        self._bus = bus
        self._retry = retry or RetryPolicy()
        self._club_id = club_id
        self._edition_id = edition_id

    async def tick(self) -> None:
        round_number = await self._retry.run("get_current_round", self._store.get_current_round)
        if round_number is None:
            logger.debug("No active round; nothing to resolve")
            return
        await self.resolve_round(round_number)

    async def resolve_round(self, round_number: int) -> list[FixtureResultSummary]:
        summaries = await self._processor.process_round_results(round_number)
        resolved = 0
        for summary in summaries:
            if not summary.updated_picks and not summary.eliminated:
                continue
            resolved += summary.updated_picks
            if self._bus is not None:
                await self._bus.publish(ResultsProcessedEvent(
                    source=self.job_id,
                    club_id=self._club_id,
                    edition_id=self._edition_id,
                    round_number=round_number,
                    fixture_id=summary.fixture_id,
                    updated_picks=summary.updated_picks,
                    eliminated=summary.eliminated,
                ))
        if resolved:
            logger.info("Resolved %d picks in round %d", resolved, round_number)
        return summaries
