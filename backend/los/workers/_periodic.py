"""Cancellable interval job on an APScheduler AsyncIOScheduler.

A tick never raises into the scheduler: failures are logged and the next
tick runs as usual.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger("los.workers")


class PeriodicJob(ABC):
    job_id: str = "periodic_job"

    def __init__(self, interval_seconds: int):
        self.interval_seconds = max(1, int(interval_seconds))
        self._scheduler: AsyncIOScheduler | None = None
        self.ticks = 0
        self.failed_ticks = 0
        self.last_tick_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.get_job(self.job_id) is not None

    def start(self, scheduler: AsyncIOScheduler, *, run_immediately: bool = True) -> None:
        """Register the interval job; the first tick fires right away unless disabled."""
        self._scheduler = scheduler
        kwargs = {"next_run_time": datetime.now(timezone.utc)} if run_immediately else {}
        scheduler.add_job(
            self.run_tick,
            "interval",
            seconds=self.interval_seconds,
            id=self.job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **kwargs,
        )
        logger.info("%s scheduled every %ds", self.job_id, self.interval_seconds)

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.get_job(self.job_id):
            self._scheduler.remove_job(self.job_id)
            logger.info("%s stopped", self.job_id)
        self._scheduler = None

    async def run_tick(self) -> None:
        self.ticks += 1
        self.last_tick_at = datetime.now(timezone.utc)
        try:
            await self.tick()
        except Exception:
            self.failed_ticks += 1
            logger.exception("%s tick failed", self.job_id)

    @abstractmethod
    async def tick(self) -> None:
        """One pass of the job."""

    def status(self) -> dict:
        return {
            "job_id": self.job_id,
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "ticks": self.ticks,
            "failed_ticks": self.failed_ticks,
            "last_tick_at": self.last_tick_at,
        }
