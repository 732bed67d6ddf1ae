"""Daily ingestion schedule and periodic key health checks."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from core import RunResult
from .service import IngestionCoordinator


logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_run_at(value: str) -> Tuple[int, int]:
    text = str(value or "").strip()
    if ":" not in text:
        return 6, 0
    hour_text, minute_text = text.split(":", 1)
    try:
        hour = max(0, min(23, int(hour_text)))
        minute = max(0, min(59, int(minute_text)))
        return hour, minute
    except ValueError:
        return 6, 0


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except Exception:
        logger.warning(f"Unknown timezone '{name}', falling back to UTC")
        return ZoneInfo("UTC")


class IngestionScheduler:
    """
    Fires the coordinator once per local day after ``run_at`` and forces a
    key health check every ``health_check_interval`` seconds.
    """

    def __init__(
        self,
        coordinator: IngestionCoordinator,
        *,
        run_at: str = "06:00",
        tz: str = "America/Sao_Paulo",
        poll_interval: float = 60.0,
        health_check_interval: float = 3600.0,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.coordinator = coordinator
        self.run_at = run_at
        self.tz = _zone(tz)
        self.poll_interval = max(0.0, float(poll_interval))
        self.health_check_interval = max(0.0, float(health_check_interval))
        self._sleep = sleep
        self._clock = clock
        self._last_triggered_on: Optional[date] = None
        self._stop = asyncio.Event()

    @classmethod
    def from_settings(cls, settings, coordinator: IngestionCoordinator) -> "IngestionScheduler":
        scheduler = settings.scheduler
        return cls(
            coordinator,
            run_at=scheduler.run_at,
            tz=scheduler.tz,
            poll_interval=scheduler.poll_interval,
            health_check_interval=scheduler.health_check_interval,
        )

    @property
    def last_triggered_on(self) -> Optional[date]:
        return self._last_triggered_on

    def is_due(self, now: Optional[datetime] = None) -> bool:
        local_now = (now or self._clock()).astimezone(self.tz)
        run_hour, run_minute = _parse_run_at(self.run_at)
        target_minute = run_hour * 60 + run_minute
        current_minute = local_now.hour * 60 + local_now.minute
        if current_minute < target_minute:
            return False
        return self._last_triggered_on != local_now.date()

    async def tick(self, now: Optional[datetime] = None) -> Optional[RunResult]:
        """Run the daily ingestion if its local time has passed today; None otherwise."""
        now = now or self._clock()
        if not self.is_due(now):
            return None

        self._last_triggered_on = now.astimezone(self.tz).date()
        logger.info(f"Scheduled ingestion starting ({self.run_at} {self.tz.key})")
        result = await self.coordinator.run_ingestion()
        if result.success:
            logger.info(f"Scheduled ingestion completed: {result.added} added, {result.processed} processed")
        else:
            logger.error(f"Scheduled ingestion failed: {result.errors}")
        return result

    async def run_initial_if_due(self) -> Optional[RunResult]:
        """Catch up on start when there is no recent successful run."""
        if not self.coordinator.is_run_due():
            logger.info("Recent ingestion found, skipping initial run")
            return None
        logger.info("Running initial ingestion (no recent data found)")
        now = self._clock()
        if self.is_due(now):
            # today's slot is covered by this run
            self._last_triggered_on = now.astimezone(self.tz).date()
        return await self.coordinator.run_ingestion()

    async def _health_loop(self) -> None:
        while not self._stop.is_set():
            await self._sleep(self.health_check_interval)
            if self._stop.is_set():
                break
            try:
                await self.coordinator.key_manager.force_health_check()
                logger.debug(f"Key health: {self.coordinator.key_manager.health_summary()}")
            except Exception as e:
                logger.error(f"Key health check failed: {e}")

    async def start(self) -> None:
        """Initial catch-up, then poll until ``stop()``."""
        self._stop.clear()
        await self.run_initial_if_due()

        health_task = asyncio.ensure_future(self._health_loop())
        try:
            while not self._stop.is_set():
                await self.tick()
                await self._sleep(self.poll_interval)
        finally:
            health_task.cancel()
            await asyncio.gather(health_task, return_exceptions=True)
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        self._stop.set()
