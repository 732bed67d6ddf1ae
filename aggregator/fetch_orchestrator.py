"""
Fetch Orchestrator
Batched, bounded-concurrency fetch over all subjects
"""
import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar
import logging

from core import FetchSummary, Subject, SubjectFetchResult
from scrapers import NewsApiScraper


logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """Split into consecutive chunks of at most ``size``."""
    size = max(1, int(size))
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class FetchOrchestrator:
    """
    Fetches every subject through the scraper, ``batch_size`` at a time.

    The whole batch settles before the next one starts, and ``batch_delay``
    seconds separate batches. A failing subject contributes nothing but
    never aborts its batch or the pass.
    """

    def __init__(
        self,
        scraper: NewsApiScraper,
        *,
        batch_size: int = 5,
        batch_delay: float = 1.0,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.scraper = scraper
        self.batch_size = max(1, int(batch_size))
        self.batch_delay = max(0.0, float(batch_delay))
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings, scraper: NewsApiScraper, sleep: SleepFn = asyncio.sleep) -> "FetchOrchestrator":
        return cls(
            scraper,
            batch_size=settings.fetch.batch_size,
            batch_delay=settings.fetch.batch_delay,
            sleep=sleep,
        )

    async def fetch_all(
        self,
        subjects: Sequence[Subject],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> FetchSummary:
        """
        Fetch all subjects

        Args:
            subjects: subjects to query, in priority order
            cancel_event: when set, in-flight requests of the current batch are
                cancelled and no further batch starts; completed subjects are kept

        Returns:
            FetchSummary with articles, api_calls_used, errors and telemetry
        """
        summary = FetchSummary()
        batches = chunk(list(subjects), self.batch_size)

        for index, batch in enumerate(batches):
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                break

            logger.info(
                f"Processing subject batch {index + 1}/{len(batches)}: "
                f"{', '.join(subject.name for subject in batch)}"
            )
            results = await self._run_batch(batch, cancel_event)
            for subject, outcome in zip(batch, results):
                self._merge(summary, subject, outcome)

            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                break

            if index < len(batches) - 1 and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        if summary.cancelled:
            logger.warning(
                f"Fetch cancelled after {summary.subjects_attempted}/{len(subjects)} subjects"
            )
        logger.info(
            f"Fetch complete: {len(summary.articles)} articles, "
            f"{summary.api_calls_used} API calls, {len(summary.failed_subjects)} failed subjects"
        )
        return summary

    async def _run_batch(
        self,
        batch: Sequence[Subject],
        cancel_event: Optional[asyncio.Event],
    ) -> List[object]:
        tasks = [asyncio.ensure_future(self.scraper.search(subject)) for subject in batch]
        gathered = asyncio.gather(*tasks, return_exceptions=True)

        if cancel_event is None:
            return await gathered

        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({gathered, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

        if not gathered.done():
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        results: List[object] = []
        for task in tasks:
            if task.cancelled():
                results.append(asyncio.CancelledError())
            else:
                results.append(task.exception() or task.result())
        return results

    def _merge(self, summary: FetchSummary, subject: Subject, outcome: object) -> None:
        summary.subjects_attempted += 1

        if isinstance(outcome, asyncio.CancelledError):
            summary.failed_subjects.append(subject.name)
            summary.errors.append(f"{subject.name}: fetch cancelled")
            return

        if isinstance(outcome, BaseException):
            logger.warning(f"Failed to fetch articles for '{subject.name}': {outcome}")
            summary.failed_subjects.append(subject.name)
            summary.errors.append(f"{subject.name}: {outcome}")
            return

        result: SubjectFetchResult = outcome
        summary.articles.extend(result.articles)
        if result.succeeded:
            summary.api_calls_used += 1
            if result.rate_limit_remaining is not None:
                summary.rate_limit_remaining = result.rate_limit_remaining
            if result.rate_limit_reset is not None:
                summary.rate_limit_reset = result.rate_limit_reset
        else:
            summary.failed_subjects.append(subject.name)
            if result.error and result.error not in summary.errors:
                summary.errors.append(result.error)
