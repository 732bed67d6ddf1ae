from __future__ import annotations

import asyncio

import pytest

from aggregator import FetchOrchestrator, chunk
from core import CandidateArticle, Subject, SubjectFetchResult


class FakeSleep:
    def __init__(self) -> None:
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeScraper:
    """Returns one article per subject and tracks concurrency."""

    def __init__(self, failing=(), raising=(), blocking=(), on_done=None) -> None:
        self.failing = set(failing)
        self.raising = set(raising)
        self.blocking = set(blocking)
        self.on_done = on_done
        self.active = 0
        self.max_active = 0
        self.order = []

    async def search(self, subject: Subject) -> SubjectFetchResult:
        self.order.append(subject.name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            if subject.name in self.blocking:
                await asyncio.Event().wait()
            if subject.name in self.raising:
                raise RuntimeError("unexpected")
            if subject.name in self.failing:
                return SubjectFetchResult(
                    subject=subject.name,
                    attempts=4,
                    error=f"Failed to fetch articles for {subject.name} after 3 retries: HTTP 500",
                )
            article = CandidateArticle(
                url=f"https://quem.com.br/{subject.name}",
                title=f"{subject.name} posa em foto",
                subject=subject.name,
            )
            return SubjectFetchResult(
                subject=subject.name,
                articles=[article],
                succeeded=True,
                attempts=1,
                rate_limit_remaining=100 - len(self.order),
            )
        finally:
            self.active -= 1
            if self.on_done is not None:
                self.on_done(subject.name)


def _subjects(count: int):
    return [Subject(name=f"S{i:02d}") for i in range(count)]


def test_chunk_splits_in_order() -> None:
    assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk([], 5) == []


@pytest.mark.asyncio
async def test_batches_of_five_with_delay_between_batches() -> None:
    scraper = FakeScraper()
    sleep = FakeSleep()
    orchestrator = FetchOrchestrator(scraper, batch_size=5, batch_delay=1.0, sleep=sleep)

    summary = await orchestrator.fetch_all(_subjects(11))

    assert scraper.max_active == 5
    assert sleep.calls == [1.0, 1.0]
    assert summary.subjects_attempted == 11
    assert summary.api_calls_used == 11
    assert len(summary.articles) == 11
    assert summary.rate_limit_remaining is not None
    assert not summary.cancelled


@pytest.mark.asyncio
async def test_failed_subject_does_not_abort_batch() -> None:
    scraper = FakeScraper(failing={"S01"}, raising={"S02"})
    orchestrator = FetchOrchestrator(scraper, sleep=FakeSleep())

    summary = await orchestrator.fetch_all(_subjects(4))

    assert summary.api_calls_used == 2
    assert {article.subject for article in summary.articles} == {"S00", "S03"}
    assert summary.failed_subjects == ["S01", "S02"]
    assert summary.errors[0].startswith("Failed to fetch articles for S01")
    assert summary.errors[1] == "S02: unexpected"


@pytest.mark.asyncio
async def test_identical_subject_errors_are_reported_once() -> None:
    class ExhaustedScraper:
        async def search(self, subject):
            return SubjectFetchResult(subject=subject.name, error="No healthy API keys available")

    orchestrator = FetchOrchestrator(ExhaustedScraper(), sleep=FakeSleep())

    summary = await orchestrator.fetch_all(_subjects(3))

    assert summary.errors == ["No healthy API keys available"]
    assert summary.failed_subjects == ["S00", "S01", "S02"]
    assert summary.api_calls_used == 0


@pytest.mark.asyncio
async def test_cancel_event_stops_pending_work_and_keeps_completed() -> None:
    cancel = asyncio.Event()

    def on_done(name: str) -> None:
        if name == "S00":
            cancel.set()

    scraper = FakeScraper(blocking={"S01"}, on_done=on_done)
    orchestrator = FetchOrchestrator(scraper, batch_size=2, sleep=FakeSleep())

    summary = await orchestrator.fetch_all(_subjects(4), cancel_event=cancel)

    assert summary.cancelled
    assert [article.subject for article in summary.articles] == ["S00"]
    assert summary.failed_subjects == ["S01"]
    assert "S01: fetch cancelled" in summary.errors
    assert scraper.order == ["S00", "S01"]


@pytest.mark.asyncio
async def test_cancel_before_start_fetches_nothing() -> None:
    cancel = asyncio.Event()
    cancel.set()
    scraper = FakeScraper()

    summary = await FetchOrchestrator(scraper, sleep=FakeSleep()).fetch_all(_subjects(3), cancel_event=cancel)

    assert summary.cancelled
    assert summary.subjects_attempted == 0
    assert scraper.order == []
