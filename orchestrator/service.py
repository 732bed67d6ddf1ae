"""Run coordinator: one end-to-end ingestion pass plus due-checks and live search."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from aggregator import FetchOrchestrator, chunk
from config import Settings, get_settings
from core import (
    FetchSummary,
    RunRecord,
    RunResult,
    RunStatusValue,
    ScoredArticle,
    Subject,
)
from credentials import ApiKeyManager, NewsApiKeyValidator
from curation import (
    ContentScorer,
    dedupe,
    filter_mentions,
    limit_per_subject,
    mix_with_stats,
    should_keep,
    sort_by_recency,
)
from scrapers import NO_HEALTHY_KEYS, NewsApiScraper
from storage import (
    ArticleStore,
    BaseCache,
    InMemoryArticleStore,
    InMemoryRunStore,
    InMemorySubjectStore,
    MemoryCache,
    RunStore,
    SubjectStore,
    new_run_id,
)
from utils.exceptions import ValidationError


logger = logging.getLogger(__name__)

NO_KEYS_CONFIGURED = "No News API keys configured"
NO_ACTIVE_SUBJECTS = "No active subjects to fetch news for"
RUN_IN_PROGRESS = "Ingestion run already in progress"
RUN_DEADLINE_EXCEEDED = "Run deadline exceeded; remaining subjects skipped"

INVALIDATED_NAMESPACES = ("news", "stats")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionCoordinator:
    """
    Drives one ingestion run end to end.

    fetch -> subject-mention filter -> score/threshold -> per-subject cap ->
    dedupe -> recency sort -> diversity mix -> store (skipping known URLs) ->
    finalize run record -> invalidate cache.

    Only one run is in flight per coordinator; ``run_ingestion`` never raises.
    """

    def __init__(
        self,
        *,
        key_manager: ApiKeyManager,
        fetcher: FetchOrchestrator,
        scorer: Optional[ContentScorer] = None,
        subject_store: Optional[SubjectStore] = None,
        article_store: Optional[ArticleStore] = None,
        run_store: Optional[RunStore] = None,
        cache: Optional[BaseCache] = None,
        batch_threshold: int = 15,
        live_threshold: int = 30,
        per_subject_limit: int = 3,
        insert_batch_size: int = 100,
        mixing_enabled: bool = True,
        max_consecutive: int = 2,
        fetch_interval: timedelta = timedelta(hours=24),
        run_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.key_manager = key_manager
        self.fetcher = fetcher
        self.scorer = scorer or ContentScorer()
        self.subject_store = subject_store or InMemorySubjectStore()
        self.article_store = article_store or InMemoryArticleStore()
        self.run_store = run_store or InMemoryRunStore()
        self.cache = cache
        self.batch_threshold = batch_threshold
        self.live_threshold = live_threshold
        self.per_subject_limit = per_subject_limit
        self.insert_batch_size = max(1, int(insert_batch_size))
        self.mixing_enabled = mixing_enabled
        self.max_consecutive = max_consecutive
        self.fetch_interval = fetch_interval
        self.run_timeout = run_timeout
        self._clock = clock
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    # ------------------------------------------------------------------ runs

    async def run_ingestion(self) -> RunResult:
        """Execute one ingestion run. A concurrent call is rejected without side effects."""
        if self._run_lock.locked():
            logger.warning(RUN_IN_PROGRESS)
            return RunResult(success=False, errors=[RUN_IN_PROGRESS])

        async with self._run_lock:
            return await self._run()

    async def _run(self) -> RunResult:
        started_at = self._clock()
        started = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        if len(self.key_manager) == 0:
            logger.error(NO_KEYS_CONFIGURED)
            return RunResult(success=False, errors=[NO_KEYS_CONFIGURED], duration_ms=elapsed_ms())

        try:
            subjects = self._load_subjects()
        except Exception as e:
            logger.error(f"Failed to load subjects: {e}")
            return RunResult(success=False, errors=[f"Failed to load subjects: {e}"], duration_ms=elapsed_ms())

        if not subjects:
            logger.warning(NO_ACTIVE_SUBJECTS)
            return RunResult(success=False, errors=[NO_ACTIVE_SUBJECTS], duration_ms=elapsed_ms())

        if not await self.key_manager.has_available():
            logger.error(f"{NO_HEALTHY_KEYS}, skipping run")
            return RunResult(success=False, errors=[NO_HEALTHY_KEYS], duration_ms=elapsed_ms())

        run = RunRecord(
            run_id=new_run_id(),
            started_at=started_at,
            subjects=[subject.name for subject in subjects],
        )
        try:
            run_id = self.run_store.create(run)
        except Exception as e:
            logger.error(f"Failed to create run record: {e}")
            return RunResult(success=False, errors=[f"Failed to create run record: {e}"], duration_ms=elapsed_ms())

        logger.info(f"Starting ingestion run {run_id} for {len(subjects)} subjects")

        errors: List[str] = []
        summary = FetchSummary()
        processed = added = duplicates = 0
        try:
            summary = await self._fetch(subjects)
            errors.extend(summary.errors)
            if summary.cancelled:
                errors.append(RUN_DEADLINE_EXCEEDED)
            processed = len(summary.articles)

            curated, in_run_duplicates = self._curate(summary, subjects)
            added, existing, insert_errors = self._store(curated)
            duplicates = in_run_duplicates + existing
            errors.extend(insert_errors)
        except Exception as e:
            logger.exception(f"Ingestion run {run_id} failed unexpectedly")
            errors.append(f"Unexpected error: {e}")
            return self._finalize(
                run_id, started_at, elapsed_ms(), RunStatusValue.FAILED,
                summary, processed, added, duplicates, errors,
            )

        if not errors:
            status = RunStatusValue.SUCCESS
        elif processed > 0:
            status = RunStatusValue.PARTIAL
        else:
            status = RunStatusValue.FAILED

        return self._finalize(
            run_id, started_at, elapsed_ms(), status,
            summary, processed, added, duplicates, errors,
        )

    def _load_subjects(self) -> List[Subject]:
        subjects = self.subject_store.list_active_subjects()
        return sorted(subjects, key=lambda subject: (-subject.priority, subject.name))

    async def _fetch(self, subjects: Sequence[Subject]) -> FetchSummary:
        if not self.run_timeout:
            return await self.fetcher.fetch_all(subjects)

        cancel_event = asyncio.Event()
        handle = asyncio.get_running_loop().call_later(self.run_timeout, cancel_event.set)
        try:
            return await self.fetcher.fetch_all(subjects, cancel_event=cancel_event)
        finally:
            handle.cancel()

    def _curate(self, summary: FetchSummary, subjects: Sequence[Subject]):
        """Returns (ordered articles to store, in-run duplicate count)."""
        by_name = {subject.name: subject for subject in subjects}
        mentioned = filter_mentions(summary.articles, by_name)

        accepted: List[ScoredArticle] = []
        for article in mentioned:
            scored = self.scorer.score_article(article)
            if should_keep(scored, self.batch_threshold):
                accepted.append(scored)
            else:
                logger.debug(f"Filtered (score {scored.overall_score}): {scored.title}")

        logger.info(
            f"Quality filter kept {len(accepted)}/{len(mentioned)} articles "
            f"(threshold {self.batch_threshold})"
        )

        limited = limit_per_subject(accepted, self.per_subject_limit)
        unique = dedupe(limited)
        ordered = sort_by_recency(unique)
        if self.mixing_enabled:
            ordered, _ = mix_with_stats(ordered, now=self._clock(), max_consecutive=self.max_consecutive)
        return ordered, len(limited) - len(unique)

    def _store(self, articles: Sequence[ScoredArticle]):
        """Returns (added, already stored, errors); a failed chunk never stops the next."""
        added = existing = 0
        errors: List[str] = []
        for index, batch in enumerate(chunk(list(articles), self.insert_batch_size)):
            try:
                fresh = [article for article in batch if not self.article_store.exists_by_url(article.url)]
                existing += len(batch) - len(fresh)
                if fresh:
                    added += self.article_store.insert_many(fresh)
            except Exception as e:
                logger.error(f"Failed to store article batch {index + 1}: {e}")
                errors.append(f"Failed to store article batch {index + 1}: {e}")
        return added, existing, errors

    def _finalize(
        self,
        run_id: str,
        started_at: datetime,
        duration_ms: int,
        status: RunStatusValue,
        summary: FetchSummary,
        processed: int,
        added: int,
        duplicates: int,
        errors: List[str],
    ) -> RunResult:
        success = status in (RunStatusValue.SUCCESS, RunStatusValue.PARTIAL)
        try:
            self.run_store.update(
                run_id,
                status=status,
                finished_at=self._clock(),
                articles_processed=processed,
                new_articles_added=added,
                duplicates_found=duplicates,
                api_calls_used=summary.api_calls_used,
                duration_ms=duration_ms,
                errors=list(errors),
                next_due=started_at + self.fetch_interval,
                rate_limit_remaining=summary.rate_limit_remaining,
                rate_limit_reset=summary.rate_limit_reset,
            )
        except Exception as e:
            logger.error(f"Failed to finalize run record {run_id}: {e}")
            errors = errors + [f"Failed to finalize run record: {e}"]

        if success and self.cache is not None:
            for namespace in INVALIDATED_NAMESPACES:
                try:
                    self.cache.invalidate(namespace)
                except Exception as e:
                    logger.warning(f"Cache invalidation failed for '{namespace}': {e}")

        logger.info(
            f"Ingestion run {run_id} finished ({status.value}): {processed} processed, "
            f"{added} added, {duplicates} duplicates, {summary.api_calls_used} API calls, "
            f"{len(errors)} errors in {duration_ms}ms"
        )
        return RunResult(
            success=success,
            status=status,
            run_id=run_id,
            processed=processed,
            added=added,
            duplicates=duplicates,
            errors=list(errors),
            duration_ms=duration_ms,
        )

    # ------------------------------------------------------------------ queries

    def is_run_due(self) -> bool:
        """True without a successful run, once next_due has passed, or when the store fails."""
        try:
            last = self.run_store.last_successful()
        except Exception as e:
            logger.error(f"Error checking if run is due: {e}")
            return True

        if last is None or last.next_due is None:
            return True
        return self._clock() >= last.next_due

    async def live_search(self, subject_name: str, limit: int = 20) -> List[ScoredArticle]:
        """
        Fetch one subject on demand, applying the stricter live threshold.

        Nothing is persisted. Results are newest first.
        """
        name = str(subject_name or "").strip()
        if not name:
            raise ValidationError("Subject name is required", {"field": "subject_name"})

        result = await self.fetcher.scraper.search(Subject(name=name))
        if result.error:
            logger.warning(f"Live search for '{name}' returned an error: {result.error}")

        kept = [
            scored
            for scored in (self.scorer.score_article(article) for article in result.articles)
            if should_keep(scored, self.live_threshold)
        ]
        ordered = sort_by_recency(dedupe(kept))
        logger.info(f"Live search '{name}': {len(ordered)}/{len(result.articles)} articles kept")
        return ordered[:max(0, int(limit))]


def build_default_coordinator(
    settings: Optional[Settings] = None,
    *,
    subject_store: Optional[SubjectStore] = None,
    article_store: Optional[ArticleStore] = None,
    run_store: Optional[RunStore] = None,
    cache: Optional[BaseCache] = None,
) -> IngestionCoordinator:
    """Wire the pipeline from settings with in-memory collaborators."""
    settings = settings or get_settings()

    validator = NewsApiKeyValidator(
        base_url=settings.news_api.base_url,
        timeout=settings.keys.validation_timeout,
    )
    key_manager = ApiKeyManager.from_settings(settings, validator=validator)
    scraper = NewsApiScraper.from_settings(settings, key_manager)
    fetcher = FetchOrchestrator.from_settings(settings, scraper)

    return IngestionCoordinator(
        key_manager=key_manager,
        fetcher=fetcher,
        scorer=ContentScorer.from_settings(settings),
        subject_store=subject_store,
        article_store=article_store,
        run_store=run_store,
        cache=cache if cache is not None else MemoryCache(),
        batch_threshold=settings.scoring.batch_threshold,
        live_threshold=settings.scoring.live_threshold,
        per_subject_limit=settings.fetch.per_subject_limit,
        insert_batch_size=settings.fetch.insert_batch_size,
        mixing_enabled=settings.mixing.enabled,
        max_consecutive=settings.mixing.max_consecutive,
        fetch_interval=timedelta(hours=settings.scheduler.fetch_interval_hours),
        run_timeout=settings.fetch.run_timeout,
    )
