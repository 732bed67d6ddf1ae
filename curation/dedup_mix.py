"""Deduplication, recency ordering and per-subject diversity mixing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from core import CandidateArticle


logger = logging.getLogger(__name__)

A = TypeVar("A", bound=CandidateArticle)

BUCKET_ORDER = ("recent", "semi_recent", "daily", "older")

_RECENT = timedelta(hours=6)
_SEMI_RECENT = timedelta(hours=12)
_DAILY = timedelta(hours=24)


@dataclass
class MixStats:
    bucket_sizes: Dict[str, int] = field(default_factory=lambda: {name: 0 for name in BUCKET_ORDER})
    forced_placements: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _url_key(article: CandidateArticle) -> str:
    return str(article.url or "").strip()


def dedupe(articles: Sequence[A], key: Callable[[A], str] = _url_key) -> List[A]:
    """Drop repeated articles by URL; the first occurrence wins."""
    unique: List[A] = []
    seen = set()
    for article in articles:
        marker = key(article)
        if marker in seen:
            continue
        seen.add(marker)
        unique.append(article)
    return unique


def sort_by_recency(articles: Sequence[A]) -> List[A]:
    """Newest first; undated articles go last. Stable for equal timestamps."""
    dated = [article for article in articles if article.published_at is not None]
    undated = [article for article in articles if article.published_at is None]
    dated.sort(key=lambda article: article.published_at, reverse=True)
    return dated + undated


def bucket_for(published_at: Optional[datetime], now: datetime) -> str:
    """Boundaries are inclusive toward the newer bucket; future dates count as recent."""
    if published_at is None:
        return "older"
    age = now - published_at
    if age <= _RECENT:
        return "recent"
    if age <= _SEMI_RECENT:
        return "semi_recent"
    if age <= _DAILY:
        return "daily"
    return "older"


def bucketize(articles: Sequence[A], now: Optional[datetime] = None) -> Dict[str, List[A]]:
    now = now or _utcnow()
    buckets: Dict[str, List[A]] = {name: [] for name in BUCKET_ORDER}
    for article in articles:
        buckets[bucket_for(article.published_at, now)].append(article)
    return buckets


def _mix_bucket(articles: Sequence[A], max_consecutive: int, stats: MixStats) -> List[A]:
    if len(articles) <= 2:
        return list(articles)

    remaining = list(articles)
    mixed: List[A] = []
    last_subject: Optional[str] = None
    run_length = 0

    while remaining:
        index = 0
        if last_subject is not None and run_length >= max_consecutive:
            index = next(
                (i for i, article in enumerate(remaining) if article.subject != last_subject),
                -1,
            )
            if index < 0:
                index = 0
                stats.forced_placements += 1
                logger.warning(f"Forced to place consecutive '{last_subject}': no other subject available")

        selected = remaining.pop(index)
        mixed.append(selected)

        if selected.subject == last_subject:
            run_length += 1
        else:
            last_subject = selected.subject
            run_length = 1

    return mixed


def mix_with_stats(
    articles: Sequence[A],
    now: Optional[datetime] = None,
    max_consecutive: int = 2,
) -> Tuple[List[A], MixStats]:
    """
    Reorder so no subject appears more than ``max_consecutive`` times in a row.

    Articles are grouped into recency buckets (<=6h, 6-12h, 12-24h, older or
    undated). Within a bucket the input order is kept except where a subject
    would exceed its run; the earliest article of another subject is pulled
    forward instead. Buckets are concatenated newest first.

    Returns:
        (mixed articles, MixStats)
    """
    stats = MixStats()
    limit = max(1, int(max_consecutive))
    buckets = bucketize(articles, now)
    mixed: List[A] = []
    for name in BUCKET_ORDER:
        stats.bucket_sizes[name] = len(buckets[name])
        mixed.extend(_mix_bucket(buckets[name], limit, stats))

    logger.info(
        f"Diversity mixing applied to {len(mixed)} articles "
        f"(buckets: {stats.bucket_sizes}, forced: {stats.forced_placements})"
    )
    return mixed, stats


def mix(articles: Sequence[A], now: Optional[datetime] = None, max_consecutive: int = 2) -> List[A]:
    mixed, _ = mix_with_stats(articles, now=now, max_consecutive=max_consecutive)
    return mixed
