from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core import CandidateArticle
from curation import bucket_for, bucketize, dedupe, mix, mix_with_stats, sort_by_recency


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _a(label: str, subject: str, hours_ago=None) -> CandidateArticle:
    published = None if hours_ago is None else NOW - timedelta(hours=hours_ago)
    return CandidateArticle(
        url=f"https://news.example/{label}",
        title=label,
        subject=subject,
        published_at=published,
    )


def _labels(articles):
    return [article.title for article in articles]


def test_mix_breaks_runs_longer_than_two() -> None:
    articles = [_a("A1", "A", 1.0), _a("A2", "A", 1.5), _a("A3", "A", 2.0), _a("B1", "B", 2.5)]

    assert _labels(mix(articles, now=NOW)) == ["A1", "A2", "B1", "A3"]


def test_mix_forces_placement_when_one_subject_fills_bucket() -> None:
    articles = [_a(f"A{i}", "A", i) for i in range(1, 5)]

    mixed, stats = mix_with_stats(articles, now=NOW)

    assert _labels(mixed) == ["A1", "A2", "A3", "A4"]
    assert stats.forced_placements == 2


def test_mix_preserves_bucket_membership() -> None:
    articles = [
        _a("old1", "A", 30),
        _a("recent1", "A", 1),
        _a("undated", "B"),
        _a("daily1", "B", 13),
        _a("semi1", "C", 7),
        _a("recent2", "B", 2),
    ]

    mixed, stats = mix_with_stats(articles, now=NOW)

    assert _labels(mixed) == ["recent1", "recent2", "semi1", "daily1", "old1", "undated"]
    assert stats.bucket_sizes == {"recent": 2, "semi_recent": 1, "daily": 1, "older": 2}
    assert stats.forced_placements == 0


def test_small_buckets_and_small_inputs_are_unchanged() -> None:
    pair = [_a("A1", "A", 1), _a("A2", "A", 2)]
    assert _labels(mix(pair, now=NOW)) == ["A1", "A2"]

    articles = [_a("A1", "A", 1), _a("A2", "A", 2), _a("A3", "A", 7), _a("B1", "B", 8)]
    assert _labels(mix(articles, now=NOW)) == ["A1", "A2", "A3", "B1"]


def test_two_articles_are_still_grouped_by_bucket() -> None:
    mixed, stats = mix_with_stats([_a("old", "A", 30), _a("recent", "B", 1)], now=NOW)

    assert _labels(mixed) == ["recent", "old"]
    assert stats.bucket_sizes == {"recent": 1, "semi_recent": 0, "daily": 0, "older": 1}


def test_mix_respects_custom_max_consecutive() -> None:
    articles = [_a("A1", "A", 1), _a("A2", "A", 1), _a("B1", "B", 1), _a("B2", "B", 1)]
    assert _labels(mix(articles, now=NOW, max_consecutive=1)) == ["A1", "B1", "A2", "B2"]


def test_mix_is_deterministic() -> None:
    articles = [_a(f"{s}{i}", s, i * 0.5) for i in range(1, 4) for s in ("A", "B", "C")]
    assert _labels(mix(articles, now=NOW)) == _labels(mix(articles, now=NOW))


def test_bucket_boundaries_are_inclusive_toward_newer() -> None:
    assert bucket_for(NOW + timedelta(minutes=5), NOW) == "recent"
    assert bucket_for(NOW - timedelta(hours=6), NOW) == "recent"
    assert bucket_for(NOW - timedelta(hours=6, seconds=1), NOW) == "semi_recent"
    assert bucket_for(NOW - timedelta(hours=12), NOW) == "semi_recent"
    assert bucket_for(NOW - timedelta(hours=24), NOW) == "daily"
    assert bucket_for(NOW - timedelta(hours=24, seconds=1), NOW) == "older"
    assert bucket_for(None, NOW) == "older"


def test_bucketize_returns_all_four_buckets() -> None:
    buckets = bucketize([_a("A1", "A", 1)], now=NOW)
    assert list(buckets) == ["recent", "semi_recent", "daily", "older"]
    assert _labels(buckets["recent"]) == ["A1"]


def test_dedupe_keeps_first_occurrence() -> None:
    first = CandidateArticle(url="https://news.example/same", title="first", subject="A")
    second = CandidateArticle(url="https://news.example/same", title="second", subject="B")
    other = CandidateArticle(url="https://news.example/other", title="other", subject="A")

    assert _labels(dedupe([first, other, second])) == ["first", "other"]


def test_dedupe_accepts_custom_key() -> None:
    a = CandidateArticle(url="https://x.example/1", title="Same headline")
    b = CandidateArticle(url="https://y.example/2", title="same headline")

    unique = dedupe([a, b], key=lambda article: article.title.lower())

    assert unique == [a]


def test_sort_by_recency_puts_undated_last_and_is_stable() -> None:
    articles = [_a("undated1", "A"), _a("older", "A", 5), _a("tie1", "A", 1), _a("tie2", "B", 1), _a("undated2", "B")]

    assert _labels(sort_by_recency(articles)) == ["tie1", "tie2", "older", "undated1", "undated2"]
