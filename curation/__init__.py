"""
Curation Module
Scoring, filtering, deduplication and diversity mixing
"""
from .keywords import PORTUGUESE_PROFILE, ContentType, KeywordProfile, ScoringWeights, SourceQuality
from .scoring import ContentScorer, quality_label, should_keep
from .dedup_mix import BUCKET_ORDER, MixStats, bucket_for, bucketize, dedupe, mix, mix_with_stats, sort_by_recency
from .filters import filter_mentions, limit_per_subject, mentions_subject

__all__ = [
    "PORTUGUESE_PROFILE",
    "ContentType",
    "KeywordProfile",
    "ScoringWeights",
    "SourceQuality",
    "ContentScorer",
    "quality_label",
    "should_keep",
    "BUCKET_ORDER",
    "MixStats",
    "bucket_for",
    "bucketize",
    "dedupe",
    "mix",
    "mix_with_stats",
    "sort_by_recency",
    "filter_mentions",
    "limit_per_subject",
    "mentions_subject",
]
