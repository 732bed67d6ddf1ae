"""Core contracts and shared types for the ingestion pipeline."""

from .contracts import (
    CandidateArticle,
    ContentScore,
    FetchSummary,
    RunRecord,
    RunResult,
    RunStatusValue,
    ScoredArticle,
    Subject,
    SubjectFetchResult,
)

__all__ = [
    "CandidateArticle",
    "ContentScore",
    "FetchSummary",
    "RunRecord",
    "RunResult",
    "RunStatusValue",
    "ScoredArticle",
    "Subject",
    "SubjectFetchResult",
]
