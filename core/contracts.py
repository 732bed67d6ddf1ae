"""Canonical data contracts for the ingestion and curation pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RunStatusValue(str, Enum):
    """Lifecycle state of an ingestion run."""

    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class Subject(BaseModel):
    """A tracked celebrity whose name is used as the search query."""

    name: str
    active: bool = True
    priority: int = 0
    aliases: List[str] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _non_empty_name(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("subject name is required")
        return text

    def search_terms(self) -> List[str]:
        terms = [self.name]
        for alias in self.aliases:
            alias = str(alias or "").strip()
            if alias and alias not in terms:
                terms.append(alias)
        return terms


class CandidateArticle(BaseModel):
    """Unfiltered search result, tagged with the subject whose query returned it."""

    url: str
    title: str = ""
    description: str = ""
    content: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    source_name: str = ""
    source_domain: str = ""
    author: Optional[str] = None
    subject: str = ""

    @field_validator("title", "description", "source_name", "source_domain", "subject", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("published_at", mode="after")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class ContentScore(BaseModel):
    """Explainable quality score for one article."""

    visual_appeal: float = 0.0
    relevance: float = 0.0
    overall_score: int = 0
    content_type: str = "unknown"
    reasons: List[str] = Field(default_factory=list)


class ScoredArticle(CandidateArticle):
    """Candidate article plus its content score."""

    visual_appeal: float = 0.0
    relevance: float = 0.0
    overall_score: int = 0
    content_type: str = "unknown"
    reasons: List[str] = Field(default_factory=list)

    @classmethod
    def from_candidate(cls, candidate: CandidateArticle, score: ContentScore) -> "ScoredArticle":
        return cls(**candidate.model_dump(), **score.model_dump())


class SubjectFetchResult(BaseModel):
    """Outcome of fetching a single subject."""

    subject: str
    articles: List[CandidateArticle] = Field(default_factory=list)
    succeeded: bool = False
    attempts: int = 0
    rate_limit_remaining: Optional[int] = None
    rate_limit_reset: Optional[datetime] = None
    error: Optional[str] = None


class FetchSummary(BaseModel):
    """Aggregate of one fetch pass over all subjects."""

    articles: List[CandidateArticle] = Field(default_factory=list)
    api_calls_used: int = 0
    errors: List[str] = Field(default_factory=list)
    failed_subjects: List[str] = Field(default_factory=list)
    subjects_attempted: int = 0
    rate_limit_remaining: Optional[int] = None
    rate_limit_reset: Optional[datetime] = None
    cancelled: bool = False


class RunRecord(BaseModel):
    """Audit trail of one ingestion run."""

    run_id: str
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    subjects: List[str] = Field(default_factory=list)
    status: RunStatusValue = RunStatusValue.RUNNING
    articles_processed: int = 0
    new_articles_added: int = 0
    duplicates_found: int = 0
    api_calls_used: int = 0
    duration_ms: int = 0
    errors: List[str] = Field(default_factory=list)
    next_due: Optional[datetime] = None
    rate_limit_remaining: Optional[int] = None
    rate_limit_reset: Optional[datetime] = None


class RunResult(BaseModel):
    """Structured result returned to schedulers and on-demand triggers."""

    success: bool
    status: RunStatusValue = RunStatusValue.FAILED
    run_id: Optional[str] = None
    processed: int = 0
    added: int = 0
    duplicates: int = 0
    errors: List[str] = Field(default_factory=list)
    duration_ms: int = 0
