"""Relevance filters applied before scoring and mixing."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from core import CandidateArticle, Subject
from .dedup_mix import sort_by_recency


logger = logging.getLogger(__name__)

A = TypeVar("A", bound=CandidateArticle)


def mentions_subject(article: CandidateArticle, terms: Optional[Iterable[str]] = None) -> bool:
    """True when the subject name (or one of ``terms``) appears in title or description."""
    if not article.subject:
        return False
    text = f"{article.title} {article.description}".lower()
    candidates = [article.subject] + [str(term or "") for term in (terms or [])]
    return any(term.strip().lower() in text for term in candidates if term.strip())


def filter_mentions(
    articles: Sequence[A],
    subjects: Optional[Mapping[str, Subject]] = None,
) -> List[A]:
    """Keep articles whose subject is actually mentioned, honouring aliases."""
    subjects = subjects or {}
    kept: List[A] = []
    for article in articles:
        subject = subjects.get(article.subject)
        terms = subject.search_terms() if subject else None
        if mentions_subject(article, terms):
            kept.append(article)
        else:
            logger.debug(f"Filtered (subject not mentioned): {article.title} ({article.subject})")
    return kept


def limit_per_subject(articles: Sequence[A], max_per_subject: int = 3) -> List[A]:
    """Keep at most ``max_per_subject`` newest articles for each subject."""
    limit = max(0, int(max_per_subject))
    groups: Dict[str, List[A]] = {}
    for article in articles:
        groups.setdefault(article.subject, []).append(article)

    limited: List[A] = []
    for subject, group in groups.items():
        selected = sort_by_recency(group)[:limit]
        if len(group) > limit:
            logger.debug(f"Limited {subject}: {len(group)} -> {len(selected)} articles")
        limited.extend(selected)
    return limited
