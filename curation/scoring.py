"""Explainable content-quality scoring for candidate articles."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Union

from core import CandidateArticle, ContentScore, ScoredArticle
from .keywords import PORTUGUESE_PROFILE, KeywordProfile


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, float(value)))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _matches(text: str, keywords: Sequence[str]) -> List[str]:
    return [keyword for keyword in keywords if keyword in text]


def quality_label(score: Union[int, float]) -> str:
    if score >= 80:
        return "excellent"
    if score >= 65:
        return "good"
    if score >= 50:
        return "fair"
    if score >= 35:
        return "poor"
    return "reject"


def should_keep(scored: Union[ContentScore, ScoredArticle], threshold: Union[int, float]) -> bool:
    """Threshold is caller-supplied: batch ingestion and live search differ."""
    return scored.overall_score >= threshold


class ContentScorer:
    """
    Scores visual/lifestyle appeal and subject centrality from text and source.

    overall = round(0.7 * visual_appeal + 0.3 * relevance), each clamped to
    [0, 100]. Every rule that fires adds a reason.
    """

    def __init__(self, profile: Optional[KeywordProfile] = None):
        self.profile = profile or PORTUGUESE_PROFILE

    @classmethod
    def from_settings(cls, settings) -> "ContentScorer":
        path = settings.scoring.profile_path
        if path:
            return cls(KeywordProfile.from_file(path))
        return cls()

    def score(
        self,
        title: str,
        description: Optional[str] = None,
        source: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> ContentScore:
        """
        Score one article.

        Args:
            title: headline
            description: summary text
            source: source URL or domain, matched against the domain tiers
            subject: subject name; when given, the headline bonus requires it
                to appear in the title
        """
        profile = self.profile
        weights = profile.weights

        title_lower = str(title or "").lower()
        desc_lower = str(description or "").lower()
        full_text = f"{title_lower} {desc_lower}"

        visual = 0.0
        relevance = 0.0
        content_type = "unknown"
        reasons: List[str] = []

        high = _matches(full_text, profile.high_value)
        if high:
            visual += min(len(high) * weights.high_value_per_match, weights.high_value_cap)
            reasons.append(f"High-value content: {', '.join(high)}")

        medium = _matches(full_text, profile.medium_value)
        if medium:
            visual += min(len(medium) * weights.medium_value_per_match, weights.medium_value_cap)
            reasons.append(f"Medium-value content: {', '.join(medium)}")

        low = _matches(full_text, profile.low_value)
        if low:
            visual -= len(low) * weights.low_value_penalty
            reasons.append(f"Low-value content penalty: {', '.join(low)}")

        verbs = _matches(full_text, profile.action_verbs)
        if verbs:
            relevance += weights.action_verb_relevance
            reasons.append(f"Action verbs (main subject): {', '.join(verbs)}")

        photos = _matches(full_text, profile.photo_indicators)
        if photos:
            visual += weights.photo_visual
            relevance += weights.photo_relevance
            reasons.append(f"Visual content indicators: {', '.join(photos)}")
        else:
            visual -= weights.missing_photo_penalty
            reasons.append("No visual content indicators found - major penalty")

        source_lower = str(source or "").lower()
        if source_lower:
            tiers = profile.source_quality
            if any(domain in source_lower for domain in tiers.premium):
                visual += weights.premium_visual
                relevance += weights.premium_relevance
                reasons.append("Premium entertainment source")
            elif any(domain in source_lower for domain in tiers.good):
                visual += weights.good_visual
                relevance += weights.good_relevance
                reasons.append("Good entertainment source")
            elif any(domain in source_lower for domain in tiers.avoid):
                visual += weights.avoid_visual
                relevance += weights.avoid_relevance
                reasons.append("News source penalty (not entertainment)")
            elif any(domain in source_lower for domain in tiers.neutral):
                visual += weights.neutral_visual
                relevance += weights.neutral_relevance

        for kind in profile.content_types:
            if _matches(full_text, kind.keywords):
                content_type = kind.name
                visual += kind.priority * weights.content_type_factor
                reasons.append(f"Content type: {kind.description or kind.name}")
                break

        if len(title_lower.split()) >= weights.headline_min_words:
            subject_lower = str(subject or "").strip().lower()
            if not subject_lower or subject_lower in title_lower:
                relevance += weights.headline_relevance
                reasons.append("Subject-centred headline")

        visual = _clamp(visual)
        relevance = _clamp(relevance)
        overall = _round_half_up(visual * weights.visual_weight + relevance * weights.relevance_weight)

        return ContentScore(
            visual_appeal=visual,
            relevance=relevance,
            overall_score=overall,
            content_type=content_type,
            reasons=reasons,
        )

    def score_article(self, article: CandidateArticle) -> ScoredArticle:
        source = article.url or article.source_domain
        score = self.score(article.title, article.description, source, subject=article.subject or None)
        return ScoredArticle.from_candidate(article, score)
