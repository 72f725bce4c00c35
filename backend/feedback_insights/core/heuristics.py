"""
Keyword-based feedback analysis.

This module scores sentiment, extracts topics and computes an engagement
score from the item itself, with no remote call. It backs the service when
no AI backend is configured and the "recent insights" view.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from feedback_insights.models import (
    AnalysisDetails,
    AnalysisMetadata,
    AnalysisResult,
    AnalysisType,
    FeedbackAnalysis,
    FeedbackItem,
    FeedbackSource,
    ModelUsed,
)
from feedback_insights.utils import as_number

logger = logging.getLogger(__name__)

POSITIVE_KEYWORDS: Tuple[str, ...] = ("great", "awesome", "good", "thanks", "helpful", "works", "solved", "fixed")
NEGATIVE_KEYWORDS: Tuple[str, ...] = ("bug", "issue", "error", "problem", "fail", "crash", "broken", "not working")

MAX_TOPICS = 5
MAX_TITLE_TOPICS = 3
MAX_SUMMARY_LENGTH = 200
NO_CONTENT_SUMMARY = "No content available"
ERROR_SUMMARY = "Error analyzing content"
UNTITLED = "Untitled"

HEURISTIC_CONFIDENCE = 0.5
SEVERITY_BY_SENTIMENT = {"negative": "high", "neutral": "medium", "positive": "low"}

_TITLE_SPLIT_RE = re.compile(r"[\s-]+")


def count_keywords(text: str, keywords: Tuple[str, ...]) -> int:
    """Number of distinct keywords found in ``text`` (case-insensitive)."""
    lowered = text.lower()
    return sum(1 for word in keywords if word in lowered)


def classify_sentiment(text: str) -> str:
    positive = count_keywords(text, POSITIVE_KEYWORDS)
    negative = count_keywords(text, NEGATIVE_KEYWORDS)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def extract_topics(title: str, explicit_topics: List[str]) -> List[str]:
    """Labels/tags first, then up to three long title words; deduplicated, at most five."""
    title_words = [word for word in _TITLE_SPLIT_RE.split((title or "").lower()) if len(word) > 3]
    topics: List[str] = []
    for topic in [*explicit_topics, *title_words[:MAX_TITLE_TOPICS]]:
        if topic and topic not in topics:
            topics.append(topic)
    return topics[:MAX_TOPICS]


def summarize(text: str) -> str:
    lines = [line for line in text.split("\n") if line.strip()]
    return " ".join(lines[:2])[:MAX_SUMMARY_LENGTH]


def engagement_score(item: FeedbackItem) -> float:
    """
    Popularity signal for ranking.

    Stack Overflow: score*2 + view_count*0.01 + answer_count*3.
    Everything else: comments*2 + reactions. Never negative.
    """
    fields = item.source_fields
    if item.source == FeedbackSource.STACKOVERFLOW:
        raw = (
            as_number(fields.get("score")) * 2
            + as_number(fields.get("view_count")) * 0.01
            + as_number(fields.get("answer_count")) * 3
        )
    else:
        raw = as_number(fields.get("comments")) * 2 + as_number(fields.get("reactions"))
    return max(0.0, raw)


class HeuristicAnalyzer:
    """Deterministic analyzer; never raises."""

    def analyze(self, item: FeedbackItem, source: Optional[FeedbackSource] = None) -> FeedbackAnalysis:
        source = source or item.source
        title = item.title or UNTITLED
        try:
            text = f"{item.title or ''}\n{item.body or ''}"

            if not text.strip():
                return FeedbackAnalysis(
                    source=source.value,
                    title=title,
                    url=item.url,
                    sentiment="neutral",
                    topics=[],
                    summary=NO_CONTENT_SUMMARY,
                    engagement_score=engagement_score(item),
                    created_at=item.created_at,
                )

            return FeedbackAnalysis(
                source=source.value,
                title=title,
                url=item.url,
                sentiment=classify_sentiment(text),
                topics=extract_topics(item.title, item.explicit_topics),
                summary=summarize(text) or NO_CONTENT_SUMMARY,
                engagement_score=engagement_score(item),
                created_at=item.created_at,
            )
        except Exception as e:
            logger.error("Error analyzing feedback item %r: %s", title, e)
            return FeedbackAnalysis(
                source=source.value,
                title=title,
                url="",
                sentiment="neutral",
                topics=[],
                summary=ERROR_SUMMARY,
                engagement_score=0.0,
                created_at=None,
            )

    def to_result(self, item: FeedbackItem, analysis_type: AnalysisType = AnalysisType.GENERAL) -> AnalysisResult:
        """Express the keyword analysis in the same shape the AI analyzer returns."""
        analysis = self.analyze(item)
        return AnalysisResult(
            type=AnalysisType.normalize(analysis_type),
            source=item.source.value,
            confidence=HEURISTIC_CONFIDENCE,
            analysis=AnalysisDetails(
                main_points=[analysis.summary],
                technical_areas=list(analysis.topics),
                severity=SEVERITY_BY_SENTIMENT[analysis.sentiment],
                action_items=[],
                extra={
                    "sentiment": analysis.sentiment,
                    "topics": list(analysis.topics),
                    "summary": analysis.summary,
                    "engagement_score": analysis.engagement_score,
                    "url": analysis.url,
                    "title": analysis.title,
                },
            ),
            metadata=AnalysisMetadata(processing_time_ms=0, model_used=ModelUsed.HEURISTIC),
            created_at=item.created_at,
        )
