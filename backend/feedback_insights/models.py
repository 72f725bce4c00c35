"""
File: feedback_insights/models.py
Internal data structures used during ingestion/analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


JsonDict = Dict[str, Any]

SEVERITIES = ("high", "medium", "low")
DEFAULT_SEVERITY = "medium"
DEFAULT_CONFIDENCE = 0.8


class FeedbackSource(str, Enum):
    GITHUB = "github"
    STACKOVERFLOW = "stackoverflow"
    USER = "user"
    TEAMS = "teams"


class AnalysisType(str, Enum):
    BUG = "bug"
    FEATURE = "feature"
    SENTIMENT = "sentiment"
    GENERAL = "general"

    @classmethod
    def normalize(cls, value: Any) -> "AnalysisType":
        """Map any input onto an analysis type; unknown values become GENERAL."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        return cls.GENERAL


class ModelUsed(str, Enum):
    AZURE = "azure"
    OPENAI = "openai"
    HEURISTIC = "heuristic"


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class FeedbackItem:
    """Canonical feedback item produced by a source adapter.

    ``source_fields`` carries source-specific attributes (issue number, labels,
    tags, score...) used for display and engagement scoring only.
    """

    title: str
    body: str
    source: FeedbackSource
    source_fields: JsonDict = field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.source_fields.get("url") or self.source_fields.get("link") or ""

    @property
    def created_at(self) -> Optional[datetime]:
        value = self.source_fields.get("created_at") or self.source_fields.get("creation_date")
        return value if isinstance(value, datetime) else None

    @property
    def explicit_topics(self) -> List[str]:
        if self.source == FeedbackSource.STACKOVERFLOW:
            return list(self.source_fields.get("tags") or [])
        return list(self.source_fields.get("labels") or [])

    def to_dict(self) -> JsonDict:
        data: JsonDict = {
            "title": self.title,
            "body": self.body,
            "source": self.source.value,
        }
        data.update({key: _iso(value) for key, value in self.source_fields.items()})
        return data


@dataclass(frozen=True)
class AnalysisDetails:
    """Typed core of an analysis plus the backend fields we do not model."""

    main_points: List[str] = field(default_factory=list)
    technical_areas: List[str] = field(default_factory=list)
    severity: str = DEFAULT_SEVERITY
    action_items: List[str] = field(default_factory=list)
    extra: JsonDict = field(default_factory=dict)

    def to_dict(self) -> JsonDict:
        data = dict(self.extra)
        data.update(
            {
                "mainPoints": list(self.main_points),
                "technicalAreas": list(self.technical_areas),
                "severity": self.severity,
                "actionItems": list(self.action_items),
            }
        )
        return data


@dataclass(frozen=True)
class AnalysisMetadata:
    processing_time_ms: int
    model_used: ModelUsed
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def to_dict(self) -> JsonDict:
        return {
            "processingTime": self.processing_time_ms,
            "modelUsed": self.model_used.value,
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
        }


@dataclass(frozen=True)
class AnalysisResult:
    type: AnalysisType
    source: str
    confidence: float
    analysis: AnalysisDetails
    metadata: AnalysisMetadata
    created_at: Optional[datetime] = None

    def to_dict(self) -> JsonDict:
        return {
            "type": self.type.value,
            "source": self.source,
            "confidence": self.confidence,
            "analysis": self.analysis.to_dict(),
            "metadata": self.metadata.to_dict(),
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class FeedbackAnalysis:
    """Keyword-based analysis of one item, computed without any remote call."""

    source: str
    title: str
    url: str
    sentiment: str  # "positive" | "negative" | "neutral"
    topics: List[str]
    summary: str
    engagement_score: float
    created_at: Optional[datetime] = None

    def to_dict(self) -> JsonDict:
        return {
            "source": self.source,
            "title": self.title,
            "url": self.url,
            "sentiment": self.sentiment,
            "topics": list(self.topics),
            "summary": self.summary,
            "engagement_score": self.engagement_score,
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class SourceFetch:
    """Outcome of one adapter call. A failed fetch has no items and an error."""

    source: FeedbackSource
    items: List[FeedbackItem] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    type: AnalysisType
    source: str
    total: int
    per_source_counts: Dict[str, int]
    analysis: List[AnalysisResult]

    def to_dict(self) -> JsonDict:
        data: JsonDict = {
            "type": self.type.value,
            "source": self.source,
            "total_items": self.total,
        }
        for name, count in self.per_source_counts.items():
            data[f"{name}_items"] = count
        data["analysis"] = [result.to_dict() for result in self.analysis]
        return data


@dataclass
class IngestSummary:
    processed: bool
    timestamp: datetime
    data: List[FeedbackItem]
    message: str

    def to_dict(self) -> JsonDict:
        return {
            "processed": self.processed,
            "timestamp": self.timestamp.isoformat(),
            "data": [item.to_dict() for item in self.data],
            "message": self.message,
        }


@dataclass
class RecentInsights:
    """Keyword analyses of the most recently active items across sources."""

    per_source_counts: Dict[str, int]
    analysis: List[FeedbackAnalysis]

    def to_dict(self) -> JsonDict:
        data: JsonDict = {"total_items": len(self.analysis)}
        for name, count in self.per_source_counts.items():
            data[f"{name}_items"] = count
        data["analysis"] = [entry.to_dict() for entry in self.analysis]
        return data


__all__ = [
    "JsonDict",
    "SEVERITIES",
    "DEFAULT_SEVERITY",
    "DEFAULT_CONFIDENCE",
    "FeedbackSource",
    "AnalysisType",
    "ModelUsed",
    "FeedbackItem",
    "AnalysisDetails",
    "AnalysisMetadata",
    "AnalysisResult",
    "FeedbackAnalysis",
    "SourceFetch",
    "BatchResult",
    "IngestSummary",
    "RecentInsights",
]
