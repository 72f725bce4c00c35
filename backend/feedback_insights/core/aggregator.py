"""
Multi-source feedback aggregation: fetch, analyze, rank, store.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from feedback_insights.core.heuristics import HeuristicAnalyzer
from feedback_insights.core.store import ResultStore
from feedback_insights.exceptions import InputError, NoDataFound
from feedback_insights.models import (
    AnalysisResult,
    AnalysisType,
    BatchResult,
    FeedbackItem,
    FeedbackSource,
    IngestSummary,
    RecentInsights,
    SourceFetch,
)
from feedback_insights.services.analyzer import FeedbackAnalyzer
from feedback_insights.sources.collector import collect_feedback, merge_items
from feedback_insights.sources.common import FeedbackFetcher
from feedback_insights.utils import newest_first, now_utc

logger = logging.getLogger(__name__)

ALL_SOURCES = "all"
USER_FEEDBACK_TITLE = "User Provided Feedback"
INVALID_INGEST_SOURCE = 'Invalid source specified. Use "github" or "stackoverflow"'
DEFAULT_VIEW_LIMIT = 10


class Aggregator:
    """Runs the ingestion-and-analysis pipeline and keeps recent results.

    The AI analyzer is optional: without one every analysis is produced by
    the keyword heuristics.
    """

    def __init__(
        self,
        fetchers: Mapping[FeedbackSource, FeedbackFetcher],
        analyzer: Optional[FeedbackAnalyzer] = None,
        heuristic: Optional[HeuristicAnalyzer] = None,
        store: Optional[ResultStore[AnalysisResult]] = None,
        view_limit: int = DEFAULT_VIEW_LIMIT,
    ):
        self.fetchers = dict(fetchers)
        self.analyzer = analyzer
        self.heuristic = heuristic or HeuristicAnalyzer()
        self.store: ResultStore[AnalysisResult] = store if store is not None else ResultStore()
        self.view_limit = view_limit

    @property
    def uses_ai(self) -> bool:
        return self.analyzer is not None

    def resolve_sources(self, source: Optional[str]) -> List[FeedbackSource]:
        """Map a ``source`` parameter (a source name or "all") onto configured sources."""
        name = (source or ALL_SOURCES).strip().lower()
        if name == ALL_SOURCES:
            return list(self.fetchers)
        for candidate in self.fetchers:
            if candidate.value == name:
                return [candidate]
        valid = ", ".join([*(s.value for s in self.fetchers), ALL_SOURCES])
        raise InputError(f"Invalid source specified. Use one of: {valid}")

    async def _fetch(self, sources: Sequence[FeedbackSource], limit: Optional[int]) -> List[SourceFetch]:
        return await collect_feedback([self.fetchers[source] for source in sources], limit)

    def _count_per_source(self, results: Sequence[SourceFetch]) -> Dict[str, int]:
        counts = {source.value: 0 for source in self.fetchers}
        for result in results:
            counts[result.source.value] = len(result.items)
        return counts

    async def _analyze_items(
        self,
        items: Sequence[FeedbackItem],
        analysis_type: AnalysisType,
        use_heuristic: bool = False,
    ) -> List[AnalysisResult]:
        if use_heuristic or self.analyzer is None:
            return [self.heuristic.to_result(item, analysis_type) for item in items]
        return await self.analyzer.batch_analyze(items, analysis_type)

    async def run(
        self,
        sources: Sequence[FeedbackSource],
        analysis_type: Any = AnalysisType.GENERAL,
        limit: int = 5,
        use_heuristic: bool = False,
    ) -> BatchResult:
        """
        Fetch, analyze and rank feedback from the requested sources.

        Args:
            sources: Sources to fetch from
            analysis_type: Analysis type; unknown values mean "general"
            limit: Per-source fetch size (at least 1) and cap on returned analyses
            use_heuristic: Force keyword analysis even when an AI backend exists

        Returns:
            BatchResult with analyses sorted newest first

        Raises:
            NoDataFound: If no requested source returned an item
            BackendExhausted, ParseError: If AI analysis fails for any item
        """
        analysis_type = AnalysisType.normalize(analysis_type)
        source_label = ALL_SOURCES if len(sources) != 1 else sources[0].value

        logger.info(
            "Fetching feedback for analysis - Type: %s, Source: %s, Limit: %s",
            analysis_type.value,
            source_label,
            limit,
        )
        fetched = await self._fetch(sources, max(1, limit))
        per_source_counts = self._count_per_source(fetched)
        items = merge_items(fetched)

        if not items:
            raise NoDataFound(
                "No feedback found from specified sources",
                data={
                    "type": analysis_type.value,
                    "source": source_label,
                    "total_items": 0,
                    "analysis": [],
                },
            )

        logger.info("Analyzing %d feedback items...", len(items))
        results = await self._analyze_items(items, analysis_type, use_heuristic)
        ranked = newest_first(results, lambda result: result.created_at)[: max(0, limit)]

        self.store.extend(ranked)
        return BatchResult(
            type=analysis_type,
            source=source_label,
            total=len(ranked),
            per_source_counts=per_source_counts,
            analysis=ranked,
        )

    async def analyze_text(
        self,
        text: Optional[str],
        analysis_type: Any = AnalysisType.GENERAL,
        source: FeedbackSource = FeedbackSource.USER,
        title: str = USER_FEEDBACK_TITLE,
    ) -> AnalysisResult:
        """Analyze a single piece of user-submitted feedback and store the result."""
        if not text or not str(text).strip():
            raise InputError("Text parameter is required for analysis")

        analysis_type = AnalysisType.normalize(analysis_type)
        item = FeedbackItem(
            title=title,
            body=str(text),
            source=source,
            source_fields={"created_at": now_utc()},
        )
        result = (await self._analyze_items([item], analysis_type))[0]
        self.store.append(result)
        return result

    async def ingest(self, source: Optional[str]) -> IngestSummary:
        """Fetch raw items from one source without analysing them."""
        name = (source or "").strip().lower()
        fetcher = next((f for s, f in self.fetchers.items() if s.value == name), None)
        if fetcher is None:
            raise InputError(INVALID_INGEST_SOURCE)

        items = await fetcher.fetch()
        if not items:
            logger.info("No feedback to process")
            message = "No feedback data available to process"
        else:
            message = f"Processed {len(items)} feedback items"
        return IngestSummary(processed=True, timestamp=now_utc(), data=items, message=message)

    async def recent_insights(self, limit: int = 5) -> RecentInsights:
        """Keyword analysis of the most recently active items from every source."""
        fetched = await self._fetch(list(self.fetchers), max(1, limit))
        analyses = [self.heuristic.analyze(item) for item in merge_items(fetched)]
        ranked = newest_first(analyses, lambda analysis: analysis.created_at)[: max(0, limit)]
        logger.info("Successfully analyzed %d feedback items", len(ranked))
        return RecentInsights(per_source_counts=self._count_per_source(fetched), analysis=ranked)

    def stored(self, limit: Optional[int] = None) -> List[AnalysisResult]:
        return self.store.snapshot(self.view_limit if limit is None else limit)
