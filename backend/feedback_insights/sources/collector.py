"""
Feedback collection coordinator that fans out to multiple sources.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from feedback_insights.config import Settings
from feedback_insights.models import FeedbackItem, FeedbackSource, SourceFetch
from feedback_insights.sources.common import FeedbackFetcher
from feedback_insights.sources.github import GitHubFetcher
from feedback_insights.sources.stackoverflow import StackOverflowFetcher

logger = logging.getLogger(__name__)


def build_fetchers(settings: Settings) -> Dict[FeedbackSource, FeedbackFetcher]:
    """Create one adapter per external source from configuration."""
    return {
        FeedbackSource.GITHUB: GitHubFetcher(
            repo=settings.GITHUB_REPO,
            token=settings.GITHUB_TOKEN,
            default_limit=settings.DEFAULT_FETCH_LIMIT,
        ),
        FeedbackSource.STACKOVERFLOW: StackOverflowFetcher(
            tags=settings.stackoverflow_tags,
            api_key=settings.STACKOVERFLOW_KEY,
            default_limit=settings.DEFAULT_FETCH_LIMIT,
        ),
    }


async def collect_feedback(fetchers: Iterable[FeedbackFetcher], limit: Optional[int] = None) -> List[SourceFetch]:
    """
    Fetch from every adapter concurrently.

    Args:
        fetchers: Source adapters to query
        limit: Per-source item limit (adapter default when None)

    Returns:
        One SourceFetch per adapter, in the order given. Failed sources come
        back empty with their error recorded.
    """
    fetchers = list(fetchers)
    results = await asyncio.gather(*(fetcher.fetch_result(limit) for fetcher in fetchers))

    for result in results:
        if not result.ok:
            logger.warning("Ignoring %s: %s", result.source.value, result.error)

    return list(results)


def merge_items(results: Iterable[SourceFetch]) -> List[FeedbackItem]:
    """Flatten per-source results, keeping source order."""
    return [item for result in results for item in result.items]
