"""
Stack Overflow (Stack Exchange API) questions fetcher.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import httpx

from feedback_insights.exceptions import SourceUnavailable
from feedback_insights.models import FeedbackItem, FeedbackSource
from feedback_insights.sources.common import FeedbackFetcher, clean_text, parse_epoch_seconds

logger = logging.getLogger(__name__)

DEFAULT_TAGS = ("microsoft-teams", "teams-apps", "teams-development")


class StackOverflowFetcher(FeedbackFetcher):
    """Fetches recently active questions for a tag from Stack Overflow."""

    SOURCE = FeedbackSource.STACKOVERFLOW
    BASE_URL = "https://api.stackexchange.com/2.3/questions"

    def __init__(
        self,
        tags: Sequence[str] = DEFAULT_TAGS,
        api_key: str = "",
        client: Optional[httpx.AsyncClient] = None,
        default_limit: Optional[int] = None,
    ):
        super().__init__(client=client, default_limit=default_limit)
        self.tags = list(tags) or list(DEFAULT_TAGS)
        self.api_key = api_key

    @property
    def primary_tag(self) -> str:
        return self.tags[0]

    async def _fetch_payload(self, limit: int) -> Any:
        logger.info("Fetching Stack Overflow questions tagged %s", self.primary_tag)

        params = {
            "site": "stackoverflow",
            "tagged": self.primary_tag,
            "sort": "activity",
            "order": "desc",
            "pagesize": limit,
            "filter": "withbody",
        }
        if self.api_key:
            params["key"] = self.api_key

        response = await self._get(self.BASE_URL, params=params)
        data = response.json()
        if isinstance(data, dict):
            logger.info(
                "Stack Overflow API response: items=%s quota_remaining=%s has_more=%s",
                len(data.get("items") or []),
                data.get("quota_remaining"),
                data.get("has_more"),
            )
        return data

    def _parse_payload(self, payload: Any) -> List[FeedbackItem]:
        if not isinstance(payload, dict):
            raise SourceUnavailable(self.SOURCE.value, "Stack Overflow response is not an object")

        raw_items = payload.get("items")
        if not isinstance(raw_items, list):
            logger.warning("No items found in Stack Overflow response")
            return []

        items: List[FeedbackItem] = []
        for question in raw_items:
            try:
                items.append(
                    FeedbackItem(
                        title=clean_text(question.get("title")) or "No Title",
                        body=question.get("body") or "",
                        source=self.SOURCE,
                        source_fields={
                            "tags": list(question.get("tags") or []),
                            "link": question.get("link") or "",
                            "score": question.get("score") or 0,
                            "view_count": question.get("view_count") or 0,
                            "answer_count": question.get("answer_count") or 0,
                            "creation_date": parse_epoch_seconds(question.get("creation_date")),
                            "question_id": question.get("question_id"),
                        },
                    )
                )
            except (AttributeError, TypeError, ValueError) as e:
                # Skip malformed entries
                logger.warning("Skipping malformed Stack Overflow question: %s", e)
                continue

        return items
