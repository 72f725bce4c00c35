"""
GitHub issues fetcher.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx

from feedback_insights.exceptions import SourceUnavailable
from feedback_insights.models import FeedbackItem, FeedbackSource
from feedback_insights.sources.common import FeedbackFetcher, clean_text, parse_utc_datetime

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description"


def log_rate_limit_headers(response: httpx.Response) -> None:
    reset = response.headers.get("x-ratelimit-reset")
    reset_at = None
    if reset and reset.isdigit():
        reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc).isoformat()
    logger.info(
        "GitHub API rate limit status: remaining=%s limit=%s reset=%s",
        response.headers.get("x-ratelimit-remaining"),
        response.headers.get("x-ratelimit-limit"),
        reset_at,
    )


def _reaction_count(issue: dict) -> int:
    reactions = issue.get("reactions")
    if isinstance(reactions, dict):
        return int(reactions.get("total_count") or 0)
    return 0


class GitHubFetcher(FeedbackFetcher):
    """Fetches recently updated issues from a GitHub repository."""

    SOURCE = FeedbackSource.GITHUB
    BASE_URL = "https://api.github.com"
    DEFAULT_REPO = "MicrosoftDocs/msteams-docs"

    def __init__(
        self,
        repo: str = DEFAULT_REPO,
        token: str = "",
        client: Optional[httpx.AsyncClient] = None,
        default_limit: Optional[int] = None,
    ):
        super().__init__(client=client, default_limit=default_limit)
        self.repo = repo
        self.token = token

    def _log_rate_limit(self, response: httpx.Response) -> None:
        log_rate_limit_headers(response)

    async def _fetch_payload(self, limit: int) -> Any:
        logger.info("Fetching GitHub issues from %s repository", self.repo)

        headers = {
            "Accept": "application/vnd.github.v3+json",
            "If-None-Match": "",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        response = await self._get(
            f"{self.BASE_URL}/repos/{self.repo}/issues",
            params={
                "state": "all",
                "per_page": limit,
                "sort": "updated",
                "direction": "desc",
            },
            headers=headers,
        )
        return response.json()

    def _parse_payload(self, payload: Any) -> List[FeedbackItem]:
        if not isinstance(payload, list):
            raise SourceUnavailable(self.SOURCE.value, "GitHub response is not a list of issues")

        items: List[FeedbackItem] = []
        for issue in payload:
            try:
                items.append(
                    FeedbackItem(
                        title=clean_text(issue.get("title")),
                        body=issue.get("body") or NO_DESCRIPTION,
                        source=self.SOURCE,
                        source_fields={
                            "number": issue.get("number"),
                            "state": issue.get("state"),
                            "url": issue.get("html_url") or "",
                            "created_at": parse_utc_datetime(issue.get("created_at")),
                            "updated_at": parse_utc_datetime(issue.get("updated_at")),
                            "labels": [
                                label.get("name")
                                for label in issue.get("labels") or []
                                if isinstance(label, dict) and label.get("name")
                            ],
                            "comments": int(issue.get("comments") or 0),
                            "reactions": _reaction_count(issue),
                        },
                    )
                )
            except (AttributeError, TypeError, ValueError) as e:
                # Skip malformed entries
                logger.warning("Skipping malformed GitHub issue: %s", e)
                continue

        return items
