"""
Common utilities and base class for feedback source fetchers.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from dateutil import parser as dateparser

from feedback_insights.config import HTTP_HEADERS, HTTP_TIMEOUT_SECONDS
from feedback_insights.exceptions import SourceUnavailable
from feedback_insights.models import FeedbackItem, FeedbackSource, SourceFetch

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS_CODES = frozenset({403, 429})


def parse_utc_datetime(date_string: Optional[str]) -> Optional[datetime]:
    """
    Parse a date string and convert to UTC datetime.

    Args:
        date_string: Date string in various formats, or None

    Returns:
        UTC datetime object, or None if input is None/empty/unparseable
    """
    if not date_string:
        return None

    try:
        parsed_date = dateparser.parse(date_string)
    except (ValueError, OverflowError):
        return None
    if parsed_date.tzinfo:
        return parsed_date.astimezone(timezone.utc)
    return parsed_date.replace(tzinfo=timezone.utc)


def parse_epoch_seconds(value: Any) -> Optional[datetime]:
    """Convert a Unix timestamp (seconds) into a UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def clean_text(text: Optional[str]) -> str:
    """
    Clean and normalize text content.

    Args:
        text: Raw text string or None

    Returns:
        Cleaned text string, empty string if input is None
    """
    if not text:
        return ""
    return str(text).strip()


class FeedbackFetcher(ABC):
    """Base class for source adapters.

    ``fetch`` never raises: remote failures are logged and turned into an
    empty result so one unavailable source cannot sink a whole batch.
    """

    SOURCE: FeedbackSource
    DEFAULT_LIMIT = 30

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        default_limit: Optional[int] = None,
    ):
        self._client = client
        self.default_limit = default_limit or self.DEFAULT_LIMIT

    @property
    def source(self) -> FeedbackSource:
        return self.SOURCE

    async def fetch(self, limit: Optional[int] = None) -> List[FeedbackItem]:
        """
        Fetch and normalize recently active items.

        Args:
            limit: Maximum number of items to request (defaults per adapter)

        Returns:
            List of FeedbackItem objects, empty if the source is unavailable
        """
        return (await self.fetch_result(limit)).items

    async def fetch_result(self, limit: Optional[int] = None) -> SourceFetch:
        """Fetch items, keeping the ignored error next to the (empty) result."""
        page_size = limit or self.default_limit
        try:
            payload = await self._fetch_payload(page_size)
            items = self._parse_payload(payload)
        except SourceUnavailable as e:
            logger.warning("%s unavailable: %s", self.source.value, e)
            return SourceFetch(source=self.source, error=str(e))
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in RATE_LIMIT_STATUS_CODES:
                logger.warning("%s rate limited (HTTP %s): %s", self.source.value, status, e.response.text[:200])
            else:
                logger.error("%s request failed (HTTP %s): %s", self.source.value, status, e.response.text[:200])
            return SourceFetch(source=self.source, error=f"HTTP {status}")
        except httpx.HTTPError as e:
            logger.error("Error fetching %s feedback: %s", self.source.value, e)
            return SourceFetch(source=self.source, error=str(e) or type(e).__name__)
        except ValueError as e:
            logger.error("Malformed %s payload: %s", self.source.value, e)
            return SourceFetch(source=self.source, error=f"malformed payload: {e}")

        logger.info("Found %d %s items", len(items), self.source.value)
        return SourceFetch(source=self.source, items=items)

    async def _get(self, url: str, params: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        merged_headers = {**HTTP_HEADERS, **(headers or {})}
        if self._client is not None:
            response = await self._client.get(url, params=params, headers=merged_headers)
        else:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
                response = await client.get(url, params=params, headers=merged_headers)
        self._log_rate_limit(response)
        response.raise_for_status()
        return response

    def _log_rate_limit(self, response: httpx.Response) -> None:
        """Log quota headers of every response, failed ones included."""

    @abstractmethod
    async def _fetch_payload(self, limit: int) -> Any:
        """Perform the remote call and return the decoded JSON payload."""

    @abstractmethod
    def _parse_payload(self, payload: Any) -> List[FeedbackItem]:
        """Map the decoded payload onto FeedbackItem objects."""
