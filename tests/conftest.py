"""Shared fixtures: feedback items, stub sources and a stub AI backend."""

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import pytest

from feedback_insights.exceptions import SourceUnavailable
from feedback_insights.models import FeedbackItem, FeedbackSource, ModelUsed
from feedback_insights.services.backends import Completion, CompletionBackend
from feedback_insights.sources.common import FeedbackFetcher

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class StubFetcher(FeedbackFetcher):
    """Serves canned items, or fails like an unavailable remote source."""

    def __init__(self, source: FeedbackSource, items: Optional[List[FeedbackItem]] = None, fail: bool = False):
        super().__init__()
        self.SOURCE = source
        self.items = list(items or [])
        self.fail = fail
        self.limits: List[int] = []

    async def _fetch_payload(self, limit: int) -> Any:
        self.limits.append(limit)
        if self.fail:
            raise SourceUnavailable(self.SOURCE.value, "connection refused")
        return self.items[:limit]

    def _parse_payload(self, payload: Any) -> List[FeedbackItem]:
        return list(payload)


class StubBackend(CompletionBackend):
    """Answers from a list of canned responses; exceptions in the list are raised."""

    def __init__(self, responses, model_used: ModelUsed = ModelUsed.OPENAI):
        self.responses = responses
        self.model_used = model_used
        self.calls = 0
        self.messages: List[list] = []

    async def complete(self, messages):
        self.calls += 1
        self.messages.append(messages)
        if callable(self.responses):
            response = self.responses(messages)
        else:
            response = self.responses[min(self.calls, len(self.responses)) - 1]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, Completion):
            return response
        return Completion(text=response, prompt_tokens=12, completion_tokens=34)


@pytest.fixture
def make_item():
    def _make(
        title: str = "Sample feedback",
        body: str = "",
        source: FeedbackSource = FeedbackSource.GITHUB,
        hours_ago: Optional[float] = 0,
        **fields,
    ) -> FeedbackItem:
        if hours_ago is not None:
            key = "creation_date" if source == FeedbackSource.STACKOVERFLOW else "created_at"
            fields.setdefault(key, BASE_TIME - timedelta(hours=hours_ago))
        return FeedbackItem(title=title, body=body, source=source, source_fields=fields)

    return _make


@pytest.fixture
def make_fetcher():
    return StubFetcher


@pytest.fixture
def make_backend():
    return StubBackend
