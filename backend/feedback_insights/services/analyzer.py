"""
AI-powered feedback analysis with a bounded retry policy.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import openai
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from feedback_insights.core.prompts import build_messages
from feedback_insights.exceptions import BackendExhausted, ParseError
from feedback_insights.models import (
    DEFAULT_CONFIDENCE,
    DEFAULT_SEVERITY,
    SEVERITIES,
    AnalysisDetails,
    AnalysisMetadata,
    AnalysisResult,
    AnalysisType,
    FeedbackItem,
    ModelUsed,
)
from feedback_insights.services.backends import Completion, CompletionBackend
from feedback_insights.utils import clamp_to_unit_range

logger = logging.getLogger(__name__)

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds, multiplied by the attempt number

# Errors a retry cannot fix: bad request or credentials.
PERMANENT_ERRORS = (
    openai.BadRequestError,
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    openai.NotFoundError,
)

CORE_FIELDS = ("mainPoints", "technicalAreas", "severity", "actionItems")

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def _strip_code_fence(text: str) -> str:
    text = (text or "").strip()
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(entry) for entry in value if entry is not None]
    if isinstance(value, str) and value.strip():
        return [value]
    return []


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    return clamp_to_unit_range(float(value))


def _severity(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in SEVERITIES:
        return value.strip().lower()
    return DEFAULT_SEVERITY


def parse_analysis(
    raw: str,
    analysis_type: AnalysisType,
    source: str,
    model_used: ModelUsed,
    completion: Optional[Completion] = None,
    processing_time_ms: int = 0,
    created_at: Optional[datetime] = None,
) -> AnalysisResult:
    """
    Build an AnalysisResult from the backend's JSON answer.

    Missing core fields get defaults; any other key the backend returns is
    kept in ``analysis.extra``.

    Raises:
        ParseError: If ``raw`` is not a JSON object
    """
    try:
        parsed = json.loads(_strip_code_fence(raw))
    except (TypeError, ValueError) as e:
        raise ParseError(f"Failed to parse analysis response: {e}", raw=raw) from e
    if not isinstance(parsed, dict):
        raise ParseError("Failed to parse analysis response: expected a JSON object", raw=raw)

    return AnalysisResult(
        type=analysis_type,
        source=source,
        confidence=_confidence(parsed.get("confidence")),
        analysis=AnalysisDetails(
            main_points=_as_str_list(parsed.get("mainPoints")),
            technical_areas=_as_str_list(parsed.get("technicalAreas")),
            severity=_severity(parsed.get("severity")),
            action_items=_as_str_list(parsed.get("actionItems")),
            extra={key: value for key, value in parsed.items() if key not in CORE_FIELDS},
        ),
        metadata=AnalysisMetadata(
            processing_time_ms=max(0, processing_time_ms),
            model_used=model_used,
            prompt_tokens=completion.prompt_tokens if completion else 0,
            completion_tokens=completion.completion_tokens if completion else 0,
        ),
        created_at=created_at,
    )


class FeedbackAnalyzer:
    """Analyzes feedback items with the configured chat-completion backend."""

    def __init__(
        self,
        backend: CompletionBackend,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.backend = backend
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = max(0.0, retry_delay)
        self._sleep = sleep

    @property
    def model_used(self) -> ModelUsed:
        return self.backend.model_used

    async def _complete_with_retry(self, messages) -> Completion:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(PERMANENT_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

        attempts = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    completion = await self.backend.complete(messages)
        except Exception as e:
            logger.error("AI backend %s failed after %d attempt(s): %s", self.model_used.value, attempts, e)
            raise BackendExhausted(attempts, e) from e

        return completion

    async def analyze(
        self,
        item: FeedbackItem,
        analysis_type: Any = AnalysisType.GENERAL,
    ) -> AnalysisResult:
        """
        Analyze one feedback item.

        Args:
            item: Normalized feedback item
            analysis_type: Analysis type; unknown values mean "general"

        Returns:
            AnalysisResult for the item

        Raises:
            BackendExhausted: If every attempt against the backend failed
            ParseError: If the backend's answer is not a JSON object
        """
        analysis_type = AnalysisType.normalize(analysis_type)
        messages = build_messages(item, analysis_type)

        start_time = time.perf_counter()
        completion = await self._complete_with_retry(messages)
        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        return parse_analysis(
            completion.text,
            analysis_type=analysis_type,
            source=item.source.value,
            model_used=self.model_used,
            completion=completion,
            processing_time_ms=elapsed_ms,
            created_at=item.created_at,
        )

    async def batch_analyze(
        self,
        items: Sequence[FeedbackItem],
        analysis_type: Any = AnalysisType.GENERAL,
    ) -> List[AnalysisResult]:
        """Analyze all items concurrently; results follow input order.

        The first failure aborts the batch and cancels the analyses still running.
        """
        tasks = [asyncio.ensure_future(self.analyze(item, analysis_type)) for item in items]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
