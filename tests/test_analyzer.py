"""Tests for the AI feedback analyzer and its retry policy."""

import asyncio
import json
import time

import httpx
import openai
import pytest

from feedback_insights.exceptions import BackendExhausted, ParseError
from feedback_insights.models import AnalysisType, ModelUsed
from feedback_insights.services.analyzer import FeedbackAnalyzer, parse_analysis
from feedback_insights.services.backends import Completion, CompletionBackend

ANSWER = json.dumps(
    {
        "mainPoints": ["Tab fails to load"],
        "technicalAreas": ["tabs", "authentication"],
        "severity": "high",
        "actionItems": ["Check SSO configuration"],
        "confidence": 0.92,
        "reproSteps": ["Open tab", "Sign in"],
    }
)


def _analyzer(backend, **kwargs):
    kwargs.setdefault("retry_delay", 0)
    return FeedbackAnalyzer(backend, **kwargs)


def test_analyze_parses_backend_answer(make_backend, make_item):
    backend = make_backend([ANSWER])
    item = make_item(title="Tab fails to load", body="SSO popup closes")

    result = asyncio.run(_analyzer(backend).analyze(item, "bug"))

    assert result.type == AnalysisType.BUG
    assert result.source == "github"
    assert result.confidence == pytest.approx(0.92)
    assert result.analysis.main_points == ["Tab fails to load"]
    assert result.analysis.severity == "high"
    assert result.analysis.extra["reproSteps"] == ["Open tab", "Sign in"]
    assert result.metadata.model_used == ModelUsed.OPENAI
    assert result.metadata.prompt_tokens == 12
    assert result.metadata.completion_tokens == 34
    assert result.metadata.processing_time_ms >= 0
    assert result.created_at == item.created_at


def test_invalid_type_uses_general_prompt(make_backend, make_item):
    backend = make_backend([ANSWER])

    result = asyncio.run(_analyzer(backend).analyze(make_item(), "urgent"))

    assert result.type == AnalysisType.GENERAL
    assert "expert feedback analyzer" in backend.messages[0][0]["content"]


def test_missing_fields_get_defaults():
    result = parse_analysis("{}", AnalysisType.GENERAL, "user", ModelUsed.AZURE)

    assert result.confidence == pytest.approx(0.8)
    assert result.analysis.main_points == []
    assert result.analysis.technical_areas == []
    assert result.analysis.severity == "medium"
    assert result.analysis.action_items == []
    assert result.metadata.prompt_tokens == 0
    assert result.metadata.completion_tokens == 0


def test_confidence_is_clamped_and_severity_checked():
    raw = json.dumps({"confidence": 3, "severity": "catastrophic"})
    result = parse_analysis(raw, AnalysisType.GENERAL, "user", ModelUsed.OPENAI)

    assert result.confidence == 1.0
    assert result.analysis.severity == "medium"


def test_fenced_json_is_accepted():
    raw = "```json\n" + ANSWER + "\n```"
    result = parse_analysis(raw, AnalysisType.BUG, "github", ModelUsed.OPENAI)
    assert result.analysis.technical_areas == ["tabs", "authentication"]


def test_serialized_analysis_keeps_extra_fields():
    data = parse_analysis(ANSWER, AnalysisType.BUG, "github", ModelUsed.OPENAI).to_dict()

    assert data["analysis"]["mainPoints"] == ["Tab fails to load"]
    assert data["analysis"]["reproSteps"] == ["Open tab", "Sign in"]
    assert data["metadata"]["modelUsed"] == "openai"


@pytest.mark.parametrize("raw", ["not json at all", "[1, 2, 3]", ""])
def test_non_object_answer_is_parse_error(raw):
    with pytest.raises(ParseError):
        parse_analysis(raw, AnalysisType.GENERAL, "user", ModelUsed.OPENAI)


def test_parse_error_is_not_retried(make_backend, make_item):
    backend = make_backend(["Sorry, I cannot help with that."])

    with pytest.raises(ParseError):
        asyncio.run(_analyzer(backend).analyze(make_item()))

    assert backend.calls == 1


def test_retry_recovers_after_two_failures(make_backend, make_item):
    backend = make_backend([RuntimeError("timeout"), RuntimeError("timeout"), ANSWER])
    delays = []

    async def recording_sleep(seconds):
        delays.append(seconds)
        await asyncio.sleep(seconds)

    analyzer = FeedbackAnalyzer(backend, retry_delay=0.02, sleep=recording_sleep)

    start = time.perf_counter()
    result = asyncio.run(analyzer.analyze(make_item()))
    elapsed = time.perf_counter() - start

    assert result.analysis.main_points == ["Tab fails to load"]
    assert backend.calls == 3
    # attempt * base: 1 x 0.02 after the first failure, 2 x 0.02 after the second
    assert delays == pytest.approx([0.02, 0.04])
    assert elapsed >= sum(delays) * 0.95
    assert result.metadata.processing_time_ms >= 55


def test_retry_gives_up_after_three_attempts(make_backend, make_item):
    errors = [RuntimeError("first"), RuntimeError("second"), RuntimeError("third")]
    backend = make_backend(errors)

    with pytest.raises(BackendExhausted) as excinfo:
        asyncio.run(_analyzer(backend).analyze(make_item()))

    assert backend.calls == 3
    assert excinfo.value.attempts == 3
    assert excinfo.value.__cause__ is errors[-1]
    assert excinfo.value.error == "third"


def test_permanent_api_error_is_not_retried(make_backend, make_item):
    response = httpx.Response(401, request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    backend = make_backend([openai.AuthenticationError("invalid api key", response=response, body=None)])

    with pytest.raises(BackendExhausted) as excinfo:
        asyncio.run(_analyzer(backend).analyze(make_item()))

    assert backend.calls == 1
    assert excinfo.value.attempts == 1


def test_batch_analyze_keeps_input_order(make_backend, make_item):
    def respond(messages):
        title = messages[1]["content"].split("\n\n")[1].split("\n")[0]
        return Completion(text=json.dumps({"mainPoints": [title]}))

    backend = make_backend(respond)
    items = [make_item(title=f"Item {index}", body="details", hours_ago=index) for index in range(5)]

    results = asyncio.run(_analyzer(backend).batch_analyze(items, "general"))

    assert [result.analysis.main_points[0] for result in results] == [f"Item {index}" for index in range(5)]


def test_batch_failure_aborts_whole_batch(make_backend, make_item):
    def respond(messages):
        if "Item 2" in messages[1]["content"]:
            return RuntimeError("backend down")
        return ANSWER

    backend = make_backend(respond)
    items = [make_item(title=f"Item {index}", body="details") for index in range(4)]

    with pytest.raises(BackendExhausted):
        asyncio.run(_analyzer(backend).batch_analyze(items))


class HangingBackend(CompletionBackend):
    """Fails fast for "Broken" items and blocks on every other call until cancelled."""

    model_used = ModelUsed.OPENAI

    def __init__(self):
        self.calls = 0
        self.cancelled = 0

    async def complete(self, messages):
        self.calls += 1
        if "Broken" in messages[1]["content"]:
            raise RuntimeError("backend down")
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return Completion(text=ANSWER)


def test_batch_failure_cancels_running_analyses(make_item):
    backend = HangingBackend()
    items = [make_item(title="Slow item"), make_item(title="Broken item"), make_item(title="Other slow item")]

    start = time.perf_counter()
    with pytest.raises(BackendExhausted):
        asyncio.run(_analyzer(backend).batch_analyze(items))

    assert time.perf_counter() - start < 5
    assert backend.cancelled == 2
    assert backend.calls == 5
