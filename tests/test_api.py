"""Tests for the HTTP routes."""

import json

import pytest
from fastapi.testclient import TestClient

from feedback_insights.config import Settings
from feedback_insights.core.aggregator import INVALID_INGEST_SOURCE, Aggregator
from feedback_insights.core.store import ResultStore
from feedback_insights.main import API_PREFIX, create_app, parse_limit
from feedback_insights.models import FeedbackSource
from feedback_insights.services.analyzer import FeedbackAnalyzer

GITHUB = FeedbackSource.GITHUB
STACKOVERFLOW = FeedbackSource.STACKOVERFLOW


@pytest.fixture
def settings():
    return Settings(DEFAULT_ANALYZE_LIMIT=5, ANALYSES_VIEW_LIMIT=10)


@pytest.fixture
def fetchers(make_item, make_fetcher):
    return {
        GITHUB: make_fetcher(
            GITHUB,
            [make_item(title=f"Issue {index}", body="App crashes", hours_ago=index) for index in range(4)],
        ),
        STACKOVERFLOW: make_fetcher(STACKOVERFLOW, []),
    }


@pytest.fixture
def client(settings, fetchers):
    aggregator = Aggregator(fetchers, store=ResultStore(100), view_limit=settings.ANALYSES_VIEW_LIMIT)
    return TestClient(create_app(settings, aggregator=aggregator))


def test_health_and_welcome(client):
    assert client.get("/").json()["message"] == "Welcome to Community Insights API"
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["ai_backend"] is False


def test_analyze_text_requires_text(client):
    response = client.get(f"{API_PREFIX}/analyze/text")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Text parameter is required for analysis"


def test_analyze_text_defaults_invalid_type_to_general(client):
    response = client.get(f"{API_PREFIX}/analyze/text", params={"text": "Tabs fail to load", "type": "urgent"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["type"] == "general"
    assert body["data"]["type"] == "general"
    assert body["data"]["metadata"]["modelUsed"] == "heuristic"


def test_analyze_sources_returns_batch(client):
    response = client.get(f"{API_PREFIX}/analyze", params={"type": "bug", "source": "github", "limit": 2})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["type"] == "bug"
    assert data["source"] == "github"
    assert data["total_items"] == 2
    assert data["github_items"] == 2
    assert data["stackoverflow_items"] == 0
    assert len(data["analysis"]) == 2


def test_analyze_defaults_limit_to_five(client, fetchers):
    response = client.get(f"{API_PREFIX}/analyze")

    assert response.status_code == 200
    assert fetchers[GITHUB].limits == [5]
    assert response.json()["data"]["total_items"] == 4


def test_analyze_without_items_is_404(client):
    response = client.get(f"{API_PREFIX}/analyze", params={"source": "stackoverflow", "limit": 0})

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["data"]["total_items"] == 0
    assert body["data"]["analysis"] == []


def test_analyze_rejects_unknown_source(client):
    response = client.get(f"{API_PREFIX}/analyze", params={"source": "reddit"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_backend_failure_is_500(settings, fetchers, make_backend):
    backend = make_backend([RuntimeError("upstream timeout")])
    aggregator = Aggregator(fetchers, analyzer=FeedbackAnalyzer(backend, retry_delay=0))
    client = TestClient(create_app(settings, aggregator=aggregator))

    response = client.get(f"{API_PREFIX}/analyze", params={"source": "github"})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "upstream timeout"


def test_unparseable_backend_answer_is_500(settings, fetchers, make_backend):
    aggregator = Aggregator(fetchers, analyzer=FeedbackAnalyzer(make_backend(["no json here"]), retry_delay=0))
    client = TestClient(create_app(settings, aggregator=aggregator))

    response = client.post(f"{API_PREFIX}/analyze", json={"feedback": "The bot is broken"})

    assert response.status_code == 500
    assert "parse" in response.json()["message"].lower()


def test_post_analyze_requires_feedback(client):
    response = client.post(f"{API_PREFIX}/analyze", json={"type": "bug"})

    assert response.status_code == 400
    assert response.json()["message"] == "Feedback content is required"


def test_post_analyze_with_ai_backend(settings, fetchers, make_backend):
    answer = json.dumps({"mainPoints": ["SSO loop"], "severity": "high", "impact": "blocking"})
    aggregator = Aggregator(fetchers, analyzer=FeedbackAnalyzer(make_backend([answer]), retry_delay=0))
    client = TestClient(create_app(settings, aggregator=aggregator))

    response = client.post(f"{API_PREFIX}/analyze", json={"feedback": "SSO keeps looping", "type": "bug"})

    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "bug"
    assert body["data"]["analysis"]["mainPoints"] == ["SSO loop"]
    assert body["data"]["analysis"]["impact"] == "blocking"
    assert body["data"]["confidence"] == 0.8
    assert body["data"]["metadata"]["modelUsed"] == "openai"


@pytest.mark.parametrize("feedback_type", [5, ["bug"], {"kind": "bug"}, None, "Bug"])
def test_post_analyze_unrecognised_type_is_general(client, feedback_type):
    response = client.post(f"{API_PREFIX}/analyze", json={"feedback": "app crashes", "type": feedback_type})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["type"] == "general"
    assert body["data"]["type"] == "general"


def test_malformed_body_is_400(client):
    response = client.post(f"{API_PREFIX}/analyze", content="not json", headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_stored_analyses_are_capped(client):
    for index in range(12):
        client.get(f"{API_PREFIX}/analyze/text", params={"text": f"feedback {index}"})

    data = client.get(f"{API_PREFIX}/analyses/view").json()["data"]

    assert data["total"] == 10
    assert data["analyses"][-1]["analysis"]["mainPoints"] == ["User Provided Feedback feedback 11"]


def test_ingest_get_and_post(client):
    response = client.get(f"{API_PREFIX}/ingest", params={"source": "github"})
    assert response.status_code == 200
    assert response.json()["data"]["message"] == "Processed 4 feedback items"

    response = client.post(f"{API_PREFIX}/ingest", json={"source": "stackoverflow"})
    assert response.status_code == 200
    assert response.json()["data"]["data"] == []


@pytest.mark.parametrize("source", ["reddit", None])
def test_ingest_rejects_unknown_source(client, source):
    response = client.post(f"{API_PREFIX}/ingest", json={"source": source})

    assert response.status_code == 400
    assert response.json()["message"] == INVALID_INGEST_SOURCE


def test_recent_insights(client):
    response = client.get(f"{API_PREFIX}/insights/recent", params={"limit": 2})

    data = response.json()["data"]
    assert data["total_items"] == 2
    assert data["analysis"][0]["title"] == "Issue 0"
    assert data["analysis"][0]["sentiment"] == "negative"


@pytest.mark.parametrize("value, expected", [(None, 5), ("0", 5), ("-3", 5), ("abc", 5), ("7", 7)])
def test_parse_limit(value, expected):
    assert parse_limit(value, 5) == expected
