"""
Main FastAPI application and routing layer.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from feedback_insights.config import Settings, settings as default_settings
from feedback_insights.core.aggregator import Aggregator
from feedback_insights.core.store import ResultStore
from feedback_insights.exceptions import InputError, InsightsError, NoDataFound
from feedback_insights.models import AnalysisType
from feedback_insights.schemas import AnalyzeRequest, ApiResponse, IngestRequest
from feedback_insights.services.analyzer import FeedbackAnalyzer
from feedback_insights.services.backends import create_backend
from feedback_insights.sources.collector import build_fetchers
from feedback_insights.utils import now_utc

logger = logging.getLogger(__name__)

API_PREFIX = "/api/feedback"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )


def build_aggregator(settings: Settings) -> Aggregator:
    """
    Wire adapters, the AI backend (if any) and the result store together.

    Args:
        settings: Application settings

    Returns:
        Aggregator ready to serve requests
    """
    backend = create_backend(settings)
    analyzer = None
    if backend is not None:
        analyzer = FeedbackAnalyzer(
            backend,
            retry_attempts=settings.RETRY_ATTEMPTS,
            retry_delay=settings.retry_delay_seconds,
        )

    return Aggregator(
        fetchers=build_fetchers(settings),
        analyzer=analyzer,
        store=ResultStore(settings.RESULT_STORE_SIZE),
        view_limit=settings.ANALYSES_VIEW_LIMIT,
    )


def parse_limit(value: Optional[str], default: int) -> int:
    """Lenient limit parsing: missing, non-numeric or non-positive values use the default."""
    try:
        limit = int(value) if value is not None else 0
    except (TypeError, ValueError):
        return default
    return limit if limit > 0 else default


def get_aggregator(request: Request) -> Aggregator:
    return request.app.state.aggregator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def failure(message: str, status_code: int, error: Optional[str] = None, data=None) -> JSONResponse:
    body = ApiResponse(success=False, message=message, error=error, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


router = APIRouter(prefix=API_PREFIX)


@router.get("/analyses/view", response_model=ApiResponse, response_model_exclude_none=True)
async def view_stored_analyses(aggregator: Aggregator = Depends(get_aggregator)):
    """Return the most recent stored analyses."""
    analyses = aggregator.stored()
    return ApiResponse(
        success=True,
        message="Stored analyses retrieved successfully",
        data={
            "total": len(analyses),
            "analyses": [analysis.to_dict() for analysis in analyses],
        },
    )


@router.get("/analyze/text", response_model=ApiResponse, response_model_exclude_none=True)
async def analyze_text(
    text: Optional[str] = Query(None, description="Feedback text to analyze"),
    type: Optional[str] = Query("general", description="bug, feature, sentiment or general"),
    aggregator: Aggregator = Depends(get_aggregator),
):
    """Analyze a single piece of feedback passed as a query parameter."""
    feedback_type = AnalysisType.normalize(type)
    analysis = await aggregator.analyze_text(text, feedback_type)
    return ApiResponse(
        success=True,
        message="Feedback analyzed successfully",
        type=feedback_type.value,
        data=analysis.to_dict(),
    )


@router.get("/analyze", response_model=ApiResponse, response_model_exclude_none=True)
async def analyze_sources(
    type: Optional[str] = Query("general", description="bug, feature, sentiment or general"),
    source: Optional[str] = Query("all", description="github, stackoverflow or all"),
    limit: Optional[str] = Query(None, description="Items per source and maximum analyses returned"),
    aggregator: Aggregator = Depends(get_aggregator),
    settings: Settings = Depends(get_settings),
):
    """Fetch feedback from the requested sources and analyze it."""
    feedback_type = AnalysisType.normalize(type)
    sources = aggregator.resolve_sources(source)
    batch = await aggregator.run(
        sources,
        feedback_type,
        limit=parse_limit(limit, settings.DEFAULT_ANALYZE_LIMIT),
    )
    return ApiResponse(success=True, message="Feedback analyzed successfully", data=batch.to_dict())


@router.post("/analyze", response_model=ApiResponse, response_model_exclude_none=True)
async def analyze_feedback(body: AnalyzeRequest, aggregator: Aggregator = Depends(get_aggregator)):
    """Analyze a single piece of feedback posted as JSON."""
    if not body.feedback:
        raise InputError("Feedback content is required")

    feedback_type = AnalysisType.normalize(body.type)
    analysis = await aggregator.analyze_text(body.feedback, feedback_type)
    return ApiResponse(
        success=True,
        message="Feedback analyzed successfully",
        type=feedback_type.value,
        data=analysis.to_dict(),
    )


@router.get("/ingest", response_model=ApiResponse, response_model_exclude_none=True)
async def ingest_feedback(
    source: Optional[str] = Query(None, description="github or stackoverflow"),
    aggregator: Aggregator = Depends(get_aggregator),
):
    """Ingest raw feedback from one source without analysing it."""
    summary = await aggregator.ingest(source)
    return ApiResponse(
        success=True,
        message="Feedback ingested and processed successfully",
        data=summary.to_dict(),
    )


@router.post("/ingest", response_model=ApiResponse, response_model_exclude_none=True)
async def ingest_feedback_post(body: IngestRequest, aggregator: Aggregator = Depends(get_aggregator)):
    summary = await aggregator.ingest(body.source)
    return ApiResponse(
        success=True,
        message="Feedback ingested and processed successfully",
        data=summary.to_dict(),
    )


@router.get("/insights/recent", response_model=ApiResponse, response_model_exclude_none=True)
async def recent_insights(
    limit: Optional[str] = Query(None, description="Maximum number of analyses returned"),
    aggregator: Aggregator = Depends(get_aggregator),
    settings: Settings = Depends(get_settings),
):
    """Keyword analysis of the most recently active feedback, no AI backend involved."""
    insights = await aggregator.recent_insights(parse_limit(limit, settings.DEFAULT_ANALYZE_LIMIT))
    return ApiResponse(success=True, message="Recent feedback analyzed successfully", data=insights.to_dict())


def create_app(settings: Settings = default_settings, aggregator: Optional[Aggregator] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings
        aggregator: Pre-built pipeline (tests inject one); built from settings when None

    Returns:
        Configured FastAPI application
    """
    configure_logging(settings)

    app = FastAPI(
        title="Community Insights API",
        version="0.1.0",
        description="API for ingesting and analyzing developer feedback from GitHub and Stack Overflow",
    )
    app.state.settings = settings
    app.state.aggregator = aggregator or build_aggregator(settings)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NoDataFound)
    async def handle_no_data(request: Request, exc: NoDataFound):
        logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
        return failure(exc.message, exc.status_code, data=exc.data)

    @app.exception_handler(InsightsError)
    async def handle_insights_error(request: Request, exc: InsightsError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.error)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return failure(exc.message, exc.status_code, error=exc.error)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return failure("Invalid request", 400, error=str(exc.errors()))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return failure("Internal server error", 500, error=str(exc))

    @app.get("/")
    async def welcome():
        return {"message": "Welcome to Community Insights API"}

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "as_of": now_utc().isoformat(),
            "service": "community-insights-api",
            "ai_backend": app.state.aggregator.uses_ai,
        }

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    # For development
    import uvicorn
    uvicorn.run("feedback_insights.main:app", host="0.0.0.0", port=default_settings.PORT, reload=True)
