"""
Exceptions raised by the feedback ingestion and analysis pipeline.

Each request-level error carries the HTTP status the API layer answers with.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class InsightsError(Exception):
    """Base exception for the feedback insights service."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class ConfigurationError(InsightsError):
    """Raised when credentials or settings are inconsistent."""


class InputError(InsightsError):
    """Missing or invalid request parameter."""

    status_code = 400


class SourceUnavailable(InsightsError):
    """A source adapter's remote call failed.

    Adapters catch this themselves; it never reaches an API caller.
    """

    def __init__(self, source: str, message: str):
        super().__init__(message)
        self.source = source


class NoDataFound(InsightsError):
    """None of the requested sources returned any item."""

    status_code = 404

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.data = data or {}


class ParseError(InsightsError):
    """The AI backend answered with something that is not a JSON object."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message, error=message)
        self.raw = raw


class BackendExhausted(InsightsError):
    """The AI backend kept failing until the retry budget ran out."""

    def __init__(self, attempts: int, cause: BaseException):
        super().__init__(
            f"AI backend failed after {attempts} attempts",
            error=str(cause) or type(cause).__name__,
        )
        self.attempts = attempts


__all__ = [
    "InsightsError",
    "ConfigurationError",
    "InputError",
    "SourceUnavailable",
    "NoDataFound",
    "ParseError",
    "BackendExhausted",
]
