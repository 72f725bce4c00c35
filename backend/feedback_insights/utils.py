"""
Shared utility functions for the feedback insights service.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def now_utc() -> datetime:
    """
    Get current UTC datetime with timezone information.

    Returns:
        Current UTC datetime
    """
    return datetime.now(timezone.utc)


def clamp_to_unit_range(value: float) -> float:
    """
    Clamp a float value to the range [0.0, 1.0].

    Args:
        value: Input float value

    Returns:
        Value clamped to [0.0, 1.0] range
    """
    return max(0.0, min(1.0, value))


def as_number(value: Any, default: float = 0.0) -> float:
    """Coerce a loosely typed numeric field, treating missing/garbage as ``default``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def newest_first(items: Iterable[T], created_at: Callable[[T], Optional[datetime]]) -> List[T]:
    """
    Sort items by creation timestamp, newest first.

    Items without a timestamp go last; the sort is stable so ties keep
    their incoming order.
    """
    return sorted(items, key=lambda item: created_at(item) or _OLDEST, reverse=True)
