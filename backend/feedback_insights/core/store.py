"""
Bounded in-memory buffer of recent analysis results.
"""
from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Generic, Iterable, List, TypeVar

T = TypeVar("T")

DEFAULT_CAPACITY = 100


class ResultStore(Generic[T]):
    """Keeps the most recent ``capacity`` results; the oldest are evicted first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("ResultStore capacity must be at least 1")
        self.capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, result: T) -> None:
        with self._lock:
            self._items.append(result)

    def extend(self, results: Iterable[T]) -> None:
        with self._lock:
            self._items.extend(results)

    def snapshot(self, limit: int | None = None) -> List[T]:
        """Copy of the last ``limit`` results (all retained results when None), oldest first."""
        with self._lock:
            items = list(self._items)
        if limit is None:
            return items
        if limit <= 0:
            return []
        return items[-limit:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
