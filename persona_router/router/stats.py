"""In-memory routing counters."""

from __future__ import annotations

from copy import deepcopy
from threading import Lock
from typing import Iterable

from .models import RoutingLevel, RoutingStats


class StatsRecorder:
    """
    Thread-safe counters for routing outcomes.

    Each ``record`` call is one critical section, so a routing is never
    half-counted even when several callers route at once.
    """

    def __init__(self, categories: Iterable[str] = ()) -> None:
        self._lock = Lock()
        self._categories = tuple(categories)
        self._stats = self._fresh()

    def _fresh(self) -> RoutingStats:
        return RoutingStats(by_category={category: 0 for category in self._categories})

    def record(self, level: RoutingLevel, category: str, fallback: bool = False) -> None:
        """Count one routing along the path it actually took."""
        with self._lock:
            self._stats.total_routings += 1
            self._stats.by_level[level.value] = self._stats.by_level.get(level.value, 0) + 1
            self._stats.by_category[category] = self._stats.by_category.get(category, 0) + 1
            if fallback:
                self._stats.fallbacks += 1

    def record_override(self) -> None:
        with self._lock:
            self._stats.user_overrides += 1

    def snapshot(self) -> RoutingStats:
        """Copy of the current counters."""
        with self._lock:
            return deepcopy(self._stats)

    def reset(self) -> None:
        with self._lock:
            self._stats = self._fresh()
