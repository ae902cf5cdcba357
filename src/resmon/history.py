"""Bounded rolling history for sparkline metrics."""

import threading
from collections import deque
from collections.abc import Iterable

from resmon.models import Metric

HISTORY_SIZE = 30


class HistoryStore:
    """
    One fixed-size FIFO window per metric.

    A single lock covers both ``append`` and ``normalize`` so a reader never
    sees a window that is half way through an update.
    """

    def __init__(
        self,
        metrics: Iterable[Metric] = tuple(Metric),
        capacity: int = HISTORY_SIZE,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._lock = threading.Lock()
        self._windows: dict[Metric, deque[float]] = {
            metric: deque(maxlen=capacity) for metric in metrics
        }

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def metrics(self) -> tuple[Metric, ...]:
        return tuple(self._windows)

    def append(self, metric: Metric, value: float) -> None:
        """Add a value to the end of a window, evicting the oldest when full."""
        with self._lock:
            self._windows[metric].append(value)

    def values(self, metric: Metric) -> list[float]:
        """Copy of a window, oldest first."""
        with self._lock:
            return list(self._windows[metric])

    def normalize(self, metric: Metric) -> list[float]:
        """
        Rescale a window to 0-100 relative to its current maximum.

        An empty window, or one whose maximum is not positive, normalizes
        to all zeros.
        """
        with self._lock:
            window = list(self._windows[metric])
        peak = max(window, default=0.0)
        if peak <= 0:
            return [0.0] * len(window)
        return [min(100.0, max(0.0, value / peak * 100.0)) for value in window]
