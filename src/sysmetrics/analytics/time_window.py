"""
Rolling time-window statistics.

Each calculator keeps an age-bounded history of one metric and, on every
sample, recomputes a `WindowStatistics` snapshot:

    avg_30s / avg_1m / avg_5m   mean of points with ts >= now - window
    min / max                   over every retained point
    p95 / p99                   nearest rank over the last minute

Notes
-----
The history is bounded by `max_duration_ms`, so at a one-second cadence a
calculator holds a few hundred points. Statistics are recomputed from
scratch with numpy on each sample rather than maintained incrementally;
the cost is a handful of vector passes over that small array.
"""

import math
import threading
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

import numpy as np

from sysmetrics.analytics.chart_buffer import coerce_sample, coerce_timestamp
from sysmetrics.analytics.observable import Subscribers
from sysmetrics.loggers.error_log import get_error_logger
from sysmetrics.schema.series import MetricType, TimestampedSample, WindowStatistics

WINDOW_30S_MS = 30_000
WINDOW_1M_MS = 60_000
WINDOW_5M_MS = 300_000
PERCENTILE_WINDOW_MS = WINDOW_1M_MS
DEFAULT_MAX_DURATION_MS = WINDOW_5M_MS


def nearest_rank(sorted_values: np.ndarray, percentile: float) -> float:
    """
    Nearest-rank percentile of an ascending array.

        index = ceil(n * p / 100) - 1, clamped to [0, n - 1]

    An empty array yields 0.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = math.ceil(n * percentile / 100.0) - 1
    index = min(max(index, 0), n - 1)
    return float(sorted_values[index])


class TimeWindowCalculator:
    """Age-bounded history and rolling statistics for one metric."""

    def __init__(self, metric: MetricType, max_duration_ms: int = DEFAULT_MAX_DURATION_MS):
        if max_duration_ms <= 0:
            raise ValueError(f"max_duration_ms must be positive, got {max_duration_ms}")
        self.metric = metric
        self.max_duration_ms = int(max_duration_ms)
        self.logger = get_error_logger("TimeWindowCalculator")

        self._lock = threading.Lock()
        self._points: Deque[TimestampedSample] = deque()
        self._stats = WindowStatistics.empty(metric)
        self._subscribers: Subscribers[WindowStatistics] = Subscribers("TimeWindowCalculator")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_sample(self, value: float, timestamp_ms: Optional[int] = None) -> None:
        sample = coerce_sample(value, timestamp_ms)
        if sample is None:
            self.logger.debug(f"[SysMetrics] Dropping invalid {self.metric.name} sample")
            return
        now = sample.timestamp_ms

        with self._lock:
            self._points.append(sample)
            cutoff = now - self.max_duration_ms
            while self._points and self._points[0].timestamp_ms < cutoff:
                self._points.popleft()
            stats = self._compute(sample.value, now)
            self._stats = stats
        self._subscribers.notify(stats)

    def clear(self) -> None:
        with self._lock:
            self._points.clear()
            stats = WindowStatistics.empty(self.metric)
            self._stats = stats
        self._subscribers.notify(stats)

    def _arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        n = len(self._points)
        ts = np.fromiter((p.timestamp_ms for p in self._points), dtype=np.int64, count=n)
        values = np.fromiter((p.value for p in self._points), dtype=np.float64, count=n)
        return ts, values

    def _compute(self, current: float, now: int) -> WindowStatistics:
        ts, values = self._arrays()

        def mean_since(window_ms: int) -> float:
            selected = values[ts >= now - window_ms]
            return float(selected.mean()) if selected.size else 0.0

        recent = np.sort(values[ts >= now - PERCENTILE_WINDOW_MS])
        return WindowStatistics(
            metric=self.metric,
            current=current,
            avg_30s=mean_since(WINDOW_30S_MS),
            avg_1m=mean_since(WINDOW_1M_MS),
            avg_5m=mean_since(WINDOW_5M_MS),
            min=float(values.min()) if values.size else 0.0,
            max=float(values.max()) if values.size else 0.0,
            p95=nearest_rank(recent, 95),
            p99=nearest_rank(recent, 99),
            timestamp_ms=now,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def stats(self) -> WindowStatistics:
        return self._stats

    def _window(self, window_ms: int, now: Optional[int]) -> np.ndarray:
        now = coerce_timestamp(now)
        if now is None:
            return np.empty(0, dtype=np.float64)
        with self._lock:
            ts, values = self._arrays()
        return values[ts >= now - window_ms]

    def values_in_window(self, window_ms: int, now: Optional[int] = None) -> List[float]:
        return self._window(window_ms, now).tolist()

    def average(self, window_ms: int, now: Optional[int] = None) -> float:
        selected = self._window(window_ms, now)
        return float(selected.mean()) if selected.size else 0.0

    def minimum(self, window_ms: int, now: Optional[int] = None) -> float:
        selected = self._window(window_ms, now)
        return float(selected.min()) if selected.size else 0.0

    def maximum(self, window_ms: int, now: Optional[int] = None) -> float:
        selected = self._window(window_ms, now)
        return float(selected.max()) if selected.size else 0.0

    def percentile(
        self, percentile: float, window_ms: int, now: Optional[int] = None
    ) -> float:
        return nearest_rank(np.sort(self._window(window_ms, now)), percentile)

    def sample_count(self) -> int:
        with self._lock:
            return len(self._points)

    def subscribe(
        self, callback: Callable[[WindowStatistics], None]
    ) -> Callable[[], None]:
        return self._subscribers.subscribe(callback)


class TimeWindowManager:
    """One lazily created `TimeWindowCalculator` per metric."""

    def __init__(self, max_duration_ms: int = DEFAULT_MAX_DURATION_MS):
        if max_duration_ms <= 0:
            raise ValueError(f"max_duration_ms must be positive, got {max_duration_ms}")
        self.max_duration_ms = int(max_duration_ms)
        self._lock = threading.Lock()
        self._calculators: Dict[MetricType, TimeWindowCalculator] = {}

    def get_calculator(self, metric: MetricType) -> TimeWindowCalculator:
        calc = self._calculators.get(metric)
        if calc is not None:
            return calc
        with self._lock:
            calc = self._calculators.get(metric)
            if calc is None:
                calc = TimeWindowCalculator(metric, self.max_duration_ms)
                self._calculators[metric] = calc
            return calc

    def add_sample(
        self, metric: MetricType, value: float, timestamp_ms: Optional[int] = None
    ) -> None:
        self.get_calculator(metric).add_sample(value, timestamp_ms)

    def get_stats(self, metric: MetricType) -> WindowStatistics:
        calc = self._calculators.get(metric)
        if calc is None:
            return WindowStatistics.empty(metric)
        return calc.stats()

    def metrics(self) -> List[MetricType]:
        with self._lock:
            return list(self._calculators)

    def clear_all(self) -> None:
        with self._lock:
            calculators = list(self._calculators.values())
        for calc in calculators:
            calc.clear()
