"""
Chart buffers: fixed-capacity, per-metric FIFO series for sparklines.

Memory is bounded by point count. Each push appends one severity-tagged
point, evicts the oldest when full and publishes a fresh immutable
`ChartSeries`. Readers poll `series()` without taking the writer's lock.
"""

import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

import numpy as np

from sysmetrics.analytics.observable import Subscribers
from sysmetrics.loggers.error_log import get_error_logger
from sysmetrics.schema.series import (
    ChartPoint,
    ChartSeries,
    MetricType,
    Severity,
    TimestampedSample,
)

DEFAULT_CAPACITY = 60
DEFAULT_FPS_FLOOR = 30
MIN_NORMALIZE_RANGE = 0.001

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def now_ms() -> int:
    return int(time.time() * 1000)


def coerce_timestamp(timestamp_ms) -> Optional[int]:
    """`timestamp_ms` as an int (now when None), or None when unusable."""
    if timestamp_ms is None:
        return now_ms()
    try:
        ts = int(timestamp_ms)
    except (TypeError, ValueError, OverflowError):
        return None
    # series timestamps are held in int64 arrays
    return ts if _INT64_MIN <= ts <= _INT64_MAX else None


def coerce_sample(value, timestamp_ms=None) -> Optional[TimestampedSample]:
    """
    Validate one incoming sample.

    Returns None for values that are non-numeric, non-finite or too large
    for a float, and for timestamps that are not integral numbers.
    """
    ts = coerce_timestamp(timestamp_ms)
    if ts is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(value):
        return None
    return TimestampedSample(value=value, timestamp_ms=ts)


class ChartBuffer:
    """
    Bounded chart series for one metric.

    Parameters
    ----------
    metric : MetricType
        Metric whose samples this buffer holds. FPS uses the inverted
        severity scale.
    max_size : int
        Maximum number of retained points.
    fps_floor : int
        Frame rate below which an FPS point is tagged HIGH.
    """

    def __init__(
        self,
        metric: MetricType,
        max_size: int = DEFAULT_CAPACITY,
        fps_floor: int = DEFAULT_FPS_FLOOR,
    ):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.metric = metric
        self.max_size = int(max_size)
        self.fps_floor = int(fps_floor)
        self.logger = get_error_logger("ChartBuffer")

        self._lock = threading.Lock()
        self._points: Deque[ChartPoint] = deque(maxlen=self.max_size)
        self._series = ChartSeries.empty(metric, self.max_size)
        self._subscribers: Subscribers[ChartSeries] = Subscribers("ChartBuffer")

    def _severity(self, value: float) -> Severity:
        if self.metric is MetricType.FPS:
            return Severity.from_fps(value, self.fps_floor)
        return Severity.from_value(value)

    def push(self, value: float, timestamp_ms: Optional[int] = None) -> None:
        """Append one point; unusable values or timestamps are dropped."""
        sample = coerce_sample(value, timestamp_ms)
        if sample is None:
            self.logger.debug(f"[SysMetrics] Dropping invalid {self.metric.name} sample")
            return
        point = ChartPoint(
            timestamp_ms=sample.timestamp_ms,
            value=sample.value,
            severity=self._severity(sample.value),
        )

        with self._lock:
            self._points.append(point)
            series = ChartSeries(
                metric=self.metric, points=tuple(self._points), capacity=self.max_size
            )
            self._series = series
        self._subscribers.notify(series)

    # alias used by samplers that think in terms of "adding" samples
    add = push

    def series(self) -> ChartSeries:
        return self._series

    def points(self) -> List[ChartPoint]:
        return list(self._series.points)

    def latest(self) -> Optional[ChartPoint]:
        return self._series.latest

    def size(self) -> int:
        return len(self._series.points)

    def is_empty(self) -> bool:
        return self._series.is_empty

    def min_value(self) -> float:
        return self._series.min_value

    def max_value(self) -> float:
        return self._series.max_value

    def average_value(self) -> float:
        return self._series.avg_value

    def normalized_values(self) -> Optional[List[float]]:
        """
        Values scaled to [0, 1] over the buffer's own range.

        A flat series maps to all zeros; the range is floored at 0.001 so
        it never divides by zero. Returns None when empty.
        """
        points = self._series.points
        if not points:
            return None
        values = np.fromiter((p.value for p in points), dtype=np.float64, count=len(points))
        low = values.min()
        span = max(float(values.max() - low), MIN_NORMALIZE_RANGE)
        return ((values - low) / span).tolist()

    def clear(self) -> None:
        with self._lock:
            self._points.clear()
            series = ChartSeries.empty(self.metric, self.max_size)
            self._series = series
        self._subscribers.notify(series)

    def resize(self, max_size: int) -> None:
        """Change the capacity in place, keeping the newest points."""
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        with self._lock:
            self.max_size = int(max_size)
            self._points = deque(self._points, maxlen=self.max_size)
            series = ChartSeries(
                metric=self.metric, points=tuple(self._points), capacity=self.max_size
            )
            self._series = series
        self._subscribers.notify(series)

    def subscribe(self, callback: Callable[[ChartSeries], None]) -> Callable[[], None]:
        return self._subscribers.subscribe(callback)


class ChartBufferManager:
    """One lazily created `ChartBuffer` per metric."""

    def __init__(self, max_size: int = DEFAULT_CAPACITY, fps_floor: int = DEFAULT_FPS_FLOOR):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = int(max_size)
        self.fps_floor = int(fps_floor)
        self._lock = threading.Lock()
        self._buffers: Dict[MetricType, ChartBuffer] = {}

    def get_buffer(self, metric: MetricType) -> ChartBuffer:
        buf = self._buffers.get(metric)
        if buf is not None:
            return buf
        with self._lock:
            buf = self._buffers.get(metric)
            if buf is None:
                buf = ChartBuffer(metric, self.max_size, self.fps_floor)
                self._buffers[metric] = buf
            return buf

    def push(self, metric: MetricType, value: float, timestamp_ms: Optional[int] = None) -> None:
        self.get_buffer(metric).push(value, timestamp_ms)

    def get_series(self, metric: MetricType) -> ChartSeries:
        buf = self._buffers.get(metric)
        if buf is None:
            return ChartSeries.empty(metric, self.max_size)
        return buf.series()

    def get_normalized_values(self, metric: MetricType) -> Optional[List[float]]:
        buf = self._buffers.get(metric)
        return buf.normalized_values() if buf is not None else None

    def metrics(self) -> List[MetricType]:
        with self._lock:
            return list(self._buffers)

    def clear(self, metric: MetricType) -> None:
        buf = self._buffers.get(metric)
        if buf is not None:
            buf.clear()

    def clear_all(self) -> None:
        with self._lock:
            buffers = list(self._buffers.values())
        for buf in buffers:
            buf.clear()

    def set_capacity(self, max_size: int) -> None:
        """Resize every buffer in place, keeping the newest points."""
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        with self._lock:
            self.max_size = int(max_size)
            buffers = list(self._buffers.values())
        for buf in buffers:
            buf.resize(max_size)
