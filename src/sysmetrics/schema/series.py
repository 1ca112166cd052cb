"""
Derived time-series schema for SysMetrics.

This module defines the structures published by the stateful analytics
components:
- ChartSeries       (ChartBuffer)
- WindowStatistics  (TimeWindowCalculator)
- PeakSnapshot      (PeakTracker)

Every published object is immutable. Components replace the published
instance on each write, so readers holding a reference never observe a
partially updated value.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class MetricType(Enum):
    """Metrics tracked by chart buffers and time-window calculators."""

    CPU = ("CPU", "%")
    RAM = ("RAM", "MB")
    TEMPERATURE = ("Temperature", "°C")
    NETWORK_INGRESS = ("Network ↓", "Mbps")
    NETWORK_EGRESS = ("Network ↑", "Mbps")
    FPS = ("FPS", "fps")
    BATTERY = ("Battery", "%")

    def __init__(self, display_name: str, unit: str):
        self.display_name = display_name
        self.unit = unit


class PeakFamily(Enum):
    """Metric families tracked by the peak tracker."""

    CPU = "cpu"
    RAM = "ram"
    TEMPERATURE = "temperature"
    NETWORK_INGRESS = "network_ingress"
    NETWORK_EGRESS = "network_egress"
    FPS = "fps"


class Severity(Enum):
    """Coarse classification of a sample, used for colour cues."""

    LOW = "green"
    MEDIUM = "yellow"
    HIGH = "red"

    @property
    def color_name(self) -> str:
        return self.value

    @staticmethod
    def from_value(value: float) -> "Severity":
        """0-50 normal, 50-80 warning, 80+ critical."""
        if value < 50.0:
            return Severity.LOW
        if value < 80.0:
            return Severity.MEDIUM
        return Severity.HIGH

    @staticmethod
    def from_fps(fps: float, floor: int = 30) -> "Severity":
        """
        Inverted scale: high frame rates are good.

        55+ smooth, 45-54 acceptable, anything at or above `floor` is still
        acceptable, below `floor` is lag.
        """
        if fps >= 55:
            return Severity.LOW
        if fps >= 45:
            return Severity.MEDIUM
        if fps >= floor:
            return Severity.MEDIUM
        return Severity.HIGH


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimestampedSample:
    """A single value observed at `timestamp_ms` (wall-clock milliseconds)."""

    value: float
    timestamp_ms: int

    def to_wire(self) -> List[Any]:
        return [self.value, self.timestamp_ms]

    @staticmethod
    def from_wire(data: List[Any]) -> "TimestampedSample":
        return TimestampedSample(value=data[0], timestamp_ms=data[1])


@dataclass(frozen=True)
class ChartPoint:
    """One rendered point of a chart series, tagged with its severity."""

    timestamp_ms: int
    value: float
    severity: Severity = Severity.LOW

    def to_wire(self) -> List[Any]:
        return [self.timestamp_ms, self.value, self.severity.name]

    @staticmethod
    def from_wire(data: List[Any]) -> "ChartPoint":
        return ChartPoint(
            timestamp_ms=data[0], value=data[1], severity=Severity[data[2]]
        )


# ---------------------------------------------------------------------------
# Chart series
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChartSeries:
    """
    Capacity-bounded, chronologically ordered points of one metric.

    `points` is a tuple so a published series can be shared freely
    between threads.
    """

    metric: MetricType
    points: Tuple[ChartPoint, ...] = ()
    capacity: int = 60

    @staticmethod
    def empty(metric: MetricType, capacity: int = 60) -> "ChartSeries":
        return ChartSeries(metric=metric, points=(), capacity=capacity)

    @property
    def is_empty(self) -> bool:
        return not self.points

    @property
    def latest(self) -> Optional[ChartPoint]:
        return self.points[-1] if self.points else None

    @property
    def latest_value(self) -> float:
        return self.points[-1].value if self.points else 0.0

    @property
    def min_value(self) -> float:
        return min((p.value for p in self.points), default=0.0)

    @property
    def max_value(self) -> float:
        return max((p.value for p in self.points), default=0.0)

    @property
    def avg_value(self) -> float:
        if not self.points:
            return 0.0
        return sum(p.value for p in self.points) / len(self.points)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "metric": self.metric.name,
            "capacity": self.capacity,
            "points": [p.to_wire() for p in self.points],
        }

    @staticmethod
    def from_wire(data: Dict[str, Any]) -> "ChartSeries":
        return ChartSeries(
            metric=MetricType[data["metric"]],
            points=tuple(ChartPoint.from_wire(p) for p in data.get("points", [])),
            capacity=data.get("capacity", 60),
        )


# ---------------------------------------------------------------------------
# Window statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WindowStatistics:
    """
    Rolling statistics of one metric, recomputed on every sample.

    Semantics
    ---------
    avg_30s / avg_1m / avg_5m : mean of points with ts >= now - window
    min / max                 : over all retained points
    p95 / p99                 : nearest-rank percentile over the last minute
    timestamp_ms              : timestamp of the sample that produced this
    """

    metric: MetricType
    current: float = 0.0
    avg_30s: float = 0.0
    avg_1m: float = 0.0
    avg_5m: float = 0.0
    min: float = 0.0
    max: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    timestamp_ms: int = 0

    @staticmethod
    def empty(metric: MetricType) -> "WindowStatistics":
        return WindowStatistics(metric=metric)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "metric": self.metric.name,
            "current": self.current,
            "avg_30s": self.avg_30s,
            "avg_1m": self.avg_1m,
            "avg_5m": self.avg_5m,
            "min": self.min,
            "max": self.max,
            "p95": self.p95,
            "p99": self.p99,
            "ts": self.timestamp_ms,
        }

    @staticmethod
    def from_wire(data: Dict[str, Any]) -> "WindowStatistics":
        return WindowStatistics(
            metric=MetricType[data["metric"]],
            current=data["current"],
            avg_30s=data["avg_30s"],
            avg_1m=data["avg_1m"],
            avg_5m=data["avg_5m"],
            min=data["min"],
            max=data["max"],
            p95=data["p95"],
            p99=data["p99"],
            timestamp_ms=data["ts"],
        )


# ---------------------------------------------------------------------------
# Peak snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FamilyPeak:
    """
    Peak statistics of one family over the tracker's sliding window.

    `below_floor` counts samples under the frame-rate floor and is only
    populated for the FPS family.
    """

    peak: float = 0.0
    peak_time_ms: int = 0
    average: float = 0.0
    minimum: float = 0.0
    count: int = 0
    last_time_ms: int = 0
    below_floor: int = 0

    EMPTY: ClassVar["FamilyPeak"]

    def to_wire(self) -> List[Any]:
        return [
            self.peak,
            self.peak_time_ms,
            self.average,
            self.minimum,
            self.count,
            self.last_time_ms,
            self.below_floor,
        ]

    @staticmethod
    def from_wire(data: List[Any]) -> "FamilyPeak":
        return FamilyPeak(*data[:7])


FamilyPeak.EMPTY = FamilyPeak()


@dataclass(frozen=True)
class PeakSnapshot:
    """
    Combined peak view of all families.

    The window bounds describe the window ending at the most recent
    insertion across all families. Both are 0 when nothing is tracked.
    """

    cpu: FamilyPeak = FamilyPeak.EMPTY
    ram: FamilyPeak = FamilyPeak.EMPTY
    temperature: FamilyPeak = FamilyPeak.EMPTY
    network_ingress: FamilyPeak = FamilyPeak.EMPTY
    network_egress: FamilyPeak = FamilyPeak.EMPTY
    fps: FamilyPeak = FamilyPeak.EMPTY
    window_start_ms: int = 0
    window_end_ms: int = 0

    EMPTY: ClassVar["PeakSnapshot"]

    def family(self, family: PeakFamily) -> FamilyPeak:
        return getattr(self, family.value)

    @property
    def frame_drops(self) -> int:
        return self.fps.below_floor

    @property
    def is_empty(self) -> bool:
        return all(self.family(f).count == 0 for f in PeakFamily)

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {f.value: self.family(f).to_wire() for f in PeakFamily}
        wire["window"] = [self.window_start_ms, self.window_end_ms]
        return wire

    @staticmethod
    def from_wire(data: Dict[str, Any]) -> "PeakSnapshot":
        start, end = data.get("window", [0, 0])
        families = {
            f.value: FamilyPeak.from_wire(data[f.value])
            for f in PeakFamily
            if f.value in data
        }
        return PeakSnapshot(window_start_ms=start, window_end_ms=end, **families)


PeakSnapshot.EMPTY = PeakSnapshot()
