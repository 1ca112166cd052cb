"""
Sliding-window peak tracking per metric family.

Each family (CPU, RAM, temperature, network in/out, FPS) keeps its own
window and lock. An insertion prunes points older than `window_ms` before
the new timestamp, then publishes a `FamilyPeak`:

    peak / peak_time_ms   maximum value, first occurrence wins on ties
    average / minimum     over the window
    count                 points in the window
    below_floor           FPS points under the frame-rate floor

`get_current_peak_stats()` assembles the per-family snapshots into one
`PeakSnapshot` without taking any lock.
"""

import threading
from collections import deque
from typing import Callable, Deque, Dict, Optional

import numpy as np

from sysmetrics.analytics.chart_buffer import DEFAULT_FPS_FLOOR, coerce_sample, coerce_timestamp
from sysmetrics.analytics.observable import Subscribers
from sysmetrics.loggers.error_log import get_error_logger
from sysmetrics.schema.series import FamilyPeak, PeakFamily, PeakSnapshot, TimestampedSample

DEFAULT_PEAK_WINDOW_MS = 60_000


class _FamilyWindow:
    def __init__(self):
        self.lock = threading.Lock()
        self.points: Deque[TimestampedSample] = deque()
        self.published: FamilyPeak = FamilyPeak.EMPTY


class PeakTracker:
    """
    Peak/average/min statistics over a sliding window, per family.

    `set_window_duration` changes the window for subsequent insertions;
    points already retained are pruned against the new window on the
    family's next insertion.
    """

    def __init__(self, window_ms: int = DEFAULT_PEAK_WINDOW_MS, fps_floor: int = DEFAULT_FPS_FLOOR):
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")
        self.window_ms = int(window_ms)
        self.fps_floor = int(fps_floor)
        self.logger = get_error_logger("PeakTracker")
        self._families: Dict[PeakFamily, _FamilyWindow] = {f: _FamilyWindow() for f in PeakFamily}
        self._subscribers: Subscribers[PeakSnapshot] = Subscribers("PeakTracker")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_value(
        self, family: PeakFamily, value: float, timestamp_ms: Optional[int] = None
    ) -> None:
        sample = coerce_sample(value, timestamp_ms)
        if sample is None:
            self.logger.debug(f"[SysMetrics] Dropping invalid {family.value} sample")
            return
        ts = sample.timestamp_ms
        window = self._families[family]

        with window.lock:
            window.points.append(sample)
            cutoff = ts - self.window_ms
            while window.points and window.points[0].timestamp_ms < cutoff:
                window.points.popleft()
            window.published = self._summarize(family, window.points, ts)

        if len(self._subscribers):
            self._subscribers.notify(self.get_current_peak_stats())

    def _summarize(self, family: PeakFamily, points, last_ts: int) -> FamilyPeak:
        n = len(points)
        ts = np.fromiter((p.timestamp_ms for p in points), dtype=np.int64, count=n)
        values = np.fromiter((p.value for p in points), dtype=np.float64, count=n)
        # argmax returns the first index of the maximum
        top = int(values.argmax())
        below = int((values < self.fps_floor).sum()) if family is PeakFamily.FPS else 0
        return FamilyPeak(
            peak=float(values[top]),
            peak_time_ms=int(ts[top]),
            average=float(values.mean()),
            minimum=float(values.min()),
            count=n,
            last_time_ms=last_ts,
            below_floor=below,
        )

    def add_cpu_value(self, value: float, timestamp_ms: Optional[int] = None) -> None:
        self.add_value(PeakFamily.CPU, value, timestamp_ms)

    def add_ram_value(self, value_mb: float, timestamp_ms: Optional[int] = None) -> None:
        self.add_value(PeakFamily.RAM, value_mb, timestamp_ms)

    def add_temperature_value(self, value: float, timestamp_ms: Optional[int] = None) -> None:
        self.add_value(PeakFamily.TEMPERATURE, value, timestamp_ms)

    def add_network_values(
        self, ingress_mbps: float, egress_mbps: float, timestamp_ms: Optional[int] = None
    ) -> None:
        ts = coerce_timestamp(timestamp_ms)
        if ts is None:
            self.logger.debug("[SysMetrics] Dropping network values with invalid timestamp")
            return
        self.add_value(PeakFamily.NETWORK_INGRESS, ingress_mbps, ts)
        self.add_value(PeakFamily.NETWORK_EGRESS, egress_mbps, ts)

    def add_fps_value(self, value: float, timestamp_ms: Optional[int] = None) -> None:
        self.add_value(PeakFamily.FPS, value, timestamp_ms)

    def set_window_duration(self, window_ms: int) -> None:
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")
        self.window_ms = int(window_ms)

    def reset(self) -> None:
        for window in self._families.values():
            with window.lock:
                window.points.clear()
                window.published = FamilyPeak.EMPTY
        self._subscribers.notify(PeakSnapshot.EMPTY)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def family_peak(self, family: PeakFamily) -> FamilyPeak:
        return self._families[family].published

    def get_current_peak_stats(self) -> PeakSnapshot:
        peaks = {f.value: self._families[f].published for f in PeakFamily}
        end = max(p.last_time_ms for p in peaks.values())
        if all(p.count == 0 for p in peaks.values()):
            return PeakSnapshot.EMPTY
        return PeakSnapshot(window_start_ms=end - self.window_ms, window_end_ms=end, **peaks)

    def subscribe(self, callback: Callable[[PeakSnapshot], None]) -> Callable[[], None]:
        return self._subscribers.subscribe(callback)
