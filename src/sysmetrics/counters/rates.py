"""
Rate calculations over consecutive counter records.

Every function is stateless: the caller owns the previous sample. The one
exception is `ThroughputCalculator`, a small session-scoped holder for the
network baseline, owned by a MonitoringSession rather than the module.

Edge cases
----------
- No baseline (empty previous record): 0
- Identical samples or counter reset (total delta <= 0): 0
- Negative byte delta: 0 for that direction, current becomes the baseline
- Back-to-back calls: elapsed time is floored to `min_elapsed_sec`
"""

import math
import threading
from typing import Callable, Tuple

from sysmetrics.schema.counters import CpuCounters, NetworkCounters, ThroughputSample

BITS_PER_BYTE = 8
BITS_PER_MEGABIT = 1_048_576
DEFAULT_MIN_ELAPSED_SEC = 0.1


def clamp(value: float, low: float, high: float) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def cpu_usage_percent(previous: CpuCounters, current: CpuCounters) -> float:
    """
    Percentage of non-idle ticks between two CPU samples, in [0, 100].

        usage = 100 * (total_delta - idle_delta) / total_delta
    """
    if previous.is_empty():
        return 0.0
    return usage_from_deltas(current.total() - previous.total(), current.idle - previous.idle)


def usage_from_deltas(total_delta: int, idle_delta: int) -> float:
    """Non-idle share of `total_delta` as a percent; 0 when undefined."""
    if total_delta <= 0:
        return 0.0
    try:
        # integer numerator keeps the division exact for large counters
        return clamp(100 * (total_delta - idle_delta) / total_delta, 0.0, 100.0)
    except OverflowError:
        return 0.0


def rate_per_second(
    byte_delta: float,
    elapsed_seconds: float,
    min_elapsed_sec: float = DEFAULT_MIN_ELAPSED_SEC,
) -> float:
    """Bytes per second, 0 for negative, non-finite or unrepresentable deltas."""
    try:
        if not math.isfinite(byte_delta) or byte_delta < 0:
            return 0.0
        if not math.isfinite(elapsed_seconds) or elapsed_seconds < min_elapsed_sec:
            elapsed_seconds = min_elapsed_sec
        return byte_delta / elapsed_seconds
    except OverflowError:
        return 0.0


def bytes_per_second_to_mbps(bytes_per_second: float) -> float:
    return bytes_per_second * BITS_PER_BYTE / BITS_PER_MEGABIT


def mbps_to_bytes_per_second(mbps: float) -> float:
    return mbps * BITS_PER_MEGABIT / BITS_PER_BYTE


def byte_rates(
    previous: NetworkCounters,
    current: NetworkCounters,
    min_elapsed_sec: float = DEFAULT_MIN_ELAPSED_SEC,
) -> Tuple[float, float]:
    """
    Return `(ingress, egress)` bytes per second between two snapshots.

    A direction whose counter went backwards reports 0.
    """
    if previous.is_empty():
        return 0.0, 0.0
    elapsed = (current.timestamp_ms - previous.timestamp_ms) / 1000.0
    rx_delta = current.total_rx_bytes - previous.total_rx_bytes
    tx_delta = current.total_tx_bytes - previous.total_tx_bytes
    return (
        rate_per_second(rx_delta, elapsed, min_elapsed_sec),
        rate_per_second(tx_delta, elapsed, min_elapsed_sec),
    )


def network_throughput(
    previous: NetworkCounters,
    current: NetworkCounters,
    min_elapsed_sec: float = DEFAULT_MIN_ELAPSED_SEC,
) -> ThroughputSample:
    """Throughput between two snapshots, without session accounting."""
    ingress, egress = byte_rates(previous, current, min_elapsed_sec)
    return ThroughputSample(
        ingress_bytes_per_sec=ingress,
        egress_bytes_per_sec=egress,
        ingress_mbps=bytes_per_second_to_mbps(ingress),
        egress_mbps=bytes_per_second_to_mbps(egress),
        total_ingress_bytes=current.total_rx_bytes,
        total_egress_bytes=current.total_tx_bytes,
        timestamp_ms=current.timestamp_ms,
        available=True,
    )


ByteRateFn = Callable[[NetworkCounters, NetworkCounters, float], Tuple[float, float]]


class ThroughputCalculator:
    """
    Session-scoped network baseline.

    The first snapshot becomes the baseline and yields zero rates. Every
    later snapshot is compared with the previous one, then becomes the new
    baseline, so a counter regression costs exactly one zero sample.
    Session totals only accumulate non-negative deltas.
    """

    def __init__(
        self,
        min_elapsed_sec: float = DEFAULT_MIN_ELAPSED_SEC,
        rate_fn: ByteRateFn = byte_rates,
    ):
        self.min_elapsed_sec = float(min_elapsed_sec)
        self._rate_fn = rate_fn
        self._lock = threading.Lock()
        self._previous = NetworkCounters.EMPTY
        self._session_rx = 0
        self._session_tx = 0
        self._latest = ThroughputSample.EMPTY

    @property
    def latest(self) -> ThroughputSample:
        return self._latest

    @property
    def has_baseline(self) -> bool:
        return not self._previous.is_empty()

    def update(self, current: NetworkCounters) -> ThroughputSample:
        with self._lock:
            previous = self._previous

            if previous.is_empty():
                ingress = egress = 0.0
            else:
                # the baseline only advances once the rates are computed
                ingress, egress = self._rate_fn(previous, current, self.min_elapsed_sec)
                self._session_rx += max(0, current.total_rx_bytes - previous.total_rx_bytes)
                self._session_tx += max(0, current.total_tx_bytes - previous.total_tx_bytes)
            self._previous = current

            sample = ThroughputSample(
                ingress_bytes_per_sec=ingress,
                egress_bytes_per_sec=egress,
                ingress_mbps=bytes_per_second_to_mbps(ingress),
                egress_mbps=bytes_per_second_to_mbps(egress),
                total_ingress_bytes=current.total_rx_bytes,
                total_egress_bytes=current.total_tx_bytes,
                session_ingress_bytes=self._session_rx,
                session_egress_bytes=self._session_tx,
                timestamp_ms=current.timestamp_ms,
                available=True,
            )
            self._latest = sample
            return sample

    def reset(self) -> None:
        with self._lock:
            self._previous = NetworkCounters.EMPTY
            self._session_rx = 0
            self._session_tx = 0
            self._latest = ThroughputSample.EMPTY
