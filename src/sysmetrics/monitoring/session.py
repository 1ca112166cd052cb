"""
MonitoringSession: the session-scoped state of one monitoring run.

A session owns everything that must not be shared between independent
runs: the counter backend chosen at construction, the CPU baseline, the
network baseline (`ThroughputCalculator`) and the three stateful
analytics components. Samplers feed it raw counter text or typed records;
the session parses, derives and fans each derived value out to the
chart buffers, the time-window calculators and the peak tracker.

Derived metrics
---------------
CPU                 percent of non-idle ticks since the previous sample
RAM                 used memory in MB (total - available)
TEMPERATURE         degrees Celsius
NETWORK_INGRESS/    throughput in Mbps, loopback excluded
NETWORK_EGRESS
FPS                 recorded as reported by the host

The first CPU and network samples only establish baselines; they are
not recorded as zero-valued points.
"""

import threading
from typing import Dict, Iterable, Optional

from sysmetrics.analytics.chart_buffer import ChartBufferManager, coerce_timestamp
from sysmetrics.analytics.peak_tracker import PeakTracker
from sysmetrics.analytics.time_window import TimeWindowManager
from sysmetrics.backends.base import CounterBackend
from sysmetrics.backends.factory import create_counter_backend
from sysmetrics.config import SysMetricsSettings
from sysmetrics.counters.rates import ThroughputCalculator
from sysmetrics.loggers.error_log import get_error_logger
from sysmetrics.schema.counters import (
    CpuCounters,
    InterfaceCounters,
    MemoryCounters,
    NetworkCounters,
    ThroughputSample,
)
from sysmetrics.schema.series import (
    ChartSeries,
    MetricType,
    PeakFamily,
    PeakSnapshot,
    WindowStatistics,
)

PEAK_FAMILIES: Dict[MetricType, PeakFamily] = {
    MetricType.CPU: PeakFamily.CPU,
    MetricType.RAM: PeakFamily.RAM,
    MetricType.TEMPERATURE: PeakFamily.TEMPERATURE,
    MetricType.NETWORK_INGRESS: PeakFamily.NETWORK_INGRESS,
    MetricType.NETWORK_EGRESS: PeakFamily.NETWORK_EGRESS,
    MetricType.FPS: PeakFamily.FPS,
}


class MonitoringSession:
    def __init__(
        self,
        settings: Optional[SysMetricsSettings] = None,
        backend: Optional[CounterBackend] = None,
    ):
        self.settings = (settings or SysMetricsSettings()).validate()
        self.logger = get_error_logger("MonitoringSession")

        # Selected once; never re-checked per sample
        self.backend = backend or create_counter_backend(self.settings)

        self.charts = ChartBufferManager(self.settings.chart_capacity, self.settings.fps_floor)
        self.windows = TimeWindowManager(self.settings.retention_ms)
        self.peaks = PeakTracker(self.settings.peak_window_ms, self.settings.fps_floor)
        self.throughput = ThroughputCalculator(
            self.settings.min_elapsed_sec, rate_fn=self.backend.byte_rates
        )

        self._cpu_lock = threading.Lock()
        self._cpu_baseline = CpuCounters.EMPTY
        self.latest_cpu_percent = 0.0
        self.latest_memory = MemoryCounters.EMPTY
        self.latest_temperature = 0.0

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def record(self, metric: MetricType, value: float, timestamp_ms: Optional[int] = None) -> None:
        """Push one derived value into every component that tracks `metric`."""
        ts = coerce_timestamp(timestamp_ms)
        if ts is None:
            self.logger.debug(f"[SysMetrics] Dropping {metric.name} sample with invalid timestamp")
            return
        self.charts.push(metric, value, ts)
        self.windows.add_sample(metric, value, ts)
        family = PEAK_FAMILIES.get(metric)
        if family is not None:
            self.peaks.add_value(family, value, ts)

    def record_fps(self, fps: float, timestamp_ms: Optional[int] = None) -> None:
        self.record(MetricType.FPS, fps, timestamp_ms)

    # ------------------------------------------------------------------
    # CPU
    # ------------------------------------------------------------------

    def ingest_cpu(self, counters: CpuCounters, timestamp_ms: Optional[int] = None) -> Optional[float]:
        """
        Compare `counters` with the stored baseline and record CPU usage.

        Returns the usage percent, or None when `counters` only set the
        baseline or is the empty (unparsable) record.
        """
        if counters.is_empty():
            return None
        with self._cpu_lock:
            previous = self._cpu_baseline
            self._cpu_baseline = counters
        if previous.is_empty():
            return None

        usage = self.backend.cpu_usage_percent(previous, counters)
        self.latest_cpu_percent = usage
        self.record(MetricType.CPU, usage, timestamp_ms)
        return usage

    def ingest_cpu_line(self, text: str, timestamp_ms: Optional[int] = None) -> Optional[float]:
        return self.ingest_cpu(self.backend.parse_cpu_line(text), timestamp_ms)

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    def ingest_memory(self, memory: MemoryCounters, timestamp_ms: Optional[int] = None) -> MemoryCounters:
        self.latest_memory = memory
        if memory.total_kb > 0:
            self.record(MetricType.RAM, memory.used_mb, timestamp_ms)
        return memory

    def ingest_meminfo(self, text: str, timestamp_ms: Optional[int] = None) -> MemoryCounters:
        return self.ingest_memory(self.backend.parse_meminfo(text), timestamp_ms)

    # ------------------------------------------------------------------
    # Temperature
    # ------------------------------------------------------------------

    def ingest_temperature_celsius(self, celsius: float, timestamp_ms: Optional[int] = None) -> float:
        self.latest_temperature = celsius
        # 0.0 is what an unreadable zone parses to
        if celsius != 0.0:
            self.record(MetricType.TEMPERATURE, celsius, timestamp_ms)
        return celsius

    def ingest_temperature(self, text: str, timestamp_ms: Optional[int] = None) -> float:
        return self.ingest_temperature_celsius(self.backend.parse_temperature(text), timestamp_ms)

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------

    def ingest_network(self, counters: NetworkCounters) -> ThroughputSample:
        # A read that found no interfaces must not become the baseline
        if not counters.interfaces:
            return self.throughput.latest
        had_baseline = self.throughput.has_baseline
        sample = self.throughput.update(counters)
        if had_baseline:
            ts = counters.timestamp_ms
            self.record(MetricType.NETWORK_INGRESS, sample.ingress_mbps, ts)
            self.record(MetricType.NETWORK_EGRESS, sample.egress_mbps, ts)
        return sample

    def ingest_interfaces(
        self, interfaces: Iterable[InterfaceCounters], timestamp_ms: Optional[int] = None
    ) -> ThroughputSample:
        ts = coerce_timestamp(timestamp_ms)
        if ts is None:
            return self.throughput.latest
        return self.ingest_network(NetworkCounters.from_interfaces(interfaces, ts))

    def ingest_net_dev(self, text: str, timestamp_ms: Optional[int] = None) -> ThroughputSample:
        ts = coerce_timestamp(timestamp_ms)
        if ts is None:
            return self.throughput.latest
        return self.ingest_network(self.backend.network_counters(text, ts))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def latest_throughput(self) -> ThroughputSample:
        return self.throughput.latest

    def chart_series(self, metric: MetricType) -> ChartSeries:
        return self.charts.get_series(metric)

    def window_stats(self, metric: MetricType) -> WindowStatistics:
        return self.windows.get_stats(metric)

    def peak_snapshot(self) -> PeakSnapshot:
        return self.peaks.get_current_peak_stats()

    def reset(self) -> None:
        """Forget every baseline and clear all series; components are kept."""
        with self._cpu_lock:
            self._cpu_baseline = CpuCounters.EMPTY
        self.throughput.reset()
        self.charts.clear_all()
        self.windows.clear_all()
        self.peaks.reset()
        self.latest_cpu_percent = 0.0
        self.latest_memory = MemoryCounters.EMPTY
        self.latest_temperature = 0.0
