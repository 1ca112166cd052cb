import time
from typing import List

import psutil

from sysmetrics.loggers.error_log import get_error_logger
from sysmetrics.monitoring.session import MonitoringSession
from sysmetrics.schema.counters import CpuCounters, InterfaceCounters, MemoryCounters

from .base_sampler import BaseSampler

# psutil reports CPU times in seconds; /proc/stat counts USER_HZ ticks
TICKS_PER_SECOND = 100


class PsutilSampler(BaseSampler):
    """
    Sampler that builds the same typed counter records from psutil, for
    hosts where /proc is not available or not readable.

    psutil values are converted to the procfs units (ticks, kB, bytes) so
    the session's rate math is identical for both samplers.
    """

    def __init__(self, session: MonitoringSession) -> None:
        super().__init__(session=session, sampler_name="PsutilSampler")
        self.logger = get_error_logger(self.sampler_name)
        self.has_sensors = hasattr(psutil, "sensors_temperatures")

    def _cpu_counters(self) -> CpuCounters:
        try:
            times = psutil.cpu_times()
        except Exception as e:
            self.logger.error(f"[SysMetrics] WARNING: psutil.cpu_times failed: {e}")
            return CpuCounters.EMPTY

        def ticks(field: str) -> int:
            return int(getattr(times, field, 0.0) * TICKS_PER_SECOND)

        return CpuCounters(
            user=ticks("user"),
            nice=ticks("nice"),
            system=ticks("system"),
            idle=ticks("idle"),
            iowait=ticks("iowait"),
            irq=ticks("irq"),
            softirq=ticks("softirq"),
        )

    def _memory_counters(self) -> MemoryCounters:
        try:
            mem = psutil.virtual_memory()
        except Exception as e:
            self.logger.error(f"[SysMetrics] WARNING: psutil.virtual_memory failed: {e}")
            return MemoryCounters.EMPTY

        def kb(field: str) -> int:
            return int(getattr(mem, field, 0)) // 1024

        return MemoryCounters(
            total_kb=kb("total"),
            free_kb=kb("free"),
            available_kb=kb("available"),
            buffers_kb=kb("buffers"),
            cached_kb=kb("cached"),
        )

    def _interfaces(self, ts: int) -> List[InterfaceCounters]:
        try:
            per_nic = psutil.net_io_counters(pernic=True)
        except Exception as e:
            self.logger.error(f"[SysMetrics] WARNING: psutil.net_io_counters failed: {e}")
            return []

        return [
            InterfaceCounters(
                name=name,
                rx_bytes=c.bytes_recv,
                tx_bytes=c.bytes_sent,
                rx_packets=c.packets_recv,
                tx_packets=c.packets_sent,
                rx_errors=c.errin,
                tx_errors=c.errout,
                rx_dropped=c.dropin,
                tx_dropped=c.dropout,
                timestamp_ms=ts,
            )
            for name, c in (per_nic or {}).items()
        ]

    def _temperature(self) -> float:
        if not self.has_sensors:
            return 0.0
        try:
            sensors = psutil.sensors_temperatures()
        except Exception as e:
            self.logger.error(f"[SysMetrics] WARNING: psutil.sensors_temperatures failed: {e}")
            return 0.0
        for readings in (sensors or {}).values():
            if readings:
                return float(readings[0].current)
        return 0.0

    def sample(self):
        """Sample CPU, memory, network and temperature once and feed the session."""
        ts = int(time.time() * 1000)
        try:
            self.session.ingest_cpu(self._cpu_counters(), ts)
            self.session.ingest_memory(self._memory_counters(), ts)
            self.session.ingest_interfaces(self._interfaces(ts), ts)
            self.session.ingest_temperature_celsius(self._temperature(), ts)
        except Exception as e:
            self.logger.error(f"[SysMetrics] psutil sampling error: {e}")
