from typing import List, Tuple

from sysmetrics.backends.base import CounterBackend
from sysmetrics.counters import parser, rates
from sysmetrics.schema.counters import (
    CpuCounters,
    InterfaceCounters,
    MemoryCounters,
    NetworkCounters,
)


class FallbackCounterBackend(CounterBackend):
    """Pure-Python backend. Always available."""

    name = "python"

    def parse_cpu_line(self, text: str) -> CpuCounters:
        return parser.parse_cpu_line(text)

    def parse_meminfo(self, text: str) -> MemoryCounters:
        return parser.parse_meminfo(text)

    def parse_temperature(self, text: str) -> float:
        return parser.parse_temperature(text)

    def parse_net_dev(self, text: str, timestamp_ms: int) -> List[InterfaceCounters]:
        return parser.parse_net_dev(text, timestamp_ms)

    def cpu_usage_percent(self, previous: CpuCounters, current: CpuCounters) -> float:
        return rates.cpu_usage_percent(previous, current)

    def byte_rates(
        self,
        previous: NetworkCounters,
        current: NetworkCounters,
        min_elapsed_sec: float = rates.DEFAULT_MIN_ELAPSED_SEC,
    ) -> Tuple[float, float]:
        return rates.byte_rates(previous, current, min_elapsed_sec)
