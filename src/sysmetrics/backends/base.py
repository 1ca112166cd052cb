from abc import ABC, abstractmethod
from typing import List, Tuple

from sysmetrics.schema.counters import (
    CpuCounters,
    InterfaceCounters,
    MemoryCounters,
    NetworkCounters,
)


class CounterBackend(ABC):
    """
    Abstract parsing and rate contract shared by every backend.

    A backend is stateless. Two backends given the same input must return
    equal records and equal rates; only their internals differ.
    """

    name: str = "base"

    @property
    def is_accelerated(self) -> bool:
        return False

    @abstractmethod
    def parse_cpu_line(self, text: str) -> CpuCounters:
        raise NotImplementedError("Must be implemented by subclasses.")

    @abstractmethod
    def parse_meminfo(self, text: str) -> MemoryCounters:
        raise NotImplementedError("Must be implemented by subclasses.")

    @abstractmethod
    def parse_temperature(self, text: str) -> float:
        raise NotImplementedError("Must be implemented by subclasses.")

    @abstractmethod
    def parse_net_dev(self, text: str, timestamp_ms: int) -> List[InterfaceCounters]:
        raise NotImplementedError("Must be implemented by subclasses.")

    @abstractmethod
    def cpu_usage_percent(self, previous: CpuCounters, current: CpuCounters) -> float:
        raise NotImplementedError("Must be implemented by subclasses.")

    @abstractmethod
    def byte_rates(
        self,
        previous: NetworkCounters,
        current: NetworkCounters,
        min_elapsed_sec: float,
    ) -> Tuple[float, float]:
        raise NotImplementedError("Must be implemented by subclasses.")

    def network_counters(self, text: str, timestamp_ms: int) -> NetworkCounters:
        """Parse /proc/net/dev and aggregate it into one snapshot."""
        return NetworkCounters.from_interfaces(
            self.parse_net_dev(text, timestamp_ms), timestamp_ms
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
