"""
Raw counter schema for SysMetrics.

This module defines the typed records produced by the counter parsers:
CPU time accounting, memory accounting, per-interface network counters
and the aggregated network snapshot used for throughput deltas.

Design principles
-----------------
- Records are immutable (`frozen=True`); a new sample is a new record
- The all-zero instance of each record means "no data / no baseline"
- Derived values are computed on access, never stored
- Cheap, explicit wire conversions (plain dicts, stable keys)
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, List

# ---------------------------------------------------------------------------
# CPU counters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CpuCounters:
    """
    Cumulative CPU tick counters from the aggregate `cpu` line of /proc/stat.

    All fields are non-decreasing tick counts since boot. Only the
    difference between two records is meaningful.
    """

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0

    EMPTY: ClassVar["CpuCounters"]

    def total(self) -> int:
        return (
            self.user
            + self.nice
            + self.system
            + self.idle
            + self.iowait
            + self.irq
            + self.softirq
        )

    def active(self) -> int:
        """Ticks spent doing work (idle and iowait excluded)."""
        return self.user + self.nice + self.system + self.irq + self.softirq

    def is_empty(self) -> bool:
        return self == CpuCounters.EMPTY

    def to_wire(self) -> List[int]:
        """
        Wire format (fixed order):
            [user, nice, system, idle, iowait, irq, softirq]
        """
        return [
            self.user,
            self.nice,
            self.system,
            self.idle,
            self.iowait,
            self.irq,
            self.softirq,
        ]

    @staticmethod
    def from_wire(data: List[int]) -> "CpuCounters":
        return CpuCounters(*data[:7])


CpuCounters.EMPTY = CpuCounters()

# ---------------------------------------------------------------------------
# Memory counters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MemoryCounters:
    """
    Memory accounting fields from /proc/meminfo.

    Units
    -----
    All fields are kilobytes, as reported by the kernel.

    Notes
    -----
    Derived values are not clamped. `available_kb > total_kb` only happens
    on malformed input and yields a negative `used_kb`.
    """

    total_kb: int = 0
    free_kb: int = 0
    available_kb: int = 0
    buffers_kb: int = 0
    cached_kb: int = 0

    EMPTY: ClassVar["MemoryCounters"]

    @property
    def used_kb(self) -> int:
        return self.total_kb - self.available_kb

    @property
    def usage_percent(self) -> float:
        if self.total_kb == 0:
            return 0.0
        return self.used_kb / self.total_kb * 100.0

    @property
    def used_mb(self) -> int:
        return self.used_kb // 1024

    @property
    def total_mb(self) -> int:
        return self.total_kb // 1024

    def to_wire(self) -> Dict[str, int]:
        return {
            "total": self.total_kb,
            "free": self.free_kb,
            "available": self.available_kb,
            "buffers": self.buffers_kb,
            "cached": self.cached_kb,
        }

    @staticmethod
    def from_wire(data: Dict[str, int]) -> "MemoryCounters":
        return MemoryCounters(
            total_kb=data.get("total", 0),
            free_kb=data.get("free", 0),
            available_kb=data.get("available", 0),
            buffers_kb=data.get("buffers", 0),
            cached_kb=data.get("cached", 0),
        )


MemoryCounters.EMPTY = MemoryCounters()

# ---------------------------------------------------------------------------
# Network counters
# ---------------------------------------------------------------------------

LOOPBACK_INTERFACE = "lo"


@dataclass(frozen=True)
class InterfaceCounters:
    """
    Cumulative counters of a single network interface (/proc/net/dev row).

    Units
    -----
    rx_bytes / tx_bytes : bytes
    *_packets, *_errors, *_dropped : counts
    timestamp_ms : wall-clock milliseconds when the row was read
    """

    name: str
    rx_bytes: int = 0
    tx_bytes: int = 0
    rx_packets: int = 0
    tx_packets: int = 0
    rx_errors: int = 0
    tx_errors: int = 0
    rx_dropped: int = 0
    tx_dropped: int = 0
    timestamp_ms: int = 0

    @property
    def is_loopback(self) -> bool:
        return self.name == LOOPBACK_INTERFACE

    @property
    def has_traffic(self) -> bool:
        return self.rx_bytes > 0 or self.tx_bytes > 0

    def to_wire(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rx_bytes": self.rx_bytes,
            "tx_bytes": self.tx_bytes,
            "rx_packets": self.rx_packets,
            "tx_packets": self.tx_packets,
            "rx_errors": self.rx_errors,
            "tx_errors": self.tx_errors,
            "rx_dropped": self.rx_dropped,
            "tx_dropped": self.tx_dropped,
            "ts": self.timestamp_ms,
        }

    @staticmethod
    def from_wire(data: Dict[str, Any]) -> "InterfaceCounters":
        return InterfaceCounters(
            name=data["name"],
            rx_bytes=data.get("rx_bytes", 0),
            tx_bytes=data.get("tx_bytes", 0),
            rx_packets=data.get("rx_packets", 0),
            tx_packets=data.get("tx_packets", 0),
            rx_errors=data.get("rx_errors", 0),
            tx_errors=data.get("tx_errors", 0),
            rx_dropped=data.get("rx_dropped", 0),
            tx_dropped=data.get("tx_dropped", 0),
            timestamp_ms=data.get("ts", 0),
        )


@dataclass(frozen=True)
class NetworkCounters:
    """
    Aggregated snapshot of all interfaces at one point in time.

    Loopback is kept in `interfaces` for inspection but excluded from
    `total_rx_bytes` / `total_tx_bytes`.
    """

    interfaces: Dict[str, InterfaceCounters] = field(default_factory=dict)
    total_rx_bytes: int = 0
    total_tx_bytes: int = 0
    timestamp_ms: int = 0

    EMPTY: ClassVar["NetworkCounters"]

    @staticmethod
    def from_interfaces(
        interfaces: Iterable[InterfaceCounters], timestamp_ms: int
    ) -> "NetworkCounters":
        by_name: Dict[str, InterfaceCounters] = {}
        rx = tx = 0
        for iface in interfaces:
            by_name[iface.name] = iface
            if iface.is_loopback:
                continue
            rx += iface.rx_bytes
            tx += iface.tx_bytes
        return NetworkCounters(
            interfaces=by_name,
            total_rx_bytes=rx,
            total_tx_bytes=tx,
            timestamp_ms=timestamp_ms,
        )

    @property
    def active_interfaces(self) -> List[InterfaceCounters]:
        return [
            i for i in self.interfaces.values() if not i.is_loopback and i.has_traffic
        ]

    def is_empty(self) -> bool:
        return not self.interfaces and self.timestamp_ms == 0

    def to_wire(self) -> Dict[str, Any]:
        return {
            "ts": self.timestamp_ms,
            "rx": self.total_rx_bytes,
            "tx": self.total_tx_bytes,
            "interfaces": [i.to_wire() for i in self.interfaces.values()],
        }

    @staticmethod
    def from_wire(data: Dict[str, Any]) -> "NetworkCounters":
        interfaces = [InterfaceCounters.from_wire(i) for i in data.get("interfaces", [])]
        return NetworkCounters(
            interfaces={i.name: i for i in interfaces},
            total_rx_bytes=data.get("rx", 0),
            total_tx_bytes=data.get("tx", 0),
            timestamp_ms=data.get("ts", 0),
        )


NetworkCounters.EMPTY = NetworkCounters()


@dataclass(frozen=True)
class ThroughputSample:
    """
    Network throughput derived from two consecutive `NetworkCounters`.

    Units
    -----
    *_bytes_per_sec : bytes per second
    *_mbps : megabits per second (binary mega, 1 Mb = 1_048_576 bits)
    total_* : cumulative bytes reported by the kernel
    session_* : bytes transferred since the session baseline
    """

    ingress_bytes_per_sec: float = 0.0
    egress_bytes_per_sec: float = 0.0
    ingress_mbps: float = 0.0
    egress_mbps: float = 0.0
    total_ingress_bytes: int = 0
    total_egress_bytes: int = 0
    session_ingress_bytes: int = 0
    session_egress_bytes: int = 0
    timestamp_ms: int = 0
    available: bool = True

    EMPTY: ClassVar["ThroughputSample"]

    def to_wire(self) -> Dict[str, Any]:
        return {
            "ts": self.timestamp_ms,
            "in_bps": self.ingress_bytes_per_sec,
            "out_bps": self.egress_bytes_per_sec,
            "in_mbps": self.ingress_mbps,
            "out_mbps": self.egress_mbps,
            "in_total": self.total_ingress_bytes,
            "out_total": self.total_egress_bytes,
            "in_session": self.session_ingress_bytes,
            "out_session": self.session_egress_bytes,
            "available": self.available,
        }

    @staticmethod
    def from_wire(data: Dict[str, Any]) -> "ThroughputSample":
        return ThroughputSample(
            ingress_bytes_per_sec=data["in_bps"],
            egress_bytes_per_sec=data["out_bps"],
            ingress_mbps=data["in_mbps"],
            egress_mbps=data["out_mbps"],
            total_ingress_bytes=data["in_total"],
            total_egress_bytes=data["out_total"],
            session_ingress_bytes=data["in_session"],
            session_egress_bytes=data["out_session"],
            timestamp_ms=data["ts"],
            available=data["available"],
        )


ThroughputSample.EMPTY = ThroughputSample(available=False)
