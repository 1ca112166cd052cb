"""
Counter text parsers (pure Python).

Turns raw kernel counter text into typed records:

- /proc/stat aggregate `cpu` line   -> CpuCounters
- /proc/meminfo block               -> MemoryCounters
- thermal zone millidegree value    -> float (degrees Celsius)
- /proc/net/dev rows                -> InterfaceCounters

Every function here is total: malformed input yields the zero-valued
record (or is skipped) and is reported at debug level only. Nothing is
raised, because a monitoring tool must never crash the host it watches.
"""

from typing import Dict, List, Optional

from sysmetrics.loggers.error_log import get_error_logger
from sysmetrics.schema.counters import CpuCounters, InterfaceCounters, MemoryCounters

logger = get_error_logger("CounterParser")

CPU_FIELD_COUNT = 7
NET_DEV_MIN_FIELDS = 12

# Kernel counters are at most unsigned 64-bit
U64_MAX = 2**64 - 1
_U64_DIGITS = len(str(U64_MAX))

MEMINFO_KEYS = ("MemTotal", "MemFree", "MemAvailable", "Buffers", "Cached")


def to_count(token: str) -> Optional[int]:
    """Parse a non-negative decimal counter no larger than `U64_MAX`, or None."""
    if not (token.isascii() and token.isdigit()) or len(token) > _U64_DIGITS:
        return None
    value = int(token)
    return value if value <= U64_MAX else None


def find_cpu_line(text: str) -> Optional[str]:
    """
    Return the aggregate CPU line of `text`.

    The first line labelled exactly `cpu` wins. A text without one falls
    back to its first `cpu*` line so a single per-core line still parses.
    """
    fallback = None
    for line in text.splitlines():
        parts = line.split(None, 1)
        if not parts:
            continue
        if parts[0] == "cpu":
            return line
        if fallback is None and parts[0].startswith("cpu"):
            fallback = line
    return fallback


def cpu_fields(text: str) -> Optional[List[int]]:
    """Return the first seven counters of the CPU line, or None."""
    if not isinstance(text, str):
        return None
    line = find_cpu_line(text)
    if line is None:
        return None
    parts = line.split()
    if len(parts) < CPU_FIELD_COUNT + 1:
        return None
    values = [to_count(p) for p in parts[1 : CPU_FIELD_COUNT + 1]]
    if any(v is None for v in values):
        return None
    return values


def parse_cpu_line(text: str) -> CpuCounters:
    """
    Parse `cpu user nice system idle iowait irq softirq [steal ...]`.

    Extra trailing fields are ignored. Fewer than seven counters, a
    missing label or any non-numeric counter yields `CpuCounters.EMPTY`.
    """
    values = cpu_fields(text)
    if values is None:
        logger.debug(f"[SysMetrics] Unparsable CPU line: {str(text)[:80]!r}")
        return CpuCounters.EMPTY
    return CpuCounters(*values)


def meminfo_fields(text: str) -> Dict[str, int]:
    """Map every `Key: <int> [kB]` line of a meminfo block to its value."""
    found: Dict[str, int] = {}
    if not isinstance(text, str):
        return found
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        key = parts[0]
        if key.endswith(":"):
            key = key[:-1]
        value = to_count(parts[1])
        if value is not None:
            found[key] = value
    return found


def memory_from_fields(found: Dict[str, int]) -> MemoryCounters:
    free = found.get("MemFree", 0)
    return MemoryCounters(
        total_kb=found.get("MemTotal", 0),
        free_kb=free,
        # Kernels before 3.14 have no MemAvailable
        available_kb=found.get("MemAvailable", free),
        buffers_kb=found.get("Buffers", 0),
        cached_kb=found.get("Cached", 0),
    )


def parse_meminfo(text: str) -> MemoryCounters:
    """
    Parse a /proc/meminfo block.

    Only MemTotal, MemFree, MemAvailable, Buffers and Cached are read;
    missing keys default to zero.
    """
    found = meminfo_fields(text)
    if not found:
        logger.debug("[SysMetrics] No meminfo keys found")
        return MemoryCounters.EMPTY
    return memory_from_fields(found)


def parse_temperature(text: str) -> float:
    """Convert a millidegree Celsius reading to degrees Celsius."""
    if not isinstance(text, str):
        return 0.0
    raw = text.strip()
    negative = raw.startswith("-")
    value = to_count(raw[1:] if negative else raw)
    if value is None:
        logger.debug(f"[SysMetrics] Unparsable temperature: {raw[:20]!r}")
        return 0.0
    return (-value if negative else value) / 1000.0


def split_interface_line(line: str):
    """Split a /proc/net/dev row into `(name, counters)` or None."""
    name, sep, rest = line.partition(":")
    if not sep:
        return None
    name = name.strip()
    if not name:
        return None
    tokens = rest.split()
    if len(tokens) < NET_DEV_MIN_FIELDS:
        return None
    values = [to_count(t) for t in tokens[:NET_DEV_MIN_FIELDS]]
    if any(v is None for v in values):
        return None
    return name, values


def interface_from_values(name: str, values: List[int], timestamp_ms: int) -> InterfaceCounters:
    # rx: bytes packets errs drop fifo frame compressed multicast
    # tx: bytes packets errs drop ...
    return InterfaceCounters(
        name=name,
        rx_bytes=values[0],
        rx_packets=values[1],
        rx_errors=values[2],
        rx_dropped=values[3],
        tx_bytes=values[8],
        tx_packets=values[9],
        tx_errors=values[10],
        tx_dropped=values[11],
        timestamp_ms=timestamp_ms,
    )


def parse_interface_line(line: str, timestamp_ms: int) -> Optional[InterfaceCounters]:
    if not isinstance(line, str):
        return None
    split = split_interface_line(line)
    if split is None:
        return None
    name, values = split
    return interface_from_values(name, values, timestamp_ms)


def parse_net_dev(text: str, timestamp_ms: int) -> List[InterfaceCounters]:
    """
    Parse /proc/net/dev.

    Header rows carry no `name:` prefix and are skipped, as are rows with
    fewer than twelve numeric columns.
    """
    interfaces: List[InterfaceCounters] = []
    if not isinstance(text, str):
        return interfaces
    for line in text.splitlines():
        if ":" not in line:
            continue
        iface = parse_interface_line(line, timestamp_ms)
        if iface is None:
            logger.debug(f"[SysMetrics] Skipping net/dev row: {line[:80]!r}")
            continue
        interfaces.append(iface)
    return interfaces
