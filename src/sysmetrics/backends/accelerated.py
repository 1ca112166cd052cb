"""
numpy-accelerated counter backend.

Token validation is shared with the pure-Python parser, so both backends
accept and reject exactly the same input. What differs is the arithmetic:

- /proc/net/dev rows are collected into one (n, 12) int64 matrix and the
  interface records are sliced out of it; totals are a loopback-masked
  column sum
- CPU and byte deltas are computed as int64 vector differences and only
  converted to float for the final division

Notes
-----
Deltas are kept integral until the final division, so every result is
bit-identical to the fallback backend. Counters that do not fit in int64
take the scalar path.
"""

from typing import List, Tuple

import numpy as np

from sysmetrics.backends.base import CounterBackend
from sysmetrics.counters import parser, rates
from sysmetrics.loggers.error_log import get_error_logger
from sysmetrics.schema.counters import (
    LOOPBACK_INTERFACE,
    CpuCounters,
    InterfaceCounters,
    MemoryCounters,
    NetworkCounters,
)

_INT64_MAX = int(np.iinfo(np.int64).max)

# Column indices of the twelve leading /proc/net/dev counters
_RX_BYTES, _RX_PACKETS, _RX_ERRS, _RX_DROP = 0, 1, 2, 3
_TX_BYTES, _TX_PACKETS, _TX_ERRS, _TX_DROP = 8, 9, 10, 11


def _fits_int64(values, terms: int = 1) -> bool:
    """True when `terms` of these values can be summed in int64."""
    limit = _INT64_MAX // terms
    return all(v <= limit for v in values)


class NumpyCounterBackend(CounterBackend):
    """Fast-path backend built on numpy vector arithmetic."""

    name = "numpy"

    def __init__(self):
        self.logger = get_error_logger("NumpyCounterBackend")

    @property
    def is_accelerated(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse_cpu_line(self, text: str) -> CpuCounters:
        values = parser.cpu_fields(text)
        if values is None:
            self.logger.debug(f"[SysMetrics] Unparsable CPU line: {str(text)[:80]!r}")
            return CpuCounters.EMPTY
        return CpuCounters(*values)

    def parse_meminfo(self, text: str) -> MemoryCounters:
        found = parser.meminfo_fields(text)
        if not found:
            return MemoryCounters.EMPTY
        return parser.memory_from_fields(found)

    def parse_temperature(self, text: str) -> float:
        return parser.parse_temperature(text)

    def _net_dev_matrix(self, text: str):
        names: List[str] = []
        rows: List[List[int]] = []
        if not isinstance(text, str):
            return names, None
        for line in text.splitlines():
            if ":" not in line:
                continue
            split = parser.split_interface_line(line)
            if split is None:
                self.logger.debug(f"[SysMetrics] Skipping net/dev row: {line[:80]!r}")
                continue
            name, values = split
            names.append(name)
            rows.append(values)

        if not rows or not all(_fits_int64(r) for r in rows):
            return names, rows or None
        return names, np.asarray(rows, dtype=np.int64)

    def parse_net_dev(self, text: str, timestamp_ms: int) -> List[InterfaceCounters]:
        names, matrix = self._net_dev_matrix(text)
        if matrix is None:
            return []
        if not isinstance(matrix, np.ndarray):
            return [
                parser.interface_from_values(n, v, timestamp_ms)
                for n, v in zip(names, matrix)
            ]

        picked = matrix[
            :,
            [_RX_BYTES, _RX_PACKETS, _RX_ERRS, _RX_DROP, _TX_BYTES, _TX_PACKETS, _TX_ERRS, _TX_DROP],
        ].tolist()
        return [
            InterfaceCounters(
                name=name,
                rx_bytes=row[0],
                rx_packets=row[1],
                rx_errors=row[2],
                rx_dropped=row[3],
                tx_bytes=row[4],
                tx_packets=row[5],
                tx_errors=row[6],
                tx_dropped=row[7],
                timestamp_ms=timestamp_ms,
            )
            for name, row in zip(names, picked)
        ]

    def network_counters(self, text: str, timestamp_ms: int) -> NetworkCounters:
        interfaces = self.parse_net_dev(text, timestamp_ms)
        if not interfaces:
            return NetworkCounters.from_interfaces(interfaces, timestamp_ms)

        byte_cols = np.asarray(
            [[i.rx_bytes, i.tx_bytes] for i in interfaces], dtype=object
        )
        # object dtype keeps the sum exact for arbitrarily large counters
        mask = np.asarray([i.name != LOOPBACK_INTERFACE for i in interfaces])
        totals = byte_cols[mask].sum(axis=0) if mask.any() else (0, 0)
        return NetworkCounters(
            interfaces={i.name: i for i in interfaces},
            total_rx_bytes=int(totals[0]),
            total_tx_bytes=int(totals[1]),
            timestamp_ms=timestamp_ms,
        )

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------

    def cpu_usage_percent(self, previous: CpuCounters, current: CpuCounters) -> float:
        if previous.is_empty():
            return 0.0
        prev, curr = previous.to_wire(), current.to_wire()
        if not (_fits_int64(prev, 8) and _fits_int64(curr, 8)):
            return rates.cpu_usage_percent(previous, current)

        deltas = np.asarray(curr, dtype=np.int64) - np.asarray(prev, dtype=np.int64)
        return rates.usage_from_deltas(int(deltas.sum()), int(deltas[3]))

    def byte_rates(
        self,
        previous: NetworkCounters,
        current: NetworkCounters,
        min_elapsed_sec: float = rates.DEFAULT_MIN_ELAPSED_SEC,
    ) -> Tuple[float, float]:
        if previous.is_empty():
            return 0.0, 0.0
        prev = [previous.total_rx_bytes, previous.total_tx_bytes]
        curr = [current.total_rx_bytes, current.total_tx_bytes]
        if not (_fits_int64(prev) and _fits_int64(curr)):
            return rates.byte_rates(previous, current, min_elapsed_sec)

        elapsed = (current.timestamp_ms - previous.timestamp_ms) / 1000.0
        if elapsed < min_elapsed_sec:
            elapsed = min_elapsed_sec

        deltas = np.asarray(curr, dtype=np.int64) - np.asarray(prev, dtype=np.int64)
        per_sec = np.where(deltas < 0, 0.0, deltas.astype(np.float64) / elapsed)
        return float(per_sec[0]), float(per_sec[1])
