"""
Backend selection.

The fast path is chosen once per session: `is_fast_path_available()` runs
a one-off self-test of the numpy backend against the pure-Python one on a
reference sample and caches the verdict for the process.
"""

from functools import lru_cache
from typing import Optional

from sysmetrics.backends.accelerated import NumpyCounterBackend
from sysmetrics.backends.base import CounterBackend
from sysmetrics.backends.fallback import FallbackCounterBackend
from sysmetrics.config import SysMetricsSettings
from sysmetrics.loggers.error_log import get_error_logger

logger = get_error_logger("BackendFactory")

_SELF_TEST_CPU = ("cpu  100 0 50 800 10 5 5 0 0 0", "cpu  160 0 70 900 10 5 5 0 0 0")
_SELF_TEST_NET_DEV = (
    "Inter-|   Receive                            |  Transmit\n"
    " face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed\n"
    "    lo: 5000 50 0 0 0 0 0 0 5000 50 0 0 0 0 0 0\n"
    "  eth0: 1048576 900 1 2 0 0 0 0 524288 400 3 4 0 0 0 0\n"
)


@lru_cache(maxsize=1)
def _self_test_numpy() -> bool:
    """Self-test the numpy backend; any mismatch or failure disables it."""
    try:
        fast, slow = NumpyCounterBackend(), FallbackCounterBackend()

        prev_cpu = fast.parse_cpu_line(_SELF_TEST_CPU[0])
        curr_cpu = fast.parse_cpu_line(_SELF_TEST_CPU[1])
        if prev_cpu != slow.parse_cpu_line(_SELF_TEST_CPU[0]):
            return False
        if fast.cpu_usage_percent(prev_cpu, curr_cpu) != slow.cpu_usage_percent(
            prev_cpu, curr_cpu
        ):
            return False

        prev_net = fast.network_counters(_SELF_TEST_NET_DEV, 0)
        curr_net = fast.network_counters(_SELF_TEST_NET_DEV.replace("1048576", "2097152"), 1000)
        if prev_net != slow.network_counters(_SELF_TEST_NET_DEV, 0):
            return False
        return fast.byte_rates(prev_net, curr_net, 0.1) == slow.byte_rates(
            prev_net, curr_net, 0.1
        )
    except Exception as e:
        logger.error(f"[SysMetrics] numpy fast path self-test failed: {e}")
        return False


def is_fast_path_available(settings: Optional[SysMetricsSettings] = None) -> bool:
    """True when the fast path is enabled and passes its self-test."""
    if settings is not None and not settings.enable_fast_path:
        return False
    return _self_test_numpy()


def create_counter_backend(settings: Optional[SysMetricsSettings] = None) -> CounterBackend:
    if is_fast_path_available(settings):
        return NumpyCounterBackend()
    return FallbackCounterBackend()
