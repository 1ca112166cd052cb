"""
Tests for counter text parsing.

Every parsing test runs against both backends: they must accept and
reject exactly the same input and build equal records.
"""

import pytest

from sysmetrics.backends.accelerated import NumpyCounterBackend
from sysmetrics.backends.fallback import FallbackCounterBackend
from sysmetrics.counters import parser
from sysmetrics.schema.counters import CpuCounters, MemoryCounters

NET_DEV = """\
Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo:  123456     100    0    0    0     0          0         0   123456     100    0    0    0     0       0          0
  eth0: 9876543    7000    1    2    0     0          0        12  1234567    5000    3    4    0     0       0          0
 wlan0:       0       0    0    0    0     0          0         0        0       0    0    0    0     0       0          0
"""

PROC_STAT = """\
cpu  4705 356 584 3699 23 23 0 0 0 0
cpu0 1393 280 283 1000 5 10 0 0 0 0
cpu1 3312 76 301 2699 18 13 0 0 0 0
intr 114930548 113199788 3 0 5 263 0 4 [... lots more numbers ...]
ctxt 1990473
"""


@pytest.fixture(params=[FallbackCounterBackend, NumpyCounterBackend], ids=["python", "numpy"])
def backend(request):
    return request.param()


class TestCpuLine:
    def test_parses_seven_fields(self, backend):
        c = backend.parse_cpu_line("cpu  100 20 30 400 5 6 7")
        assert c == CpuCounters(100, 20, 30, 400, 5, 6, 7)

    def test_extra_fields_ignored(self, backend):
        c = backend.parse_cpu_line("cpu 1 2 3 4 5 6 7 8 9 10")
        assert c == CpuCounters(1, 2, 3, 4, 5, 6, 7)

    def test_whole_proc_stat_uses_aggregate_line(self, backend):
        c = backend.parse_cpu_line(PROC_STAT)
        assert c == CpuCounters(4705, 356, 584, 3699, 23, 23, 0)

    def test_single_core_line_still_parses(self, backend):
        c = backend.parse_cpu_line("cpu0 1 2 3 4 5 6 7")
        assert c.user == 1 and c.softirq == 7

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "cpu",
            "cpu 1 2 3 4 5 6",
            "cpu 1 2 x 4 5 6 7",
            "cpu 1 2 -3 4 5 6 7",
            "cpu 1.5 2 3 4 5 6 7",
            "intr 1 2 3 4 5 6 7",
            "1 2 3 4 5 6 7",
        ],
    )
    def test_malformed_yields_empty(self, backend, text):
        assert backend.parse_cpu_line(text) == CpuCounters.EMPTY

    def test_non_string_yields_empty(self, backend):
        assert backend.parse_cpu_line(None) == CpuCounters.EMPTY


class TestCpuCounters:
    @pytest.mark.parametrize(
        "fields",
        [(0, 0, 0, 0, 0, 0, 0), (1, 2, 3, 4, 5, 6, 7), (10**12, 3, 0, 77, 9, 1, 2)],
    )
    def test_total_and_active(self, fields):
        c = CpuCounters(*fields)
        assert c.total() == sum(fields)
        assert c.active() == c.total() - c.idle - c.iowait

    def test_empty(self):
        assert CpuCounters().is_empty()
        assert not CpuCounters(user=1).is_empty()


class TestMeminfo:
    def test_usage_percent(self, backend):
        m = backend.parse_meminfo("MemTotal: 8000000 kB\nMemAvailable: 4000000 kB\n")
        assert m.usage_percent == pytest.approx(50.0)
        assert m.used_kb == 4000000

    def test_all_keys(self, backend):
        text = (
            "MemTotal:       16384000 kB\n"
            "MemFree:         1024000 kB\n"
            "MemAvailable:    8192000 kB\n"
            "Buffers:          204800 kB\n"
            "Cached:          4096000 kB\n"
            "SwapCached:            0 kB\n"
        )
        m = backend.parse_meminfo(text)
        assert m == MemoryCounters(16384000, 1024000, 8192000, 204800, 4096000)
        assert m.used_mb == (16384000 - 8192000) // 1024
        assert m.total_mb == 16000

    def test_missing_available_falls_back_to_free(self, backend):
        m = backend.parse_meminfo("MemTotal: 1000 kB\nMemFree: 250 kB\n")
        assert m.available_kb == 250
        assert m.usage_percent == pytest.approx(75.0)

    def test_missing_keys_default_to_zero(self, backend):
        m = backend.parse_meminfo("Buffers: 10 kB\n")
        assert m.total_kb == 0
        assert m.usage_percent == 0.0

    def test_garbage(self, backend):
        assert backend.parse_meminfo("not meminfo at all") == MemoryCounters.EMPTY
        assert backend.parse_meminfo("") == MemoryCounters.EMPTY

    def test_unclamped_on_malformed_input(self):
        m = MemoryCounters(total_kb=100, available_kb=150)
        assert m.used_kb == -50
        assert m.usage_percent == pytest.approx(-50.0)


class TestTemperature:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("65000", 65.0),
            ("65000\n", 65.0),
            ("42500", 42.5),
            ("0", 0.0),
            ("-5000", -5.0),
            ("invalid", 0.0),
            ("", 0.0),
            ("-", 0.0),
            ("65.5", 0.0),
        ],
    )
    def test_millidegrees(self, backend, text, expected):
        assert backend.parse_temperature(text) == pytest.approx(expected)


class TestNetDev:
    def test_skips_headers(self, backend):
        ifaces = backend.parse_net_dev(NET_DEV, 1000)
        assert [i.name for i in ifaces] == ["lo", "eth0", "wlan0"]

    def test_column_mapping(self, backend):
        eth0 = backend.parse_net_dev(NET_DEV, 1000)[1]
        assert eth0.rx_bytes == 9876543
        assert eth0.rx_packets == 7000
        assert eth0.rx_errors == 1
        assert eth0.rx_dropped == 2
        assert eth0.tx_bytes == 1234567
        assert eth0.tx_packets == 5000
        assert eth0.tx_errors == 3
        assert eth0.tx_dropped == 4
        assert eth0.timestamp_ms == 1000

    def test_short_or_bad_rows_skipped(self, backend):
        text = "eth0: 1 2 3\neth1: 1 2 3 4 5 6 7 8 9 10 11 x\neth2: 1 2 3 4 5 6 7 8 9 10 11 12\n"
        ifaces = backend.parse_net_dev(text, 0)
        assert [i.name for i in ifaces] == ["eth2"]

    def test_no_space_after_colon(self, backend):
        ifaces = backend.parse_net_dev("eth0:100 1 0 0 0 0 0 0 200 2 0 0 0 0 0 0", 0)
        assert ifaces[0].rx_bytes == 100
        assert ifaces[0].tx_bytes == 200

    def test_loopback_excluded_from_totals(self, backend):
        net = backend.network_counters(NET_DEV, 5000)
        assert net.total_rx_bytes == 9876543
        assert net.total_tx_bytes == 1234567
        assert "lo" in net.interfaces
        assert [i.name for i in net.active_interfaces] == ["eth0"]

    def test_empty_text(self, backend):
        assert backend.parse_net_dev("", 0) == []
        net = backend.network_counters("", 7)
        assert net.interfaces == {}
        assert net.total_rx_bytes == 0


class TestModuleHelpers:
    def test_parse_interface_line(self):
        iface = parser.parse_interface_line("  eth0: 1 2 3 4 5 6 7 8 9 10 11 12", 42)
        assert iface.name == "eth0"
        assert iface.tx_bytes == 9
        assert iface.timestamp_ms == 42

    def test_parse_interface_line_rejects_header(self):
        assert parser.parse_interface_line("Inter-|   Receive", 0) is None

    def test_to_count(self):
        assert parser.to_count("123") == 123
        assert parser.to_count("-1") is None
        assert parser.to_count("١٢") is None
        assert parser.to_count("") is None

    def test_to_count_u64_bound(self):
        assert parser.to_count(str(2**64 - 1)) == 2**64 - 1
        assert parser.to_count(str(2**64)) is None
        assert parser.to_count("0" * 25) is None
        assert parser.to_count("9" * 5000) is None


class TestBackendsAgree:
    def test_identical_records_on_real_text(self):
        fast, slow = NumpyCounterBackend(), FallbackCounterBackend()
        assert fast.parse_cpu_line(PROC_STAT) == slow.parse_cpu_line(PROC_STAT)
        assert fast.parse_net_dev(NET_DEV, 9) == slow.parse_net_dev(NET_DEV, 9)
        assert fast.network_counters(NET_DEV, 9) == slow.network_counters(NET_DEV, 9)

    def test_huge_counters_take_scalar_path(self):
        # valid u64 counter that does not fit in int64
        big = 2**64 - 1
        line = f"eth0: {big} 1 0 0 0 0 0 0 {big} 1 0 0 0 0 0 0"
        fast, slow = NumpyCounterBackend(), FallbackCounterBackend()
        assert fast.parse_net_dev(line, 0) == slow.parse_net_dev(line, 0)
        assert fast.network_counters(line, 0).total_rx_bytes == big


class TestOversizedNumbers:
    def test_temperature(self, backend):
        assert backend.parse_temperature("9" * 400) == 0.0
        assert backend.parse_temperature("-" + "9" * 400) == 0.0

    def test_cpu_line(self, backend):
        assert backend.parse_cpu_line(f"cpu {'9' * 400} 0 0 1 0 0 0") == CpuCounters.EMPTY

    def test_meminfo_key_skipped(self, backend):
        mem = backend.parse_meminfo(f"MemTotal: {'9' * 400} kB\nMemFree: 10 kB\n")
        assert mem.total_kb == 0
        assert mem.free_kb == 10

    def test_net_dev_row_skipped(self, backend):
        text = NET_DEV.replace("9876543", "9" * 400)
        names = [i.name for i in backend.parse_net_dev(text, 0)]
        assert names == ["lo", "wlan0"]
