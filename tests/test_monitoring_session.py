import pytest

from sysmetrics.backends.fallback import FallbackCounterBackend
from sysmetrics.config import SysMetricsSettings
from sysmetrics.monitoring.session import MonitoringSession
from sysmetrics.schema.counters import InterfaceCounters, MemoryCounters
from sysmetrics.schema.series import ChartSeries, MetricType, PeakSnapshot, WindowStatistics

T0 = 1_700_000_000_000


def net_dev(rx, tx):
    return (
        "Inter-|   Receive\n"
        " face |bytes packets\n"
        f"    lo: 999 1 0 0 0 0 0 0 999 1 0 0 0 0 0 0\n"
        f"  eth0: {rx} 1 0 0 0 0 0 0 {tx} 1 0 0 0 0 0 0\n"
    )


@pytest.fixture(params=[True, False], ids=["numpy", "python"])
def session(request):
    return MonitoringSession(SysMetricsSettings(enable_fast_path=request.param))


class TestBackendSelection:
    def test_backend_chosen_once(self, session):
        backend = session.backend
        session.ingest_cpu_line("cpu 1 0 1 8 0 0 0", T0)
        assert session.backend is backend

    def test_explicit_backend(self):
        backend = FallbackCounterBackend()
        assert MonitoringSession(backend=backend).backend is backend

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            MonitoringSession(SysMetricsSettings(chart_capacity=0))


class TestCpu:
    def test_first_sample_only_sets_baseline(self, session):
        assert session.ingest_cpu_line("cpu 1000 0 500 8000 0 0 0", T0) is None
        assert session.chart_series(MetricType.CPU).is_empty

    def test_usage_fans_out(self, session):
        session.ingest_cpu_line("cpu 1000 0 500 8000 0 0 0", T0)
        usage = session.ingest_cpu_line("cpu 1200 0 600 8200 0 0 0", T0 + 1000)
        assert usage == pytest.approx(60.0)
        assert session.latest_cpu_percent == pytest.approx(60.0)
        assert session.chart_series(MetricType.CPU).latest_value == pytest.approx(60.0)
        assert session.window_stats(MetricType.CPU).current == pytest.approx(60.0)
        assert session.peak_snapshot().cpu.peak == pytest.approx(60.0)
        assert session.peak_snapshot().cpu.peak_time_ms == T0 + 1000

    def test_malformed_line_keeps_baseline(self, session):
        session.ingest_cpu_line("cpu 1000 0 500 8000 0 0 0", T0)
        assert session.ingest_cpu_line("garbage", T0 + 500) is None
        usage = session.ingest_cpu_line("cpu 1200 0 600 8200 0 0 0", T0 + 1000)
        assert usage == pytest.approx(60.0)


class TestMemoryAndTemperature:
    def test_ram_recorded_in_mb(self, session):
        mem = session.ingest_meminfo("MemTotal: 8192000 kB\nMemAvailable: 4096000 kB\n", T0)
        assert mem.usage_percent == pytest.approx(50.0)
        assert session.latest_memory == mem
        assert session.chart_series(MetricType.RAM).latest_value == 4000
        assert session.peak_snapshot().ram.peak == 4000

    def test_empty_meminfo_not_recorded(self, session):
        assert session.ingest_meminfo("", T0) == MemoryCounters.EMPTY
        assert session.chart_series(MetricType.RAM).is_empty

    def test_temperature(self, session):
        assert session.ingest_temperature("48500", T0) == pytest.approx(48.5)
        assert session.window_stats(MetricType.TEMPERATURE).max == pytest.approx(48.5)
        assert session.peak_snapshot().temperature.peak == pytest.approx(48.5)

    def test_unreadable_temperature_not_recorded(self, session):
        assert session.ingest_temperature("invalid", T0) == 0.0
        assert session.chart_series(MetricType.TEMPERATURE).is_empty


class TestNetwork:
    def test_first_snapshot_is_baseline(self, session):
        sample = session.ingest_net_dev(net_dev(0, 0), T0)
        assert sample.ingress_bytes_per_sec == 0.0
        assert session.chart_series(MetricType.NETWORK_INGRESS).is_empty

    def test_throughput_recorded_in_mbps(self, session):
        session.ingest_net_dev(net_dev(0, 0), T0)
        sample = session.ingest_net_dev(net_dev(1048576, 262144), T0 + 1000)
        assert sample.ingress_mbps == pytest.approx(8.0)
        assert sample.egress_mbps == pytest.approx(2.0)
        assert session.chart_series(MetricType.NETWORK_INGRESS).latest_value == pytest.approx(8.0)
        assert session.peak_snapshot().network_egress.peak == pytest.approx(2.0)
        assert session.latest_throughput == sample

    def test_counter_regression(self, session):
        session.ingest_net_dev(net_dev(5000, 5000), T0)
        sample = session.ingest_net_dev(net_dev(10, 10), T0 + 1000)
        assert sample.ingress_mbps == 0.0
        sample = session.ingest_net_dev(net_dev(131082, 10), T0 + 2000)
        assert sample.ingress_mbps == pytest.approx(1.0)

    def test_empty_read_does_not_become_baseline(self, session):
        session.ingest_net_dev(net_dev(0, 0), T0)
        session.ingest_net_dev("", T0 + 500)
        sample = session.ingest_net_dev(net_dev(131072, 0), T0 + 1000)
        assert sample.ingress_mbps == pytest.approx(1.0)

    def test_oversized_counter_row_does_not_poison_baseline(self, session):
        session.ingest_net_dev(net_dev(0, 0), T0)
        session.ingest_net_dev(net_dev("9" * 400, 0), T0 + 1000)
        # the unreadable eth0 row is skipped; the loopback-only read is the baseline
        sample = session.ingest_net_dev(net_dev(262144, 0), T0 + 2000)
        assert sample.ingress_mbps == pytest.approx(2.0)

    def test_unusable_timestamps_are_ignored(self, session):
        session.record(MetricType.CPU, 10.0, float("nan"))
        assert session.chart_series(MetricType.CPU).is_empty
        assert session.ingest_net_dev(net_dev(0, 0), float("nan")) == session.latest_throughput
        assert not session.throughput.has_baseline

    def test_interfaces(self, session):
        eth = lambda rx, ts: InterfaceCounters("eth0", rx_bytes=rx, timestamp_ms=ts)
        session.ingest_interfaces([eth(0, T0)], T0)
        sample = session.ingest_interfaces([eth(262144, T0 + 2000)], T0 + 2000)
        assert sample.ingress_mbps == pytest.approx(1.0)


class TestFps:
    def test_fps_fan_out(self, session):
        session.record_fps(60, T0)
        session.record_fps(20, T0 + 16)
        assert session.peak_snapshot().frame_drops == 1
        assert session.chart_series(MetricType.FPS).latest.severity.name == "HIGH"

    def test_battery_has_no_peak_family(self, session):
        session.record(MetricType.BATTERY, 80, T0)
        assert session.chart_series(MetricType.BATTERY).latest_value == 80
        assert session.peak_snapshot() == PeakSnapshot.EMPTY


class TestReset:
    def test_reset_clears_everything(self, session):
        session.ingest_cpu_line("cpu 1000 0 500 8000 0 0 0", T0)
        session.ingest_cpu_line("cpu 1200 0 600 8200 0 0 0", T0 + 1000)
        session.ingest_net_dev(net_dev(0, 0), T0)
        session.ingest_meminfo("MemTotal: 1024 kB\nMemAvailable: 512 kB\n", T0)
        charts, windows, peaks = session.charts, session.windows, session.peaks

        session.reset()

        # components are reset, not recreated
        assert session.charts is charts
        assert session.windows is windows
        assert session.peaks is peaks
        assert session.chart_series(MetricType.CPU) == ChartSeries.empty(
            MetricType.CPU, session.settings.chart_capacity
        )
        assert session.window_stats(MetricType.CPU) == WindowStatistics.empty(MetricType.CPU)
        assert session.peak_snapshot() == PeakSnapshot.EMPTY
        assert not session.throughput.has_baseline
        # the baseline is gone: the next sample only re-establishes it
        assert session.ingest_cpu_line("cpu 1400 0 700 8400 0 0 0", T0 + 2000) is None

    def test_sessions_do_not_share_state(self):
        a, b = MonitoringSession(), MonitoringSession()
        a.ingest_cpu_line("cpu 1000 0 500 8000 0 0 0", T0)
        assert b.ingest_cpu_line("cpu 1200 0 600 8200 0 0 0", T0 + 1000) is None
