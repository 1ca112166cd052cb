import pytest

from sysmetrics.schema.series import FamilyPeak, PeakSnapshot
from sysmetrics.utils.formatting import (
    fmt_bytes,
    fmt_clock,
    fmt_mbps,
    fmt_mem_mb,
    fmt_percent,
    fmt_speed,
    format_peak_report,
)


class TestScalars:
    def test_percent(self):
        assert fmt_percent(12.345) == "12.3%"
        assert fmt_percent(None) == "N/A"
        assert fmt_percent(7, digits=0) == "7%"
        assert fmt_percent(float("nan")) == "N/A"

    def test_mem_mb(self):
        assert fmt_mem_mb(512) == "512 MB"
        assert fmt_mem_mb(2048) == "2.00 GB"

    @pytest.mark.parametrize(
        "value,expected",
        [(512, "512 B"), (1536, "1.5 KB"), (5 * 1024**2, "5.0 MB"), (3 * 1024**3, "3.00 GB")],
    )
    def test_bytes(self, value, expected):
        assert fmt_bytes(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [(100, "↓ 100 B/s"), (2048, "↓ 2.0 KB/s"), (1024**2, "↓ 1.00 MB/s"), (2 * 1024**3, "↓ 2.00 GB/s")],
    )
    def test_speed(self, value, expected):
        assert fmt_speed(value, "↓") == expected

    def test_speed_without_prefix(self):
        assert fmt_speed(10) == "10 B/s"

    @pytest.mark.parametrize(
        "value,expected",
        [(0.001, "0 Mbps"), (0.5, "0.50 Mbps"), (12.34, "12.3 Mbps"), (250, "250 Mbps"), (2500, "2.50 Gbps")],
    )
    def test_mbps(self, value, expected):
        assert fmt_mbps(value) == expected

    def test_clock_unset(self):
        assert fmt_clock(0) == "--:--:--"
        assert len(fmt_clock(1_700_000_000_000)) == 8


class TestPeakReport:
    def snapshot(self, **kw):
        base = dict(
            cpu=FamilyPeak(peak=87.5, peak_time_ms=1_700_000_000_000, average=40.0, count=3),
            ram=FamilyPeak(peak=3072, peak_time_ms=1_700_000_000_000, average=2900.4, count=3),
            network_ingress=FamilyPeak(peak=12.34, count=1),
            network_egress=FamilyPeak(peak=1.0, count=1),
        )
        base.update(kw)
        return PeakSnapshot(**base)

    def test_default_sections(self):
        report = format_peak_report(self.snapshot())
        assert "CPU Peak: 87.5%" in report
        assert "RAM Peak: 3072MB" in report
        assert "Net Peak: ↓12.3Mbps ↑1.0Mbps" in report
        assert report.endswith("Avg: CPU 40.0% | RAM 2900MB")
        assert "Temp" not in report
        assert "FPS" not in report

    def test_temperature_and_fps_when_present(self):
        snap = self.snapshot(
            temperature=FamilyPeak(peak=71.25, peak_time_ms=1_700_000_000_000, count=1),
            fps=FamilyPeak(peak=60, minimum=24, average=52.5, count=4, below_floor=1),
        )
        report = format_peak_report(snap, show_fps=True)
        assert "Temp Peak: 71.2°C" in report or "Temp Peak: 71.3°C" in report
        assert "FPS: 24-60 (avg: 52.5, drops: 1)" in report

    def test_sections_can_be_hidden(self):
        report = format_peak_report(
            self.snapshot(), show_cpu=False, show_ram=False, show_network=False
        )
        assert "CPU Peak" not in report
        assert "Net Peak" not in report
