import argparse
import sys
import time
from dataclasses import replace

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table

from sysmetrics.config import SysMetricsSettings, settings_from_env
from sysmetrics.manager.tracker_manager import TrackerManager
from sysmetrics.monitoring.session import MonitoringSession
from sysmetrics.samplers.procfs_sampler import ProcfsSampler
from sysmetrics.samplers.psutil_sampler import PsutilSampler
from sysmetrics.schema.series import MetricType, PeakFamily, PeakSnapshot
from sysmetrics.utils.formatting import (
    fmt_bytes,
    fmt_clock,
    fmt_mbps,
    fmt_mem_mb,
    fmt_percent,
    fmt_speed,
)

WATCHED_METRICS = (
    MetricType.CPU,
    MetricType.RAM,
    MetricType.TEMPERATURE,
    MetricType.NETWORK_INGRESS,
    MetricType.NETWORK_EGRESS,
)

# "Now" column formatting; the window columns stay plain numbers
CURRENT_FORMATTERS = {
    MetricType.CPU: fmt_percent,
    MetricType.RAM: fmt_mem_mb,
    MetricType.NETWORK_INGRESS: fmt_mbps,
    MetricType.NETWORK_EGRESS: fmt_mbps,
}


def fmt_current(metric: MetricType, value: float) -> str:
    formatter = CURRENT_FORMATTERS.get(metric)
    return formatter(value) if formatter is not None else f"{value:.1f}"


def build_stats_table(session: MonitoringSession) -> Table:
    table = Table(title="Window statistics", title_justify="left")
    table.add_column("Metric", style="bold")
    for col in ("Now", "30s", "1m", "5m", "Min", "Max", "p95", "p99"):
        table.add_column(col, justify="right")

    for metric in WATCHED_METRICS:
        stats = session.window_stats(metric)
        latest = session.chart_series(metric).latest
        style = latest.severity.color_name if latest is not None else None
        values = (
            stats.avg_30s,
            stats.avg_1m,
            stats.avg_5m,
            stats.min,
            stats.max,
            stats.p95,
            stats.p99,
        )
        table.add_row(
            f"{metric.display_name} ({metric.unit})",
            fmt_current(metric, stats.current),
            *[f"{v:.1f}" for v in values],
            style=style,
        )

    tp = session.latest_throughput
    if tp.available:
        table.caption = (
            f"{fmt_speed(tp.ingress_bytes_per_sec, '↓')}  "
            f"{fmt_speed(tp.egress_bytes_per_sec, '↑')}  "
            f"session ↓{fmt_bytes(tp.session_ingress_bytes)} "
            f"↑{fmt_bytes(tp.session_egress_bytes)}  "
            f"backend: {session.backend.name}"
        )
    return table


def build_peak_table(snapshot: PeakSnapshot) -> Table:
    table = Table(title="Peaks", title_justify="left")
    table.add_column("Family", style="bold")
    table.add_column("Peak", justify="right")
    table.add_column("At", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Samples", justify="right")

    for family in PeakFamily:
        peak = snapshot.family(family)
        if peak.count == 0:
            continue
        if family in (PeakFamily.NETWORK_INGRESS, PeakFamily.NETWORK_EGRESS):
            shown = (fmt_mbps(peak.peak), fmt_mbps(peak.average), fmt_mbps(peak.minimum))
        else:
            shown = (f"{peak.peak:.1f}", f"{peak.average:.1f}", f"{peak.minimum:.1f}")
        table.add_row(
            family.value,
            shown[0],
            fmt_clock(peak.peak_time_ms),
            shown[1],
            shown[2],
            str(peak.count),
        )
    if snapshot.fps.count:
        table.caption = f"frame drops: {snapshot.frame_drops}"
    return table


def settings_from_args(args, base: SysMetricsSettings) -> SysMetricsSettings:
    overrides = {}
    if args.interval is not None:
        overrides["sampler_interval_sec"] = args.interval
    if args.peak_report_interval is not None:
        overrides["peak_report_interval_sec"] = args.peak_report_interval
    if args.no_fast_path:
        overrides["enable_fast_path"] = False
    if args.proc_root is not None:
        overrides["proc_root"] = args.proc_root
    if args.enable_logging:
        overrides["enable_logging"] = True
    if args.logs_dir is not None:
        overrides["logs_dir"] = args.logs_dir
    return replace(base, **overrides).validate()


def run_watch(args) -> int:
    try:
        settings = settings_from_args(args, settings_from_env())
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    console = Console()
    session = MonitoringSession(settings)

    samplers = None
    if args.sampler == "procfs":
        samplers = [ProcfsSampler(session)]
    elif args.sampler == "psutil":
        samplers = [PsutilSampler(session)]

    def print_report(report: str) -> None:
        console.print(report, style="cyan")

    tracker = TrackerManager(session=session, samplers=samplers, on_peak_report=print_report)
    deadline = time.monotonic() + args.duration

    def render():
        return Group(build_stats_table(session), build_peak_table(session.peak_snapshot()))

    tracker.start()
    try:
        with Live(render(), console=console, auto_refresh=False, transient=True) as live:
            while time.monotonic() < deadline:
                time.sleep(min(settings.sampler_interval_sec, max(deadline - time.monotonic(), 0)))
                live.update(render(), refresh=True)
    except KeyboardInterrupt:
        pass
    finally:
        tracker.stop()

    console.print(render())
    return 0


def build_parser():
    parser = argparse.ArgumentParser("sysmetrics")

    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="Sample this host and print rolling statistics")
    watch.add_argument("--duration", type=float, default=10.0)
    watch.add_argument("--interval", type=float, default=None)
    watch.add_argument("--peak-report-interval", type=float, default=None)
    watch.add_argument("--sampler", choices=["auto", "procfs", "psutil"], default="auto")
    watch.add_argument("--proc-root", type=str, default=None)
    watch.add_argument("--no-fast-path", action="store_true")
    watch.add_argument("--enable-logging", action="store_true")
    watch.add_argument("--logs-dir", type=str, default=None)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "watch":
        sys.exit(run_watch(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
