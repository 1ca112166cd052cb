import threading
import time
from typing import Callable, List, Optional

from sysmetrics.config import SysMetricsSettings, config
from sysmetrics.loggers.error_log import get_error_logger, setup_error_logger
from sysmetrics.monitoring.session import MonitoringSession
from sysmetrics.samplers.base_sampler import BaseSampler
from sysmetrics.samplers.procfs_sampler import ProcfsSampler
from sysmetrics.samplers.psutil_sampler import PsutilSampler
from sysmetrics.utils.formatting import format_peak_report


class TrackerManager:
    """
    Background sampling driver.

    Runs every sampler once per `interval_sec` on a daemon thread until
    `stop()`. When `peak_report_interval_sec` is positive, a plain-text
    peak report is handed to `on_peak_report` at that cadence and the
    peak tracker is reset so each report covers only the last interval.
    """

    def __init__(
        self,
        session: Optional[MonitoringSession] = None,
        samplers: Optional[List[BaseSampler]] = None,
        interval_sec: Optional[float] = None,
        peak_report_interval_sec: Optional[float] = None,
        on_peak_report: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session or MonitoringSession()
        settings: SysMetricsSettings = self.session.settings

        config.enable_logging = settings.enable_logging
        config.logs_dir = settings.logs_dir

        setup_error_logger()
        self.logger = get_error_logger("TrackerManager")

        self.samplers = samplers if samplers is not None else self._build_samplers(self.session)
        self.interval_sec = interval_sec if interval_sec is not None else settings.sampler_interval_sec
        self.peak_report_interval_sec = (
            peak_report_interval_sec
            if peak_report_interval_sec is not None
            else settings.peak_report_interval_sec
        )
        self.on_peak_report = on_peak_report or print
        self.last_peak_report: Optional[str] = None

        self._clock = clock
        self._last_report_at = clock()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _safe(self, label: str, fn):
        try:
            return fn()
        except Exception as e:
            self.logger.error(f"[SysMetrics] {label}: {e}")
            return None

    @staticmethod
    def _build_samplers(session: MonitoringSession) -> List[BaseSampler]:
        # Prefer the raw procfs counters; psutil covers hosts without /proc
        procfs = ProcfsSampler(session)
        if (procfs.proc_root / "stat").exists():
            return [procfs]
        return [PsutilSampler(session)]

    def _run_samplers(self):
        for s in self.samplers:
            self._safe(f"Sampler {s.__class__.__name__}.sample() failed", s.sample)

    def _maybe_report_peaks(self):
        if self.peak_report_interval_sec <= 0:
            return
        now = self._clock()
        if now - self._last_report_at < self.peak_report_interval_sec:
            return
        self._last_report_at = now

        snapshot = self.session.peak_snapshot()
        if snapshot.is_empty:
            return
        report = format_peak_report(snapshot)
        self.last_peak_report = report
        self._safe("Peak report delivery failed", lambda: self.on_peak_report(report))
        self.session.peaks.reset()

    def _run_once(self):
        self._run_samplers()
        self._maybe_report_peaks()

    def _run(self):
        while not self._stop_event.is_set():
            self._run_once()
            self._stop_event.wait(self.interval_sec)
        self._run_once()

    def start(self) -> None:
        self._safe("Failed to start TrackerManager thread", self._thread.start)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread.is_alive():
            self._thread.join(timeout=self.interval_sec * 5)
        if self._thread.is_alive():
            self.logger.error(
                "[SysMetrics] WARNING: Tracker thread did not terminate within timeout."
            )

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()
