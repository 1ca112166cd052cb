import time
from pathlib import Path
from typing import Optional

from sysmetrics.loggers.error_log import get_error_logger
from sysmetrics.monitoring.session import MonitoringSession

from .base_sampler import BaseSampler


class ProcfsSampler(BaseSampler):
    """
    Sampler that reads raw kernel counter text from procfs and sysfs and
    hands it to the session's backend for parsing.

    Files read on every sample:
        <proc_root>/stat, <proc_root>/meminfo, <proc_root>/net/dev,
        and the configured thermal zone.

    A missing or unreadable file skips that metric for the tick; the
    other metrics are still sampled.
    """

    def __init__(self, session: MonitoringSession) -> None:
        super().__init__(session=session, sampler_name="ProcfsSampler")
        self.logger = get_error_logger(self.sampler_name)

        settings = session.settings
        self.proc_root = Path(settings.proc_root)
        self.thermal_zone = Path(settings.thermal_zone)
        self._thermal_missing_logged = False

    def _read(self, path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            self.logger.error(f"[SysMetrics] WARNING: Failed to read {path}: {e}")
            return None

    def _sample_cpu(self, ts: int) -> None:
        text = self._read(self.proc_root / "stat")
        if text is not None:
            self.session.ingest_cpu_line(text, ts)

    def _sample_memory(self, ts: int) -> None:
        text = self._read(self.proc_root / "meminfo")
        if text is not None:
            self.session.ingest_meminfo(text, ts)

    def _sample_network(self, ts: int) -> None:
        text = self._read(self.proc_root / "net" / "dev")
        if text is not None:
            self.session.ingest_net_dev(text, ts)

    def _sample_temperature(self, ts: int) -> None:
        # Many hosts (VMs, containers) have no thermal zone at all
        if not self.thermal_zone.exists():
            if not self._thermal_missing_logged:
                self.logger.info(f"[SysMetrics] No thermal zone at {self.thermal_zone}")
                self._thermal_missing_logged = True
            return
        text = self._read(self.thermal_zone)
        if text is not None:
            self.session.ingest_temperature(text, ts)

    def sample(self):
        """Read every counter file once and feed the session."""
        ts = int(time.time() * 1000)
        try:
            self._sample_cpu(ts)
            self._sample_memory(ts)
            self._sample_network(ts)
            self._sample_temperature(ts)
        except Exception as e:
            self.logger.error(f"[SysMetrics] Procfs sampling error: {e}")
