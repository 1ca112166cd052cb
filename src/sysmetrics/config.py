"""
SysMetrics settings (shared configuration schema).

This module defines the configuration used by:
- MonitoringSession (buffer capacity, windows, fast-path selection)
- samplers (procfs root, thermal zone path)
- TrackerManager (sampling cadence, peak report cadence)
- CLI (reads env vars, constructs settings)
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional


class SysMetricsConfig:
    """Process-wide logging switches consulted by the error logger."""

    def __init__(self):
        self.enable_logging: bool = False
        self.logs_dir: str = "./logs"


config = SysMetricsConfig()


@dataclass(frozen=True)
class SysMetricsSettings:
    """
    High-level settings for one monitoring session.

    Notes:
    - `chart_capacity` bounds every chart series by point count.
    - `retention_ms` bounds the time-window history by age.
    - `peak_window_ms` is the peak tracker's sliding window.
    - `fps_floor` is the "acceptable" frame-rate threshold used for severity.
    - `min_elapsed_sec` floors the elapsed time of throughput calculations.
    - `peak_report_interval_sec` of 0 disables periodic peak reports.
    """

    chart_capacity: int = 60
    retention_ms: int = 300_000
    peak_window_ms: int = 60_000
    fps_floor: int = 30
    min_elapsed_sec: float = 0.1
    enable_fast_path: bool = True
    sampler_interval_sec: float = 1.0
    peak_report_interval_sec: float = 0.0
    proc_root: str = "/proc"
    thermal_zone: str = "/sys/class/thermal/thermal_zone0/temp"
    logs_dir: str = "./logs"
    enable_logging: bool = False

    def validate(self) -> "SysMetricsSettings":
        if self.chart_capacity <= 0:
            raise ValueError(f"chart_capacity must be positive, got {self.chart_capacity}")
        if self.retention_ms <= 0:
            raise ValueError(f"retention_ms must be positive, got {self.retention_ms}")
        if self.peak_window_ms <= 0:
            raise ValueError(f"peak_window_ms must be positive, got {self.peak_window_ms}")
        if self.min_elapsed_sec <= 0:
            raise ValueError(f"min_elapsed_sec must be positive, got {self.min_elapsed_sec}")
        if self.sampler_interval_sec <= 0:
            raise ValueError(
                f"sampler_interval_sec must be positive, got {self.sampler_interval_sec}"
            )
        return self


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


_ENV_VARS: Dict[str, str] = {
    "chart_capacity": "SYSMETRICS_CHART_CAPACITY",
    "retention_ms": "SYSMETRICS_RETENTION_MS",
    "peak_window_ms": "SYSMETRICS_PEAK_WINDOW_MS",
    "fps_floor": "SYSMETRICS_FPS_FLOOR",
    "min_elapsed_sec": "SYSMETRICS_MIN_ELAPSED_SEC",
    "enable_fast_path": "SYSMETRICS_ENABLE_FAST_PATH",
    "sampler_interval_sec": "SYSMETRICS_INTERVAL",
    "peak_report_interval_sec": "SYSMETRICS_PEAK_REPORT_INTERVAL",
    "proc_root": "SYSMETRICS_PROC_ROOT",
    "thermal_zone": "SYSMETRICS_THERMAL_ZONE",
    "logs_dir": "SYSMETRICS_LOGS_DIR",
    "enable_logging": "SYSMETRICS_ENABLE_LOGGING",
}

_CONVERTERS: Dict[type, Callable[[str], Any]] = {
    int: int,
    float: float,
    bool: _parse_bool,
    str: str,
}


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> SysMetricsSettings:
    """
    Read SysMetrics configuration from environment variables.

    Unset variables keep their defaults. A value that cannot be converted
    is logged and ignored so a typo never stops monitoring.
    """
    from sysmetrics.loggers.error_log import get_error_logger

    env = os.environ if environ is None else environ
    logger = get_error_logger("Settings")
    defaults = SysMetricsSettings()
    overrides: Dict[str, Any] = {}

    types = {f.name: type(getattr(defaults, f.name)) for f in fields(defaults)}
    for name, var in _ENV_VARS.items():
        raw = env.get(var)
        if raw is None:
            continue
        try:
            overrides[name] = _CONVERTERS[types[name]](raw)
        except ValueError:
            logger.warning(f"[SysMetrics] Ignoring invalid {var}={raw!r}")

    return replace(defaults, **overrides)
