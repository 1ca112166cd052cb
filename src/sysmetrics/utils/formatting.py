import math
from datetime import datetime
from typing import Any

from sysmetrics.schema.series import PeakSnapshot

_KB = 1024
_MB = 1024 * 1024
_GB = 1024 * 1024 * 1024


def fmt_percent(value: Any, digits: int = 1) -> str:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return "N/A"
    if not math.isfinite(v):
        return "N/A"
    return f"{v:.{digits}f}%"


def fmt_mem_mb(mb: Any) -> str:
    try:
        v = float(mb)
    except (TypeError, ValueError):
        return "N/A"
    if v >= 1024:
        return f"{v / 1024:.2f} GB"
    return f"{v:.0f} MB"


def fmt_bytes(num_bytes: Any) -> str:
    """
    Format a byte count into a human-friendly string (B, KB, MB, GB).
    Always uses binary units (1 KB = 1024 B).
    """
    try:
        v = float(num_bytes)
    except (TypeError, ValueError):
        return "N/A"

    if v < _KB:
        return f"{v:.0f} B"
    if v < _MB:
        return f"{v / _KB:.1f} KB"
    if v < _GB:
        return f"{v / _MB:.1f} MB"
    return f"{v / _GB:.2f} GB"


def fmt_speed(bytes_per_sec: Any, prefix: str = "") -> str:
    """Bytes per second with an automatically chosen unit, e.g. '↓ 1.5 KB/s'."""
    try:
        v = float(bytes_per_sec)
    except (TypeError, ValueError):
        return "N/A"

    lead = f"{prefix} " if prefix else ""
    if v < _KB:
        return f"{lead}{v:.0f} B/s"
    if v < _MB:
        return f"{lead}{v / _KB:.1f} KB/s"
    if v < _GB:
        return f"{lead}{v / _MB:.2f} MB/s"
    return f"{lead}{v / _GB:.2f} GB/s"


def fmt_mbps(mbps: Any) -> str:
    try:
        v = float(mbps)
    except (TypeError, ValueError):
        return "N/A"

    if v < 0.01:
        return "0 Mbps"
    if v < 1:
        return f"{v:.2f} Mbps"
    if v < 100:
        return f"{v:.1f} Mbps"
    if v < 1000:
        return f"{v:.0f} Mbps"
    return f"{v / 1000:.2f} Gbps"


def fmt_clock(timestamp_ms: int) -> str:
    """Local wall-clock time of a millisecond timestamp, '--:--:--' if unset."""
    if not timestamp_ms:
        return "--:--:--"
    return datetime.fromtimestamp(timestamp_ms / 1000.0).strftime("%H:%M:%S")


def format_peak_report(
    snapshot: PeakSnapshot,
    show_cpu: bool = True,
    show_ram: bool = True,
    show_temperature: bool = True,
    show_network: bool = True,
    show_fps: bool = False,
) -> str:
    """
    Plain-text summary of a peak snapshot.

    Temperature and FPS lines are only included when the family has data.
    """
    lines = ["Peak Stats (Last Window)", "-" * 27]

    if show_cpu:
        cpu = snapshot.cpu
        lines.append(f"CPU Peak: {cpu.peak:.1f}% ({fmt_clock(cpu.peak_time_ms)})")
    if show_ram:
        ram = snapshot.ram
        lines.append(f"RAM Peak: {ram.peak:.0f}MB ({fmt_clock(ram.peak_time_ms)})")
    if show_temperature and snapshot.temperature.peak > 0:
        temp = snapshot.temperature
        lines.append(f"Temp Peak: {temp.peak:.1f}°C ({fmt_clock(temp.peak_time_ms)})")
    if show_network:
        lines.append(
            f"Net Peak: ↓{snapshot.network_ingress.peak:.1f}Mbps "
            f"↑{snapshot.network_egress.peak:.1f}Mbps"
        )
    if show_fps and snapshot.fps.peak > 0:
        fps = snapshot.fps
        lines.append(
            f"FPS: {fps.minimum:.0f}-{fps.peak:.0f} "
            f"(avg: {fps.average:.1f}, drops: {snapshot.frame_drops})"
        )

    lines.append("")
    lines.append(f"Avg: CPU {snapshot.cpu.average:.1f}% | RAM {snapshot.ram.average:.0f}MB")
    return "\n".join(lines)
