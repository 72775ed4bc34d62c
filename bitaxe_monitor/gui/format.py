"""Display formatting for miner telemetry."""

from __future__ import annotations

import math
from typing import Any, Optional

from bitaxe_monitor.telemetry.stats import RAIL_MILLIVOLT_THRESHOLD, to_number

PLACEHOLDER = "--"
GH_PER_TH = 1000.0
# "auto" switches to TH/s from this many GH/s upward. Lower than the usual
# 1000 GH/s cutoff so a single 550 GH/s miner reads "0.55 TH/s".
AUTO_TH_MIN_GH = 100.0


def _finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_hashrate(hashrate: Optional[float], unit: str = "auto") -> str:
    """Hashrate given in GH/s."""
    if not _finite(hashrate) or hashrate == 0:
        return "0 GH/s"
    if unit == "TH/s":
        return f"{hashrate / GH_PER_TH:.2f} TH/s"
    if unit == "GH/s":
        return f"{hashrate:.2f} GH/s"
    if abs(hashrate) >= AUTO_TH_MIN_GH:
        return f"{hashrate / GH_PER_TH:.2f} TH/s"
    return f"{hashrate:.2f} GH/s"


def format_temperature(value: Optional[float]) -> str:
    if not _finite(value):
        return PLACEHOLDER
    return f"{round_half_up(value)}°C"


def format_power(value: Optional[float], decimals: int = 2) -> str:
    if not _finite(value):
        return PLACEHOLDER
    return f"{value:.{decimals}f}W"


def format_efficiency(value: Optional[float]) -> str:
    if not _finite(value) or value <= 0:
        return PLACEHOLDER
    return f"{value:.2f} GH/W"


def format_frequency(value: Optional[float]) -> str:
    if not _finite(value) or value <= 0:
        return PLACEHOLDER
    return f"{value:.0f} MHz"


def format_fan_rpm(value: Optional[float]) -> str:
    if not _finite(value) or value <= 0:
        return PLACEHOLDER
    return f"{value:.0f} RPM"


def format_rssi(value: Optional[float]) -> str:
    if not _finite(value):
        return PLACEHOLDER
    return f"{value:.0f} dBm"


def format_count(value: Optional[float]) -> str:
    if not _finite(value):
        return PLACEHOLDER
    return f"{round_half_up(value)}"


def format_percentage(value: Optional[float]) -> str:
    if not _finite(value):
        return PLACEHOLDER
    return f"{value:.2f}%"


def format_uptime(value: Any) -> str:
    if value is None or value == "":
        return PLACEHOLDER
    seconds = to_number(value)
    if not math.isfinite(seconds):
        return str(value)
    seconds = max(0, int(seconds))
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_uptime_compact(value: Any) -> Optional[str]:
    """Panel form (``3h12m``); None when there is nothing worth showing."""
    seconds = to_number(value, 0.0)
    if seconds <= 0:
        return None
    hours, rest = divmod(int(seconds), 3600)
    minutes = rest // 60
    return f"{hours}h{minutes}m" if hours > 0 else f"{minutes}m"


def format_difficulty(value: Optional[float]) -> str:
    if not _finite(value) or value <= 0:
        return PLACEHOLDER
    for scale, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if value >= scale:
            return f"{value / scale:.2f}{suffix}"
    return f"{round_half_up(value)}"


def format_bytes(value: Optional[float]) -> str:
    if not _finite(value) or value <= 0:
        return PLACEHOLDER
    if value >= 1024 * 1024:
        return f"{value / (1024 * 1024):.2f} MB"
    if value >= 1024:
        return f"{value / 1024:.2f} KB"
    return f"{round_half_up(value)} B"


def format_rail_voltage(value: Optional[float]) -> str:
    if not _finite(value):
        return PLACEHOLDER
    if value >= RAIL_MILLIVOLT_THRESHOLD:
        return f"{value:.0f} mV"
    return f"{value:.2f} V"


def format_millis(value: Optional[float], unit: str) -> str:
    if not _finite(value):
        return PLACEHOLDER
    return f"{value:.0f}{unit}"
