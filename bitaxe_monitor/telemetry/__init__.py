"""Telemetry coercion, time-windowed series and session logging."""

from .logger import TelemetryLogger
from .series import (
    MAX_SAMPLES,
    MIN_WINDOW_SECONDS,
    SPARKLINE_METRICS,
    RenderGeometry,
    Sample,
    SeriesBank,
    TimeSeriesBuffer,
    compute_render_geometry,
)
from .stats import (
    DeviceStats,
    resolve_efficiency,
    resolve_wifi_rssi,
    stat_number,
    stat_value,
    to_number,
    voltage_rails,
)

__all__ = [
    "DeviceStats",
    "MAX_SAMPLES",
    "MIN_WINDOW_SECONDS",
    "RenderGeometry",
    "SPARKLINE_METRICS",
    "Sample",
    "SeriesBank",
    "TelemetryLogger",
    "TimeSeriesBuffer",
    "compute_render_geometry",
    "resolve_efficiency",
    "resolve_wifi_rssi",
    "stat_number",
    "stat_value",
    "to_number",
    "voltage_rails",
]
