"""Coercion and alias-aware lookup helpers for miner status payloads."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

DeviceStats = Dict[str, Any]
FieldPath = Tuple[str, ...]

EFFICIENCY_PATHS: Sequence[FieldPath] = (
    ("efficiency",),
    ("efficiencyGHW",),
    ("efficiency_ghw",),
    ("ghw",),
    ("gh_per_watt",),
    ("hashRatePerWatt",),
)

WIFI_RSSI_PATHS: Sequence[FieldPath] = (
    ("wifiRSSI",),
    ("wifi_rssi",),
    ("rssi",),
    ("signal",),
    ("wifiSignal",),
)
WIFI_CONTAINER_KEYS: Sequence[str] = ("wifi", "wifiInfo", "wlan")
WIFI_NESTED_RSSI_KEYS: Sequence[str] = ("rssi", "RSSI", "signal", "signalDbm", "dbm")

IP_ADDRESS_PATHS: Sequence[FieldPath] = (("ipv4",), ("ipAddress",))

SHARES_ACCEPTED_PATHS: Sequence[FieldPath] = (
    ("shares", "accepted"),
    ("shares", "sharesAccepted"),
    ("sharesAccepted",),
)
SHARES_REJECTED_PATHS: Sequence[FieldPath] = (
    ("shares", "rejected"),
    ("shares", "sharesRejected"),
    ("sharesRejected",),
)

VOLTAGE_RAIL_KEYS: Sequence[str] = ("voltageRails", "voltage_rails", "voltages", "voltageMap")

# Rail readings at or above this are millivolts, below it volts.
RAIL_MILLIVOLT_THRESHOLD = 20.0


def to_number(value: Any, fallback: float = float("nan")) -> float:
    """Convert a JSON scalar to a finite float, returning ``fallback`` otherwise."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return fallback
    elif not isinstance(value, (int, float)):
        return fallback
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return fallback
    return number if math.isfinite(number) else fallback


def _walk(stats: Mapping[str, Any], path: FieldPath) -> Any:
    cursor: Any = stats
    for key in path:
        if not isinstance(cursor, Mapping) or key not in cursor:
            return None
        cursor = cursor[key]
    return cursor


def stat_value(stats: Optional[Mapping[str, Any]], paths: Sequence[FieldPath]) -> Any:
    """Return the first present, non-empty value among ``paths`` (evaluated in order)."""
    if not stats:
        return None
    for path in paths:
        value = _walk(stats, path)
        if value is not None and value != "":
            return value
    return None


def stat_number(
    stats: Optional[Mapping[str, Any]],
    paths: Sequence[FieldPath],
    fallback: float = float("nan"),
) -> float:
    return to_number(stat_value(stats, paths), fallback)


def field_number(stats: Optional[Mapping[str, Any]], key: str, fallback: float = float("nan")) -> float:
    """Shorthand for a single top-level field."""
    return stat_number(stats, ((key,),), fallback)


def field_text(stats: Optional[Mapping[str, Any]], paths: Sequence[FieldPath], default: str) -> str:
    value = stat_value(stats, paths)
    return default if value is None else str(value)


def resolve_efficiency(stats: Optional[Mapping[str, Any]]) -> float:
    """Efficiency in GH/W: reported value first, else hashRate / power."""
    reported = stat_number(stats, EFFICIENCY_PATHS)
    if math.isfinite(reported):
        return reported
    hashrate = field_number(stats, "hashRate", 0.0)
    power = field_number(stats, "power", 0.0)
    if hashrate > 0 and power > 0:
        return hashrate / power
    return float("nan")


def resolve_wifi_rssi(stats: Optional[Mapping[str, Any]]) -> float:
    direct = stat_number(stats, WIFI_RSSI_PATHS)
    if math.isfinite(direct) or not stats:
        return direct
    for container_key in WIFI_CONTAINER_KEYS:
        container = stats.get(container_key)
        if isinstance(container, Mapping):
            for key in WIFI_NESTED_RSSI_KEYS:
                if key in container:
                    return to_number(container[key])
            break
    return float("nan")


def voltage_rails(stats: Optional[Mapping[str, Any]]) -> List[Tuple[str, float]]:
    """Rail name/value pairs from the first rail map present, sorted by name."""
    if not stats:
        return []
    for key in VOLTAGE_RAIL_KEYS:
        rails = stats.get(key)
        if isinstance(rails, Mapping):
            return sorted(((str(name), to_number(value)) for name, value in rails.items()), key=lambda item: item[0])
    return []
