"""Presentation models built from session snapshots; no Qt dependency."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from bitaxe_monitor.devices.registry import ConnectionState, Device, ViewKind
from bitaxe_monitor.gui.format import (
    PLACEHOLDER,
    format_bytes,
    format_count,
    format_difficulty,
    format_efficiency,
    format_fan_rpm,
    format_frequency,
    format_hashrate,
    format_millis,
    format_percentage,
    format_power,
    format_rail_voltage,
    format_rssi,
    format_temperature,
    format_uptime,
    format_uptime_compact,
    round_half_up,
)
from bitaxe_monitor.telemetry.stats import (
    IP_ADDRESS_PATHS,
    SHARES_ACCEPTED_PATHS,
    SHARES_REJECTED_PATHS,
    DeviceStats,
    field_number,
    field_text,
    resolve_efficiency,
    resolve_wifi_rssi,
    stat_number,
    voltage_rails,
)

if TYPE_CHECKING:  # pragma: no cover - for type hinting only
    from bitaxe_monitor.orchestration.session import MonitorSnapshot

STATE_LABELS = {
    ConnectionState.UNCONFIGURED: "No IP set",
    ConnectionState.CONNECTING: "Connecting...",
    ConnectionState.DISCONNECTED: "Disconnected",
}
DEFAULT_LABEL = "Bitaxe"


@dataclass(slots=True)
class StatRow:
    key: str
    label: str
    value: str = PLACEHOLDER


@dataclass(slots=True)
class StatSection:
    title: str
    rows: List[StatRow] = field(default_factory=list)

    def value(self, key: str) -> Optional[str]:
        for row in self.rows:
            if row.key == key:
                return row.value
        return None


@dataclass(slots=True)
class FarmSummary:
    """Aggregate over devices with live stats only."""

    total: int = 0
    online: int = 0
    hashrate: float = 0.0
    power: float = 0.0
    max_temp: float = float("nan")
    accepted: float = 0.0
    rejected: float = 0.0

    @property
    def efficiency(self) -> float:
        if self.hashrate > 0 and self.power > 0:
            return self.hashrate / self.power
        return float("nan")


@dataclass(slots=True)
class DeviceCard:
    """One row of the farm view."""

    device_id: str
    label: str
    state: ConnectionState
    hashrate: str = PLACEHOLDER
    temperature: str = PLACEHOLDER
    power: str = PLACEHOLDER
    efficiency: str = PLACEHOLDER


SECTION_LAYOUT = (
    ("Hashrate", (("hashrate", "Hashrate"), ("hashrate1m", "Hashrate 1m"), ("hashrate10m", "Hashrate 10m"),
                  ("hashrate1h", "Hashrate 1h"), ("errorRate", "Error Rate"))),
    ("Temperature", (("asicTemp", "ASIC Temp"), ("vrmTemp", "VRM Temp"), ("tempTarget", "Temp Target"))),
    ("Power", (("power", "Power"), ("voltage", "Voltage"), ("current", "Current"), ("coreVoltage", "Core Voltage"))),
    ("Performance", (("fan", "Fan"), ("frequency", "Frequency"), ("efficiency", "Efficiency"),
                     ("overclock", "Overclock"))),
    ("Pool", (("pool", "Pool"), ("poolDifficulty", "Pool Diff"), ("fallbackPool", "Fallback Pool"))),
    ("Shares", (("sharesAccepted", "Accepted"), ("sharesRejected", "Rejected"), ("bestDiff", "Best Diff"),
                ("bestSessionDiff", "Session Best"))),
    ("System", (("uptime", "Uptime"), ("model", "Model"), ("version", "Version"), ("boardVersion", "Board Version"))),
    ("Network", (("ipAddress", "IP Address"), ("ssid", "SSID"), ("wifiRssi", "Wi-Fi RSSI"), ("freeHeap", "Free Heap"))),
)


def _stat_values(stats: DeviceStats, unit: str) -> Dict[str, str]:
    def num(key: str) -> float:
        return field_number(stats, key, 0.0)

    temp_target = round_half_up(num("temptarget"))
    core_voltage = num("coreVoltageActual")
    return {
        "hashrate": format_hashrate(num("hashRate"), unit),
        "hashrate1m": format_hashrate(num("hashRate_1m"), unit),
        "hashrate10m": format_hashrate(num("hashRate_10m"), unit),
        "hashrate1h": format_hashrate(num("hashRate_1h"), unit),
        "errorRate": format_percentage(num("errorPercentage")),
        "asicTemp": format_temperature(num("temp")),
        "vrmTemp": format_temperature(num("vrTemp")),
        "tempTarget": f"{temp_target}°C" if temp_target > 0 else PLACEHOLDER,
        "power": format_power(num("power")),
        "voltage": format_millis(num("voltage"), "mV"),
        "current": format_millis(num("current"), "mA"),
        "coreVoltage": format_millis(core_voltage, "mV") if core_voltage > 0 else PLACEHOLDER,
        "fan": format_fan_rpm(field_number(stats, "fanrpm")),
        "frequency": format_frequency(num("frequency")),
        "efficiency": format_efficiency(resolve_efficiency(stats)),
        "overclock": "Enabled" if num("overclockEnabled") == 1 else "Disabled",
        "pool": field_text(stats, (("stratumURL",),), "Not connected"),
        "poolDifficulty": format_difficulty(num("poolDifficulty")),
        "fallbackPool": field_text(stats, (("fallbackStratumURL",),), PLACEHOLDER),
        "sharesAccepted": format_count(stat_number(stats, SHARES_ACCEPTED_PATHS)),
        "sharesRejected": format_count(stat_number(stats, SHARES_REJECTED_PATHS)),
        "bestDiff": format_difficulty(num("bestDiff")),
        "bestSessionDiff": format_difficulty(num("bestSessionDiff")),
        "uptime": format_uptime(stats.get("uptimeSeconds")),
        "model": field_text(stats, (("ASICModel",),), "Unknown"),
        "version": field_text(stats, (("version",),), "Unknown"),
        "boardVersion": field_text(stats, (("boardVersion",),), PLACEHOLDER),
        "ipAddress": field_text(stats, IP_ADDRESS_PATHS, PLACEHOLDER),
        "ssid": field_text(stats, (("ssid",),), PLACEHOLDER),
        "wifiRssi": format_rssi(resolve_wifi_rssi(stats)),
        "freeHeap": format_bytes(num("freeHeap")),
    }


def build_stat_sections(stats: Optional[DeviceStats], hashrate_unit: str = "auto") -> List[StatSection]:
    """Detail rows for one device; every value is ``--`` when stats are absent."""
    values = _stat_values(stats, hashrate_unit) if stats is not None else {}
    sections = []
    for title, entries in SECTION_LAYOUT:
        rows = [StatRow(key, label, values.get(key, PLACEHOLDER)) for key, label in entries]
        sections.append(StatSection(title, rows))
        if title == "Power" and stats is not None:
            rails = voltage_rails(stats)
            if rails:
                sections.append(StatSection(
                    "Voltage Rails",
                    [StatRow(f"rail:{name}", f"{name} Rail", format_rail_voltage(value)) for name, value in rails],
                ))
    return sections


def _separator(settings: Mapping[str, Any]) -> str:
    separator = settings.get("custom_separator") or settings.get("panel_separator") or "|"
    return f" {separator} "


def build_panel_label(
    stats: Optional[DeviceStats],
    settings: Mapping[str, Any],
    state: ConnectionState = ConnectionState.ONLINE,
) -> str:
    """Summary text for a single device, honouring the ``show_*`` toggles."""
    if state is not ConnectionState.ONLINE:
        return STATE_LABELS[state]
    if stats is None:
        return STATE_LABELS[ConnectionState.CONNECTING]

    unit = settings.get("hashrate_unit", "auto")
    parts: List[str] = []
    if settings.get("show_hashrate"):
        parts.append(format_hashrate(field_number(stats, "hashRate", 0.0), unit))
    if settings.get("show_temperature"):
        parts.append(f"{round_half_up(field_number(stats, 'temp', 0.0))}°C")
    if settings.get("show_vrm_temp"):
        parts.append(f"VRM:{round_half_up(field_number(stats, 'vrTemp', 0.0))}°C")
    if settings.get("show_power"):
        parts.append(f"{field_number(stats, 'power', 0.0):.1f}W")
    if settings.get("show_efficiency"):
        efficiency = resolve_efficiency(stats)
        if math.isfinite(efficiency):
            parts.append(f"{efficiency:.1f}GH/W")
    if settings.get("show_fan_rpm"):
        fan = field_number(stats, "fanrpm", 0.0)
        if fan > 0:
            parts.append(f"{fan:.0f}RPM")
    if settings.get("show_frequency"):
        frequency = field_number(stats, "frequency", 0.0)
        if frequency > 0:
            parts.append(f"{frequency:.0f}MHz")
    if settings.get("show_shares"):
        parts.append(f"{stat_number(stats, SHARES_ACCEPTED_PATHS, 0.0):.0f}sh")
    if settings.get("show_uptime"):
        uptime = format_uptime_compact(stats.get("uptimeSeconds"))
        if uptime:
            parts.append(uptime)
    return _separator(settings).join(parts) if parts else DEFAULT_LABEL


def summarize_farm(devices: Sequence[Device], stats: Mapping[str, Optional[DeviceStats]]) -> FarmSummary:
    summary = FarmSummary(total=len(devices))
    temps = []
    for device in devices:
        device_stats = stats.get(device.id)
        if device_stats is None:
            continue
        summary.online += 1
        summary.hashrate += field_number(device_stats, "hashRate", 0.0)
        summary.power += field_number(device_stats, "power", 0.0)
        summary.accepted += stat_number(device_stats, SHARES_ACCEPTED_PATHS, 0.0)
        summary.rejected += stat_number(device_stats, SHARES_REJECTED_PATHS, 0.0)
        temp = field_number(device_stats, "temp")
        if math.isfinite(temp):
            temps.append(temp)
    if temps:
        summary.max_temp = max(temps)
    return summary


def build_farm_label(summary: FarmSummary, settings: Mapping[str, Any]) -> str:
    if summary.total == 0:
        return STATE_LABELS[ConnectionState.UNCONFIGURED]
    parts = [f"{summary.online}/{summary.total} online"]
    if summary.online:
        parts.append(format_hashrate(summary.hashrate, settings.get("hashrate_unit", "auto")))
        parts.append(f"{summary.power:.1f}W")
    return _separator(settings).join(parts)


def build_device_cards(snapshot: "MonitorSnapshot", hashrate_unit: str = "auto") -> List[DeviceCard]:
    cards = []
    for device in snapshot.devices:
        state = snapshot.states.get(device.id, ConnectionState.CONNECTING)
        card = DeviceCard(device_id=device.id, label=device.label, state=state)
        stats = snapshot.stats.get(device.id)
        if stats is not None:
            card.hashrate = format_hashrate(field_number(stats, "hashRate", 0.0), hashrate_unit)
            card.temperature = format_temperature(field_number(stats, "temp"))
            card.power = format_power(field_number(stats, "power"), decimals=1)
            card.efficiency = format_efficiency(resolve_efficiency(stats))
        cards.append(card)
    return cards


def panel_text(snapshot: "MonitorSnapshot", settings: Mapping[str, Any]) -> str:
    """Summary label for the snapshot's view and ``panel_display_mode``."""
    if not snapshot.devices:
        return STATE_LABELS[ConnectionState.UNCONFIGURED]
    mode = settings.get("panel_display_mode", "auto")
    aggregate = mode == "aggregate" or (mode == "auto" and snapshot.view.kind is ViewKind.FARM)
    if aggregate:
        return build_farm_label(summarize_farm(snapshot.devices, snapshot.stats), settings)

    device_id = snapshot.view.device_id
    if snapshot.device(device_id) is None:
        device_id = snapshot.devices[0].id
    state = snapshot.states.get(device_id, ConnectionState.CONNECTING)
    return build_panel_label(snapshot.stats.get(device_id), settings, state)
