"""Mutable telemetry state shared by the scheduler and the fetch coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from bitaxe_monitor.devices.registry import DeviceRegistry
from bitaxe_monitor.telemetry.series import SeriesBank


class FailureMemo:
    """Last failure signature per device, used to log each distinct failure once."""

    def __init__(self) -> None:
        self._last: Dict[str, str] = {}

    def record(self, device_id: str, signature: str) -> bool:
        """Remember ``signature``; return True if it differs from the previous one."""
        if self._last.get(device_id) == signature:
            return False
        self._last[device_id] = signature
        return True

    def clear(self, device_id: str) -> bool:
        """Forget the device's failure; return True if one was remembered."""
        return self._last.pop(device_id, None) is not None


@dataclass
class TelemetryContext:
    """Everything one monitoring session mutates while polling."""

    registry: DeviceRegistry
    series: SeriesBank
    failures: FailureMemo = field(default_factory=FailureMemo)
    cycles_completed: int = 0
