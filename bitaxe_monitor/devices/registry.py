"""Configured devices, their latest stats and the active view."""

from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from bitaxe_monitor.io.settings import SettingsError
from bitaxe_monitor.telemetry.stats import DeviceStats

if TYPE_CHECKING:  # pragma: no cover - for type hinting only
    from bitaxe_monitor.io.settings import SettingsStore

logger = logging.getLogger(__name__)

LEGACY_NICKNAME = "My Bitaxe"
_ID_ALPHABET = string.digits + string.ascii_lowercase


class ViewKind(Enum):
    EMPTY = "empty"
    SINGLE = "single"
    FARM = "farm"


@dataclass(frozen=True)
class View:
    """What the summary and detail display are showing."""

    kind: ViewKind
    device_id: Optional[str] = None

    @classmethod
    def empty(cls) -> "View":
        return cls(ViewKind.EMPTY)

    @classmethod
    def farm(cls) -> "View":
        return cls(ViewKind.FARM)

    @classmethod
    def single(cls, device_id: str) -> "View":
        return cls(ViewKind.SINGLE, device_id)


class ConnectionState(Enum):
    UNCONFIGURED = "unconfigured"
    CONNECTING = "connecting"
    ONLINE = "online"
    DISCONNECTED = "disconnected"


@dataclass
class Device:
    """One polled miner. ``id`` never changes once created."""

    id: str
    nickname: str = ""
    address: str = ""

    @property
    def label(self) -> str:
        return self.nickname or self.address or "Unnamed Device"

    @property
    def configured(self) -> bool:
        return bool(self.address.strip())

    @classmethod
    def from_config(cls, raw: Mapping[str, Any]) -> "Device":
        if not isinstance(raw, Mapping):
            raise ValueError(f"device entry must be a mapping, got {type(raw).__name__}")
        device_id = str(raw.get("id") or "").strip()
        if not device_id:
            raise ValueError("device entry is missing an id")
        address = raw.get("address")
        if address is None:
            address = raw.get("ip", "")
        return cls(id=device_id, nickname=str(raw.get("nickname") or ""), address=str(address or "").strip())

    def to_config(self) -> Dict[str, str]:
        return {"id": self.id, "nickname": self.nickname, "address": self.address}


@dataclass
class DeviceChanges:
    """Result of replacing the device set."""

    devices: List[Device] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    readdressed: List[str] = field(default_factory=list)
    migrated: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.readdressed)


def generate_device_id(now_ms: Optional[int] = None, rng: Optional[random.Random] = None) -> str:
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    rng = rng or random.Random()
    suffix = "".join(rng.choice(_ID_ALPHABET) for _ in range(9))
    return f"device-{now_ms}-{suffix}"


def resolve_default_view(
    devices: Sequence[Device],
    configured_default: str,
    selected_id: Optional[str] = None,
) -> View:
    """Pick the initial view from the device count and the configured default.

    ``farm`` and ``auto`` aggregate once two or more devices exist; ``single``
    shows the last selected device, else the first one.
    """
    if not devices:
        return View.empty()
    if len(devices) == 1:
        return View.single(devices[0].id)
    if configured_default == "single":
        ids = [device.id for device in devices]
        return View.single(selected_id if selected_id in ids else ids[0])
    return View.farm()


class DeviceRegistry:
    """Source of truth for configured devices and their latest stats."""

    def __init__(self, store: Optional["SettingsStore"] = None) -> None:
        self.store = store
        self._devices: Dict[str, Device] = {}
        self._stats: Dict[str, DeviceStats] = {}
        self._failed: Set[str] = set()
        self.selected_device_id: Optional[str] = None
        if store is not None:
            self.selected_device_id = store.get_str("selected_device_id") or None

    # ------------------------------------------------------------------
    # Device set
    def load(self, raw_devices: Optional[Iterable[Any]], legacy_address: str = "") -> DeviceChanges:
        """Replace the device set, migrating a legacy single address when the list is empty."""
        if raw_devices is None:
            raw_devices = []
        if not isinstance(raw_devices, (list, tuple)):
            raise SettingsError(f"devices must be a list, got {type(raw_devices).__name__}")

        parsed: List[Device] = []
        seen: Set[str] = set()
        for raw in raw_devices:
            try:
                device = Device.from_config(raw)
            except ValueError as exc:
                logger.warning("Skipping invalid device entry %r: %s", raw, exc)
                continue
            if device.id in seen:
                logger.warning("Skipping duplicate device id %s", device.id)
                continue
            seen.add(device.id)
            parsed.append(device)

        migrated = False
        legacy_address = (legacy_address or "").strip()
        if not parsed and legacy_address:
            device = Device(id=generate_device_id(), nickname=LEGACY_NICKNAME, address=legacy_address)
            parsed.append(device)
            migrated = True
            self.selected_device_id = device.id
            logger.info("Migrated single address %s to devices list", legacy_address)

        changes = self._replace(parsed)
        changes.migrated = migrated
        if migrated and self.store is not None:
            self.store.set("devices", self.to_config())
            self.store.set("selected_device_id", self.selected_device_id)
        return changes

    def load_from_store(self) -> DeviceChanges:
        if self.store is None:
            raise RuntimeError("registry has no settings store")
        return self.load(self.store.get("devices", []), self.store.get_str("bitaxe_ip"))

    def _replace(self, devices: List[Device]) -> DeviceChanges:
        previous = self._devices
        self._devices = {device.id: device for device in devices}
        changes = DeviceChanges(devices=list(devices))
        for device in devices:
            old = previous.get(device.id)
            if old is None:
                changes.added.append(device.id)
            elif old.address != device.address:
                changes.readdressed.append(device.id)
                self._forget(device.id)
        for device_id in previous:
            if device_id not in self._devices:
                changes.removed.append(device_id)
                self._forget(device_id)
        if self.selected_device_id and self.selected_device_id not in self._devices:
            self.selected_device_id = None
        return changes

    def _forget(self, device_id: str) -> None:
        self._stats.pop(device_id, None)
        self._failed.discard(device_id)

    def _persist(self) -> None:
        if self.store is not None:
            self.store.set("devices", self.to_config())

    def add(self, nickname: str = "", address: str = "") -> Device:
        device = Device(
            id=generate_device_id(),
            nickname=nickname or f"Bitaxe {len(self._devices) + 1}",
            address=address.strip(),
        )
        self._devices[device.id] = device
        self._persist()
        return device

    def update(self, device_id: str, nickname: Optional[str] = None, address: Optional[str] = None) -> Device:
        """Swap in an edited copy of the device; store listeners see the old entry until the write."""
        current = self._devices[device_id]
        edited = Device(
            id=current.id,
            nickname=current.nickname if nickname is None else nickname,
            address=current.address if address is None else address.strip(),
        )
        devices = [edited if device.id == device_id else device for device in self._devices.values()]
        if self.store is not None:
            self.store.set("devices", [device.to_config() for device in devices])
        # A listener may have reloaded already; replacing again is then a no-op.
        self._replace(devices)
        return self._devices[device_id]

    def remove(self, device_id: str) -> None:
        del self._devices[device_id]
        self._forget(device_id)
        if self.selected_device_id == device_id:
            self.selected_device_id = None
        self._persist()

    def to_config(self) -> List[Dict[str, str]]:
        return [device.to_config() for device in self._devices.values()]

    @property
    def devices(self) -> Tuple[Device, ...]:
        return tuple(self._devices.values())

    def get(self, device_id: str) -> Optional[Device]:
        return self._devices.get(device_id)

    def ids(self) -> List[str]:
        return list(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def __len__(self) -> int:
        return len(self._devices)

    # ------------------------------------------------------------------
    # Views
    def select(self, device_id: str) -> None:
        if device_id not in self._devices:
            raise KeyError(f"unknown device id {device_id!r}")
        self.selected_device_id = device_id
        if self.store is not None:
            self.store.set("selected_device_id", device_id)

    def resolve_default_view(self, configured_default: str) -> View:
        return resolve_default_view(self.devices, configured_default, self.selected_device_id)

    # ------------------------------------------------------------------
    # Stats
    def latest_stats(self, device_id: str) -> Optional[DeviceStats]:
        return self._stats.get(device_id)

    def set_stats(self, device_id: str, stats: DeviceStats) -> None:
        self._stats[device_id] = stats
        self._failed.discard(device_id)

    def mark_failed(self, device_id: str) -> None:
        """Remove stats so the device reads as unknown rather than zero."""
        self._stats.pop(device_id, None)
        self._failed.add(device_id)

    def connection_state(self, device_id: str) -> ConnectionState:
        device = self._devices.get(device_id)
        if device is None or not device.configured:
            return ConnectionState.UNCONFIGURED
        if device_id in self._stats:
            return ConnectionState.ONLINE
        if device_id in self._failed:
            return ConnectionState.DISCONNECTED
        return ConnectionState.CONNECTING

    def online_ids(self) -> List[str]:
        return [device_id for device_id in self._devices if device_id in self._stats]

    def pollable(self) -> List[Device]:
        return [device for device in self._devices.values() if device.configured]

    def stats_snapshot(self) -> Dict[str, Optional[DeviceStats]]:
        return {device_id: self._stats.get(device_id) for device_id in self._devices}
