"""Monitoring session: owns the telemetry context and wires it to settings."""

from __future__ import annotations

import asyncio
import copy
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from bitaxe_monitor.api.client import HttpMinerClient, MinerClient
from bitaxe_monitor.devices.registry import ConnectionState, Device, DeviceRegistry, View, ViewKind
from bitaxe_monitor.io.settings import SettingsStore
from bitaxe_monitor.polling.context import TelemetryContext
from bitaxe_monitor.polling.fetch import CycleListener, FetchCoordinator
from bitaxe_monitor.polling.scheduler import PollScheduler
from bitaxe_monitor.telemetry.logger import TelemetryLogger
from bitaxe_monitor.telemetry.series import Sample, SeriesBank, SeriesKey
from bitaxe_monitor.telemetry.stats import DeviceStats

logger = logging.getLogger(__name__)

RECONFIGURE_DELAY_MS = 500

# Settings that only change how snapshots are rendered.
DISPLAY_KEYS = (
    "panel_display_mode",
    "show_sparklines",
    "sparkline_theme",
    "show_hashrate",
    "show_temperature",
    "show_power",
    "show_vrm_temp",
    "show_efficiency",
    "show_fan_rpm",
    "show_frequency",
    "show_shares",
    "show_uptime",
    "panel_separator",
    "custom_separator",
    "hashrate_unit",
)


@dataclass(frozen=True)
class MonitorSnapshot:
    """Read-only copy of session state for presentation."""

    view: View
    devices: Tuple[Device, ...] = ()
    stats: Mapping[str, Optional[DeviceStats]] = field(default_factory=dict)
    states: Mapping[str, ConnectionState] = field(default_factory=dict)
    series: Mapping[SeriesKey, Tuple[Sample, ...]] = field(default_factory=dict)
    window_seconds: float = 300.0
    busy: bool = False
    paused: bool = False
    cycles_completed: int = 0
    settings: Mapping[str, Any] = field(default_factory=dict)

    def device(self, device_id: Optional[str]) -> Optional[Device]:
        for device in self.devices:
            if device.id == device_id:
                return device
        return None

    def device_series(self, device_id: str) -> Dict[str, Tuple[Sample, ...]]:
        return {metric: samples for (dev, metric), samples in self.series.items() if dev == device_id}

    def online_count(self) -> int:
        return sum(1 for stats in self.stats.values() if stats is not None)


class MonitorSession:
    """Constructed on enable, torn down on disable."""

    def __init__(
        self,
        store: SettingsStore,
        client: Optional[MinerClient] = None,
        clock: Callable[[], float] = time.monotonic,
        telemetry_logger: Optional[TelemetryLogger] = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.telemetry_logger = telemetry_logger
        self._client = client
        self._owns_client = client is None
        self.context: Optional[TelemetryContext] = None
        self.coordinator: Optional[FetchCoordinator] = None
        self.scheduler: Optional[PollScheduler] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.view = View.empty()
        self._listeners: List[CycleListener] = []
        self._handler_ids: List[int] = []
        self._latest: Optional[MonitorSnapshot] = None
        self._stopped: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self) -> None:
        if self.context is not None:
            return
        self.loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()
        if self._client is None:
            self._client = HttpMinerClient()

        registry = DeviceRegistry(self.store)
        series = SeriesBank(window_seconds=self._window_seconds(), clock=self.clock)
        self.context = TelemetryContext(registry=registry, series=series)
        registry.load_from_store()
        self.view = registry.resolve_default_view(self.store.get_str("default_view"))

        self.coordinator = FetchCoordinator(
            self.context,
            self._client,
            on_cycle_complete=self._on_cycle_complete,
            on_cycle_start=self._publish,
        )
        self.scheduler = PollScheduler(
            self.coordinator,
            interval_s=self.store.get_int("refresh_interval", minimum=1),
            debounce_ms=RECONFIGURE_DELAY_MS,
        )

        for key, handler in (
            ("devices", self._on_devices_changed),
            ("bitaxe_ip", self._on_devices_changed),
            ("refresh_interval", self._on_interval_changed),
            ("paused", self._on_paused_changed),
            ("sparkline_window_minutes", self._on_window_changed),
            ("default_view", self._on_default_view_changed),
        ):
            self._handler_ids.append(self.store.connect(key, handler))
        for key in DISPLAY_KEYS:
            self._handler_ids.append(self.store.connect(key, self._on_display_changed))

        self.scheduler.paused = self.store.get_bool("paused")
        if not self.scheduler.paused:
            self.scheduler.start()
        logger.info("Monitoring %d device(s)", len(registry))
        self._publish()

    async def stop(self) -> None:
        """Tear everything down; safe to call more than once."""
        if self.scheduler is not None:
            self.scheduler.teardown()
            await self.scheduler.drain()
        for handler_id in self._handler_ids:
            self.store.disconnect(handler_id)
        self._handler_ids.clear()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        if self.telemetry_logger is not None:
            self.telemetry_logger.close()
        if self._stopped is not None:
            self._stopped.set()
        self.scheduler = None
        self.coordinator = None
        self.context = None

    async def run_forever(self) -> None:
        await self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.stop()

    def request_stop(self) -> None:
        if self._stopped is not None:
            self._stopped.set()

    # ------------------------------------------------------------------
    # Settings handlers
    def _window_seconds(self) -> float:
        return self.store.get_int("sparkline_window_minutes", minimum=1) * 60.0

    def _on_devices_changed(self, key: str, value: Any) -> None:
        changes = self.context.registry.load_from_store()
        self.context.series.retain(self.context.registry.ids())
        for device_id in changes.readdressed:
            self.context.series.clear_device(device_id)
        for device in self.context.registry.devices:
            if not device.configured:
                self.context.series.clear_device(device.id)
        self._revalidate_view()
        self.scheduler.debounce_reconfigure(RECONFIGURE_DELAY_MS)
        self._publish()

    def _on_interval_changed(self, key: str, value: Any) -> None:
        self.scheduler.set_interval(self.store.get_int("refresh_interval", minimum=1))

    def _on_paused_changed(self, key: str, value: Any) -> None:
        if value:
            self.scheduler.pause()
        else:
            self.scheduler.resume()
        self._publish()

    def _on_window_changed(self, key: str, value: Any) -> None:
        self.context.series.set_window_seconds(self._window_seconds())
        self._publish()

    def _on_default_view_changed(self, key: str, value: Any) -> None:
        self.view = self.context.registry.resolve_default_view(self.store.get_str("default_view"))
        self._publish()

    def _on_display_changed(self, key: str, value: Any) -> None:
        self._publish()

    def _revalidate_view(self) -> None:
        registry = self.context.registry
        view = self.view
        if view.kind is ViewKind.SINGLE and view.device_id in registry:
            return
        if view.kind is ViewKind.FARM and len(registry) >= 2:
            return
        self.view = registry.resolve_default_view(self.store.get_str("default_view"))

    # ------------------------------------------------------------------
    # Commands
    def select_device(self, device_id: str) -> None:
        self.context.registry.select(device_id)
        self.view = View.single(device_id)
        self._publish()

    def select_farm(self) -> None:
        self.view = View.farm() if len(self.context.registry) else View.empty()
        self._publish()

    def refresh_now(self) -> None:
        self.scheduler.refresh_now()

    def set_paused(self, paused: bool) -> None:
        self.store.set("paused", bool(paused))

    def add_listener(self, listener: CycleListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CycleListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    def _on_cycle_complete(self, stats: Dict[str, Optional[DeviceStats]]) -> None:
        if self.telemetry_logger is not None:
            self.telemetry_logger.log_cycle(stats)
        self._publish()
        for listener in list(self._listeners):
            try:
                listener(stats)
            except Exception:
                logger.exception("Cycle listener %r failed", listener)

    def snapshot(self) -> MonitorSnapshot:
        """Build a fresh snapshot; call on the session's loop."""
        if self.context is None:
            return MonitorSnapshot(view=View.empty())
        registry = self.context.registry
        return MonitorSnapshot(
            view=self.view,
            devices=tuple(dataclasses.replace(device) for device in registry.devices),
            stats=copy.deepcopy(registry.stats_snapshot()),
            states={device_id: registry.connection_state(device_id) for device_id in registry.ids()},
            series=self.context.series.snapshot(),
            window_seconds=self.context.series.window_seconds,
            busy=self.coordinator.in_flight if self.coordinator else False,
            paused=self.scheduler.paused if self.scheduler else False,
            cycles_completed=self.context.cycles_completed,
            settings=self.store.as_dict(),
        )

    def _publish(self) -> None:
        self._latest = self.snapshot()

    @property
    def latest_snapshot(self) -> MonitorSnapshot:
        """Last published snapshot; safe to read from another thread."""
        return self._latest or MonitorSnapshot(view=View.empty())
