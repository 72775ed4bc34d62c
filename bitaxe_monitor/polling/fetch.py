"""One poll cycle: concurrent status fetches with shared cancellation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set

import httpx

from bitaxe_monitor.api.client import MinerClient
from bitaxe_monitor.devices.registry import Device
from bitaxe_monitor.polling.context import TelemetryContext
from bitaxe_monitor.telemetry.series import Sample
from bitaxe_monitor.telemetry.stats import DeviceStats

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    OK = "ok"
    FAILED = "failed"
    DROPPED = "dropped"


class FailureKind(Enum):
    """Transient connectivity problems vs. a reachable but misbehaving device."""

    EXPECTED = "expected"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class DeviceOutcome:
    device_id: str
    status: OutcomeStatus
    stats: Optional[DeviceStats] = None
    failure: Optional[FailureKind] = None
    error: Optional[BaseException] = None

    @property
    def signature(self) -> Optional[str]:
        if self.status is not OutcomeStatus.FAILED:
            return None
        return f"{self.failure.value}:{type(self.error).__name__}:{self.error}"

    @classmethod
    def dropped(cls, device_id: str) -> "DeviceOutcome":
        return cls(device_id, OutcomeStatus.DROPPED)


@dataclass
class CycleResult:
    """Aggregate of one cycle. ``busy`` means the call was rejected (single-flight)."""

    outcomes: Dict[str, DeviceOutcome] = field(default_factory=dict)
    busy: bool = False
    cancelled: bool = False

    def by_status(self, status: OutcomeStatus) -> List[str]:
        return [device_id for device_id, outcome in self.outcomes.items() if outcome.status is status]


CycleListener = Callable[[Dict[str, Optional[DeviceStats]]], None]
SeriesListener = Callable[[str, str, Sample], None]


class CancellationToken:
    """One generation of in-flight work; cancelling it cancels every attached task."""

    def __init__(self) -> None:
        self._cancelled = False
        self._tasks: Set[asyncio.Future] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def attach(self, task: asyncio.Future) -> None:
        if self._cancelled:
            task.cancel()
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()


def classify_failure(exc: BaseException) -> FailureKind:
    if isinstance(exc, httpx.HTTPStatusError):
        return FailureKind.UNEXPECTED
    if isinstance(exc, (httpx.TransportError, OSError)):
        return FailureKind.EXPECTED
    return FailureKind.UNEXPECTED


_KNOWN_FAILURES = (httpx.HTTPError, OSError, ValueError)


class FetchCoordinator:
    """Polls every device concurrently and applies outcomes to the telemetry context."""

    def __init__(
        self,
        context: TelemetryContext,
        client: MinerClient,
        on_cycle_complete: Optional[CycleListener] = None,
        on_series_updated: Optional[SeriesListener] = None,
        on_cycle_start: Optional[Callable[[], None]] = None,
    ) -> None:
        self.context = context
        self.client = client
        self.on_cycle_complete = on_cycle_complete
        self.on_series_updated = on_series_updated
        self.on_cycle_start = on_cycle_start
        self._token = CancellationToken()
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def token(self) -> CancellationToken:
        return self._token

    def cancel_in_flight(self) -> None:
        """Cancel the current generation and start a fresh one; clears the busy flag."""
        self._token.cancel()
        self._token = CancellationToken()
        self._in_flight = False

    async def poll_all(self, devices: Optional[Sequence[Device]] = None) -> CycleResult:
        if self._in_flight:
            logger.debug("Poll cycle still in flight, skipping")
            return CycleResult(busy=True)
        if devices is None:
            devices = self.context.registry.pollable()
        devices = list(devices)

        token = self._token
        self._in_flight = True
        if self.on_cycle_start is not None:
            self.on_cycle_start()
        try:
            tasks = [asyncio.ensure_future(self._poll_device(device, token)) for device in devices]
            for task in tasks:
                token.attach(task)
            results = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            if token is self._token:
                self._in_flight = False

        outcomes: Dict[str, DeviceOutcome] = {}
        for device, result in zip(devices, results):
            if isinstance(result, asyncio.CancelledError):
                result = DeviceOutcome.dropped(device.id)
            elif isinstance(result, BaseException):
                raise result
            outcomes[device.id] = result

        if token.cancelled:
            return CycleResult(outcomes=outcomes, cancelled=True)

        self.context.cycles_completed += 1
        if self.on_cycle_complete is not None:
            self.on_cycle_complete(self.context.registry.stats_snapshot())
        return CycleResult(outcomes=outcomes)

    async def _poll_device(self, device: Device, token: CancellationToken) -> DeviceOutcome:
        address = device.address
        try:
            stats = await self.client.fetch_status(address)
        except asyncio.CancelledError:
            return DeviceOutcome.dropped(device.id)
        except Exception as exc:
            if token.cancelled:
                return DeviceOutcome.dropped(device.id)
            outcome = DeviceOutcome(device.id, OutcomeStatus.FAILED, failure=classify_failure(exc), error=exc)
        else:
            if token.cancelled:
                return DeviceOutcome.dropped(device.id)
            outcome = DeviceOutcome(device.id, OutcomeStatus.OK, stats=stats)
        try:
            applied = self._apply(outcome, address)
        except Exception as exc:
            outcome = DeviceOutcome(device.id, OutcomeStatus.FAILED, failure=FailureKind.UNEXPECTED, error=exc)
            applied = self._apply(outcome, address)
        if not applied:
            return DeviceOutcome.dropped(device.id)
        return outcome

    def _apply(self, outcome: DeviceOutcome, address: str) -> bool:
        registry = self.context.registry
        current = registry.get(outcome.device_id)
        # Device removed or re-addressed while the request was out.
        if current is None or current.address != address:
            return False

        if outcome.status is OutcomeStatus.OK:
            registry.set_stats(outcome.device_id, outcome.stats)
            if self.context.failures.clear(outcome.device_id):
                logger.info("Device %s (%s) back online", current.label, address)
            pushed = self.context.series.push_stats(outcome.device_id, outcome.stats)
        else:
            registry.mark_failed(outcome.device_id)
            pushed = self.context.series.push_gap(outcome.device_id)
            if self.context.failures.record(outcome.device_id, outcome.signature):
                self._log_failure(current, outcome)

        if self.on_series_updated is not None:
            for metric, sample in pushed:
                self.on_series_updated(outcome.device_id, metric, sample)
        return True

    @staticmethod
    def _log_failure(device: Device, outcome: DeviceOutcome) -> None:
        if outcome.failure is FailureKind.EXPECTED:
            logger.warning("Device %s (%s) unreachable: %s", device.label, device.address, outcome.error)
        elif isinstance(outcome.error, _KNOWN_FAILURES):
            logger.error("Device %s (%s) returned a bad response: %s", device.label, device.address, outcome.error)
        else:
            logger.error(
                "Unexpected error polling %s (%s)",
                device.label,
                device.address,
                exc_info=outcome.error,
            )
