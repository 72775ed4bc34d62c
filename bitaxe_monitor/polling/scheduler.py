"""Cycle cadence: periodic timer, debounced reconfiguration, pause/resume."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Set

from bitaxe_monitor.polling.fetch import FetchCoordinator

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 1.0
DEFAULT_DEBOUNCE_MS = 500


class Debouncer:
    """Fire ``callback`` once, ``delay_s`` after the last ``arm()``.

    Re-arming replaces the pending call instead of queueing another one.
    """

    def __init__(self, delay_s: float, callback: Callable[[], None]) -> None:
        self.delay_s = delay_s
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self, delay_s: Optional[float] = None) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_s if delay_s is None else delay_s, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.callback()


class PollScheduler:
    """Drives a :class:`FetchCoordinator` on a fixed interval.

    The timer never queues: a tick that finds a cycle still in flight is skipped.
    """

    def __init__(
        self,
        coordinator: FetchCoordinator,
        interval_s: float = 10.0,
        reconfigure: Optional[Callable[[], None]] = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self.coordinator = coordinator
        self.interval_s = max(MIN_INTERVAL_SECONDS, float(interval_s))
        self.reconfigure = reconfigure
        self.paused = False
        self._closed = False
        self._timer: Optional[asyncio.Task] = None
        self._cycles: Set[asyncio.Task] = set()
        self._draining: List[asyncio.Task] = []
        self._debouncer = Debouncer(debounce_ms / 1000.0, self._apply_reconfigure)

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def busy(self) -> bool:
        return self.coordinator.in_flight

    @property
    def reconfigure_pending(self) -> bool:
        return self._debouncer.pending

    # ------------------------------------------------------------------
    def start(self, interval_s: Optional[float] = None) -> None:
        """Run one cycle now, then one every ``interval_s`` seconds."""
        if self._closed:
            return
        if interval_s is not None:
            self.interval_s = max(MIN_INTERVAL_SECONDS, float(interval_s))
        self.stop()
        loop = asyncio.get_running_loop()
        self.trigger()
        self._timer = loop.create_task(self._tick(self.interval_s))
        logger.debug("Polling every %.1fs", self.interval_s)

    def stop(self) -> None:
        """Remove the periodic timer; in-flight work is left alone."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _tick(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            self.trigger()

    def trigger(self) -> Optional[asyncio.Task]:
        """Start a cycle unless paused, closed or one is already in flight."""
        if self._closed or self.paused or self.coordinator.in_flight:
            return None
        task = asyncio.get_running_loop().create_task(self.coordinator.poll_all())
        self._cycles.add(task)
        task.add_done_callback(self._on_cycle_done)
        return task

    def _on_cycle_done(self, task: asyncio.Task) -> None:
        self._cycles.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Poll cycle failed", exc_info=exc)

    def refresh_now(self) -> Optional[asyncio.Task]:
        """Supersede any in-flight cycle with a fresh one."""
        if self._closed or self.paused:
            return None
        self.coordinator.cancel_in_flight()
        return self.trigger()

    # ------------------------------------------------------------------
    def pause(self) -> None:
        if self.paused:
            return
        self.paused = True
        self.stop()
        self.coordinator.cancel_in_flight()
        logger.info("Polling paused")

    def resume(self) -> None:
        if not self.paused:
            return
        self.paused = False
        logger.info("Polling resumed")
        self.start()

    def set_interval(self, interval_s: float) -> None:
        self.interval_s = max(MIN_INTERVAL_SECONDS, float(interval_s))
        self.debounce_reconfigure()

    def debounce_reconfigure(self, delay_ms: Optional[int] = None) -> None:
        if self._closed:
            return
        self._debouncer.arm(None if delay_ms is None else delay_ms / 1000.0)

    def _apply_reconfigure(self) -> None:
        if self._closed:
            return
        if self.reconfigure is not None:
            self.reconfigure()
        self.coordinator.cancel_in_flight()
        if not self.paused:
            self.start()

    # ------------------------------------------------------------------
    def teardown(self) -> None:
        """Cancel timers, pending reconfiguration and in-flight work; safe to repeat."""
        self._closed = True
        self.stop()
        self._debouncer.cancel()
        self.coordinator.cancel_in_flight()
        for task in list(self._cycles):
            task.cancel()
            self._draining.append(task)
        self._cycles.clear()

    async def drain(self) -> None:
        """Wait for cycles cancelled by teardown to unwind."""
        draining, self._draining = self._draining, []
        if draining:
            await asyncio.gather(*draining, return_exceptions=True)
