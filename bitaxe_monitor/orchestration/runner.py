"""Run a :class:`MonitorSession` on a background event loop thread."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

from bitaxe_monitor.orchestration.session import MonitorSession, MonitorSnapshot

logger = logging.getLogger(__name__)


class SessionThread:
    """Owns a thread with its own asyncio loop hosting one session.

    Other threads only read :attr:`snapshot` and send commands through
    :meth:`call`; nothing else touches the session directly.
    """

    def __init__(self, session: MonitorSession, name: str = "bitaxe-monitor") -> None:
        self.session = session
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def snapshot(self) -> MonitorSnapshot:
        return self.session.latest_snapshot

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, timeout: Optional[float] = 5.0) -> None:
        if self.alive:
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        self._ready.wait(timeout)

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._main())
        except Exception:
            logger.exception("Monitor session crashed")
        finally:
            loop.close()
            self._loop = None
            self._ready.set()

    async def _main(self) -> None:
        await self.session.start()
        self._ready.set()
        await self.session.run_forever()

    def call(self, func: Callable[..., Any], *args: Any) -> bool:
        """Schedule ``func(*args)`` on the session loop; False when not running."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return False
        loop.call_soon_threadsafe(func, *args)
        return True

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self.call(self.session.request_stop)
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
