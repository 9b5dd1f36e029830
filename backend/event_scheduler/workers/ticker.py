from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``callback`` every ``interval_sec`` seconds on the running event loop.

    A tick runs to completion before the next one is scheduled; slots missed
    while a tick overran are dropped, not replayed. ``cancel()`` stops future
    ticks only: an in-flight tick is shielded and finishes on its own.
    """

    def __init__(self, name: str, interval_sec: float, callback: Callable[[], Awaitable[object]]) -> None:
        self.name = name
        self.interval_sec = interval_sec
        self.callback = callback
        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=f"ticker:{self.name}")

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def wait_idle(self) -> None:
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            await asyncio.wait({inflight})

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time() + self.interval_sec
        while True:
            await asyncio.sleep(max(next_run - loop.time(), 0))
            self._inflight = loop.create_task(self._run_once(), name=f"tick:{self.name}")
            await asyncio.shield(self._inflight)

            next_run += self.interval_sec
            now = loop.time()
            if next_run <= now:
                skipped = int((now - next_run) // self.interval_sec) + 1
                logger.warning("Tick overran its interval", extra={"task": self.name, "skipped": skipped})
                next_run += skipped * self.interval_sec

    async def _run_once(self) -> None:
        try:
            await self.callback()
        except Exception:
            logger.exception("Periodic task iteration failed", extra={"task": self.name})
