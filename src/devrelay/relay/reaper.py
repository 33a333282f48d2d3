from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .store import CommandStore

log = logging.getLogger("devrelay.reaper")

DEFAULT_INTERVAL = 60.0
DEFAULT_MAX_AGE = 60.0


class Reaper:
    """Periodically drops command records older than ``max_age`` seconds.

    A safety net for records whose dispatcher never got to clean up (peer gone
    for good, caller cancelled in an odd place).  Status is not consulted.
    """

    def __init__(
        self,
        store: CommandStore,
        *,
        interval: float = DEFAULT_INTERVAL,
        max_age: float = DEFAULT_MAX_AGE,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.store = store
        self.interval = interval
        self.max_age = max_age
        self.sleep = sleep or asyncio.sleep
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self) -> list[int]:
        removed = self.store.sweep_older_than(self.max_age)
        if removed:
            log.info("reaped %d stale command(s): %s", len(removed), removed)
        return removed

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="devrelay-reaper")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await self.sleep(self.interval)
            self.sweep()
