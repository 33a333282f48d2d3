from __future__ import annotations

import logging
from typing import Any, Callable

from ..config import RelayConfig
from .dispatcher import CommandDispatcher
from .errors import UnknownCommand
from .reaper import Reaper
from .store import CommandStore
from .telemetry import TelemetryHub

log = logging.getLogger("devrelay.service")


class RelayService:
    """Owns every piece of shared relay state for one server process.

    Handlers receive this object instead of reaching for module globals.
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = config or RelayConfig()
        self.store = CommandStore(clock=clock)
        self.dispatcher = CommandDispatcher(
            self.store,
            timeout=self.config.command_timeout,
            poll_interval=self.config.poll_interval,
        )
        self.reaper = Reaper(
            self.store,
            interval=self.config.reaper_interval,
            max_age=self.config.command_max_age,
        )
        self.telemetry = TelemetryHub(
            network_capacity=self.config.network_capacity,
            console_capacity=self.config.console_capacity,
            performance_capacity=self.config.performance_capacity,
        )

    async def dispatch(
        self, action: str, params: dict[str, Any] | None = None, timeout: float | None = None
    ) -> Any:
        return await self.dispatcher.dispatch(action, params, timeout)

    def poll(self) -> list[dict[str, Any]]:
        # No claim step: a command stays visible to every poll until its
        # result is reported, so the peer may see it more than once.
        return self.store.list_pending()

    def report(
        self,
        command_id: Any,
        success: bool,
        result: Any = None,
        error: Any = None,
    ) -> bool:
        """Record the peer's outcome; returns whether it was still wanted."""
        key = _command_key(command_id)
        if key is None:
            log.debug("ignoring result with malformed command id %r", command_id)
            return False
        payload = result if success else {"error": error}
        try:
            accepted = self.store.set_result(key, bool(success), payload)
        except UnknownCommand:
            log.debug("dropping result for unknown command %s", key)
            return False
        if not accepted:
            log.debug("dropping duplicate result for command %s", key)
        return accepted

    def push_telemetry(self, kind: str, data: Any) -> bool:
        return self.telemetry.push(kind, data)

    def status(self) -> dict[str, Any]:
        sizes = self.telemetry.sizes()
        return {
            "networkRequests": sizes["network"],
            "consoleLogs": sizes["console"],
            "performanceMetrics": sizes["performance"],
            "lastUpdate": self.telemetry.last_update,
            "pendingCommands": self.store.pending_count(),
        }

    def start(self) -> None:
        self.reaper.start()

    async def stop(self) -> None:
        await self.reaper.stop()


def _command_key(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None
