from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..state import CommandStatus
from .errors import ActionError, CommandEvicted, CommandTimeout
from .store import CommandStore

log = logging.getLogger("devrelay.dispatcher")

DEFAULT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.1


class CommandDispatcher:
    """Turns the poll/report exchange with the peer into one awaitable call.

    Each call owns exactly one record: it is created on entry and deleted on
    exit whatever the outcome, so a result reported after the caller gave up
    lands on an id that no longer exists and is dropped.  The relay can stop
    waiting but cannot stop the peer from finishing an action it already
    picked up.
    """

    def __init__(
        self,
        store: CommandStore,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.store = store
        self.timeout = timeout
        self.poll_interval = poll_interval

    async def dispatch(
        self,
        action: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        timeout = self.timeout if timeout is None else timeout
        command_id = self.store.create(action, params)
        waiter = self.store.watch(command_id)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            while True:
                record = self.store.get(command_id)
                if record is None:
                    raise CommandEvicted(
                        f"Command {command_id} [{action}] disappeared before completing",
                        command_id=command_id,
                    )
                if record.status is CommandStatus.COMPLETED:
                    log.debug("command %d [%s] completed", command_id, action)
                    return record.result
                if record.status is CommandStatus.ERROR:
                    message = record.error_message()
                    log.debug("command %d [%s] failed: %s", command_id, action, message)
                    raise ActionError(message, command_id=command_id)

                remaining = deadline - loop.time()
                if remaining <= 0:
                    log.warning("command %d [%s] timed out after %gs", command_id, action, timeout)
                    raise CommandTimeout(command_id=command_id)
                try:
                    # The store resolves the waiter on report; the interval
                    # re-check only bounds how stale a missed wake-up can be.
                    await asyncio.wait_for(
                        asyncio.shield(waiter), timeout=min(self.poll_interval, remaining)
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self.store.delete(command_id)
