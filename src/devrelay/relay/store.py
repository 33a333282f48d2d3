"""
Correlated command store.

The only state shared between the dispatcher (producer side) and the
poll/result endpoints (peer side).  Every operation runs to completion
without awaiting, so on a single event loop no two operations on the same
id can interleave.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Any, Callable, Iterator

from ..state import CommandRecord, CommandStatus
from .errors import CommandEvicted, UnknownCommand

log = logging.getLogger("devrelay.store")


class CommandStore:
    def __init__(self, *, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.time
        self._ids = itertools.count(1)
        self._records: dict[int, CommandRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, command_id: object) -> bool:
        return command_id in self._records

    def __iter__(self) -> Iterator[CommandRecord]:
        return iter(list(self._records.values()))

    def create(self, action: str, params: dict[str, Any] | None = None) -> int:
        command_id = next(self._ids)
        self._records[command_id] = CommandRecord(
            id=command_id,
            action=action,
            params=dict(params or {}),
            created_at=self._clock(),
        )
        log.debug("queued command %d [%s]", command_id, action)
        return command_id

    def get(self, command_id: int) -> CommandRecord | None:
        return self._records.get(command_id)

    def watch(self, command_id: int) -> asyncio.Future:
        """Return a future resolved with the record once it leaves ``pending``.

        Must be called from inside the running event loop.
        """
        record = self._records.get(command_id)
        if record is None:
            raise UnknownCommand(f"Unknown command: {command_id}", command_id=command_id)
        if record.waiter is None:
            record.waiter = asyncio.get_running_loop().create_future()
            if record.status.terminal:
                record.waiter.set_result(record)
        return record.waiter

    def set_result(self, command_id: int, success: bool, payload: Any = None) -> bool:
        """Move a pending record to ``completed`` or ``error``.

        Raises UnknownCommand when the id is absent.  Returns False (and
        changes nothing) when the record already reached a terminal state.
        """
        record = self._records.get(command_id)
        if record is None:
            raise UnknownCommand(f"Unknown command: {command_id}", command_id=command_id)
        if record.status.terminal:
            return False
        record.status = CommandStatus.COMPLETED if success else CommandStatus.ERROR
        record.result = payload
        if record.waiter is not None and not record.waiter.done():
            record.waiter.set_result(record)
        return True

    def delete(self, command_id: int) -> None:
        record = self._records.pop(command_id, None)
        if record is not None and record.waiter is not None and not record.waiter.done():
            record.waiter.cancel()

    def list_pending(self) -> list[dict[str, Any]]:
        return [
            record.as_poll_dict()
            for record in self._records.values()
            if record.status is CommandStatus.PENDING
        ]

    def pending_count(self) -> int:
        return sum(1 for r in self._records.values() if r.status is CommandStatus.PENDING)

    def sweep_older_than(self, max_age: float) -> list[int]:
        """Drop every record older than *max_age* seconds, whatever its status."""
        now = self._clock()
        expired = [r for r in self._records.values() if now - r.created_at > max_age]
        for record in expired:
            del self._records[record.id]
            if record.waiter is not None and not record.waiter.done():
                record.waiter.set_exception(
                    CommandEvicted(
                        f"Command {record.id} [{record.action}] was reaped after {max_age:g}s",
                        command_id=record.id,
                    )
                )
        return [r.id for r in expired]
