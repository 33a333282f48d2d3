from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CommandStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self is not CommandStatus.PENDING


@dataclass(slots=True)
class CommandRecord:
    id: int
    action: str
    params: dict[str, Any]
    created_at: float
    status: CommandStatus = CommandStatus.PENDING
    result: Any = None
    # Resolved by the store when a result arrives; created on demand by a waiter.
    waiter: asyncio.Future | None = field(default=None, repr=False, compare=False)

    def as_poll_dict(self) -> dict[str, Any]:
        return {"id": self.id, "action": self.action, "params": self.params}

    def error_message(self) -> str:
        if isinstance(self.result, dict) and self.result.get("error"):
            return str(self.result["error"])
        return "Command failed"
