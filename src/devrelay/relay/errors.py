from __future__ import annotations


class RelayError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        command_id: int | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.command_id = command_id
        self.status_code = status_code
        self.retryable = retryable


class CommandTimeout(RelayError):
    """No terminal state was observed before the deadline."""

    def __init__(self, message: str = "Command timeout", *, command_id: int | None = None) -> None:
        super().__init__(message, command_id=command_id, retryable=True)


class ActionError(RelayError):
    """The peer reported that the action failed."""


class CommandEvicted(RelayError):
    """The record was reaped while a caller was still waiting on it."""


class UnknownCommand(RelayError):
    pass


RETRYABLE_HTTP_STATUSES = {429, 500, 502, 503, 504}


def is_retryable_status(status_code: int | None) -> bool:
    return status_code in RETRYABLE_HTTP_STATUSES
