from __future__ import annotations

from typing import Any

import httpx

from .relay.errors import RelayError, is_retryable_status


class RelayClientError(RelayError):
    pass


class RelayClient:
    """HTTP client for a running relay; speaks the same protocol as the extension."""

    def __init__(
        self,
        base_url: str = "http://localhost:3456",
        *,
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, f"{self.base_url}{path}", **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            status = None
            retryable = False
            if isinstance(exc, httpx.HTTPStatusError):
                status = exc.response.status_code
                retryable = is_retryable_status(status)
            elif isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
                retryable = True
            raise RelayClientError(
                f"Relay request failed for {path}: {exc}",
                status_code=status,
                retryable=retryable,
            ) from exc

    async def health(self) -> bool:
        try:
            result = await self._request("GET", "/health")
            return bool(result.get("ok"))
        except RelayClientError:
            return False

    async def status(self) -> dict:
        return await self._request("GET", "/status")

    async def poll_commands(self) -> list[dict]:
        result = await self._request("GET", "/poll-commands")
        return list(result.get("commands", []))

    async def report_result(
        self,
        command_id: int,
        success: bool,
        result: Any = None,
        error: str | None = None,
    ) -> dict:
        payload: dict[str, Any] = {"commandId": command_id, "success": success}
        if success:
            payload["result"] = result
        else:
            payload["error"] = error
        return await self._request("POST", "/command-result", json=payload)

    async def push_telemetry(self, kind: str, data: Any) -> dict:
        return await self._request("POST", "/devtools-data", json={"type": kind, "data": data})
