"""
Bounded telemetry buffers fed by the peer (network, console, performance).

Data only flows one way: the peer pushes records through
``POST /devtools-data`` and the query tools read them back.  Nothing here is
correlated with commands.
"""
from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

log = logging.getLogger("devrelay.telemetry")

NETWORK_CAPACITY = 5000
CONSOLE_CAPACITY = 5000
PERFORMANCE_CAPACITY = 500

TELEMETRY_KINDS = ("network", "console", "performance")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TelemetryBuffer:
    """Fixed-capacity FIFO: appending past capacity evicts the oldest entry."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items: deque[dict[str, Any]] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def push(self, item: dict[str, Any]) -> None:
        self._items.append(item)

    def clear(self, tab_id: Any = None) -> None:
        if tab_id is None:
            self._items.clear()
            return
        kept = [item for item in self._items if item.get("tabId") != tab_id]
        self._items.clear()
        self._items.extend(kept)

    def query(
        self,
        *,
        tab_id: Any = None,
        predicate: Callable[[dict[str, Any]], bool] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Filter by origin tab and *predicate*, then keep the newest *limit*."""
        items: Iterable[dict[str, Any]] = self._items
        if tab_id is not None:
            items = (i for i in items if i.get("tabId") == tab_id)
        if predicate is not None:
            items = (i for i in items if predicate(i))
        selected = list(items)
        if limit is not None and limit >= 0:
            selected = selected[-limit:] if limit else []
        return selected


class TelemetryHub:
    def __init__(
        self,
        *,
        network_capacity: int = NETWORK_CAPACITY,
        console_capacity: int = CONSOLE_CAPACITY,
        performance_capacity: int = PERFORMANCE_CAPACITY,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self.network = TelemetryBuffer(network_capacity)
        self.console = TelemetryBuffer(console_capacity)
        self.performance = TelemetryBuffer(performance_capacity)
        self.last_update: str | None = None
        self._clock = clock or _utc_now

    def buffer(self, kind: str) -> TelemetryBuffer | None:
        if kind not in TELEMETRY_KINDS:
            return None
        return getattr(self, kind)

    def push(self, kind: str, data: Any) -> bool:
        """Store *data* under *kind*; returns False for kinds that are not buffered.

        Tab lifecycle notices (``tab_attached``, ``tab_detached`` ...) share the
        same ingress but are only logged.
        """
        self.last_update = self._clock()
        target = self.buffer(kind)
        if target is None:
            log.debug("ignoring telemetry of type %r", kind)
            return False
        target.push(data if isinstance(data, dict) else {"value": data})
        return True

    def clear(self, tab_id: Any = None) -> None:
        for kind in TELEMETRY_KINDS:
            getattr(self, kind).clear(tab_id)
        self.last_update = None

    def network_requests(
        self, tab_id: Any = None, url_filter: str | None = None, limit: int = 50
    ) -> dict[str, Any]:
        predicate = None
        if url_filter:
            needle = url_filter.lower()

            def predicate(item: dict[str, Any]) -> bool:
                return needle in str(item.get("url") or "").lower()

        requests = self.network.query(tab_id=tab_id, predicate=predicate, limit=limit)
        return {
            "total": len(self.network),
            "filtered": len(requests),
            "tabId": tab_id if tab_id is not None else "all",
            "lastUpdate": self.last_update,
            "requests": requests,
        }

    def console_logs(
        self, tab_id: Any = None, level: str | None = None, limit: int = 50
    ) -> dict[str, Any]:
        predicate = (lambda item: item.get("level") == level) if level else None
        logs = self.console.query(tab_id=tab_id, predicate=predicate, limit=limit)
        return {
            "total": len(self.console),
            "filtered": len(logs),
            "tabId": tab_id if tab_id is not None else "all",
            "lastUpdate": self.last_update,
            "logs": logs,
        }

    def performance_metrics(self, tab_id: Any = None, limit: int = 20) -> dict[str, Any]:
        metrics = self.performance.query(tab_id=tab_id, limit=limit)
        return {
            "total": len(self.performance),
            "returned": len(metrics),
            "tabId": tab_id if tab_id is not None else "all",
            "lastUpdate": self.last_update,
            "metrics": metrics,
        }

    def sizes(self) -> dict[str, int]:
        return {kind: len(getattr(self, kind)) for kind in TELEMETRY_KINDS}
