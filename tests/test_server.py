from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from devrelay.client import RelayClient
from devrelay.config import RelayConfig
from devrelay.relay.service import RelayService
from devrelay.server import _serve, create_app

_BASE = "http://relay.test"


def _setup(**config: object) -> tuple[RelayService, httpx.AsyncClient]:
    service = RelayService(RelayConfig(poll_interval=0.01, **config))
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=create_app(service)), base_url=_BASE)
    return service, client


async def _rpc(client: httpx.AsyncClient, method: str, params: dict | None = None, req_id: int = 1) -> dict:
    r = await client.post("/mcp", json={"jsonrpc": "2.0", "id": req_id, "method": method, "params": params or {}})
    assert r.status_code == 200
    return r.json()


@pytest.mark.asyncio
async def test_poll_is_empty_initially() -> None:
    _, client = _setup()
    async with client:
        r = await client.get("/poll-commands")
    assert r.status_code == 200
    assert r.json() == {"commands": []}


@pytest.mark.asyncio
async def test_dispatch_round_trip_over_http() -> None:
    service, client = _setup()
    async with client:
        task = asyncio.create_task(service.dispatch("click_element", {"selector": "#go"}, timeout=2.0))
        commands: list = []
        while not commands:
            await asyncio.sleep(0.01)
            commands = (await client.get("/poll-commands")).json()["commands"]
        assert commands == [{"id": 1, "action": "click_element", "params": {"selector": "#go"}}]

        r = await client.post("/command-result",
                              json={"commandId": 1, "success": True, "result": {"clicked": True}})
        assert r.json() == {"success": True}
        assert await task == {"clicked": True}
        assert (await client.get("/poll-commands")).json() == {"commands": []}


@pytest.mark.asyncio
async def test_repeated_polls_redeliver_until_reported() -> None:
    service, client = _setup()
    async with client:
        task = asyncio.create_task(service.dispatch("reload_tab", {"tabId": 5}, timeout=2.0))
        await asyncio.sleep(0.01)
        first = (await client.get("/poll-commands")).json()["commands"]
        second = (await client.get("/poll-commands")).json()["commands"]
        assert first == second
        assert len(first) == 1
        await client.post("/command-result", json={"commandId": first[0]["id"], "success": True})
        assert await task is None


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"commandId": 12345, "success": True, "result": {}},
    {"commandId": "not-a-number", "success": False, "error": "x"},
    {"success": True},
    [1, 2, 3],
])
async def test_command_result_always_acknowledges(body: object) -> None:
    _, client = _setup()
    async with client:
        r = await client.post("/command-result", json=body)
    assert r.status_code == 200
    assert r.json() == {"success": True}


@pytest.mark.asyncio
async def test_command_result_acknowledges_invalid_json() -> None:
    _, client = _setup()
    async with client:
        r = await client.post("/command-result", content=b"{oops",
                              headers={"content-type": "application/json"})
    assert r.status_code == 200
    assert r.json() == {"success": True}


@pytest.mark.asyncio
async def test_error_result_reaches_caller() -> None:
    service, client = _setup()
    async with client:
        task = asyncio.create_task(service.dispatch("fill_input", {"selector": "#q"}, timeout=2.0))
        await asyncio.sleep(0.01)
        await client.post("/command-result",
                          json={"commandId": 1, "success": False, "error": "Element not found"})
        with pytest.raises(Exception, match="Element not found"):
            await task


@pytest.mark.asyncio
async def test_devtools_data_and_status() -> None:
    service, client = _setup()
    async with client:
        for kind in ("network", "console", "console", "tab_attached"):
            r = await client.post("/devtools-data", json={"type": kind, "data": {"tabId": 1}})
            assert r.json() == {"success": True}
        status = (await client.get("/status")).json()
    assert status["networkRequests"] == 1
    assert status["consoleLogs"] == 2
    assert status["performanceMetrics"] == 0
    assert status["pendingCommands"] == 0
    assert status["lastUpdate"] is not None


@pytest.mark.asyncio
async def test_body_size_limit() -> None:
    _, client = _setup(max_body_bytes=64)
    async with client:
        r = await client.post("/devtools-data", json={"type": "console", "data": {"text": "x" * 500}})
    assert r.status_code == 413


@pytest.mark.asyncio
async def test_health() -> None:
    _, client = _setup()
    async with client:
        body = (await client.get("/health")).json()
    assert body["ok"] is True
    assert body["tools"] > 0


# ---------------------------------------------------------------------------
# MCP endpoint
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mcp_initialize_and_list_tools() -> None:
    _, client = _setup()
    async with client:
        init = await _rpc(client, "initialize", {"protocolVersion": "2025-03-26"})
        tools = await _rpc(client, "tools/list", req_id=2)
    assert init["result"]["protocolVersion"] == "2025-03-26"
    assert init["result"]["serverInfo"]["name"] == "chrome-devtools"
    names = {t["name"] for t in tools["result"]["tools"]}
    assert {"click_element", "get_console_logs", "query_selector_all", "capture_screenshot"} <= names


@pytest.mark.asyncio
async def test_mcp_notification_gets_202() -> None:
    _, client = _setup()
    async with client:
        r = await client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
    assert r.status_code == 202


@pytest.mark.asyncio
async def test_mcp_parse_error() -> None:
    _, client = _setup()
    async with client:
        r = await client.post("/mcp", content=b"not json")
    assert r.status_code == 400
    assert r.json()["error"]["code"] == -32700


@pytest.mark.asyncio
async def test_mcp_unknown_method() -> None:
    _, client = _setup()
    async with client:
        body = await _rpc(client, "resources/list", req_id=3)
    assert body["error"]["code"] == -32601


@pytest.mark.asyncio
async def test_mcp_tool_call_relayed_to_polling_peer() -> None:
    service = RelayService(RelayConfig(poll_interval=0.01))
    app = create_app(service)
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=_BASE)
    peer = RelayClient(_BASE, transport=httpx.ASGITransport(app=app))

    async def run_peer() -> None:
        while True:
            commands = await peer.poll_commands()
            if commands:
                break
            await asyncio.sleep(0.01)
        command = commands[0]
        assert command["action"] == "navigate_to"
        assert command["params"] == {"tabId": 9, "url": "https://example.com"}
        await peer.report_result(command["id"], True, {"navigated": True})

    async with client:
        peer_task = asyncio.create_task(run_peer())
        body = await _rpc(client, "tools/call", {
            "name": "navigate_to",
            "arguments": {"tab_id": 9, "url": "https://example.com"},
        })
        await peer_task
    result = body["result"]
    assert result["isError"] is False
    assert json.loads(result["content"][0]["text"]) == {"navigated": True}
    assert len(service.store) == 0


@pytest.mark.asyncio
async def test_mcp_tool_call_times_out_as_tool_error() -> None:
    _, client = _setup(command_timeout=0.05)
    async with client:
        body = await _rpc(client, "tools/call", {"name": "list_tabs", "arguments": {}})
    result = body["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "Error executing command: Command timeout"


@pytest.mark.asyncio
async def test_mcp_event_stream_response() -> None:
    _, client = _setup()
    async with client:
        r = await client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "id": 4, "method": "ping"},
            headers={"accept": "application/json, text/event-stream"},
        )
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    data_lines = [line for line in r.text.splitlines() if line.startswith("data: ")]
    assert json.loads(data_lines[-1][len("data: "):]) == {"jsonrpc": "2.0", "id": 4, "result": {}}


@pytest.mark.asyncio
async def test_devtools_data_without_type_is_acknowledged_and_dropped() -> None:
    service, client = _setup()
    async with client:
        r = await client.post("/devtools-data", json={"data": {"tabId": 1, "url": "https://x"}})
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert service.telemetry.sizes() == {"network": 0, "console": 0, "performance": 0}


# ---------------------------------------------------------------------------
# Process lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_lifespan_runs_the_reaper() -> None:
    service = RelayService(RelayConfig())
    app = create_app(service)
    assert not service.reaper.running
    async with app.router.lifespan_context(app):
        assert service.reaper.running
    assert not service.reaper.running


class _FakeServer:
    def __init__(self) -> None:
        self.should_exit = False

    async def serve(self) -> None:
        asyncio.get_running_loop().call_exception_handler(
            {"message": "boom", "exception": RuntimeError("loop failure")},
        )


@pytest.mark.asyncio
async def test_uncaught_loop_exception_stops_the_server() -> None:
    loop = asyncio.get_running_loop()
    previous = loop.get_exception_handler()
    server = _FakeServer()
    try:
        await _serve(server)  # type: ignore[arg-type]
    finally:
        loop.set_exception_handler(previous)
    assert server.should_exit is True
