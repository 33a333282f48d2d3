"""
MCP (Model Context Protocol) tool handling for devrelay.

Every browser tool is relayed to the extension peer through the command
relay; DevTools telemetry queries are answered from the local buffers.

Protocol: JSON-RPC 2.0.  The HTTP transport lives in ``devrelay.server``;
this module only maps one decoded request to one response dict.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from .relay.errors import RelayError
from .relay.service import RelayService
from .tools import (
    FORWARDED_TOOL_NAMES,
    SCREENSHOT_TOOL_NAMES,
    TOOL_SCHEMAS,
    UTILITY_TOOLS,
    camel_case_args,
)

log = logging.getLogger("devrelay.mcp")

SERVER_NAME = "chrome-devtools"
SERVER_VERSION = "2.0.0"
_PROTOCOL_VERSIONS = {"2024-11-05", "2025-03-26", "2025-06-18"}


class ToolError(Exception):
    """A tool call failed in a way that should be shown to the caller."""


def _text(s: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": s}]


def _dump(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


def _screenshot_blocks(result: Any) -> list[dict[str, Any]]:
    """Return an inline image block when the peer sent a base64 data URL."""
    if isinstance(result, dict) and result.get("success") and isinstance(result.get("screenshot"), str):
        data_url: str = result["screenshot"]
        marker = "base64,"
        idx = data_url.find(marker)
        if idx != -1:
            mime = "image/png" if data_url.startswith("data:image/png") else "image/jpeg"
            return [{"type": "image", "data": data_url[idx + len(marker):], "mimeType": mime}]
    return _text(_dump(result))


def _int_arg(arguments: dict[str, Any], key: str, default: int) -> int:
    raw = arguments.get(key)
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    # 0 and negatives mean "not given"
    return value if value > 0 else default


async def _call_tool(service: RelayService, name: str, arguments: dict[str, Any]) -> list[dict[str, Any]]:
    telemetry = service.telemetry
    tab_id = arguments.get("tab_id")

    if name == "get_network_requests":
        return _text(_dump(telemetry.network_requests(
            tab_id, arguments.get("url_filter") or None, _int_arg(arguments, "limit", 50),
        )))

    if name == "get_console_logs":
        return _text(_dump(telemetry.console_logs(
            tab_id, arguments.get("level_filter") or None, _int_arg(arguments, "limit", 50),
        )))

    if name == "get_performance_metrics":
        return _text(_dump(telemetry.performance_metrics(tab_id, _int_arg(arguments, "limit", 20))))

    if name == "clear_devtools_data":
        telemetry.clear(tab_id)
        return _text(f"Cleared DevTools data for {f'tab {tab_id}' if tab_id is not None else 'all tabs'}")

    if name in SCREENSHOT_TOOL_NAMES:
        try:
            result = await service.dispatch(name, camel_case_args(arguments))
        except RelayError as exc:
            raise ToolError(f"Error capturing screenshot: {exc}") from exc
        return _screenshot_blocks(result)

    if name in FORWARDED_TOOL_NAMES:
        try:
            result = await service.dispatch(name, camel_case_args(arguments))
        except RelayError as exc:
            raise ToolError(f"Error executing command: {exc}") from exc
        return _text(_dump(result))

    if name in UTILITY_TOOLS:
        utility, method, arg_names = UTILITY_TOOLS[name]
        if not tab_id:
            raise ToolError("Error: tab_id is required")
        method_args = [arguments[a] for a in arg_names if a in arguments]
        try:
            result = await service.dispatch("call_utility", {
                "tabId": tab_id,
                "utility": utility,
                "method": method,
                "args": method_args,
            })
        except RelayError as exc:
            raise ToolError(f"Error calling {name}: {exc}") from exc
        if not isinstance(result, dict) or not result.get("success"):
            error = result.get("error") if isinstance(result, dict) else None
            raise ToolError(f"Error calling {name}: {error or 'Utility call failed'}")
        return _text(_dump(result.get("result")))

    raise ToolError(f"Unknown tool: {name}")


async def call_tool(service: RelayService, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Run one tool and wrap it as an MCP ``tools/call`` result."""
    try:
        blocks = await _call_tool(service, name, arguments)
    except ToolError as exc:
        return {"content": _text(str(exc)), "isError": True}
    except Exception as exc:
        log.error("tool %s crashed: %s", name, exc, exc_info=True)
        return {"content": _text(f"Error: {exc}"), "isError": True}
    return {"content": blocks, "isError": False}


# ---------------------------------------------------------------------------
# JSON-RPC dispatch
# ---------------------------------------------------------------------------

def _ok(request_id: Any, result: Any) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _err(request_id: Any, code: int, message: str) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def parse_error() -> dict:
    return _err(None, -32700, "Parse error")


async def handle_rpc(service: RelayService, req: Any) -> dict[str, Any] | None:
    """Process one JSON-RPC request; return the response, or None for notifications."""
    if not isinstance(req, dict):
        return _err(None, -32600, "Invalid Request")
    req_id = req.get("id")
    method = req.get("method", "")
    params = req.get("params") or {}
    if not isinstance(params, dict):
        return _err(req_id, -32602, "Invalid params")

    if method == "initialize":
        client_ver = params.get("protocolVersion", "2024-11-05")
        agreed_ver = client_ver if client_ver in _PROTOCOL_VERSIONS else "2024-11-05"
        return _ok(req_id, {
            "protocolVersion": agreed_ver,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        })

    if method in ("notifications/initialized", "initialized"):
        return None

    if method == "tools/list":
        return _ok(req_id, {"tools": TOOL_SCHEMAS})

    if method == "tools/call":
        tool_name = params.get("name", "")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            return _err(req_id, -32602, "Invalid params: arguments must be an object")
        return _ok(req_id, await call_tool(service, tool_name, arguments))

    if method == "ping":
        return _ok(req_id, {})

    if req_id is not None:
        return _err(req_id, -32601, f"Method not found: {method}")
    return None
