"""
devrelay HTTP server: the meeting point of the MCP client and the browser
extension, neither of which can reach the other directly.

Peer-facing endpoints (polled by the extension):
  GET  /poll-commands    - pending commands: {"commands": [{id, action, params}]}
  POST /command-result   - {commandId, success, result?, error?}; always acknowledged
  POST /devtools-data    - {type: network|console|performance|..., data}
  GET  /status           - buffer sizes, last update, pending command count

MCP-facing endpoint:
  POST /mcp              - JSON-RPC 2.0 (streamable HTTP, stateless)
  GET  /health           - health probe

All state lives in one RelayService stored on ``app.state.service``.
"""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ValidationError

from .config import RelayConfig
from .mcp_server import handle_rpc, parse_error
from .relay.service import RelayService
from .tools import TOOL_SCHEMAS

log = logging.getLogger("devrelay.server")

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}
_KEEPALIVE_SECONDS = 5.0


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class DevtoolsData(BaseModel):
    type: str = ""
    data: Any = None


class CommandResult(BaseModel):
    commandId: Any = None
    success: bool = False
    result: Any = None
    error: Any = None


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(service: RelayService | None = None, config: RelayConfig | None = None) -> FastAPI:
    service = service or RelayService(config)
    max_body = service.config.max_body_bytes

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        service.start()
        log.info("relay started (timeout=%gs, reaper every %gs)",
                 service.config.command_timeout, service.config.reaper_interval)
        try:
            yield
        finally:
            await service.stop()
            log.info("relay stopped")

    app = FastAPI(title="devrelay", lifespan=lifespan)
    app.state.service = service

    # The extension and any local MCP client connect from other origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length", "")
        if length.isdigit() and int(length) > max_body:
            return JSONResponse(status_code=413, content={"error": "Request body too large"})
        return await call_next(request)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error("Unhandled error [%s %s]: %s", request.method, request.url.path, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    # -- peer side ----------------------------------------------------------

    @app.post("/devtools-data")
    async def devtools_data(payload: DevtoolsData) -> dict:
        service.push_telemetry(payload.type, payload.data)
        return {"success": True}

    @app.get("/poll-commands")
    async def poll_commands() -> dict:
        return {"commands": service.poll()}

    @app.post("/command-result")
    async def command_result(request: Request) -> dict:
        # The peer cannot tell whether a result is still wanted, so this
        # endpoint acknowledges everything, malformed bodies included.
        body = await request.body()
        try:
            report = CommandResult.model_validate(json.loads(body or b"{}"))
        except (ValueError, ValidationError) as exc:
            log.debug("discarding malformed command result: %s", exc)
            return {"success": True}
        service.report(report.commandId, report.success, report.result, report.error)
        return {"success": True}

    @app.get("/status")
    async def status() -> dict:
        return service.status()

    # -- MCP side -----------------------------------------------------------

    @app.post("/mcp")
    async def mcp_post(request: Request) -> Response:
        body = await request.body()
        try:
            rpc = json.loads(body)
        except json.JSONDecodeError:
            return JSONResponse(status_code=400, content=parse_error())

        if "text/event-stream" in request.headers.get("accept", ""):
            # Stream keepalives while a relayed tool waits on the peer.
            async def _stream_result(rpc: Any):
                task = asyncio.create_task(handle_rpc(service, rpc))
                try:
                    while not task.done():
                        yield ": keepalive\n\n"
                        await asyncio.wait({task}, timeout=_KEEPALIVE_SECONDS)
                    result = task.result()
                    if result is not None:
                        yield f"event: message\ndata: {json.dumps(result)}\n\n"
                finally:
                    if not task.done():
                        task.cancel()

            return StreamingResponse(_stream_result(rpc), media_type="text/event-stream",
                                     headers=_SSE_HEADERS)

        response = await handle_rpc(service, rpc)
        if response is None:
            return Response(content="", status_code=202)
        return JSONResponse(content=response)

    @app.get("/health")
    async def health() -> dict:
        return {
            "ok": True,
            "tools": len(TOOL_SCHEMAS),
            "pendingCommands": service.store.pending_count(),
        }

    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def _serve(server: "uvicorn.Server") -> None:
    loop = asyncio.get_running_loop()

    def _on_uncaught(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        # Stop accepting work and let lifespan shutdown run; never restart in-process.
        log.critical("Uncaught exception: %s", context.get("message"), exc_info=context.get("exception"))
        server.should_exit = True

    loop.set_exception_handler(_on_uncaught)
    await server.serve()


def serve(config: RelayConfig) -> None:
    app = create_app(config=config)
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    ))
    log.info("MCP endpoint: http://%s:%d/mcp", config.host, config.port)
    asyncio.run(_serve(server))
