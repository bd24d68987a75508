"""
FoxTab - FastAPI Backend
REST API + WebSocket server the scan UI talks to: build a preview, start and
stop scans, and receive their output live.
"""

import asyncio
import concurrent.futures
import json
import logging
import uuid
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set, Tuple

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from foxtab.builder import ArgumentBuilder, render_preview, validate_options
from foxtab.config import DALFOX_BIN, AppConfig, get_config
from foxtab.errors import ConfigurationError, RequestParseError
from foxtab.models import Header, RequestContext, ScanOptions, order_parameters
from foxtab.registry import ScanRegistry
from foxtab.request_parser import discover_parameters, parse_raw_request
from foxtab.runner import ScanSupervisor, check_binary


logger = logging.getLogger(__name__)

VERSION = "0.1.0"
MAX_SCAN_HISTORY = 200


# ── Globals ─────────────────────────────────────────────────────

config: AppConfig = get_config()
registry = ScanRegistry()
builder = ArgumentBuilder(DALFOX_BIN, strict=config.scan.strict_trigger)

# Active WebSocket connections
ws_connections: Set[WebSocket] = set()


@dataclass
class ScanRecord:
    """A scan started through the API, kept in memory for status queries."""
    supervisor: ScanSupervisor
    request_details: str
    parameters: List[str]
    output: Deque[str] = field(default_factory=deque)

    def to_dict(self) -> dict:
        data = self.supervisor.snapshot()
        data["running"] = self.supervisor in registry
        data["parameters"] = self.parameters
        return data


scans: Dict[str, ScanRecord] = {}


# ── Broadcast helper ────────────────────────────────────────────

async def broadcast(event_type: str, data: dict):
    """Send an event to all connected WebSocket clients."""
    message = json.dumps({"type": event_type, "data": data})
    dead = set()
    # Clients may connect or drop while a send is awaited
    for ws in list(ws_connections):
        try:
            await ws.send_text(message)
        except Exception:
            dead.add(ws)
    ws_connections.difference_update(dead)


def _broadcast_done(future: concurrent.futures.Future):
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Broadcast failed: %s", exc, exc_info=exc)


def _schedule(loop: asyncio.AbstractEventLoop, event_type: str, data: dict):
    """Queue a broadcast from a scan worker thread onto the API event loop."""
    coro = broadcast(event_type, data)
    try:
        future = asyncio.run_coroutine_threadsafe(coro, loop)
    except RuntimeError:
        # Loop already closed (shutdown); the event has no audience left
        coro.close()
        logger.debug("Dropped %s event: event loop closed", event_type)
        return None
    future.add_done_callback(_broadcast_done)
    return future


def _prune_history():
    finished = [sid for sid, rec in scans.items() if rec.supervisor.done]
    while len(scans) > MAX_SCAN_HISTORY and finished:
        scans.pop(finished.pop(0), None)


# ── Lifespan ────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown."""
    logger.info("Backend running on %s:%s (dalfox: %s)", config.api.host, config.api.port, builder.binary)
    yield
    registry.stop_all()


# ── FastAPI App ─────────────────────────────────────────────────

app = FastAPI(
    title="FoxTab API",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Pydantic Models ────────────────────────────────────────────

class HeaderModel(BaseModel):
    name: str
    value: str = ""

class RequestPayload(BaseModel):
    method: str = "GET"
    url: str
    headers: List[HeaderModel] = Field(default_factory=list)
    body: str = ""

class ScanRequest(BaseModel):
    request: Optional[RequestPayload] = None
    raw_request: str = ""
    https: bool = True
    base_url: str = ""
    # None scans every parameter found in the request
    parameters: Optional[List[str]] = None
    options: ScanOptions = Field(default_factory=ScanOptions)


def _resolve_request(req: ScanRequest) -> Tuple[RequestContext, List[str]]:
    if req.request is not None:
        context = RequestContext(
            method=req.request.method.upper(),
            url=req.request.url,
            body=req.request.body,
            headers=tuple(Header(h.name, h.value) for h in req.request.headers),
        )
    elif req.raw_request.strip():
        context = parse_raw_request(req.raw_request, https=req.https, base_url=req.base_url)
    else:
        raise RequestParseError("Provide either 'request' or 'raw_request'.")
    params = order_parameters(discover_parameters(context), req.parameters)
    return context, params


def _get_record(scan_id: str) -> ScanRecord:
    record = scans.get(scan_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"Scan not found: {scan_id}")
    return record


# ── WebSocket ───────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """WebSocket for real-time scan output."""
    await ws.accept()
    ws_connections.add(ws)
    logger.info("WS client connected. Total: %d", len(ws_connections))

    try:
        await ws.send_text(json.dumps({
            "type": "connected",
            "data": {"running_scans": [s.scan_id for s in registry.snapshot()]},
        }))
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except ValueError:
                continue
            if msg.get("type") == "ping":
                await ws.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        pass
    finally:
        ws_connections.difference_update({ws})
        logger.info("WS client disconnected. Total: %d", len(ws_connections))


# ── Scan Endpoints ──────────────────────────────────────────────

@app.post("/api/scans/preview")
async def preview_scan(req: ScanRequest):
    """Show the exact argument vector a scan would run with."""
    try:
        context, params = _resolve_request(req)
        args = builder.build(context, params, req.options)
    except (ConfigurationError, RequestParseError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"args": args, "preview": render_preview(args), "parameters": params}


@app.post("/api/scans")
async def start_scan(req: ScanRequest):
    """Build the command and launch a scan in the background."""
    try:
        context, params = _resolve_request(req)
        validate_options(req.options)
        args = builder.build(context, params, req.options)
    except (ConfigurationError, RequestParseError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    loop = asyncio.get_running_loop()
    scan_id = uuid.uuid4().hex[:12]
    record_output: Deque[str] = deque(maxlen=config.api.output_buffer_lines)

    def sink(line: str):
        record_output.append(line)
        _schedule(loop, "scan_output", {"scan_id": scan_id, "line": line})

    def on_complete(supervisor: ScanSupervisor):
        registry.unregister(supervisor)
        _schedule(loop, "scan_complete", {
            "scan_id": scan_id,
            "state": supervisor.state.value,
            "exit_code": supervisor.exit_code,
            "cancelled": supervisor.cancelled,
        })

    supervisor = ScanSupervisor(
        args,
        sink,
        method=context.method,
        url=context.url,
        timeout_minutes=req.options.scan_timeout_minutes,
        preflight_timeout=config.scan.preflight_timeout,
        on_complete=on_complete,
        scan_id=scan_id,
    )
    scans[scan_id] = ScanRecord(
        supervisor=supervisor,
        request_details=context.render_details(),
        parameters=params,
        output=record_output,
    )
    _prune_history()
    registry.register(supervisor)
    supervisor.start()

    preview = render_preview(args)
    await broadcast("scan_started", {
        "scan_id": scan_id,
        "method": context.method,
        "url": context.url,
        "command": preview,
    })
    return {"scan_id": scan_id, "args": args, "preview": preview}


@app.get("/api/scans")
async def list_scans():
    """List scans started by this process, newest last."""
    return [rec.to_dict() for rec in scans.values()]


@app.post("/api/scans/stop-all")
async def stop_all_scans():
    """Cancel every running scan."""
    return {"status": "ok", "stopped": registry.stop_all()}


@app.get("/api/scans/{scan_id}")
async def scan_detail(scan_id: str):
    """Scan status plus the request it was built from."""
    record = _get_record(scan_id)
    data = record.to_dict()
    data["args"] = record.supervisor.args
    data["request"] = record.request_details
    return data


@app.get("/api/scans/{scan_id}/output")
async def scan_output(scan_id: str, limit: int = Query(0, ge=0, le=100000)):
    """Buffered output lines. limit=0 returns everything kept."""
    record = _get_record(scan_id)
    lines = list(record.output)
    if limit:
        lines = lines[-limit:]
    return {"scan_id": scan_id, "count": len(lines), "lines": lines}


@app.post("/api/scans/{scan_id}/stop")
async def stop_scan(scan_id: str):
    """Cancel a running scan."""
    record = _get_record(scan_id)
    record.supervisor.stop()
    registry.unregister(record.supervisor)
    return {"status": "ok", "scan_id": scan_id}


# ── Health ──────────────────────────────────────────────────────

@app.get("/api/health")
async def health():
    """Health check endpoint."""
    available = await asyncio.to_thread(check_binary, builder.binary, config.scan.preflight_timeout)
    return {
        "status": "ok",
        "version": VERSION,
        "dalfox_path": builder.binary,
        "dalfox_available": available,
        "running_scans": len(registry),
        "ws_clients": len(ws_connections),
    }
