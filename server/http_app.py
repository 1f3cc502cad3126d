# server/http_app.py
from __future__ import annotations

import io
import logging
from typing import Any, BinaryIO, Dict, Iterator, Optional
from urllib.parse import quote

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from app.config import Settings
from app.di import Container, build_container
from app.errors import FileBrowserError
from app.logging import configure_logging

from server.tools.files import FbCreateIn, FbDestroyIn
from server.registry import build_tool_registry, list_tools_payload, dispatch_tool_call

log = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"  # aligns with current spec draft dates
CHUNK_SIZE = 64 * 1024


# ---------- Security: Origin validation & Bearer token ----------

def _origin_allowed(req: Request, settings: Settings) -> bool:
    origin = req.headers.get("origin")
    if not origin:
        return settings.MCP_HTTP_ALLOW_NO_ORIGIN
    allowed = {o.strip().lower() for o in settings.MCP_HTTP_ALLOWED_ORIGINS.split(",") if o.strip()}
    return origin.lower() in allowed

def _require_auth(req: Request, settings: Settings):
    auth = req.headers.get("authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")
    token = auth.split(" ", 1)[1]
    if token != settings.MCP_HTTP_BEARER_TOKEN:
        raise HTTPException(status_code=401, detail="Invalid Bearer token")


def _iter_file(fh: BinaryIO) -> Iterator[bytes]:
    try:
        while True:
            chunk = fh.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        fh.close()


def _jsonrpc_error(id_: Any, code: int, message: str, data: Any | None = None) -> JSONResponse:
    body: Dict[str, Any] = {"jsonrpc": "2.0", "id": id_, "error": {"code": code, "message": message}}
    if data is not None:
        body["error"]["data"] = data
    return JSONResponse(body)

def _jsonrpc_result(id_: Any, result: Any) -> JSONResponse:
    return JSONResponse({"jsonrpc": "2.0", "id": id_, "result": result})


def create_http_app(container: Optional[Container] = None) -> FastAPI:
    container = container or build_container()
    settings = container.settings
    fb = container.fb_service
    registry = build_tool_registry(container)
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="File Browser HTTP Server", version="0.1.0")

    @app.middleware("http")
    async def origin_validation_mw(request: Request, call_next):
        # MCP spec requires Origin validation to prevent DNS rebinding
        if not _origin_allowed(request, settings):
            return JSONResponse({"error": {"code": 403, "message": "Forbidden origin"}}, status_code=403)
        return await call_next(request)

    @app.exception_handler(FileBrowserError)
    async def file_browser_error_handler(request: Request, exc: FileBrowserError):
        # Forbidden and NotFound must stay distinguishable for clients
        return JSONResponse({"error": {"code": exc.status, "message": str(exc)}}, status_code=exc.status)

    # ---------- MCP JSON-RPC endpoint (Streamable HTTP) ----------

    @app.post(settings.MCP_HTTP_PATH)
    async def mcp_endpoint(request: Request):
        _require_auth(request, settings)

        try:
            payload = await request.json()
        except ValueError:
            return _jsonrpc_error(None, -32700, "Parse error")
        if not isinstance(payload, dict):
            return _jsonrpc_error(None, -32600, "Invalid Request")

        id_ = payload.get("id")
        method = payload.get("method")
        params = payload.get("params") or {}
        if not isinstance(params, dict):
            return _jsonrpc_error(id_, -32602, "Invalid params")

        if method == "initialize":
            return _jsonrpc_result(id_, {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": "filebrowser-mcp-http", "version": "0.1.0"},
            })

        if method == "tools/list":
            return _jsonrpc_result(id_, list_tools_payload(registry))

        if method == "tools/call":
            name = params.get("name")
            args = params.get("arguments", {})
            try:
                result = await run_in_threadpool(dispatch_tool_call, registry, name, args)
            except KeyError as ke:
                return _jsonrpc_error(id_, -32601, str(ke))
            except ValidationError as ve:
                errors = ve.errors(include_url=False, include_context=False, include_input=False)
                return _jsonrpc_error(id_, -32602, "Invalid params", errors)
            except FileBrowserError as fe:
                # Tool-level failure: reported in the result, not as a protocol error
                return _jsonrpc_result(id_, {
                    "content": [{"type": "text", "text": str(fe)}],
                    "isError": True,
                    "status": fe.status,
                })
            except Exception as e:
                log.exception("tool_call_failed name=%s", name)
                return _jsonrpc_error(id_, -32603, "Internal error", str(e))

            content_block = (
                {"type": "json", "json": result}
                if isinstance(result, (dict, list))
                else {"type": "text", "text": str(result)}
            )
            return _jsonrpc_result(id_, {"content": [content_block], "isError": False})

        return _jsonrpc_error(id_, -32601, f"Method not found: {method}")

    # ---------- File browser routes ----------

    @app.get("/filebrowser/read")
    def fb_read(request: Request, path: str = ""):
        _require_auth(request, settings)
        return [e.to_wire() for e in fb.list(path)]

    @app.post("/filebrowser/create")
    def fb_create(request: Request, body: FbCreateIn):
        _require_auth(request, settings)
        return fb.create_directory(body.path, body.name).to_wire()

    @app.post("/filebrowser/destroy")
    def fb_destroy(request: Request, body: FbDestroyIn):
        _require_auth(request, settings)
        fb.delete(body.path, body.name, body.type)
        return []

    @app.post("/filebrowser/upload")
    async def fb_upload(request: Request, name: str, path: str = ""):
        _require_auth(request, settings)
        data = await request.body()
        with io.BytesIO(data) as buf:
            entry = await run_in_threadpool(fb.upload, path, name, buf)
        return entry.to_wire()

    @app.get("/filebrowser/file")
    def fb_file(request: Request, path: str):
        _require_auth(request, settings)
        dl = fb.download(path)
        return StreamingResponse(
            _iter_file(dl.stream),
            media_type="application/octet-stream",
            background=BackgroundTask(dl.stream.close),
            headers={
                "Content-Length": str(dl.size),
                "Content-Disposition": f"attachment; filename*=utf-8''{quote(dl.name)}",
            },
        )

    return app


if __name__ == "__main__":
    import uvicorn
    s = Settings()
    uvicorn.run(
        "server.http_app:create_http_app",
        factory=True,
        host=s.MCP_HTTP_HOST,
        port=s.MCP_HTTP_PORT,
        reload=False,
    )
