"""FastAPI entry-point for the outfit kiosk backend."""
from __future__ import annotations

import asyncio
import json
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import uvicorn
from fastapi import FastAPI, File, Form, Request, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from .backend.security import API_KEY_HEADER, api_key_matches, is_public_path
from .config import Settings, get_settings
from .errors import KioskError
from .kiosk_service import KioskService
from .logging_config import configure_logging


class EmailRequest(BaseModel):
    email: Optional[str] = None


def sse_frame(payload: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


async def wait_for_disconnect(ws: WebSocket) -> None:
    """Monitors never send anything; drain the socket until the client goes away."""

    while True:
        message = await ws.receive()
        if message["type"] == "websocket.disconnect":
            return


def create_app(settings: Optional[Settings] = None, service: Optional[KioskService] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, access_log=settings.access_log)
    service = service or KioskService(settings=settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await service.start()
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(title="outfit-kiosk", version="0.1.0", lifespan=lifespan)
    app.state.service = service
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.middleware("http")
    async def require_api_key(request: Request, call_next):
        if request.method != "OPTIONS" and not is_public_path(request.url.path):
            if not api_key_matches(settings.api_key, request.headers.get(API_KEY_HEADER)):
                return JSONResponse({"detail": "Invalid or missing API key"}, status_code=401)
        return await call_next(request)

    @app.exception_handler(KioskError)
    async def handle_kiosk_error(request: Request, exc: KioskError) -> JSONResponse:
        return JSONResponse({"detail": exc.user_message}, status_code=exc.status_code)

    @app.get("/health")
    async def healthcheck() -> JSONResponse:
        return JSONResponse(service.health())

    @app.get("/outfits")
    async def outfits() -> JSONResponse:
        return JSONResponse(service.outfits())

    @app.post("/session", status_code=201)
    async def create_session(
        photo: Optional[UploadFile] = File(None),
        gender: Optional[str] = Form(None),
        source: Optional[str] = Form(None),
    ) -> Dict[str, Any]:
        data = await photo.read() if photo is not None else None
        session = await service.create_session(gender, data, source)
        return {"sessionId": session.id, "ttlMs": service.store.ttl_ms}

    @app.post("/session/{session_id}/email", status_code=202)
    async def send_email(session_id: str, body: Optional[EmailRequest] = None) -> Dict[str, Any]:
        await service.send_email(session_id, body.email if body else None)
        return {"ok": True}

    @app.post("/session/{session_id}/skip", status_code=202)
    async def skip_session(session_id: str) -> Dict[str, Any]:
        await service.skip_session(session_id)
        return {"ok": True}

    @app.get("/events")
    async def event_stream() -> StreamingResponse:
        async def frame_iterator() -> AsyncIterator[bytes]:
            queue = service.broadcaster.register()
            try:
                yield sse_frame({"type": "connected"})
                while True:
                    try:
                        event = await asyncio.wait_for(queue.get(), timeout=settings.keepalive_seconds)
                    except asyncio.TimeoutError:
                        yield b": keepalive\n\n"
                        continue
                    yield sse_frame(event.to_payload())
            finally:
                service.broadcaster.unregister(queue)

        headers = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
        return StreamingResponse(frame_iterator(), media_type="text/event-stream", headers=headers)

    @app.websocket("/ws/events")
    async def events_socket(ws: WebSocket) -> None:
        await ws.accept()
        queue = service.broadcaster.register()
        disconnected = asyncio.create_task(wait_for_disconnect(ws), name="ws-disconnect-watch")
        try:
            await ws.send_json({"type": "connected"})
            while not disconnected.done():
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait(
                    {getter, disconnected},
                    timeout=settings.keepalive_seconds,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if getter in done:
                    await ws.send_json(getter.result().to_payload())
                    continue
                getter.cancel()
                if not done:
                    await ws.send_json({"type": "keepalive", "timestamp": int(time.time() * 1000)})
        except WebSocketDisconnect:
            pass
        finally:
            disconnected.cancel()
            service.broadcaster.unregister(queue)

    if settings.public_dir.is_dir():
        app.mount("/public", StaticFiles(directory=str(settings.public_dir)), name="public")

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run("kiosk.app.main:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
