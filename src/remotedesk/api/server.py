"""FastAPI HTTP server exposing the relay to agents and controllers.

Stateless: every request is served from the shared store, so several
workers can run side by side behind a load balancer.

Agent endpoints:

    POST /api/register           <- {"target_id": "abc", "username": "bob", ...}
    POST /api/heartbeat/{id}     -> {"success": true, "known": true}
    POST /api/screen/{id}        <- {"screen": "<base64>", "quality": 70}
    GET  /api/commands/{id}      -> [{"id": ..., "type": "mouse", "data": {...}}, ...]
    POST /api/command_done       <- {"target_id": "abc", "command_id": "..."}

Controller endpoints:

    GET  /api/targets            -> [{"id": "abc", "online": true, ...}, ...]
    GET  /api/screen/{id}        -> {"screen": ..., "timestamp": ..., "quality": ...}
    POST /api/commands           <- {"target_id": "abc", "command": {"type": ..., "data": {...}}}
    POST /api/retire/{id}        -> {"success": true, "known": true}
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from remotedesk.config.settings import Settings
from remotedesk.domain.errors import InvalidRequestError, NotFoundError
from remotedesk.domain.models import Command, CommandPayload, TargetRecord
from remotedesk.relay import CommandQueue, PresenceRegistry, ScreenRelay
from remotedesk.store import KeyValueStore, StoreConflictError, StoreError, build_store
from remotedesk.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    target_id: str = Field(default="", description="Caller-chosen target id")
    username: str | None = None
    hostname: str | None = None
    os: str | None = None
    ip: str | None = None


class ScreenPushRequest(BaseModel):
    screen: str = Field(description="Encoded frame, passed through verbatim")
    quality: int | None = Field(default=None, ge=1, le=100)


class EnqueueRequest(BaseModel):
    target_id: str = Field(default="")
    command: CommandPayload


class AckRequest(BaseModel):
    target_id: str = Field(min_length=1)
    command_id: str = Field(min_length=1)


class ScreenResponse(BaseModel):
    screen: str
    timestamp: int
    quality: int


class HealthResponse(BaseModel):
    status: str = "ok"
    store: str = "memory"


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | None = None,
    store: KeyValueStore | None = None,
    clock: Clock = now_ms,
) -> FastAPI:
    """Create the relay application.

    Args:
        settings: Relay settings. If None, defaults are used.
        store: Optional pre-configured store (for testing). If None, the
               backend named in ``settings.store`` is built and closed on
               shutdown.
        clock: Epoch-millisecond time source shared by all components.
    """
    if settings is None:
        settings = Settings()
    owns_store = store is None
    if store is None:
        store = build_store(settings.store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Relay started (store=%s)", app.state.store.name)
        yield
        if owns_store:
            await app.state.store.close()
        logger.info("Relay stopped")

    app = FastAPI(
        title="remotedesk relay",
        description="Stateless presence, screen and command relay for remote agents",
        version="0.1.0",
        lifespan=lifespan,
    )

    presence = PresenceRegistry(
        store, online_window_ms=settings.presence.online_window_ms, clock=clock
    )
    app.state.store = store
    app.state.presence = presence
    app.state.screen = ScreenRelay(
        store,
        presence=presence,
        ttl_ms=settings.screen.ttl_ms,
        min_payload_bytes=settings.screen.min_payload_bytes,
        default_quality=settings.screen.default_quality,
        clock=clock,
    )
    app.state.commands = CommandQueue(store, clock=clock)

    _install_error_handlers(app, expose_errors=settings.server.expose_errors)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse(status="ok", store=app.state.store.name)

    # -------------------------------------------------------------------
    # Presence
    # -------------------------------------------------------------------

    @app.post("/api/register")
    async def register(request: RegisterRequest) -> dict[str, Any]:
        p: PresenceRegistry = app.state.presence
        target_id = await p.register(
            {
                "id": request.target_id,
                "username": request.username,
                "hostname": request.hostname,
                "os": request.os,
                "ip": request.ip,
            }
        )
        return {"success": True, "target_id": target_id}

    @app.get("/api/targets")
    async def list_targets() -> list[TargetRecord]:
        p: PresenceRegistry = app.state.presence
        return await p.list()

    @app.post("/api/heartbeat/{target_id}")
    async def heartbeat(target_id: str) -> dict[str, bool]:
        p: PresenceRegistry = app.state.presence
        known = await p.heartbeat(target_id)
        return {"success": True, "known": known}

    @app.post("/api/retire/{target_id}")
    async def retire(target_id: str) -> dict[str, bool]:
        p: PresenceRegistry = app.state.presence
        known = await p.retire(target_id)
        await app.state.screen.clear(target_id)
        await app.state.commands.purge(target_id)
        return {"success": True, "known": known}

    # -------------------------------------------------------------------
    # Screen
    # -------------------------------------------------------------------

    @app.post("/api/screen/{target_id}")
    async def push_screen(target_id: str, request: ScreenPushRequest) -> dict[str, bool]:
        s: ScreenRelay = app.state.screen
        await s.push(target_id, request.screen, request.quality)
        return {"success": True}

    @app.get("/api/screen/{target_id}")
    async def pull_screen(target_id: str) -> ScreenResponse:
        s: ScreenRelay = app.state.screen
        frame = await s.pull(target_id)
        return ScreenResponse(screen=frame.screen, timestamp=frame.timestamp, quality=frame.quality)

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------

    @app.post("/api/commands")
    async def enqueue_command(request: EnqueueRequest) -> dict[str, Any]:
        q: CommandQueue = app.state.commands
        command_id = await q.enqueue(request.target_id, request.command)
        return {"success": True, "command_id": command_id}

    @app.get("/api/commands/{target_id}")
    async def list_commands(target_id: str) -> list[Command]:
        q: CommandQueue = app.state.commands
        return await q.list(target_id)

    @app.post("/api/command_done")
    async def command_done(request: AckRequest) -> dict[str, bool]:
        q: CommandQueue = app.state.commands
        await q.ack(request.target_id, request.command_id)
        return {"success": True}

    return app


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

def _install_error_handlers(app: FastAPI, expose_errors: bool) -> None:
    """Map every failure onto ``{"error": ...}`` with a fitting status code."""

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc), "status": exc.status})

    @app.exception_handler(InvalidRequestError)
    async def invalid_request(request: Request, exc: InvalidRequestError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc), "field": exc.field})

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        detail = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "detail": detail})

    @app.exception_handler(StoreConflictError)
    async def store_conflict(request: Request, exc: StoreConflictError) -> JSONResponse:
        logger.warning("Store contention on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"error": "Store busy, retry later"})

    @app.exception_handler(StoreError)
    async def store_failure(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
        message = str(exc) if expose_errors else "Store unavailable"
        return JSONResponse(status_code=503, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return JSONResponse(status_code=404, content={"error": "Not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.middleware("http")
    async def fault_boundary(request: Request, call_next):  # type: ignore[no-untyped-def]
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            message = str(exc) if expose_errors else "Internal server error"
            return JSONResponse(status_code=500, content={"error": message})


# ---------------------------------------------------------------------------
# Standalone entry point
# ---------------------------------------------------------------------------

def main(settings: Settings | None = None) -> None:
    """Run the relay server.

    Logging must already be configured; with no ``settings`` the default
    config file is loaded and logging is set up from it.
    """
    if settings is None:
        from remotedesk.config.settings import load_settings
        from remotedesk.utils.logging import setup_logging

        settings = load_settings()
        setup_logging(settings.logging)
    app = create_app(settings)
    # uvicorn keeps the handlers setup_logging attached instead of its dictConfig
    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_config=None)


if __name__ == "__main__":
    main()
