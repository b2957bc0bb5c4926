"""FastAPI application exposing the sync engine over HTTP."""

import logging
import socket
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..models import utc_now
from ..sync import SyncEngine

logger = logging.getLogger(__name__)


class ValueBody(BaseModel):
    value: Any = None


class ProjectBody(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    device: str | None = None  # Set by satellites to keep provenance


def create_app(engine: SyncEngine, cors_origins: list[str] | None = None) -> FastAPI:
    """Create the HTTP application.

    A hub serves its own store. A satellite serves the same routes and
    forwards them to its hub, so local callers never need to know which
    role they are talking to.

    Args:
        engine: Sync engine every route delegates to.
        cors_origins: Origins allowed to call the API from a browser.
            Defaults to any origin.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="crossdevice",
        description="Local-first key/value and project store shared across devices",
        version="0.1.0",
    )
    app.state.engine = engine
    _configure_cors(app, cors_origins or ["*"])

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Server error on {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )

    @app.get("/api/health")
    async def api_health() -> dict[str, Any]:
        """Liveness probe used by satellites. Always 200 while running."""
        return {"status": "ok", "timestamp": utc_now()}

    @app.get("/api/status")
    async def api_status() -> dict[str, Any]:
        return {"success": True, "data": engine.status()}

    # ==================== Key/value ====================
    # Keys and project names may contain "/", hence the path converters.

    @app.get("/api/data")
    async def api_read_all() -> dict[str, Any]:
        result = await engine.read_result()
        return {"success": result.ok, "data": result.value}

    @app.get("/api/data/{key:path}")
    async def api_read_key(key: str) -> dict[str, Any]:
        result = await engine.read_result(key)
        return {"success": result.ok, "data": result.value}

    @app.post("/api/data/{key:path}")
    async def api_write_key(key: str, body: ValueBody) -> dict[str, Any]:
        return {"success": await engine.write(key, body.value)}

    # ==================== Projects ====================

    @app.get("/api/project/{name:path}")
    async def api_read_project(name: str) -> dict[str, Any]:
        record = await engine.read_project(name)
        return {"success": record is not None, "data": record or {}}

    @app.post("/api/project/{name:path}")
    async def api_write_project(name: str, body: ProjectBody) -> dict[str, Any]:
        success = await engine.write_project(name, body.data, device=body.device)
        return {"success": success}

    return app


def _configure_cors(app: FastAPI, origins: list[str]) -> None:
    """Let browser pages on other devices call the API."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.debug(f"CORS: allow_origins={origins}")


def bind_first_free(host: str, ports: list[int]) -> tuple[socket.socket, int]:
    """Bind a listening socket to the first free port in ``ports``.

    Args:
        host: Address to bind.
        ports: Candidate ports, tried in order.

    Returns:
        The bound socket and its port.

    Raises:
        OSError: If every port is taken.
    """
    last_error: OSError | None = None
    for port in ports:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            last_error = e
            logger.warning(f"Port {port} is already in use, trying next")
            continue
        return sock, port

    raise OSError(f"No free port among {ports}: {last_error}")
