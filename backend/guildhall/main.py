"""
Guildhall Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn guildhall.main:app).

Application Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                       FastAPI App                         │
    │                                                           │
    │  Middleware Chain:                                        │
    │  ┌──────────┐ ┌────────────┐ ┌──────┐ ┌──────┐            │
    │  │ Req ID   │→│ Access log │→│ GZip │→│ CORS │            │
    │  └──────────┘ └────────────┘ └──────┘ └──────┘            │
    │                                                           │
    │  Routes:                                                  │
    │  ┌──────────────────┐ ┌────────────────────┐              │
    │  │ /api/connections │ │ /api/notifications │              │
    │  └──────────────────┘ └────────────────────┘              │
    │  ┌────────────┐ ┌─────────┐                               │
    │  │ /api/admin │ │ /health │                               │
    │  └────────────┘ └─────────┘                               │
    │                                                           │
    │  Exception Handlers:                                      │
    │  ┌─────────────────────────────────────────────────────┐  │
    │  │ Validation/Self→400 │ Auth→401/403 │ NotFound→404   │  │
    │  │ Duplicate/Connected→409 │ Persistence→500           │  │
    │  └─────────────────────────────────────────────────────┘  │
    └───────────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from guildhall import __version__
from guildhall.config import settings
from guildhall.database import dispose_engine
from guildhall.exceptions import (
    AlreadyConnectedError,
    AuthenticationError,
    DuplicatePendingError,
    GuildhallError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    SelfReferenceError,
    ValidationError,
)
from guildhall.middleware.logging import RequestLoggingMiddleware
from guildhall.middleware.request_id import RequestIDMiddleware, request_id_var
from guildhall.routes import admin, connections, health, notifications

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Called once during startup, before any other initialization. Every
    module logs through `logging.getLogger(__name__)`; the access log uses
    the `guildhall.access` logger.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: logging, configuration check. Shutdown: close the pool.

    A failed configuration check is logged but does not stop the server,
    so /health can still report what is wrong.
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("Guildhall Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Guildhall Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

# Domain errors whose message and context are safe to show to the client
CLIENT_ERROR_STATUS: Dict[Type[GuildhallError], int] = {
    ValidationError: 400,
    SelfReferenceError: 400,
    PermissionDeniedError: 403,
    NotFoundError: 404,
    DuplicatePendingError: 409,
    AlreadyConnectedError: 409,
}


def _error_body(error: str, message: str, details=None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy onto HTTP responses.

    Handler hierarchy:
        ValidationError, SelfReferenceError       → 400
        AuthenticationError                       → 401 (+ WWW-Authenticate)
        PermissionDeniedError                     → 403
        NotFoundError                             → 404
        DuplicatePendingError, AlreadyConnected   → 409
        PersistenceError                          → 500 (generic message)
        GuildhallError (base)                     → 500
        Exception (fallback)                      → 500

    Server-side failures never expose internals; their context is logged.
    """

    async def handle_client_error(request: Request, exc: GuildhallError):
        status_code = next(
            CLIENT_ERROR_STATUS[cls] for cls in type(exc).__mro__ if cls in CLIENT_ERROR_STATUS
        )
        logger.info(
            "[%s] %s on %s %s: %s",
            request_id_var.get(""), exc.error_code, request.method, request.url.path, exc.message,
        )
        return JSONResponse(
            status_code=status_code,
            content=_error_body(exc.error_code, exc.message, exc.context),
        )

    for exc_class in CLIENT_ERROR_STATUS:
        app.add_exception_handler(exc_class, handle_client_error)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=401,
            content=_error_body(exc.error_code, exc.message),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(PersistenceError)
    async def handle_persistence_error(request: Request, exc: PersistenceError):
        """Database error: generic message to the user, details logged server-side."""
        logger.error(
            "[%s] Persistence error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "server_error", "An internal error occurred. Please try again later."
            ),
        )

    @app.exception_handler(GuildhallError)
    async def handle_guildhall_error(request: Request, exc: GuildhallError):
        logger.error(
            "[%s] Unhandled application error %s: %s | Context: %s",
            request_id_var.get(""), type(exc).__name__, exc.message, exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: stack trace to the log, request id to the client."""
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Assemble middleware, exception handlers and routers into a new app."""
    app = FastAPI(
        title="Guildhall API",
        description=(
            "Membership association backend: member connection requests, "
            "the connection graph, and member notifications."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added executes first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(connections.router)
    app.include_router(notifications.router)
    app.include_router(admin.router)
    app.include_router(health.router)

    return app


app = create_app()
