"""
User API Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn userapi.main:app).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware:  Request ID → Access Log → GZip → CORS │
    │                                                     │
    │  Routes:                                            │
    │   POST /v1/user   GET|PUT /v1/user/self             │
    │   GET /healthz    GET /metrics                      │
    │                                                     │
    │  Exception Handlers:                                │
    │   Validation→400  Auth→401  NotFound→404            │
    │   MethodNotAllowed→405  Database→500                │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check → Database handle (unless injected)
    Shutdown: dispose the engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from userapi import __version__
from userapi.config import settings
from userapi.database import Database, QueryInstrumentation
from userapi.exceptions import (
    UserAPIError,
    ValidationError,
    AuthenticationError,
    NotFoundError,
    MethodNotAllowedError,
    DatabaseError,
)
from userapi.metrics import MetricsClient, metrics as default_metrics
from userapi.middleware.request_id import RequestIDMiddleware, request_id_var
from userapi.middleware.logging import RequestLoggingMiddleware
from userapi.routes import users, health, metrics

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    LOG_LEVEL=DEBUG also shows every SQL statement (userapi.database.queries).
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # SQLAlchemy's own echo would duplicate the query log
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Builds the Database handle on startup (unless one was injected) and disposes it on shutdown."""
    setup_logging()
    logger.info("User API starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: /healthz reports the database as disconnected
        logger.error("Configuration error: %s", str(e))

    if app.state.database is None:
        app.state.database = Database.from_settings(
            settings,
            QueryInstrumentation(metrics=app.state.metrics),
        )
    logger.info(
        "Database: %s@%s:%d/%s",
        settings.db_user, settings.db_host, settings.db_port, settings.db_name,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    logger.info("User API shutting down...")
    await app.state.database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ValidationError        → 400
        AuthenticationError    → 401 (+ WWW-Authenticate)
        NotFoundError          → 404
        MethodNotAllowedError  → 405 (+ Allow)
        DatabaseError          → 500 (generic message)
        UserAPIError (base)    → 500
        Exception (fallback)   → 500

    Internal details (SQL, tracebacks) are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        # Context says which check failed; it stays out of the response
        logger.info("[%s] Authentication rejected: %s", request_id_var.get(""), exc.context)
        return JSONResponse(
            status_code=401,
            content=_error_body("unauthorized", exc.message),
            headers={"WWW-Authenticate": 'Basic realm="userapi"'},
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message),
        )

    @app.exception_handler(MethodNotAllowedError)
    async def handle_method_not_allowed(request: Request, exc: MethodNotAllowedError):
        return JSONResponse(
            status_code=405,
            content=_error_body(
                "method_not_allowed",
                exc.message,
                {"allowed_methods": exc.allowed_methods},
            ),
            headers={"Allow": exc.allow_header},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(UserAPIError)
    async def handle_app_error(request: Request, exc: UserAPIError):
        logger.error("[%s] Unhandled application error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
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

def create_app(
    database: Optional[Database] = None,
    metrics_client: Optional[MetricsClient] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Handle to use instead of building one from settings at
                  startup. Tests pass a stub here.
        metrics_client: Where query timings go; defaults to the process-wide
                  client on the default Prometheus registry.
    """
    app = FastAPI(
        title="User API",
        description="User account service: create, fetch and update users.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.metrics = metrics_client or default_metrics

    # Middleware executes in REVERSE order of addition:
    # Request ID → Access Log → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Allow"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(health.router)
    app.include_router(metrics.router)

    return app


# uvicorn expects `userapi.main:app` to be importable
app = create_app()
