"""
Postboard Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app(settings) builds the database engine, the services, the
       middleware chain, the exception handlers and the routers, and returns
       the assembled app. Nothing request-scoped lives at module level.
Who:   uvicorn (`uvicorn postboard.main:app`), the `postboard` console
       script, and the test suite (one app per test database).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  app.state: settings │ engine │ session_factory     │
    │             auth_service                            │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌────────────────────┐   │
    │  │  Req ID  │→│ Logging  │→│ Rate Limit /auth/* │   │
    │  └──────────┘ └──────────┘ └────────────────────┘   │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌──────────────┐ ┌────────────┐   │
    │  │ /auth/signup │ │ /posts CRUD  │ │ GET /health│   │
    │  │ /auth/login  │ │              │ │            │   │
    │  └──────────────┘ └──────────────┘ └────────────┘   │
    │                                                     │
    │  Exception Handlers:                                │
    │  Validation/Conflict→400 │ Auth→401 │ Forbidden→403 │
    │  NotFound→404 │ Database/unexpected→500             │
    └─────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from postboard import __version__
from postboard.config import Settings, settings as default_settings
from postboard.database import build_engine, build_session_factory, dispose_engine
from postboard.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    InvalidCredentialsError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from postboard.middleware.errors import UnhandledErrorMiddleware, unexpected_error_response
from postboard.middleware.logging import RequestLoggingMiddleware
from postboard.middleware.rate_limit import RateLimitMiddleware
from postboard.middleware.request_id import RequestIDMiddleware, request_id_var
from postboard.routes import auth, health, posts
from postboard.services.auth_service import AuthService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)


async def log_database_version(engine: AsyncEngine) -> None:
    """Open one pooled connection at boot and log which server answered."""
    try:
        async with engine.connect() as conn:
            version = conn.dialect.server_version_info
    except (SQLAlchemyError, OSError) as e:
        logger.error("Database unreachable at startup: %s", str(e))
        return

    logger.info(
        "Connected to %s %s",
        engine.dialect.name,
        ".".join(str(part) for part in version) if version else "(unknown version)",
    )


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:  configure logging, validate settings, check the database.
    Shutdown: dispose the engine (closes every pooled connection).
    """
    app_settings: Settings = app.state.settings

    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("Postboard Backend %s starting up...", __version__)

    try:
        app_settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving; the misconfiguration is loud in the log
        logger.error("Configuration error: %s", str(e))

    await log_database_version(app.state.engine)

    logger.info(
        "Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port
    )
    logger.info("=" * 60)

    yield

    logger.info("Postboard Backend shutting down...")
    await dispose_engine(app.state.engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and response bodies.

    Handler hierarchy:
        ValidationError, RequestValidationError → 400 validation_error
        ConflictError                           → 400 conflict
        InvalidCredentialsError                 → 401 {"auth": false, "token": null}
        AuthenticationError                     → 401 unauthorized
        PermissionDeniedError                   → 403 forbidden
        NotFoundError                           → 404 not_found
        DatabaseError                           → 500 server_error
        Exception (fallback)                    → 500 internal_server_error
                                                  (rendered by UnhandledErrorMiddleware)

    Server errors never carry internal details (driver messages, SQL, stack
    traces) in the response; those are logged with the request ID.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, details=exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Malformed body or path parameters; reported as 400 like other bad input."""
        problems = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return _error_response(
            400, "validation_error", "Request validation failed", details={"errors": problems}
        )

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(400, "conflict", exc.message)

    @app.exception_handler(InvalidCredentialsError)
    async def handle_invalid_credentials(request: Request, exc: InvalidCredentialsError):
        return JSONResponse(status_code=401, content={"auth": False, "token": None})

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        response = _error_response(401, "unauthorized", exc.message)
        response.headers["WWW-Authenticate"] = "Bearer"
        return response

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(request: Request, exc: PermissionDeniedError):
        logger.warning(
            "[%s] Permission denied: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return _error_response(403, "forbidden", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
            exc_info=exc.__cause__ is not None,
        )
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        # Only reached for failures outside UnhandledErrorMiddleware
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return unexpected_error_response()


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Configuration to build from; defaults to the
                      environment-derived `postboard.config.settings`.

    Returns: Fully configured FastAPI instance. Its engine and services are on
             `app.state`, so two apps never share a connection pool.
    """
    app_settings = app_settings or default_settings

    app = FastAPI(
        title="Postboard API",
        description="Blog backend: signup/login with bearer tokens and CRUD on user-owned posts.",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Shared Resources ──────────────────────────────────────────────────
    engine = build_engine(app_settings)
    app.state.settings = app_settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.auth_service = AuthService.from_settings(app_settings)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute:
    # RequestID → Logging → RateLimit → UnhandledError → GZip → CORS → route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials="*" not in app_settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=app_settings.rate_limit_requests,
        window_seconds=app_settings.rate_limit_window,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(posts.router)
    app.include_router(health.router)

    return app


def run() -> None:
    """Entry point of the `postboard` console script."""
    uvicorn.run(
        "postboard.main:app",
        host=default_settings.backend_host,
        port=default_settings.backend_port,
        log_level=default_settings.log_level.lower(),
    )


app = create_app()
