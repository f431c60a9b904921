"""
RecipeShare Backend - FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, service wiring, route mounting,
       exception handling and lifecycle management in one place.
How:   create_app() builds the services once and keeps them on app.state;
       routes reach them through dependency functions.
Who:   uvicorn (recipeshare.main:app) and the test suite (create_app(...)).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌────────────┐ ┌──────────┐ ┌─────────┐                 │
    │  │ Rate Limit │→│  Req ID  │→│ Logging │                 │
    │  └────────────┘ └──────────┘ └─────────┘                 │
    │                                                          │
    │  app.state:                                              │
    │    auth_verifier   object_store   recipe_store           │
    │    recipe_pipeline recipe_queries                        │
    │                                                          │
    │  Exception Handlers:                                     │
    │  Validation→400  Unauthorized→401  NotFound→404          │
    │  RateLimit→429   Database→500      StoreUnavailable→503  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, ready banner
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from recipeshare import __version__
from recipeshare.auth import AuthVerifier, RejectingAuthVerifier
from recipeshare.config import settings
from recipeshare.database import dispose_engine
from recipeshare.exceptions import (
    DatabaseError,
    NotFoundError,
    RecipeShareError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from recipeshare.middleware.logging import RequestLoggingMiddleware
from recipeshare.middleware.rate_limit import RateLimitMiddleware
from recipeshare.middleware.request_id import RequestIDMiddleware, request_id_var
from recipeshare.routes import health, recipes
from recipeshare.services.image_service import ImageService
from recipeshare.services.object_store import ObjectStoreClient
from recipeshare.services.recipe_pipeline import RecipePipeline
from recipeshare.services.recipe_queries import RecipeQueryService
from recipeshare.services.recipe_store import RecipeStore

logger = logging.getLogger(__name__)

GENERIC_SERVER_MESSAGE = "An internal error occurred. Please try again later."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, at startup.

    Format: timestamp [LEVEL] logger.name: message
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("RecipeShare Backend starting up (environment=%s)...", settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health reports the object store as unavailable
        logger.error("Configuration error: %s", str(e))

    logger.info("Image bucket: %s (%s)", settings.s3_bucket_name or "<unset>", settings.aws_region)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("RecipeShare Backend shutting down...")
    if app.state.owns_engine:
        await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {
        "success": False,
        "error": error,
        "message": message,
        "request_id": request_id_var.get(""),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _server_message(message: str) -> str:
    """5xx messages are replaced by a generic one in production."""
    return GENERIC_SERVER_MESSAGE if settings.is_production else message


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to status codes and the `{success: false, ...}` envelope.

    Handler hierarchy:
        ValidationError / RequestValidationError → 400
        UnauthorizedError                        → 401
        NotFoundError                            → 404
        (429 is answered by RateLimitMiddleware)
        DatabaseError                            → 500 (always generic)
        StoreUnavailableError                    → 503
        RecipeShareError (base) / Exception      → 500

    `context` is logged, never returned, except for validation errors where
    it only names the offending field.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        details = {"field": exc.field} if exc.field else None
        return _error_response(400, "validation_error", exc.message, details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        first = errors[0] if errors else {"loc": [], "msg": "Invalid request"}
        message = f"{'.'.join(first['loc'])}: {first['msg']}" if first["loc"] else first["msg"]
        logger.warning("[%s] Request validation error: %s", request_id_var.get(""), message)
        return _error_response(400, "validation_error", message, {"errors": errors})

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        return _error_response(
            401, "unauthorized", exc.message, headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        logger.info("[%s] Not found: %s", request_id_var.get(""), exc.context)
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(StoreUnavailableError)
    async def handle_store_unavailable(request: Request, exc: StoreUnavailableError):
        logger.error(
            "[%s] Object store unavailable: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(503, "store_unavailable", _server_message(exc.message))

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(500, "server_error", GENERIC_SERVER_MESSAGE)

    @app.exception_handler(RecipeShareError)
    async def handle_app_error(request: Request, exc: RecipeShareError):
        logger.error("[%s] Application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", _server_message(exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        error = "not_found" if exc.status_code == 404 else "http_error"
        return _error_response(exc.status_code, error, str(exc.detail), headers=exc.headers)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return _error_response(
            500,
            "internal_server_error",
            _server_message("An unexpected error occurred. Please try again or contact support."),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    auth_verifier: Optional[AuthVerifier] = None,
    object_store: Optional[ObjectStoreClient] = None,
    session_factory: Optional[async_sessionmaker] = None,
    image_service: Optional[ImageService] = None,
    pipeline_options: Optional[Dict[str, Any]] = None,
) -> FastAPI:
    """
    Build a configured application.

    Every collaborator can be injected; anything omitted is built from
    settings. Tests pass a SQLite session factory, a mocked object store and
    a fake auth verifier.

    Args:
        pipeline_options: extra keyword arguments for RecipePipeline
                          (e.g. retry waits)
    """
    app = FastAPI(
        title="RecipeShare API",
        description=(
            "Recipe sharing backend. Recipes are stored together with a 400x300 "
            "thumbnail and a 1200x800 image kept in S3."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Services ──────────────────────────────────────────────────────────
    store = RecipeStore(session_factory=session_factory)
    object_store = object_store or ObjectStoreClient()
    app.state.owns_engine = session_factory is None
    app.state.auth_verifier = auth_verifier or RejectingAuthVerifier()
    app.state.object_store = object_store
    app.state.recipe_store = store
    app.state.recipe_pipeline = RecipePipeline(
        store=store,
        object_store=object_store,
        image_service=image_service,
        **(pipeline_options or {}),
    )
    app.state.recipe_queries = RecipeQueryService(store)

    # ── Middleware ────────────────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID → RateLimit → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(recipes.router)
    app.include_router(health.router)

    return app


app = create_app()
