"""
HealthFlux Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application.
How:   create_app() registers middleware, exception handlers and routers.
       The lifespan builds the app-scoped collaborators (entity store,
       Gemini client, email sender, translator, file service, auth) and puts
       them on app.state, unless they were installed beforehand (tests do).
Who:   uvicorn healthflux.main:app

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                     FastAPI App                      │
    │  Middleware:  Request ID → Logging → CORS → GZip     │
    │                                                      │
    │  Routes (all /api routes require a logged-in caller):│
    │    documents · files · meals · insurance · reports   │
    │    share-links · admin · i18n · /health              │
    │                                                      │
    │  app.state: store · llm · email_sender · translator  │
    │             file_service · auth                      │
    │                                                      │
    │  Exception Handlers:                                 │
    │    Validation→400 │ Auth→401 │ NotFound→404          │
    │    LLM→503 │ DB/File/Report→500 │ Exception→500      │
    └──────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from healthflux import __version__
from healthflux.config import settings
from healthflux.database import async_session_factory, dispose_engine
from healthflux.exceptions import (
    AuthenticationError,
    CircuitBreakerOpenError,
    DatabaseError,
    FileStorageError,
    HealthFluxError,
    LLMServiceError,
    NotFoundError,
    ReportGenerationError,
    ValidationError,
)
from healthflux.i18n import Translator
from healthflux.middleware.logging import RequestLoggingMiddleware
from healthflux.middleware.request_id import RequestIDMiddleware, request_id_var
from healthflux.routes import admin, assistant, documents, health, i18n, reports, share_links
from healthflux.services.auth_service import AuthService
from healthflux.services.email_service import ResendEmailService
from healthflux.services.entity_store import SqlEntityStore
from healthflux.services.file_service import FileService
from healthflux.services.gemini_service import GeminiService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s on stdout.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# App-scoped services
# ══════════════════════════════════════════════════════════════════════════

def install_default_services(app: FastAPI) -> None:
    """Build each collaborator from settings unless one is already installed."""
    state = app.state
    if getattr(state, "store", None) is None:
        state.store = SqlEntityStore(async_session_factory)
    if getattr(state, "llm", None) is None:
        state.llm = GeminiService(
            api_key=settings.gemini_api_key,
            model_name=settings.gemini_model,
            vision_model_name=settings.gemini_vision_model,
            timeout_seconds=settings.llm_timeout_seconds,
            max_output_tokens=settings.llm_max_output_tokens,
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
    if getattr(state, "email_sender", None) is None:
        state.email_sender = ResendEmailService(
            api_key=settings.resend_api_key,
            sender=settings.email_from,
            api_url=settings.resend_api_url,
            timeout_seconds=settings.email_timeout_seconds,
        )
    if getattr(state, "translator", None) is None:
        state.translator = Translator.from_directory(default_language=settings.default_language)
    if getattr(state, "file_service", None) is None:
        state.file_service = FileService(settings.storage_root, settings.max_file_size)
    if getattr(state, "auth", None) is None:
        state.auth = AuthService(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            cookie_name=settings.auth_cookie_name,
            token_minutes=settings.jwt_expiration_minutes,
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: logging, configuration check, collaborators.
    Shutdown: dispose the database engine.
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("HealthFlux Backend starting up...")

    # Missing secrets are reported, not fatal: /health keeps answering
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    install_default_services(app)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("HealthFlux Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

        ValidationError, RequestValidationError → 400 validation_error
        AuthenticationError                      → 401 unauthorized
        NotFoundError                            → 404 not_found
        CircuitBreakerOpenError                  → 503 service_unavailable
        LLMServiceError                          → 503 llm_service_error
        DatabaseError, FileStorageError,
        ReportGenerationError, HealthFluxError   → 500 server_error
        Exception                                → 500 internal_server_error

    Internal context is logged, never returned (except for validation
    details, which describe the client's own input).
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": exc.message,
                "details": exc.context,
                "request_id": rid,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Schema errors (missing or malformed fields) use the same 400 body."""
        rid = request_id_var.get("")
        fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()]
        logger.warning("[%s] Request validation failed: %s", rid, fields)
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": "Missing or invalid required fields",
                "details": {"fields": fields},
                "request_id": rid,
            },
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        rid = request_id_var.get("")
        logger.info("[%s] Unauthenticated request to %s", rid, request.url.path)
        return JSONResponse(
            status_code=401,
            content={
                "error": "unauthorized",
                "message": exc.message,
                "request_id": rid,
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        return JSONResponse(
            status_code=404,
            content={
                "error": "not_found",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        rid = request_id_var.get("")
        logger.warning("[%s] Circuit breaker open: %s", rid, exc.message)
        return JSONResponse(
            status_code=503,
            content={
                "error": "service_unavailable",
                "message": exc.message,
                "details": {"recovery_time": exc.recovery_time},
                "request_id": rid,
            },
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(LLMServiceError)
    async def handle_llm_error(request: Request, exc: LLMServiceError):
        rid = request_id_var.get("")
        logger.error("[%s] LLM service error: %s | Context: %s", rid, exc.message, exc.context)
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(
            status_code=503,
            content={
                "error": "llm_service_error",
                "message": exc.message,
                "request_id": rid,
            },
            headers=headers,
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        rid = request_id_var.get("")
        logger.error("[%s] File storage error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(ReportGenerationError)
    async def handle_report_error(request: Request, exc: ReportGenerationError):
        rid = request_id_var.get("")
        logger.error("[%s] Report generation error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(HealthFluxError)
    async def handle_application_error(request: Request, exc: HealthFluxError):
        rid = request_id_var.get("")
        logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="HealthFlux API",
        description=(
            "Health-records backend: document search and upload, meal-photo analysis, "
            "health reports, insurance Q&A, share links and localization."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After", "Content-Disposition"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(documents.router)
    app.include_router(assistant.router)
    app.include_router(reports.router)
    app.include_router(share_links.router)
    app.include_router(admin.router)
    app.include_router(i18n.router)
    app.include_router(health.router)

    return app


app = create_app()
