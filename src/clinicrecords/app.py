"""
FastAPI application factory and main app configuration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .adapters.store.factory import build_document_store
from .api.errors import APIError, status_for_domain_error
from .api.routers import health, prescriptions, records
from .api.schemas.common import ErrorResponse
from .core.config import get_settings
from .core.structured_logger import configure_logging
from .domain.errors import DomainError
from .middleware.request_context_middleware import RequestContextMiddleware

logger = logging.getLogger("clinicrecords")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging(settings.logging)
    logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.app_env)

    store = build_document_store(settings)
    ensure_indexes = getattr(store, "ensure_indexes", None)
    if ensure_indexes is not None:
        await ensure_indexes()
    app.state.document_store = store
    logger.info("Document store ready (backend=%s)", settings.store.backend)

    yield

    logger.info("Shutting down %s", settings.app_name)
    await store.close()


def _error_response(request: Request, status_code: int, error: str, message: str, details=None) -> JSONResponse:
    req_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            request_id=req_id or "",
            details=details or {},
        ).model_dump(),
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Versioned medical records, prescription lifecycle and compliance audit log",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health.router)
    app.include_router(records.router)
    app.include_router(prescriptions.router)

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        status_code = status_for_domain_error(exc)
        log = logger.error if status_code >= 500 else logger.info
        log("DomainError: %s (%s) %s", exc.error_code, status_code, exc.message)
        return _error_response(
            request, status_code, exc.error_code or "DOMAIN_ERROR", exc.message, exc.details
        )

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        logger.info("APIError: %s (%s) %s", exc.code, exc.http_status, exc.message)
        return _error_response(request, exc.http_status, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def pydantic_error_handler(request: Request, exc: RequestValidationError):
        error_details = exc.errors()
        error_messages = []
        for error in error_details:
            loc = " -> ".join(str(x) for x in error.get("loc", []))
            msg = error.get("msg", "Validation error")
            error_messages.append(f"{loc}: {msg}")
        logger.info("ValidationError on %s %s: %s", request.method, request.url.path, error_messages)
        return _error_response(
            request,
            422,
            "INVALID_INPUT",
            f"Input validation failed: {'; '.join(error_messages)}",
            {"errors": jsonable_encoder(error_details, custom_encoder={Exception: str}), "path": request.url.path},
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", type(exc).__name__)
        return _error_response(
            request,
            500,
            "INTERNAL_ERROR",
            "An unexpected error has occurred. Please try again later.",
        )

    @app.get("/", tags=["health"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.app_env,
            "status": "running",
            "docs": "/docs",
            "endpoints": {
                "health": "/health",
                "records": "/clinics/{clinic_id}/records",
                "record_versions": "/clinics/{clinic_id}/records/{record_id}/versions",
                "prescriptions": "/clinics/{clinic_id}/prescriptions",
                "prescription_logs": "/clinics/{clinic_id}/prescriptions/{prescription_id}/logs",
            },
        }

    return app


# Create the app instance
app = create_app()
