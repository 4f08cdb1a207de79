"""Clinic Document Vault - Main FastAPI Application

This module creates and configures the FastAPI application, including:
- Object storage backend selection (once, at startup)
- API routers (documents, observability, mock storage in development)
- Middleware (request ID correlation, CORS)
- Exception handlers
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from config import Settings, get_settings
from database import engine
from domain.documents.ports.object_storage_port import ObjectStoragePort, StorageError
from domain.documents.results import ErrorKind
from domain.documents.storage_gateway import StorageGateway
from domain.documents.validation import FileRules
from infrastructure.storage.factory import build_storage_adapter
from infrastructure.storage.mock_storage_adapter import MockStorageAdapter
from models.base import Base

# Observability
from observability.logging_config import configure_logging
from observability.middleware import RequestIDMiddleware
from observability.router import router as observability_router

# API v1 Routers
from api.v1.documents.router import router as documents_router
from api.v1.mock_storage.router import router as mock_storage_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    - Startup: create SQLite tables for local development, check the storage backend
    - Shutdown: dispose the connection pool
    """
    settings: Settings = app.state.settings
    logger.info("Clinic Document Vault API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    if settings.DATABASE_URL.startswith("sqlite"):
        # Alembic owns the schema everywhere else
        Base.metadata.create_all(bind=engine)

    try:
        await app.state.storage_adapter.verify_ready()
    except StorageError as e:
        logger.error(f"Object storage is not ready: {e}", extra={"backend": app.state.storage_adapter.backend_name})

    yield

    logger.info("Clinic Document Vault API shutting down...")
    engine.dispose()


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors with the vault error body."""
        logger.warning(f"Validation error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": ErrorKind.VALIDATION_ERROR.value,
                "message": "Request validation failed",
                "details": {"errors": jsonable_encoder(exc.errors())},
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(
        request: Request,
        exc: SQLAlchemyError
    ) -> JSONResponse:
        """Handle database errors.

        Logs the full error but returns a generic message to prevent
        information leakage.
        """
        logger.error(
            f"Database error on {request.method} {request.url.path}",
            exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": ErrorKind.DATABASE_ERROR.value,
                "message": "A database error occurred. Please try again later.",
                "details": None,
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle uncaught exceptions.

        Full details are logged but not exposed to the client.
        """
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}",
            exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
                "details": None,
            },
        )


def create_app(
    settings: Optional[Settings] = None,
    storage_adapter: Optional[ObjectStoragePort] = None,
) -> FastAPI:
    """Application factory.

    Args:
        settings: Settings to use (defaults to the cached process settings)
        storage_adapter: Pre-built storage backend (tests); otherwise chosen
            from STORAGE_BACKEND

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    is_production = settings.ENVIRONMENT == "production"
    app = FastAPI(
        title="Clinic Document Vault API",
        description="Clinical document storage with presigned uploads and downloads",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
        lifespan=lifespan,
    )

    storage_adapter = storage_adapter or build_storage_adapter(settings)
    file_rules = FileRules.from_settings(settings)

    app.state.settings = settings
    app.state.storage_adapter = storage_adapter
    app.state.file_rules = file_rules
    app.state.storage_gateway = StorageGateway(
        storage_adapter,
        rules=file_rules,
        upload_ttl_seconds=settings.UPLOAD_URL_TTL_SECONDS,
        download_ttl_seconds=settings.DOWNLOAD_URL_TTL_SECONDS,
    )

    # =========================================================================
    # MIDDLEWARE CONFIGURATION
    # =========================================================================

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    _register_exception_handlers(app)

    # =========================================================================
    # ROUTER REGISTRATION
    # =========================================================================

    # Observability (health, metrics, ready)
    app.include_router(observability_router)

    app.include_router(documents_router, prefix="/api/v1")

    if isinstance(storage_adapter, MockStorageAdapter):
        app.include_router(mock_storage_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        """Root endpoint - API information."""
        return {
            "name": "Clinic Document Vault API",
            "version": "0.1.0",
            "status": "running",
            "storage_backend": storage_adapter.backend_name,
        }

    return app


app = create_app()


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().ENVIRONMENT == "development",
        log_level=get_settings().LOG_LEVEL.lower(),
    )
