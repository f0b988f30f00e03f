"""
FastAPI application exposing the version history engine.

The API is the host surface for an editor front end: it sanitizes content,
stores and restores versions, and reports storage usage.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import settings
from ..logging_config import setup_logging
from ..storage import create_version_store
from ..storage.version_store import VersionStore
from ..version import API_VERSION
from .middleware import (
    setup_error_handling_middleware,
    setup_exception_handlers,
    setup_logging_middleware,
)
from .routes import health, sanitize, storage, version, versions

# Setup logging on module import
setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the configured version store at startup unless one was injected.
    """
    if app.state.version_store is None:
        app.state.version_store = create_version_store()

    logger.info(
        "api_starting",
        version=API_VERSION,
        log_level=settings.log_level,
        storage_backend=settings.storage_backend,
        quota_bytes=settings.storage_quota_bytes,
    )
    yield
    logger.info("api_shutting_down")


def create_app(store: Optional[VersionStore] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        store: Version store to serve (built from settings at startup if None)

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Report Versioning Engine",
        description="HTML sanitization, quota-aware version history and line diffs for reports",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.version_store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Custom middleware and domain error mapping
    setup_error_handling_middleware(app)
    setup_logging_middleware(app)
    setup_exception_handlers(app)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(version.router, prefix="/api/v1", tags=["Version"])
    app.include_router(sanitize.router, prefix="/api/v1", tags=["Sanitization"])
    app.include_router(versions.router, prefix="/api/v1/reports", tags=["Versions"])
    app.include_router(storage.router, prefix="/api/v1", tags=["Storage"])

    return app


# Create app instance
app = create_app()


def main() -> None:
    """
    Entry point for running the API server directly.

    For development use. In production, use uvicorn directly.
    """
    import uvicorn

    uvicorn.run(
        "report_versioning.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
