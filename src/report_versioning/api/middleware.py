"""
FastAPI middleware and exception handlers for logging and error handling.
"""

import time
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from ..exceptions import (
    FormatError,
    ReportVersioningError,
    StorageWriteError,
    VersionNotFoundError,
)

logger = structlog.get_logger(__name__)

# Domain errors and the status codes they map to
ERROR_STATUS_CODES = {
    VersionNotFoundError: 404,
    FormatError: 400,
    StorageWriteError: 507,
}


def setup_logging_middleware(app: FastAPI) -> None:
    """
    Setup request/response logging middleware.

    Logs every request with method, path, status code and processing time.
    """

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            method=request.method, path=request.url.path
        )

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            query_params=str(request.query_params),
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                process_time_ms=round((time.time() - start_time) * 1000, 2),
                error=str(e),
                exc_info=True,
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time_ms=round(process_time * 1000, 2),
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response


def setup_error_handling_middleware(app: FastAPI) -> None:
    """
    Setup global error handling middleware.

    Catches unhandled exceptions and returns consistent error responses.
    """

    @app.middleware("http")
    async def handle_errors(request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                "unhandled_exception",
                method=request.method,
                path=request.url.path,
                error=str(e),
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "Internal server error",
                    "detail": str(e) if app.debug else "An unexpected error occurred",
                },
            )


def setup_exception_handlers(app: FastAPI) -> None:
    """Map domain exceptions to HTTP error responses."""

    @app.exception_handler(ReportVersioningError)
    async def handle_domain_error(request: Request, exc: ReportVersioningError) -> JSONResponse:
        status_code = next(
            (code for cls, code in ERROR_STATUS_CODES.items() if isinstance(exc, cls)), 500
        )
        log = logger.warning if status_code < 500 else logger.error
        log(
            "domain_error",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "error": type(exc).__name__, "detail": str(exc)},
        )
