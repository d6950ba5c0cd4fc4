"""
Global Exception Handlers for the FastAPI Application.

Domain errors raised by the services carry their own HTTP status and are
returned as ``{"detail": message}``. Anything else is logged with an error ID,
request context and full traceback, and answered with a generic 500.
"""

import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dumpster_directory.core.errors import DirectoryError
from dumpster_directory.core.logging_config import get_logger
from dumpster_directory.core.monitoring import log_error

logger = get_logger(__name__)


async def directory_error_handler(request: Request, exc: DirectoryError) -> JSONResponse:
    """Answer an expected failure with its status code and message."""
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} unavailable: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler to log detailed error information.

    This handler is called for any unhandled exception in the application.
    It logs the full error context and returns a JSON response with an error ID
    that clients can use to reference the error when reporting issues.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with error details and error ID
    """
    error_id = id(exc)

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )
    log_error(type(exc).__name__, str(exc), {"path": request.url.path, "error_id": error_id})

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(DirectoryError, directory_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
