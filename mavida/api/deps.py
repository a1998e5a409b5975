"""
Shared endpoint plumbing: context lookup and error -> HTTP status mapping
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from mavida.core.context import AppContext
from mavida.core.exceptions import (
    CatalogError,
    MavidaError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    StorageError,
    ValidationError,
)
import logging

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (RateLimitedError, 503),
    (NetworkError, 504),
    (StorageError, 503),
    (CatalogError, 502),
)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def error_status(exc: Exception) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


async def mavida_error_handler(request: Request, exc: MavidaError) -> JSONResponse:
    status = error_status(exc)
    if status >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc!r}")
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "error": type(exc).__name__},
    )
