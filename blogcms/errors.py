"""
Domain exceptions raised by the service layer.

Services return ``None`` for missing rows and let the router answer 404;
anything else a client can fix is raised as a ``BlogError`` subclass and
rendered by ``blog_error_handler`` as ``{"detail": ..., **extra}``.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

logger = logging.getLogger(__name__)


class BlogError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, **extra) -> None:
        super().__init__(detail)
        self.detail = detail
        self.extra = extra


class InvalidInputError(BlogError):
    """Request is well-formed but semantically unusable (unknown ids, empty slug, bot traffic)."""

    status_code = HTTP_400_BAD_REQUEST


class ConflictError(BlogError):
    """Uniqueness violation or a delete blocked by existing references."""

    status_code = HTTP_409_CONFLICT


async def blog_error_handler(request: Request, exc: BlogError) -> JSONResponse:
    logger.warning(
        "%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.detail
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, **exc.extra},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error", "error": str(exc.__cause__ or exc)},
    )
