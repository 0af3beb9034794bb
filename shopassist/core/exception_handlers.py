# shopassist/core/exception_handlers.py
import logging
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from shopassist.core.errors import (
    GenerationError,
    InvalidArgument,
    NotFound,
    UpstreamFormatError,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, kind: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, "error": kind})


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        logger.warning("NotFound for %s %s: %s", request.method, request.url, exc)
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "not_found")

    @app.exception_handler(InvalidArgument)
    async def invalid_argument_handler(request: Request, exc: InvalidArgument):
        logger.warning("InvalidArgument for %s %s: %s", request.method, request.url, exc)
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), "invalid_argument")

    @app.exception_handler(UpstreamFormatError)
    async def upstream_format_handler(request: Request, exc: UpstreamFormatError):
        logger.error("UpstreamFormatError for %s %s: %s", request.method, request.url, exc)
        return _error(status.HTTP_502_BAD_GATEWAY, "The AI service returned an unexpected format.", "upstream_format")

    @app.exception_handler(GenerationError)
    async def generation_handler(request: Request, exc: GenerationError):
        logger.error("GenerationError for %s %s: %s", request.method, request.url, exc)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "The AI service is unavailable.", "generation_failed")
