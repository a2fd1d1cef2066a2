"""Exception handlers rendering every failure as ``{"error": "..."}``.

Messages are generic; upstream provider payloads never reach the client.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from askaussie.core.ai_constants import INTERNAL_ERROR, INVALID_REQUEST_ERROR
from askaussie.core.exceptions import AskAussieError

logger = logging.getLogger(__name__)


async def askaussie_error_handler(request: Request, exc: AskAussieError) -> JSONResponse:
    logger.warning(
        f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.message}"
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} invalid body: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": INVALID_REQUEST_ERROR},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Error in {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AskAussieError, askaussie_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
