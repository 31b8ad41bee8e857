from __future__ import annotations

"""
JSON exception handlers.

Every error leaves the app as `{"error": "<message>"}` with the matching
status, so the metadata and stream endpoints report failures consistently.
Registered in `videogate.main.create_app`.
"""

import logging
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from videogate.core.exceptions import AppException, UpstreamError

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    status.HTTP_400_BAD_REQUEST: "bad request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method not allowed",
}


def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:  # type: ignore
    if isinstance(exc, UpstreamError):
        # Detail goes to logs only.
        logger.error("Upstream failure on %s: %s (%s)", request.url.path, exc.__class__.__name__, exc.details)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore
    message = _STATUS_MESSAGES.get(exc.status_code) or (exc.detail if isinstance(exc.detail, str) else "error")
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore
    return error_response(status.HTTP_400_BAD_REQUEST, "bad request")


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore
    logger.exception("Unhandled error on %s", request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal error")


__all__ = [
    "error_response",
    "app_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "global_exception_handler",
]
