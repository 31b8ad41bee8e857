# videogate/core/exceptions.py
from __future__ import annotations

"""
Videogate — Application Exceptions
==================================
A small, consistent layer on top of FastAPI/Starlette's `HTTPException` so
both public endpoints report failures the same way.

Taxonomy
--------
- `BadRequestError`      400  missing/invalid required input
- `UnauthenticatedError` 401  VIP content requested without an identity
- `ForbiddenError`       403  VIP content, identity without active subscription
- `NotFoundError`        404  no matching record (`VideoNotFound`) or object (`ObjectNotFound`)
- `UpstreamError`        500  metadata store (`MetadataStoreError`) or blob
                              store (`StorageBackendError`) failing

Upstream errors keep their internal detail in `details` for logging only;
`to_body()` never serializes it.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "BadRequestError",
    "UnauthenticatedError",
    "ForbiddenError",
    "NotFoundError",
    "VideoNotFound",
    "ObjectNotFound",
    "UpstreamError",
    "MetadataStoreError",
    "StorageBackendError",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception.

    Attributes
    -----------
    status_code : int
        HTTP status code.
    message : str
        Client-safe message, rendered as `{"error": message}`.
    details : Any
        Internal context for logs. Never sent to clients.
    """

    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "internal error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        status_code = status_code or self.default_status
        message = message or self.default_message
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message: str = message
        self.details: Optional[Any] = details

    def to_body(self) -> Dict[str, Any]:
        """Canonical JSON error body. Correlation travels in `X-Request-ID`."""
        return {"error": self.message}


# ──────────────────────────────────────────────────────────────
# 🧾 Client-side errors
# ──────────────────────────────────────────────────────────────
class BadRequestError(AppException):
    default_status = status.HTTP_400_BAD_REQUEST
    default_message = "bad request"


class UnauthenticatedError(AppException):
    """VIP-gated content requested without a caller identity."""

    default_status = status.HTTP_401_UNAUTHORIZED
    default_message = "unauthorized"


class ForbiddenError(AppException):
    """VIP-gated content, identity present but subscription inactive."""

    default_status = status.HTTP_403_FORBIDDEN
    default_message = "forbidden"


class NotFoundError(AppException):
    default_status = status.HTTP_404_NOT_FOUND
    default_message = "not found"


class VideoNotFound(NotFoundError):
    """No metadata row matches the deep-link code."""


class ObjectNotFound(NotFoundError):
    """The record resolved but its blob is missing from storage."""


# ──────────────────────────────────────────────────────────────
# 🌩️ Upstream failures
# ──────────────────────────────────────────────────────────────
class UpstreamError(AppException):
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "internal error"


class MetadataStoreError(UpstreamError):
    """Metadata store unreachable, non-2xx, or returned an undecodable body."""


class StorageBackendError(UpstreamError):
    """Blob store unreachable or erroring (distinct from a missing object)."""
