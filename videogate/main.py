# videogate/main.py
from __future__ import annotations

"""
# Videogate — Application Entrypoint (FastAPI)

Edge gateway that resolves an opaque deep-link code to a stored video and
serves it with correct byte-range semantics, gated by a subscription check.

## Design Goals
- Deterministic, testable **app factory** (`create_app`) with explicit lifespan.
- Collaborators (metadata client, object gateway) built once per process and
  injected into routes; nothing global is mutated per request.
- Middleware order (outermost first): request id → CORS + top-level guard.
- Centralized error mapping so both endpoints report failures identically.

## Probes
- `/healthz`: liveness (process up; no external checks).
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator
import logging
import os

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

# -- Logging bootstrap (Loguru + stdlib intercept) ----------------------------
from videogate.core import logger as _logsetup  # noqa: F401
from videogate.core.config import settings
from videogate.core.exception_handlers import (
    app_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from videogate.core.exceptions import AppException
from videogate.middleware.cors import PermissiveCORSMiddleware
from videogate.middleware.request_id import RequestIDMiddleware

logger = logging.getLogger("videogate")


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Lifespan: startup & shutdown
# ─────────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup:
        - Build the metadata client and object gateway unless already set
          on `app.state` (tests may pre-seed them).

    Shutdown:
        - Close the metadata HTTP pool if this lifespan created it.
    """
    from videogate.services.metadata_client import MetadataClient
    from videogate.utils.aws import ObjectGateway

    logger.info("Videogate starting up (env=%s)", settings.ENV)

    owned_metadata = None
    if getattr(app.state, "metadata_client", None) is None:
        owned_metadata = MetadataClient.from_settings(settings)
        app.state.metadata_client = owned_metadata
    if getattr(app.state, "object_gateway", None) is None:
        app.state.object_gateway = ObjectGateway.from_settings(settings)

    try:
        yield
    finally:
        if owned_metadata is not None:
            try:
                await owned_metadata.aclose()
            except Exception:
                logger.exception("Error closing metadata client")
        logger.info("Videogate shutting down")


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app() -> FastAPI:
    """
    Build and configure the FastAPI app instance.

    Returns:
        FastAPI: app with middleware, exception handlers, the video router
        and the liveness probe.
    """
    enable_docs = settings.ENABLE_DOCS and not settings.is_production
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url="/docs" if enable_docs else None,
        redoc_url=None,
        openapi_url="/openapi.json" if enable_docs else None,
        lifespan=lifespan,
    )

    # ── Middlewares (last added runs first) ─────────────────────────────────
    app.add_middleware(
        PermissiveCORSMiddleware,
        allow_origin=settings.CORS_ALLOW_ORIGIN,
        max_age=settings.CORS_MAX_AGE,
    )
    app.add_middleware(RequestIDMiddleware)

    # ── Exception handlers ──────────────────────────────────────────────────
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)

    # ── Routers ─────────────────────────────────────────────────────────────
    from videogate.api.routers.video import router as video_router

    app.include_router(video_router)

    # ── Meta endpoints ──────────────────────────────────────────────────────
    @app.get("/healthz", tags=["meta"])
    async def healthz() -> dict[str, bool]:
        """Liveness probe. No external checks."""
        return {"ok": True}

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        return JSONResponse({"name": settings.PROJECT_NAME, "version": settings.VERSION})

    return app


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Module-level ASGI app for Uvicorn/Gunicorn
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()
__all__ = ["create_app", "app"]


# Local dev runner (prefer: `uvicorn videogate.main:app --reload`)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "videogate.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "1") == "1",
        workers=int(os.getenv("WORKERS", "1")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
