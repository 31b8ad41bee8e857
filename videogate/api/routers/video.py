from __future__ import annotations

# ─────────────────────────────────────────────────────────────────────────────
# 🎬 Public Video API (deep-link metadata + gated byte streaming)
# ─────────────────────────────────────────────────────────────────────────────
#
#   GET|HEAD /api/video?code=...&user_id=...     → metadata + has_access + stream_url
#   GET|HEAD /api/video/stream?code=...&user_id=...  → 200/206 video bytes (HEAD: headers only)
#
# The two calls are unlinked and unauthenticated, so the stream endpoint
# re-resolves, re-authorizes and re-checks the range on its own. `has_access`
# on the metadata response is advisory for the UI, not a capability.
#
# `user_id` is trusted as presented (no signature or session binding).

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from videogate.api.dependencies import get_metadata_client, get_object_gateway
from videogate.core.config import settings
from videogate.core.exceptions import BadRequestError, ForbiddenError, UnauthenticatedError
from videogate.schemas.video import SubscriptionStatus, VideoMetadataOut
from videogate.services import access
from videogate.services.access import AccessDecision
from videogate.services.metadata_client import MetadataClient
from videogate.utils.aws import ObjectGateway
from videogate.utils.ranges import INVALID_RANGE, RangeInterval, parse_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/video", tags=["Video"])
__all__ = ["router"]

NO_STORE = {"Cache-Control": "private, no-store"}


# ─────────────────────────────────────────────────────────────────────────────
# ⚙️ Utilities
# ─────────────────────────────────────────────────────────────────────────────

def _require_code(code: Optional[str]) -> str:
    """Codes are opaque lookup keys: presence and length are checked, the value is never rewritten."""
    if code is None or not code.strip():
        raise BadRequestError("missing code")
    if len(code) > settings.MAX_CODE_LENGTH:
        raise BadRequestError("invalid code")
    return code


def _stream_url(code: str, identity: Optional[str]) -> str:
    params = {"code": code}
    if identity:
        params["user_id"] = identity
    return f"{router.prefix}/stream?{urlencode(params)}"


async def _subscription_for(
    store: MetadataClient, record, identity: Optional[str]
) -> Optional[SubscriptionStatus]:
    if not access.needs_subscription(record, identity):
        return None
    return await store.subscription_status(identity)  # type: ignore[arg-type]


# ─────────────────────────────────────────────────────────────────────────────
# 📄 Metadata
# ─────────────────────────────────────────────────────────────────────────────

@router.api_route("", methods=["GET", "HEAD"], response_model=VideoMetadataOut, summary="Resolve a deep-link code")
async def get_video(
    code: Optional[str] = Query(None, description="Deep-link code"),
    user_id: Optional[str] = Query(None, description="Caller identity (trusted as given)"),
    store: MetadataClient = Depends(get_metadata_client),
) -> JSONResponse:
    code = _require_code(code)
    identity = access.clean_identity(user_id)

    record = await store.resolve(code)
    subscription = await _subscription_for(store, record, identity)
    has_access = access.allow(record, identity, subscription)

    out = VideoMetadataOut.from_record(
        record,
        has_access=has_access,
        stream_url=_stream_url(code, identity) if has_access else None,
    )
    return JSONResponse(content=out.model_dump(mode="json"), headers=NO_STORE)


# ─────────────────────────────────────────────────────────────────────────────
# 📼 Stream
# ─────────────────────────────────────────────────────────────────────────────

@router.api_route("/stream", methods=["GET", "HEAD"], summary="Stream video bytes (Range aware)")
async def stream_video(
    request: Request,
    code: Optional[str] = Query(None, description="Deep-link code"),
    user_id: Optional[str] = Query(None, description="Caller identity (trusted as given)"),
    store: MetadataClient = Depends(get_metadata_client),
    gateway: ObjectGateway = Depends(get_object_gateway),
) -> Response:
    code = _require_code(code)
    identity = access.clean_identity(user_id)

    # 1) Resolve (path + category only)
    target = await store.resolve_for_stream(code)

    # 2) Authorize
    subscription = await _subscription_for(store, target, identity)
    decision = access.decide(target, identity, subscription)
    if decision is AccessDecision.IDENTITY_REQUIRED:
        raise UnauthenticatedError()
    if decision is not AccessDecision.GRANTED:
        raise ForbiddenError()

    # 3) Range against the current object size
    info = await gateway.stat(target.storage_path)
    range_header = request.headers.get("range")
    interval = parse_range(range_header, info.size)
    if interval is INVALID_RANGE:
        logger.info("Ignoring unsatisfiable Range %r (size=%d); serving full object", range_header, info.size)

    if request.method == "HEAD":
        # Same headers as the GET would send; storage body is never opened.
        return Response(
            status_code=206 if isinstance(interval, RangeInterval) else 200,
            headers={**info.headers(interval, gateway.default_content_type), **NO_STORE, "Content-Disposition": "inline"},
        )

    # 4) Fetch and relay
    descriptor = await gateway.fetch(target.storage_path, interval)
    headers = {**descriptor.headers(), **NO_STORE, "Content-Disposition": "inline"}
    return StreamingResponse(
        descriptor.body,
        status_code=descriptor.status_code,
        headers=headers,
        media_type=descriptor.content_type,
        background=BackgroundTask(descriptor.aclose),
    )
