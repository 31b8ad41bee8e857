# videogate/utils/aws.py
from __future__ import annotations

"""
🧊 Videogate • Object Stream Gateway (S3 / R2)
==============================================

Thin async wrapper over a boto3 S3 client that relays stored video objects,
whole or ranged, without buffering them.

🎯 Goals
--------
- `stat(path)`              → `ObjectInfo` (HEAD: size, type, ETag, Last-Modified)
- `fetch(path, interval)`   → `StreamDescriptor` (GET, with `Range` when bounded)
- Served range              → read back from the backend's `ContentRange`
                              (an object replaced after `stat` may clamp it)
- Range rejected (416)      → one whole-object GET instead (200)
- Missing object            → `ObjectNotFound`
- Backend failing           → `StorageBackendError`
- Key normalization (no leading slash, no `..`)
- Explicit timeouts, a single attempt per call (no hidden retries)

Implementation notes
--------------------
- boto3 is blocking; every call and every body read runs in the threadpool.
- The body relay (`ObjectBody`) is single-pass and forward-only. It closes the backend
  stream in `finally`, so an abandoned response (client disconnect, player
  seek) releases the connection instead of draining the object.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, AsyncIterator, Dict, Optional, Tuple, Union

import boto3
import botocore.exceptions
from botocore.config import Config as BotoConfig
from starlette.concurrency import run_in_threadpool

from videogate.core.config import Settings, settings as default_settings
from videogate.core.exceptions import ObjectNotFound, StorageBackendError
from videogate.utils.ranges import FULL_OBJECT, RangeInterval, RangeOutcome

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_RANGE_REJECTED_CODES = {"416", "InvalidRange"}
_CONTENT_RANGE_RE = re.compile(r"^bytes\s+(\d+)-(\d+)/(\d+|\*)$", re.IGNORECASE)

# ─────────────────────────────────────────────────────────────────────────────
# 🧰 Key validation
# ─────────────────────────────────────────────────────────────────────────────

# Keep keys strict: readable + safe across tools, CDNs, and logs.
_KEY_ALLOWED_RE = re.compile(r"[A-Za-z0-9._\-/+=@() ]+")


def _normalize_key(key: str) -> str:
    """
    Normalize and validate object keys.

    Raises
    ------
    StorageBackendError
        If the key is empty or contains unsafe characters. A bad key is a
        data-integrity problem in the metadata store, not a client error.
    """
    k = str(key or "").strip().lstrip("/")
    k = re.sub(r"/{2,}", "/", k)
    if not k:
        raise StorageBackendError(details="invalid storage key: empty")
    if ".." in k:
        raise StorageBackendError(details="invalid storage key: path traversal detected")
    if not _KEY_ALLOWED_RE.fullmatch(k):
        raise StorageBackendError(details="invalid storage key: forbidden characters")
    return k


def _secret_value(v: Any) -> Optional[str]:
    if v is None:
        return None
    return v.get_secret_value() if hasattr(v, "get_secret_value") else str(v)


def _error_code(exc: botocore.exceptions.ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _parse_content_range(content_range: str) -> Tuple[RangeInterval, int]:
    """
    `bytes 900-949/950` → (RangeInterval(900, 949), 950).

    Raises
    ------
    StorageBackendError
        If the backend's header is malformed, has an unknown total, or
        describes bytes outside the object.
    """
    m = _CONTENT_RANGE_RE.match(content_range.strip())
    if not m or m.group(3) == "*":
        raise StorageBackendError(details=f"unusable Content-Range from backend: {content_range!r}")
    start, end, total = int(m.group(1)), int(m.group(2)), int(m.group(3))
    if not (0 <= start <= end < total):
        raise StorageBackendError(details=f"inconsistent Content-Range from backend: {content_range!r}")
    return RangeInterval(start, end), total


class _RangeRejected(StorageBackendError):
    """Backend answered 416 for a range resolved against an older object size."""


def _http_date(dt: datetime) -> str:
    dt = dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)
    return format_datetime(dt, usegmt=True)


def build_s3_client(cfg: Optional[Settings] = None) -> Any:
    """Build a boto3 S3 client from settings (explicit keys or default chain)."""
    cfg = cfg or default_settings
    boto_cfg = BotoConfig(
        signature_version="s3v4",
        retries={"max_attempts": 1, "mode": "standard"},
        connect_timeout=cfg.STORAGE_CONNECT_TIMEOUT,
        read_timeout=cfg.STORAGE_READ_TIMEOUT,
        s3={"addressing_style": "path" if cfg.AWS_S3_ENDPOINT_URL else "virtual"},
    )
    client_kwargs: Dict[str, Any] = {"config": boto_cfg}
    if cfg.AWS_REGION:
        client_kwargs["region_name"] = cfg.AWS_REGION
    if cfg.AWS_S3_ENDPOINT_URL:
        client_kwargs["endpoint_url"] = cfg.AWS_S3_ENDPOINT_URL
    ak = cfg.AWS_ACCESS_KEY_ID
    sk = _secret_value(cfg.AWS_SECRET_ACCESS_KEY)
    if ak and sk:
        client_kwargs["aws_access_key_id"] = ak
        client_kwargs["aws_secret_access_key"] = sk
    try:
        return boto3.client("s3", **client_kwargs)
    except Exception as e:  # pragma: no cover
        raise StorageBackendError(details=f"failed to create S3 client: {e}") from e


# ─────────────────────────────────────────────────────────────────────────────
# 📦 Result types
# ─────────────────────────────────────────────────────────────────────────────

def _entity_headers(
    content_length: int,
    content_type: str,
    served_range: Optional[RangeInterval],
    total_size: int,
    etag: Optional[str],
    last_modified: Optional[datetime],
) -> Dict[str, str]:
    h = {
        "Accept-Ranges": "bytes",
        "Content-Length": str(content_length),
        "Content-Type": content_type,
    }
    if served_range is not None:
        h["Content-Range"] = served_range.content_range(total_size)
    if etag:
        h["ETag"] = etag
    if last_modified is not None:
        h["Last-Modified"] = _http_date(last_modified)
    return h


@dataclass(frozen=True)
class ObjectInfo:
    size: int
    content_type: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None

    def headers(self, interval: Union[RangeInterval, RangeOutcome], default_content_type: str) -> Dict[str, str]:
        """Headers a GET for `interval` would carry; used to answer HEAD without a body."""
        served = interval if isinstance(interval, RangeInterval) else None
        return _entity_headers(
            served.length if served is not None else self.size,
            self.content_type or default_content_type,
            served,
            self.size,
            self.etag,
            self.last_modified,
        )


class ObjectBody:
    """Single-pass, forward-only async relay over a blocking backend stream.

    Iterating it pulls `chunk_size` bytes at a time; `close()` (also run when
    iteration ends, fails or is abandoned) releases the backend connection.
    """

    def __init__(self, raw: Any, chunk_size: int) -> None:
        self._raw = raw
        self._chunk_size = chunk_size
        self._started = False
        self.closed = False

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._started:
            raise RuntimeError("object body can only be consumed once")
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        try:
            while not self.closed:
                chunk = await run_in_threadpool(self._raw.read, self._chunk_size)
                if not chunk:
                    break
                yield chunk
        except (botocore.exceptions.BotoCoreError, OSError) as e:
            # Headers are already on the wire; all we can do is stop.
            logger.error("Storage stream aborted mid-body: %s", e)
            raise
        finally:
            self.close()

    def close(self) -> None:
        # Synchronous so it still runs inside a cancelled scope.
        if self.closed:
            return
        self.closed = True
        try:
            self._raw.close()
        except (botocore.exceptions.BotoCoreError, OSError) as e:
            logger.warning("Closing storage stream failed (non-fatal): %s", e)


@dataclass
class StreamDescriptor:
    """One fetched object body plus everything needed to render the response.

    Produced by `ObjectGateway.fetch`; consumed once by the router.
    """

    body: ObjectBody
    total_size: int
    content_length: int
    served_range: Optional[RangeInterval]
    content_type: str
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None

    @property
    def status_code(self) -> int:
        return 206 if self.served_range is not None else 200

    def headers(self) -> Dict[str, str]:
        return _entity_headers(
            self.content_length,
            self.content_type,
            self.served_range,
            self.total_size,
            self.etag,
            self.last_modified,
        )

    async def aclose(self) -> None:
        """Release the backend stream. Idempotent."""
        self.body.close()


# ─────────────────────────────────────────────────────────────────────────────
# 🚚 Gateway
# ─────────────────────────────────────────────────────────────────────────────

class ObjectGateway:
    """
    Key-addressed object reads against one bucket.

    Parameters
    ----------
    client : botocore S3 client
        Anything exposing `head_object` / `get_object` with boto3 semantics.
    bucket : str
        Bucket holding the video objects.
    chunk_size : int
        Bytes pulled from the backend per relayed chunk.
    default_content_type : str
        Used when the object carries no `Content-Type`.
    """

    def __init__(
        self,
        client: Any,
        bucket: str,
        *,
        chunk_size: int = 256 * 1024,
        default_content_type: str = "video/mp4",
    ) -> None:
        if not bucket:
            raise StorageBackendError(details="bucket not configured")
        self.client = client
        self.bucket = bucket
        self.chunk_size = int(chunk_size)
        self.default_content_type = default_content_type

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None, *, client: Any = None) -> "ObjectGateway":
        cfg = cfg or default_settings
        return cls(
            client if client is not None else build_s3_client(cfg),
            cfg.AWS_BUCKET_NAME,
            chunk_size=cfg.STREAM_CHUNK_SIZE,
            default_content_type=cfg.DEFAULT_VIDEO_CONTENT_TYPE,
        )

    async def stat(self, storage_path: str) -> ObjectInfo:
        key = _normalize_key(storage_path)
        resp = await self._call("head_object", key)
        return ObjectInfo(
            size=int(resp.get("ContentLength") or 0),
            content_type=resp.get("ContentType"),
            etag=resp.get("ETag"),
            last_modified=resp.get("LastModified"),
        )

    async def fetch(
        self,
        storage_path: str,
        interval: Union[RangeInterval, RangeOutcome] = FULL_OBJECT,
    ) -> StreamDescriptor:
        """
        GET the object, whole (`FULL_OBJECT` or any non-interval outcome)
        or only the bytes of `interval`.
        """
        key = _normalize_key(storage_path)
        bounded = interval if isinstance(interval, RangeInterval) else None

        extra: Dict[str, Any] = {}
        if bounded is not None:
            extra["Range"] = bounded.header_value()
        try:
            resp = await self._call("get_object", key, **extra)
        except _RangeRejected:
            # Object shrank since `stat`; the interval no longer exists.
            logger.info("Range %s rejected for %s; serving full object", extra["Range"], key)
            bounded = None
            resp = await self._call("get_object", key)

        raw = resp["Body"]
        content_length = int(resp.get("ContentLength") or 0)
        content_range = resp.get("ContentRange")
        if bounded is None:
            total = content_length
        elif not content_range:
            # Backend ignored the range; relay what it sent as a full response.
            logger.warning("Range not honored for %s; serving full object", key)
            bounded, total = None, content_length
        else:
            # Report the bytes actually served; a replaced object may clamp the end.
            try:
                bounded, total = _parse_content_range(content_range)
            except StorageBackendError:
                ObjectBody(raw, self.chunk_size).close()
                raise
            if bounded != interval:
                logger.info("Range for %s clamped by backend to %s", key, content_range)
            content_length = content_length or bounded.length

        return StreamDescriptor(
            body=ObjectBody(raw, self.chunk_size),
            total_size=total,
            content_length=content_length,
            served_range=bounded,
            content_type=resp.get("ContentType") or self.default_content_type,
            etag=resp.get("ETag"),
            last_modified=resp.get("LastModified"),
        )

    # ────────────────────────────────────────────────────────────────────────
    # 🧪 Internals
    # ────────────────────────────────────────────────────────────────────────

    async def _call(self, op: str, key: str, **kwargs: Any) -> Dict[str, Any]:
        fn = getattr(self.client, op)
        try:
            return await run_in_threadpool(fn, Bucket=self.bucket, Key=key, **kwargs)
        except botocore.exceptions.ClientError as e:
            code = _error_code(e)
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFound(details=key) from e
            if code in _RANGE_REJECTED_CODES and "Range" in kwargs:
                raise _RangeRejected(details=f"{op} {key}: {code}") from e
            raise StorageBackendError(details=f"{op} {key}: {code or e}") from e
        except botocore.exceptions.BotoCoreError as e:
            raise StorageBackendError(details=f"{op} {key}: {e}") from e

    def __repr__(self) -> str:  # pragma: no cover
        return f"ObjectGateway(bucket={self.bucket}, chunk_size={self.chunk_size})"
