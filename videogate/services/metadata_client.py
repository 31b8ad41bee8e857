from __future__ import annotations

"""
🗂️ Videogate • Metadata Client (PostgREST)
==========================================

Read-only lookups against the external relational store through its REST
surface:

    GET {base}/rest/v1/{table}?{column}=eq.{value}&select={fields}&limit=2

Contract
--------
- `resolve(code)`              → `VideoRecord`   | `VideoNotFound` | `MetadataStoreError`
- `resolve_for_stream(code)`   → `StreamTarget`  | `VideoNotFound` | `MetadataStoreError`
- `subscription_status(id)`    → `SubscriptionStatus` (inactive when no row) | `MetadataStoreError`

Any transport failure, non-2xx status, undecodable body or row that fails
validation becomes `MetadataStoreError`. No retries: one failed call fails
the request. If the store returns more than one row for a key, the first
row wins and a warning is logged.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from videogate.core.config import Settings, settings as default_settings
from videogate.core.exceptions import MetadataStoreError, VideoNotFound
from videogate.schemas.video import StreamTarget, SubscriptionStatus, VideoRecord

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

VIDEO_FIELDS = ("deep_link_code", "title", "description", "category", "thumbnail_url", "created_at", "video_path")
STREAM_FIELDS = ("video_path", "category")
SUBSCRIBER_FIELDS = ("user_id", "vip_status", "vip_expired_date")


class MetadataClient:
    """Async PostgREST reader.

    Parameters
    ----------
    http : httpx.AsyncClient
        Client whose `base_url` points at `/rest/v1` and which already carries
        the store credentials. Ownership passes to this object (`aclose`).
    videos_table, subscribers_table : str
        Table names for video rows and subscriber rows.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        videos_table: str = "videos",
        subscribers_table: str = "users",
    ) -> None:
        self._http = http
        self.videos_table = videos_table
        self.subscribers_table = subscribers_table

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> "MetadataClient":
        cfg = cfg or default_settings
        key = cfg.METADATA_STORE_KEY.get_secret_value()
        headers = {"Accept": "application/json"}
        if key:
            headers["apikey"] = key
            headers["Authorization"] = f"Bearer {key}"
        http = httpx.AsyncClient(
            base_url=cfg.metadata_rest_url,
            headers=headers,
            timeout=httpx.Timeout(cfg.METADATA_TIMEOUT_SECONDS),
            transport=transport,
        )
        return cls(http, videos_table=cfg.VIDEOS_TABLE, subscribers_table=cfg.SUBSCRIBERS_TABLE)

    # ────────────────────────────────────────────────────────────────────────
    # Public lookups
    # ────────────────────────────────────────────────────────────────────────

    async def resolve(self, code: str) -> VideoRecord:
        row = await self._first(self.videos_table, "deep_link_code", code, VIDEO_FIELDS)
        if row is None:
            raise VideoNotFound()
        return self._parse(VideoRecord, row, table=self.videos_table)

    async def resolve_for_stream(self, code: str) -> StreamTarget:
        """Fetch only `video_path` + `category`; display metadata is never loaded."""
        row = await self._first(self.videos_table, "deep_link_code", code, STREAM_FIELDS)
        if row is None:
            raise VideoNotFound()
        return self._parse(StreamTarget, row, table=self.videos_table)

    async def subscription_status(self, identity: str) -> SubscriptionStatus:
        row = await self._first(self.subscribers_table, "user_id", identity, SUBSCRIBER_FIELDS)
        if row is None:
            return SubscriptionStatus.inactive(identity)
        row.setdefault("user_id", identity)
        return self._parse(SubscriptionStatus, row, table=self.subscribers_table)

    async def aclose(self) -> None:
        await self._http.aclose()

    # ────────────────────────────────────────────────────────────────────────
    # Internals
    # ────────────────────────────────────────────────────────────────────────

    async def _select(self, table: str, column: str, value: str, fields: Sequence[str]) -> List[Dict[str, Any]]:
        params = {
            column: f"eq.{value}",
            "select": ",".join(fields),
            "limit": "2",
        }
        try:
            resp = await self._http.get(f"/{table}", params=params)
        except httpx.HTTPError as e:
            raise MetadataStoreError(details=f"{table}: transport error: {e!r}") from e

        if not resp.is_success:
            raise MetadataStoreError(details=f"{table}: HTTP {resp.status_code}")

        try:
            rows = resp.json()
        except ValueError as e:
            raise MetadataStoreError(details=f"{table}: undecodable body") from e

        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise MetadataStoreError(details=f"{table}: expected a JSON array of rows")
        return rows

    async def _first(self, table: str, column: str, value: str, fields: Sequence[str]) -> Optional[Dict[str, Any]]:
        rows = await self._select(table, column, value, fields)
        if not rows:
            return None
        if len(rows) > 1:
            logger.warning("%s: %d rows match %s; using the first", table, len(rows), column)
        return dict(rows[0])

    @staticmethod
    def _parse(model: Type[ModelT], row: Dict[str, Any], *, table: str) -> ModelT:
        try:
            return model.model_validate(row)
        except (ValidationError, ValueError) as e:
            raise MetadataStoreError(details=f"{table}: malformed row ({e.__class__.__name__})") from e

    def __repr__(self) -> str:  # pragma: no cover
        return f"MetadataClient(base={self._http.base_url}, videos={self.videos_table})"
