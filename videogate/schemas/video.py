from __future__ import annotations

"""
Video & subscription schemas.

Store rows (PostgREST JSON) map onto these models through field aliases;
the public response (`VideoMetadataOut`) never carries the storage path.
"""

import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class VideoCategory(str, Enum):
    STANDARD = "standard"
    VIP = "vip"


def _coerce_category(v: Any) -> VideoCategory:
    """Unknown or missing categories are treated as VIP (fail closed)."""
    s = str(v or "").strip().lower()
    try:
        return VideoCategory(s)
    except ValueError:
        logger.warning("Unknown video category %r; treating as vip", v)
        return VideoCategory.VIP


def _parse_expiry(v: Any) -> Optional[datetime]:
    """Accept ISO date or datetime (str/date/datetime); naive values are UTC."""
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        dt = v
    elif isinstance(v, date):
        dt = datetime(v.year, v.month, v.day)
    else:
        s = str(v).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class _StoreRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class StreamTarget(_StoreRow):
    """The only fields the stream path loads: where the blob lives and its tier."""

    storage_path: str = Field(..., alias="video_path", min_length=1)
    category: VideoCategory

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any) -> VideoCategory:
        return _coerce_category(v)


class VideoRecord(_StoreRow):
    """One playable asset, keyed by its deep-link code."""

    code: str = Field(..., alias="deep_link_code")
    storage_path: str = Field(..., alias="video_path")
    category: VideoCategory
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = Field(None, alias="thumbnail_url")
    created_at: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any) -> VideoCategory:
        return _coerce_category(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def _created_at_passthrough(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)


class SubscriptionStatus(_StoreRow):
    """VIP flag + expiry for one caller identity.

    `is_active` is re-derived on every call; nothing is cached.
    """

    identity: str = Field(..., alias="user_id")
    vip_flag: bool = Field(False, alias="vip_status")
    expires_at: Optional[datetime] = Field(None, alias="vip_expired_date")

    @field_validator("identity", mode="before")
    @classmethod
    def _identity_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("vip_flag", mode="before")
    @classmethod
    def _null_flag(cls, v: Any) -> bool:
        return False if v is None else v

    @field_validator("expires_at", mode="before")
    @classmethod
    def _expiry(cls, v: Any) -> Optional[datetime]:
        return _parse_expiry(v)

    @classmethod
    def inactive(cls, identity: str) -> "SubscriptionStatus":
        """Status for an identity with no subscriber row."""
        return cls(user_id=identity, vip_status=False, vip_expired_date=None)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        if not self.vip_flag or self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expires_at > now


class VideoMetadataOut(BaseModel):
    """Public metadata response. `stream_url` is null unless `has_access`."""

    code: str
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    category: VideoCategory
    created_at: Optional[str] = None
    has_access: bool
    stream_url: Optional[str] = None

    @classmethod
    def from_record(cls, record: VideoRecord, *, has_access: bool, stream_url: Optional[str]) -> "VideoMetadataOut":
        return cls(
            code=record.code,
            title=record.title,
            description=record.description,
            thumbnail=record.thumbnail,
            category=record.category,
            created_at=record.created_at,
            has_access=has_access,
            stream_url=stream_url if has_access else None,
        )


__all__ = [
    "VideoCategory",
    "StreamTarget",
    "VideoRecord",
    "SubscriptionStatus",
    "VideoMetadataOut",
]
