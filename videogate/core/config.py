# videogate/core/config.py
from __future__ import annotations

"""
# Videogate — Centralized Configuration (Pydantic v2)

Single `settings` object with strongly-typed, environment-driven config.

## Goals
- Safe defaults for local/dev; secrets come from env or `.env` only.
- One place for metadata store (PostgREST) and blob store (S3/R2) wiring.
- Bounded outbound timeouts so a stalled backend cannot pin a request forever.

## Usage
    from videogate.core.config import settings
"""

from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()  # harmless in prod; convenient in dev


# ─────────────────────────────────────────────────────────────
# Small helpers
# ─────────────────────────────────────────────────────────────
def _normalize_url_like(v: str | None, *, require_scheme: bool = True) -> str:
    """Normalize to a string URL without trailing slash."""
    s = (v or "").strip()
    if not s:
        return ""
    if require_scheme and not (s.startswith("http://") or s.startswith("https://")):
        s = "https://" + s
    return s.rstrip("/")


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    """
    Global application settings sourced from environment.

    Security:
        - Store credentials are `SecretStr` and never logged.
        - Caller identity (`user_id`) is trusted as presented; nothing here
          configures authentication.

    Notes:
        - Table names are configurable; column names are fixed by the
          schema models in `videogate.schemas.video`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # don't crash on unknown keys
    )

    # ── App meta ──────────────────────────────────────────────
    PROJECT_NAME: str = "Videogate"
    VERSION: str = "1.0.0"
    ENV: Literal["development", "staging", "production"] = "development"
    ENABLE_DOCS: bool = True

    # ── Metadata store (PostgREST / Supabase) ─────────────────
    METADATA_STORE_URL: str = "http://localhost:54321"
    METADATA_STORE_KEY: SecretStr = SecretStr("")
    METADATA_TIMEOUT_SECONDS: float = Field(10.0, gt=0, le=120)
    VIDEOS_TABLE: str = "videos"
    SUBSCRIBERS_TABLE: str = "users"

    # ── Blob store (S3-compatible, e.g. Cloudflare R2) ────────
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[SecretStr] = None
    AWS_REGION: str = "auto"
    AWS_S3_ENDPOINT_URL: Optional[str] = None
    AWS_BUCKET_NAME: str = "drama-videos"
    STORAGE_CONNECT_TIMEOUT: float = Field(3.0, gt=0, le=60)
    STORAGE_READ_TIMEOUT: float = Field(30.0, gt=0, le=600)

    # ── Streaming ─────────────────────────────────────────────
    STREAM_CHUNK_SIZE: int = Field(256 * 1024, ge=4 * 1024, le=8 * 1024 * 1024)
    DEFAULT_VIDEO_CONTENT_TYPE: str = "video/mp4"

    # ── Request input ─────────────────────────────────────────
    MAX_CODE_LENGTH: int = Field(64, ge=1, le=1024)

    # ── CORS ──────────────────────────────────────────────────
    CORS_ALLOW_ORIGIN: str = "*"
    CORS_MAX_AGE: int = Field(86400, ge=0)

    # ── Validators / normalizers ──────────────────────────────
    @field_validator("METADATA_STORE_URL", mode="before")
    @classmethod
    def _normalize_store_url(cls, v) -> str:
        return _normalize_url_like(str(v or ""))

    @field_validator("AWS_S3_ENDPOINT_URL", mode="before")
    @classmethod
    def _normalize_endpoint(cls, v: str | None) -> str | None:
        s = (v or "").strip()
        if not s:
            return None
        return _normalize_url_like(s)

    # ── Derived / convenience properties ─────────────────────
    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def metadata_rest_url(self) -> str:
        """PostgREST base (`{METADATA_STORE_URL}/rest/v1`)."""
        return f"{self.METADATA_STORE_URL}/rest/v1"


# Singleton instance
settings = Settings()
