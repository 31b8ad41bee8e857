# tests/conftest.py
"""
Global test bootstrap
- Pins env for settings BEFORE the app is imported (no .env surprises,
  no file logging, no real endpoints)
- Pulls in the store and app fixtures
"""

from __future__ import annotations

import os

import pytest

# ──────────────────────────────────────────────────────────────────────────────
# 🌱 Test env (set before importing videogate)
# ──────────────────────────────────────────────────────────────────────────────
os.environ.setdefault("ENV", "development")
os.environ.setdefault("LOG_TO_FILE", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("METADATA_STORE_URL", "http://store.test")
os.environ.setdefault("METADATA_STORE_KEY", "test-key")
os.environ.setdefault("AWS_BUCKET_NAME", "unit-test-bucket")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")

# ──────────────────────────────────────────────────────────────────────────────
# 📦 Fixtures
# ──────────────────────────────────────────────────────────────────────────────
from tests.fixtures.store import *  # noqa: F401,F403,E402
from tests.fixtures.app import *    # noqa: F401,F403,E402


@pytest.fixture()
def anyio_backend():
    return "asyncio"
