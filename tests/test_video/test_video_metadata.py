# tests/test_video/test_video_metadata.py

import pytest

from videogate.api.dependencies import get_metadata_client
from videogate.core.config import settings
from tests.fixtures.store import FakePostgrest, make_metadata_client

URL = "/api/video"


# ─────────────────────────────────────────────────────────────
# Lookup failures
# ─────────────────────────────────────────────────────────────

def test_unknown_code_is_404(client):
    r = client.get(URL, params={"code": "abc123"})
    assert r.status_code == 404
    assert r.json() == {"error": "not found"}
    assert r.headers["access-control-allow-origin"] == "*"


@pytest.mark.parametrize("params", [{}, {"code": ""}, {"code": "   "}])
def test_missing_code_is_400(client, postgrest, params):
    r = client.get(URL, params=params)
    assert r.status_code == 400
    assert r.json() == {"error": "missing code"}
    assert postgrest.requests == []


def test_overlong_code_is_400(client, postgrest, monkeypatch):
    monkeypatch.setattr(settings, "MAX_CODE_LENGTH", 8)
    r = client.get(URL, params={"code": "x" * 9})
    assert r.status_code == 400
    assert r.json() == {"error": "invalid code"}
    assert postgrest.requests == []


def test_store_failure_is_500_without_detail(app, client):
    app.dependency_overrides[get_metadata_client] = lambda: make_metadata_client(FakePostgrest(status=500))
    r = client.get(URL, params={"code": "free1"})
    assert r.status_code == 500
    assert r.json() == {"error": "internal error"}
    assert "relation" not in r.text
    assert r.headers["access-control-allow-origin"] == "*"


# ─────────────────────────────────────────────────────────────
# Standard content
# ─────────────────────────────────────────────────────────────

def test_standard_video_is_accessible_without_identity(client, postgrest):
    r = client.get(URL, params={"code": "free1"})
    assert r.status_code == 200
    body = r.json()
    assert body == {
        "code": "free1",
        "title": "Free Episode",
        "description": "Pilot",
        "thumbnail": "https://cdn.test/free1.jpg",
        "category": "standard",
        "created_at": "2024-05-01T10:00:00+00:00",
        "has_access": True,
        "stream_url": "/api/video/stream?code=free1",
    }
    assert r.headers["cache-control"] == "private, no-store"
    # no subscriber lookup for standard content
    assert all(req.url.path.endswith("/videos") for req in postgrest.requests)


def test_storage_path_is_never_exposed(client):
    r = client.get(URL, params={"code": "free1", "user_id": "u1"})
    assert "video_path" not in r.json()
    assert "storage_path" not in r.json()
    assert "videos/free1.mp4" not in r.text


# ─────────────────────────────────────────────────────────────
# VIP content
# ─────────────────────────────────────────────────────────────

def test_vip_without_identity_has_no_access(client, postgrest):
    r = client.get(URL, params={"code": "vip1"})
    assert r.status_code == 200
    body = r.json()
    assert body["category"] == "vip"
    assert body["has_access"] is False
    assert body["stream_url"] is None
    assert len(postgrest.requests) == 1


@pytest.mark.parametrize("user_id", ["u9", "u3", "stranger"])
def test_vip_with_inactive_subscription_has_no_access(client, user_id):
    body = client.get(URL, params={"code": "vip1", "user_id": user_id}).json()
    assert body["has_access"] is False
    assert body["stream_url"] is None


def test_vip_with_active_subscription_gets_stream_url(client, postgrest):
    body = client.get(URL, params={"code": "vip1", "user_id": "u1"}).json()
    assert body["has_access"] is True
    assert body["stream_url"] == "/api/video/stream?code=vip1&user_id=u1"
    assert postgrest.params_of()["user_id"] == "eq.u1"


def test_stream_url_encodes_identity(client, postgrest):
    postgrest.tables["users"].append(
        {"user_id": "a b&c", "vip_status": True, "vip_expired_date": "2099-01-01"}
    )
    body = client.get(URL, params={"code": "vip1", "user_id": "a b&c"}).json()
    assert body["stream_url"] == "/api/video/stream?code=vip1&user_id=a+b%26c"


def test_metadata_is_idempotent(client):
    first = client.get(URL, params={"code": "vip1", "user_id": "u1"}).json()
    second = client.get(URL, params={"code": "vip1", "user_id": "u1"}).json()
    assert first == second


def test_code_is_not_trimmed_before_lookup(client, postgrest):
    r = client.get(URL, params={"code": " free1 "})
    assert r.status_code == 404
    assert postgrest.params_of()["deep_link_code"] == "eq. free1 "


def test_head_is_accepted(client):
    r = client.head(URL, params={"code": "free1"})
    assert r.status_code == 200
    assert r.headers["cache-control"] == "private, no-store"
