# tests/fixtures/store.py

"""
🧩 Store fixtures:
- FakePostgrest: an `httpx.MockTransport` handler that answers PostgREST
  filtered reads (`col=eq.value`, `select`, `limit`) from in-memory tables
- FakeS3: a boto3-shaped client (`head_object` / `get_object`) over in-memory
  objects that raises real botocore `ClientError`s
- Seeded fixtures for both plus the real clients wired onto them
"""

import io
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest
from botocore.exceptions import ClientError

from videogate.services.metadata_client import MetadataClient
from videogate.utils.aws import ObjectGateway


# ─────────────────────────────────────────────────────────────
# Metadata store
# ─────────────────────────────────────────────────────────────

class FakePostgrest:
    def __init__(
        self,
        tables: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        *,
        status: int = 200,
        raw_body: Optional[bytes] = None,
        raise_exc: Optional[Exception] = None,
    ):
        self.tables = tables or {}
        self.status = status
        self.raw_body = raw_body
        self.raise_exc = raise_exc
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_exc is not None:
            raise self.raise_exc
        if self.status != 200:
            return httpx.Response(self.status, json={"message": "relation does not exist", "code": "42P01"})
        if self.raw_body is not None:
            return httpx.Response(200, content=self.raw_body, headers={"Content-Type": "application/json"})

        table = request.url.path.rsplit("/", 1)[-1]
        rows = list(self.tables.get(table, []))
        params = dict(request.url.params)
        select = params.pop("select", "")
        limit = int(params.pop("limit", "0") or 0)
        for column, expr in params.items():
            op, _, value = expr.partition(".")
            assert op == "eq", f"unexpected filter operator {op!r}"
            rows = [r for r in rows if str(r.get(column)) == value]
        if select:
            fields = select.split(",")
            rows = [{f: r[f] for f in fields if f in r} for r in rows]
        if limit:
            rows = rows[:limit]
        return httpx.Response(200, json=rows)

    # helpers for assertions
    def params_of(self, index: int = -1) -> Dict[str, str]:
        return dict(self.requests[index].url.params)


def make_metadata_client(handler: FakePostgrest) -> MetadataClient:
    http = httpx.AsyncClient(
        base_url="http://store.test/rest/v1",
        headers={"apikey": "test-key", "Authorization": "Bearer test-key"},
        transport=httpx.MockTransport(handler),
    )
    return MetadataClient(http, videos_table="videos", subscribers_table="users")


VIDEO_ROWS = [
    {
        "deep_link_code": "free1",
        "title": "Free Episode",
        "description": "Pilot",
        "category": "standard",
        "thumbnail_url": "https://cdn.test/free1.jpg",
        "created_at": "2024-05-01T10:00:00+00:00",
        "video_path": "videos/free1.mp4",
    },
    {
        "deep_link_code": "vip1",
        "title": "VIP Episode",
        "description": "Members only",
        "category": "vip",
        "thumbnail_url": None,
        "created_at": "2024-05-02T10:00:00+00:00",
        "video_path": "videos/vip1.mp4",
    },
    {
        "deep_link_code": "orphan1",
        "title": "Missing blob",
        "description": None,
        "category": "standard",
        "thumbnail_url": None,
        "created_at": None,
        "video_path": "videos/missing.mp4",
    },
]

SUBSCRIBER_ROWS = [
    {"user_id": "u1", "vip_status": True, "vip_expired_date": "2099-12-31T23:59:59Z"},
    {"user_id": "u9", "vip_status": True, "vip_expired_date": "2020-01-01T00:00:00Z"},
    {"user_id": "u3", "vip_status": False, "vip_expired_date": "2099-12-31"},
]


# ─────────────────────────────────────────────────────────────
# Blob store
# ─────────────────────────────────────────────────────────────

class FakeBody:
    """Stand-in for botocore's StreamingBody."""

    def __init__(self, data: bytes):
        self._buf = io.BytesIO(data)
        self.read_calls = 0
        self.closed = False

    def read(self, amt: Optional[int] = None) -> bytes:
        self.read_calls += 1
        return self._buf.read(-1 if amt is None else amt)

    def close(self) -> None:
        self.closed = True


def client_error(code: str, op: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


class FakeS3:
    LAST_MODIFIED = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(
        self,
        objects: Optional[Dict[str, bytes]] = None,
        *,
        fail_code: Optional[str] = None,
        ignore_range: bool = False,
        content_type: Optional[str] = "video/mp4",
        head_size: Optional[int] = None,
    ):
        self.objects = objects or {}
        self.fail_code = fail_code
        self.ignore_range = ignore_range
        self.content_type = content_type
        # HEAD reports this size instead: the object was replaced after `stat`
        self.head_size = head_size
        self.calls: List[Dict[str, Any]] = []
        self.bodies: List[FakeBody] = []

    def _lookup(self, op: str, Bucket: str, Key: str) -> bytes:
        if self.fail_code:
            raise client_error(self.fail_code, op)
        if Key not in self.objects:
            raise client_error("404" if op == "HeadObject" else "NoSuchKey", op)
        return self.objects[Key]

    def _meta(self, data: bytes) -> Dict[str, Any]:
        meta: Dict[str, Any] = {"ETag": f'"etag-{len(data)}"', "LastModified": self.LAST_MODIFIED}
        if self.content_type:
            meta["ContentType"] = self.content_type
        return meta

    def head_object(self, *, Bucket: str, Key: str) -> Dict[str, Any]:
        self.calls.append({"op": "head_object", "Bucket": Bucket, "Key": Key})
        data = self._lookup("HeadObject", Bucket, Key)
        size = self.head_size if self.head_size is not None else len(data)
        return {"ContentLength": size, **self._meta(data)}

    def get_object(self, *, Bucket: str, Key: str, Range: Optional[str] = None) -> Dict[str, Any]:
        self.calls.append({"op": "get_object", "Bucket": Bucket, "Key": Key, "Range": Range})
        data = self._lookup("GetObject", Bucket, Key)
        resp: Dict[str, Any] = self._meta(data)
        payload = data
        if Range and not self.ignore_range:
            m = re.fullmatch(r"bytes=(\d+)-(\d+)", Range)
            assert m, f"gateway sent unexpected Range {Range!r}"
            start, end = int(m.group(1)), int(m.group(2))
            if start >= len(data):
                raise client_error("InvalidRange", "GetObject")
            end = min(end, len(data) - 1)  # S3 clamps the end to the object
            payload = data[start:end + 1]
            resp["ContentRange"] = f"bytes {start}-{end}/{len(data)}"
        body = FakeBody(payload)
        self.bodies.append(body)
        resp.update({"Body": body, "ContentLength": len(payload)})
        return resp

    def ops(self) -> List[str]:
        return [c["op"] for c in self.calls]


FREE_BYTES = bytes(range(256)) * 4          # 1024 bytes
VIP_BYTES = b"V" * 500


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────

@pytest.fixture()
def postgrest() -> FakePostgrest:
    return FakePostgrest({
        "videos": [dict(r) for r in VIDEO_ROWS],
        "users": [dict(r) for r in SUBSCRIBER_ROWS],
    })


@pytest.fixture()
def metadata_client(postgrest: FakePostgrest) -> MetadataClient:
    return make_metadata_client(postgrest)


@pytest.fixture()
def fake_s3() -> FakeS3:
    return FakeS3({"videos/free1.mp4": FREE_BYTES, "videos/vip1.mp4": VIP_BYTES})


@pytest.fixture()
def gateway(fake_s3: FakeS3) -> ObjectGateway:
    return ObjectGateway(fake_s3, "unit-test-bucket", chunk_size=4096)
