from __future__ import annotations

"""
# Videogate — Permissive CORS + top-level guard (pure ASGI)

- Stamps one fixed set of cross-origin headers on **every** HTTP response,
  success or failure, whether or not the request carried `Origin`.
- Answers any `OPTIONS` request (preflight or not) with `204` and no body.
- Outermost fault barrier: an exception that escapes the app before the
  response has started is logged and rendered as
  `500 {"error": "internal error"}`, CORS headers intact. After the
  response started it is logged and re-raised (the server drops the
  connection; the status line is already gone).
"""

import json
from typing import Dict, List, Tuple

from loguru import logger
from starlette.types import ASGIApp, Message, Receive, Scope, Send

ALLOW_METHODS = "GET, HEAD, OPTIONS"
ALLOW_HEADERS = "Content-Type, Range, X-Request-ID"
EXPOSE_HEADERS = "Content-Length, Content-Range, Accept-Ranges, ETag, X-Request-ID"


def cors_headers(allow_origin: str = "*", max_age: int = 86400) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": ALLOW_METHODS,
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Access-Control-Expose-Headers": EXPOSE_HEADERS,
        "Access-Control-Max-Age": str(max_age),
    }


class PermissiveCORSMiddleware:
    def __init__(self, app: ASGIApp, *, allow_origin: str = "*", max_age: int = 86400) -> None:
        self.app = app
        self._headers: List[Tuple[bytes, bytes]] = [
            (k.lower().encode("latin-1"), v.encode("latin-1"))
            for k, v in cors_headers(allow_origin, max_age).items()
        ]
        self._names = {k for k, _ in self._headers}

    def _merge(self, raw: List[Tuple[bytes, bytes]]) -> List[Tuple[bytes, bytes]]:
        kept = [(k, v) for (k, v) in raw if k.lower() not in self._names]
        return kept + self._headers

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        if scope.get("method") == "OPTIONS":
            await send({"type": "http.response.start", "status": 204, "headers": list(self._headers)})
            await send({"type": "http.response.body", "body": b""})
            return

        started = False

        async def _send_wrapper(message: Message) -> None:
            nonlocal started
            if message.get("type") == "http.response.start":
                started = True
                message["headers"] = self._merge(list(message.get("headers", [])))
            await send(message)

        try:
            await self.app(scope, receive, _send_wrapper)
        except Exception:
            logger.exception("Unhandled error on {} {}", scope.get("method"), scope.get("path"))
            if started:
                raise
            body = json.dumps({"error": "internal error"}).encode("utf-8")
            headers = self._merge([
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode("latin-1")),
            ])
            await send({"type": "http.response.start", "status": 500, "headers": headers})
            await send({"type": "http.response.body", "body": body})


__all__ = ["PermissiveCORSMiddleware", "cors_headers"]
