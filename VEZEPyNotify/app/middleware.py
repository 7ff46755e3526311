from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .deps import REQ_LAT

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("VEZEPyNotify.access")

SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'self'; object-src 'none'",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Frame-Options": "SAMEORIGIN",
}


class BodyLimitMiddleware:
    """Reads the whole request body before routing and refuses it past the limit.

    Counts the bytes actually received, so chunked uploads without a
    Content-Length are held to the same limit.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = dict(scope.get("headers") or []).get(b"content-length", b"")
        if declared.isdigit() and int(declared) > self.max_body_bytes:
            await self._refuse(scope, receive, send, int(declared))
            return

        chunks: list[bytes] = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                # client went away mid-upload
                return
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > self.max_body_bytes:
                await self._refuse(scope, receive, send, size)
                return
            chunks.append(chunk)
            more_body = message.get("more_body", False)

        body = b"".join(chunks)
        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _refuse(self, scope: Scope, receive: Receive, send: Send, size: int) -> None:
        logger.warning("rejected body of at least %d bytes on %s", size, scope.get("path"))
        response = JSONResponse(
            status_code=413,
            content={
                "success": False,
                "message": "Payload too large",
                "error": f"request body exceeds {self.max_body_bytes} bytes",
            },
        )
        await response(scope, receive, send)


def install_middleware(app: FastAPI, max_body_bytes: int) -> None:
    """Register the HTTP middleware stack; the last one registered runs first."""

    app.add_middleware(BodyLimitMiddleware, max_body_bytes=max_body_bytes)

    @app.middleware("http")
    async def error_boundary(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception("unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=500,
                content={"success": False, "message": "Internal server error", "error": str(e)},
            )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        dur = time.perf_counter() - start
        client = request.client.host if request.client else "-"
        access_logger.info(
            '%s "%s %s" %d %.1fms "%s"',
            client,
            request.method,
            request.url.path,
            response.status_code,
            dur * 1000,
            request.headers.get("user-agent", "-"),
        )
        try:
            # route template keeps label cardinality bounded for unmatched paths
            route = request.scope.get("route")
            path = getattr(route, "path", None) or "unmatched"
            REQ_LAT.labels(path=path, method=request.method, status=str(response.status_code)).observe(dur)
        except Exception:
            pass
        return response
