"""ASGI middleware: request context/logging and security headers."""

from __future__ import annotations

import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.logger import bind_contextvars, clear_contextvars, get_logger
from core.wide_event import clear_wide_event, get_wide_event, init_wide_event

logger = get_logger(__name__)

SLOW_REQUEST_THRESHOLD_MS = 1000


class RequestContextMiddleware:
    """Binds a request ID into the log context and emits one line per request.

    Adds ``x-request-id`` and ``x-request-duration-ms`` response headers.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "")
        client = scope.get("client")
        request_id = str(uuid.uuid4())

        clear_contextvars()
        bind_contextvars(request_id=request_id)
        init_wide_event(
            http_method=method,
            http_path=path,
            http_client_ip=client[0] if client else "unknown",
        )

        response_status: int | None = None

        async def send_wrapper(message: Message) -> None:
            nonlocal response_status

            if message.get("type") == "http.response.start":
                response_status = int(message.get("status", 0))
                headers: list[tuple[bytes, bytes]] = list(message.get("headers", []))
                duration_ms = (time.perf_counter() - start_time) * 1000
                headers.append(
                    (b"x-request-duration-ms", f"{duration_ms:.2f}".encode())
                )
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers

            elif message.get("type") == "http.response.body" and not message.get(
                "more_body", False
            ):
                _emit(scope, path, response_status, start_time)

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            clear_wide_event()
            clear_contextvars()


def _emit(scope: Scope, path: str, status: int | None, start_time: float) -> None:
    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
    route = scope.get("route")
    event = get_wide_event()
    event["http_route"] = getattr(route, "path", None) or path
    event["http_status_code"] = status
    event["duration_ms"] = duration_ms

    if status is None or status >= 500:
        logger.error("request.completed", **event)
    elif status >= 400 or duration_ms > SLOW_REQUEST_THRESHOLD_MS:
        logger.warning("request.completed", **event)
    else:
        logger.info("request.completed", **event)


class SecurityHeadersMiddleware:
    """Adds security headers (CSP, HSTS, X-Frame-Options, etc.)."""

    SECURITY_HEADERS: list[tuple[bytes, bytes]] = [
        (b"x-content-type-options", b"nosniff"),
        (b"x-frame-options", b"DENY"),
        (b"referrer-policy", b"strict-origin-when-cross-origin"),
        (
            b"content-security-policy",
            b"default-src 'none'; img-src 'self' data:; frame-ancestors 'none'",
        ),
        (b"strict-transport-security", b"max-age=31536000; includeSubDomains"),
        (b"permissions-policy", b"camera=(), microphone=(), geolocation=()"),
    ]

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Swagger UI loads its assets from a CDN
        is_docs = scope.get("path", "").startswith(("/docs", "/redoc"))

        async def send_wrapper(message: Message) -> None:
            if message.get("type") == "http.response.start":
                headers: list[tuple[bytes, bytes]] = list(message.get("headers", []))
                if is_docs:
                    headers.extend(
                        h for h in self.SECURITY_HEADERS
                        if h[0] != b"content-security-policy"
                    )
                else:
                    headers.extend(self.SECURITY_HEADERS)
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_wrapper)
