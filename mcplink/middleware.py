"""
Request logging middleware.

Assigns a correlation ID to each HTTP request, echoes it in the
X-Request-ID response header and logs method, path, status and duration.
"""

from __future__ import annotations

import logging
import time

from mcplink.utils import clear_request_context, set_request_id

logger = logging.getLogger("mcplink.requests")

REQUEST_ID_HEADER = b"x-request-id"


class RequestLoggingMiddleware:
    """Raw ASGI middleware; skips the health endpoint to reduce noise."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers", [])).get(REQUEST_ID_HEADER, b"").decode("latin-1")
        request_id = set_request_id(incoming or None)

        method = scope.get("method", "")
        path = scope.get("path", "")
        start_time = time.time()
        status_code = 0

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                headers = list(message.get("headers", []))
                headers.append((REQUEST_ID_HEADER, request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = (time.time() - start_time) * 1000
            if path != "/health":
                level = logging.WARNING if status_code >= 400 else logging.INFO
                logger.log(level, f"{method} {path} -> {status_code} ({duration_ms:.1f}ms)")
            clear_request_context()
