"""HTTP middleware for request ID propagation and access logging.

The middleware:
- Accepts the incoming request id header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id and total duration into response headers
- Emits one ``request.completed`` log line per request
- Clears context after request completion to prevent context leaks

Usage:
    app.middleware("http")(build_request_id_middleware("X-Request-ID"))
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response

from policy_api.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]


def build_request_id_middleware(header_name: str) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Create the request-id middleware bound to ``header_name``.

    Args:
        header_name: Header read from the request and echoed on the response.

    Returns:
        An ``http`` middleware coroutine for ``app.middleware("http")``.
    """

    async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get(header_name) or str(uuid.uuid4())
        set_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "request.completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
        finally:
            clear_request_id()

        response.headers[header_name] = request_id
        response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
        return response

    return request_id_middleware
