"""JSON body reading with size enforcement.

Routes read their body through this helper after the rate limit dependency
has run, so over-quota callers are rejected before any parsing happens.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import Request

from policy_api.core.errors import PayloadTooLargeAppError, ValidationAppError

logger = logging.getLogger(__name__)


async def read_body_limited(request: Request, max_bytes: int) -> bytes:
    """Read the raw request body in chunks enforcing ``max_bytes``.

    Uses Content-Length when present, then enforces the limit again while
    streaming.

    Raises:
        PayloadTooLargeAppError: If the body exceeds the limit.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        logger.warning(
            "request_body.rejected_by_header",
            extra={"content_length": int(declared), "max_bytes": max_bytes},
        )
        raise PayloadTooLargeAppError(
            code="payload_too_large",
            message=f"Request body too large. Maximum size: {max_bytes} bytes",
            details={"max_bytes": max_bytes},
        )

    size = 0
    chunks: list[bytes] = []
    async for chunk in request.stream():
        if not chunk:
            continue
        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "request_body.rejected_by_chunked_read",
                extra={"size": size, "max_bytes": max_bytes},
            )
            raise PayloadTooLargeAppError(
                code="payload_too_large",
                message=f"Request body too large. Maximum size: {max_bytes} bytes",
                details={"max_bytes": max_bytes},
            )
        chunks.append(chunk)

    return b"".join(chunks)


async def read_json_object(request: Request, max_bytes: int) -> dict[str, Any]:
    """Decode the request body as a JSON object.

    An empty body decodes to ``{}``.

    Raises:
        ValidationAppError: If the body is not valid JSON or not an object.
        PayloadTooLargeAppError: If the body exceeds ``max_bytes``.
    """
    raw = await read_body_limited(request, max_bytes)
    if not raw.strip():
        return {}

    try:
        body = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationAppError(
            code="invalid_json",
            message="Request body must be valid JSON",
            details={"hint": str(exc)},
        ) from exc

    if not isinstance(body, dict):
        raise ValidationAppError(
            code="invalid_json",
            message="Request body must be a JSON object",
        )
    return body
