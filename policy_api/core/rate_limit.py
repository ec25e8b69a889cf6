"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency factory only.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind an
  abstract interface.
- One limiter per endpoint class: policy checks, workflows and decide each
  consume from their own table, looked up on the request's container.

Rate limiting strategy:
- Fixed window per client IP (first hop of X-Forwarded-For, then X-Real-IP,
  then the socket peer).
- Every allowed response carries X-RateLimit-* headers; a denial becomes
  HTTP 429 with Retry-After via RateLimitAppError.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response

from policy_api.adapters.rate_limit.base import RateLimitResult
from policy_api.core.container import get_container
from policy_api.core.errors import RateLimitAppError
from policy_api.core.logging import hash_identifier

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def get_client_ip(request: Request) -> str:
    """Resolve the caller identity used as the limiter key.

    Args:
        request: FastAPI request.

    Returns:
        str: First forwarded-for hop, X-Real-IP, socket peer, or "unknown".
    """

    forwarded_for = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop

    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def build_rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build the X-RateLimit-* headers (plus Retry-After when blocked)."""

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if not result.allowed and result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


def enforce_rate_limit(limiter_name: str) -> Callable[[Request, Response], Awaitable[None]]:
    """Create a FastAPI dependency that consumes from ``limiter_name``.

    Args:
        limiter_name: Key of the limiter in the service container.

    Returns:
        Dependency raising RateLimitAppError when the caller is over quota.
    """

    async def _enforce(request: Request, response: Response) -> None:
        container = get_container(request)
        app_settings = container.app_settings
        if not app_settings.rate_limit_enabled:
            return

        client_ip = get_client_ip(request)
        result = container.limiters[limiter_name].consume(client_ip)
        headers = build_rate_limit_headers(result) if app_settings.rate_limit_include_headers else {}

        if result.allowed:
            response.headers.update(headers)
            request.state.rate_limit_headers = headers
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "limiter": limiter_name,
                    "key_hash": hash_identifier(client_ip),
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )
            return

        retry_after = result.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "limiter": limiter_name,
                "key_hash": hash_identifier(client_ip),
                "limit": result.limit,
                "window_ms": app_settings.rate_limit_window_ms,
                "retry_after_s": retry_after,
            },
        )
        raise RateLimitAppError(
            code="rate_limit_exceeded",
            message=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            details={"retry_after": retry_after},
            headers=headers,
        )

    return _enforce
