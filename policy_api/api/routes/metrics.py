from __future__ import annotations

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, Request

from policy_api.core.container import TRACK_LIMITER, get_container
from policy_api.core.rate_limit import enforce_rate_limit, get_client_ip
from policy_api.core.request_body import read_json_object

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Metrics"])

METRICS_TOKEN_HEADER = "X-Metrics-Token"
LOCAL_CLIENTS = frozenset({"127.0.0.1", "::1"})


@router.post(
    "/track",
    dependencies=[Depends(enforce_rate_limit(TRACK_LIMITER))],
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": {
                        "type": "object",
                        "properties": {"event": {"type": "string"}, "props": {"type": "object"}},
                        "required": ["event"],
                    }
                }
            },
        }
    },
)
async def track_event(request: Request) -> dict[str, bool]:
    """Record a client-side event (page actions, pricing clicks, demo runs).

    Requests carrying an ``Origin`` header must come from an allowed site.
    """
    container = get_container(request)
    container.tracker.check_origin(request.headers.get("origin", ""))

    body = await read_json_object(request, container.app_settings.max_body_kb * 1024)
    container.tracker.track(
        body,
        client_ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
        referrer=request.headers.get("referer", ""),
    )
    return {"ok": True}


def _is_authorized(request: Request, admin_token: str | None) -> bool:
    if admin_token:
        supplied = request.headers.get(METRICS_TOKEN_HEADER, "")
        return bool(supplied) and secrets.compare_digest(supplied.encode(), admin_token.encode())
    return get_client_ip(request) in LOCAL_CLIENTS


@router.get(
    "/metrics",
    dependencies=[Depends(enforce_rate_limit(TRACK_LIMITER))],
)
async def get_metrics(request: Request) -> dict[str, Any]:
    """Return event counters.

    Full counters need the ``X-Metrics-Token`` header when an admin token is
    configured, or a local caller when it is not. Everyone else gets a
    limited view without counts.
    """
    container = get_container(request)
    admin_token = container.app_settings.metrics_admin_token
    snapshot = {"source": container.metrics.source, **container.metrics.snapshot()}

    if not _is_authorized(request, admin_token):
        logger.info("metrics.limited", extra={"token_configured": bool(admin_token)})
        return {
            "ok": True,
            "limited": True,
            "source": snapshot["source"],
            "updated_at": snapshot["updated_at"],
            "message": (
                f"Provide {METRICS_TOKEN_HEADER} to access full metrics."
                if admin_token
                else "Set APP_METRICS_ADMIN_TOKEN to enable full remote metrics access."
            ),
        }

    return {"ok": True, **snapshot}
