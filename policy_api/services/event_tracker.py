"""Client-side event tracking for the marketing site and playground.

Events come from browsers, so the tracker only accepts a fixed vocabulary
from known origins, and trims free-form props before they are logged.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any
from urllib.parse import urlsplit

from policy_api.adapters.metrics import AbstractMetricsStore
from policy_api.core.errors import ForbiddenAppError, ValidationAppError

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_HOSTS = frozenset(
    {
        "decide.fyi",
        "www.decide.fyi",
        "refund.decide.fyi",
        "cancel.decide.fyi",
        "return.decide.fyi",
        "trial.decide.fyi",
        "localhost",
        "127.0.0.1",
    }
)
PREVIEW_HOST_SUFFIX = ".vercel.app"

KNOWN_EVENTS = frozenset(
    {
        "playground_run",
        "trust_suite_run",
        "signin_click",
        "nav_connect_click",
        "nav_playground_click",
        "nav_pricing_click",
        "install_badge_click",
        "demo_mode_entered",
        "demo_flow_run",
        "pricing_starter_cta",
        "pricing_pro_cta",
        "pricing_enterprise_cta",
        "smoke_event",
    }
)
_EVENT_FAMILY_RE = re.compile(r"^(pricing|nav|demo)_[a-z0-9_]+$")

MAX_EVENT_CHARS = 64
MAX_PROPS = 20
MAX_PROP_KEY_CHARS = 48
MAX_PROP_VALUE_CHARS = 240
MAX_UA_CHARS = 180
MAX_REFERRER_CHARS = 240


def _origin_of(raw: str) -> str | None:
    parts = urlsplit(raw.strip())
    if not parts.scheme or not parts.hostname:
        return None
    return f"{parts.scheme}://{parts.netloc}".lower()


def parse_allowed_origins(raw: str) -> frozenset[str] | None:
    """Parse a comma-separated origin list; None when the list is empty."""
    origins = {_origin_of(item) for item in raw.split(",") if item.strip()}
    origins.discard(None)
    return frozenset(origins) or None


def is_allowed_origin(origin: str, allowed_origins: frozenset[str] | None = None) -> bool:
    """Check a browser Origin header.

    An explicit origin list replaces the built-in hosts. Otherwise the
    decide.fyi hosts, localhost and preview deployments are accepted.
    """
    normalized = _origin_of(origin)
    if normalized is None:
        return False
    if allowed_origins is not None:
        return normalized in allowed_origins

    host = (urlsplit(normalized).hostname or "").lower()
    return host in DEFAULT_ALLOWED_HOSTS or host.endswith(PREVIEW_HOST_SUFFIX)


def is_allowed_event(event: str) -> bool:
    return event in KNOWN_EVENTS or bool(_EVENT_FAMILY_RE.match(event))


def sanitize_props(raw: Any) -> dict[str, Any]:
    """Keep the first 20 props with short keys and scalar or truncated values.

    Examples:
        >>> sanitize_props({"plan": "pro", "seats": 3, "extra": {"a": 1}})
        {'plan': 'pro', 'seats': 3, 'extra': '{"a": 1}'}
    """
    if not isinstance(raw, dict):
        return {}

    props: dict[str, Any] = {}
    for key, value in list(raw.items())[:MAX_PROPS]:
        safe_key = str(key)[:MAX_PROP_KEY_CHARS]
        if not safe_key:
            continue
        if value is None or isinstance(value, (bool, int, float)):
            props[safe_key] = value
        elif isinstance(value, str):
            props[safe_key] = value[:MAX_PROP_VALUE_CHARS]
        else:
            props[safe_key] = json.dumps(value, default=str)[:MAX_PROP_VALUE_CHARS]
    return props


class EventTracker:
    """Validate client events, log them and count them in the metrics store.

    Attributes:
        metrics: Store receiving one count per accepted event.
        allowed_origins: Explicit origin list, or None for the built-in hosts.
    """

    def __init__(
        self,
        metrics: AbstractMetricsStore,
        allowed_origins: frozenset[str] | None = None,
    ) -> None:
        self.metrics = metrics
        self.allowed_origins = allowed_origins

    def check_origin(self, origin: str) -> None:
        """Reject a present but unknown Origin; requests without one pass.

        Raises:
            ForbiddenAppError: If the origin is not allowed.
        """
        if origin and not is_allowed_origin(origin, self.allowed_origins):
            raise ForbiddenAppError(
                code="origin_not_allowed",
                message="Origin is not allowed to post events",
                details={"origin": origin[:MAX_REFERRER_CHARS]},
            )

    def track(
        self,
        body: dict[str, Any],
        *,
        client_ip: str,
        user_agent: str = "",
        referrer: str = "",
    ) -> str:
        """Accept one event from a request body and return its name.

        Raises:
            ValidationAppError: If the event is missing or not in the vocabulary.
        """
        raw_event = body.get("event")
        event = raw_event[:MAX_EVENT_CHARS] if isinstance(raw_event, str) else ""
        if not event:
            raise ValidationAppError(code="invalid_event", message="event must be a non-empty string")
        if not is_allowed_event(event):
            raise ValidationAppError(
                code="event_not_allowed",
                message="Unknown event name",
                details={"event": event},
            )

        logger.info(
            "client_event",
            extra={
                "event_name": event,
                "props": sanitize_props(body.get("props")),
                "client_ip": client_ip,
                "ua": user_agent[:MAX_UA_CHARS],
                "referrer": referrer[:MAX_REFERRER_CHARS],
            },
        )
        self.metrics.record(event)
        return event
