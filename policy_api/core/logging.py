"""Structured logging for the policy API.

Log lines are JSON objects named by dotted events (``rate_limit.exceeded``,
``workflow.completed``) with their ``extra`` fields inlined. Two kinds of
fields never reach the output as-is:

- secrets (LLM keys, metrics tokens, auth headers, prompts) become
  ``[REDACTED]``;
- caller identities (client IPs and forwarding headers) are replaced by a
  short SHA-256 digest, so one caller's requests can still be correlated.

The current request id travels in a context variable set by the request
middleware and is stamped on every record emitted while serving it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from policy_api.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "llm_api_key",
        "authorization",
        "cookie",
        "set-cookie",
        "token",
        "x-metrics-token",
        "metrics_admin_token",
        "prompt",
    }
)

IDENTITY_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "ip",
        "client_ip",
        "x-forwarded-for",
        "x-real-ip",
    }
)

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_identifier(value: str) -> str:
    """Hash a caller identity so logs can correlate it without exposing it."""

    return hashlib.sha256(value.encode()).hexdigest()[:16]


def _scrub(value: Any, sensitive: frozenset[str], identities: frozenset[str]) -> Any:
    """Walk mappings and sequences, redacting secrets and hashing identities."""

    if isinstance(value, Mapping):
        cleaned = {}
        for key, item in value.items():
            lowered = str(key).lower()
            if lowered in sensitive:
                cleaned[key] = REDACTED
            elif lowered in identities:
                cleaned[key] = hash_identifier(str(item))
            else:
                cleaned[key] = _scrub(item, sensitive, identities)
        return cleaned
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(item, sensitive, identities) for item in value)
    return value


def record_extras(record: LogRecord) -> dict[str, Any]:
    """Return the fields passed through ``extra`` on ``record``."""

    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Stamp the context request id on records that do not carry one."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Scrub ``extra`` fields in place before any formatter sees them."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        identity_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))
        self.identity_keys = frozenset(k.lower() for k in (identity_keys or IDENTITY_KEYS_DEFAULT))

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        scrubbed = _scrub(record_extras(record), self.sensitive_keys, self.identity_keys)
        for key, value in scrubbed.items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON line: timestamp, level, logger, event, extras."""

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(record_extras(record))
        if record.exc_info:
            payload["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None

        return json.dumps(payload, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/policy_api.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install one scrubbing handler on the root logger.

    Args:
        log_settings: Logging settings; defaults to the global settings.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
