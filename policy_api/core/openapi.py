"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with tag
descriptions and the rate limit response headers, keeping documentation
concerns out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Policies",
        "description": "Deterministic vendor policy checks (refund, cancel, return, trial).",
    },
    {
        "name": "Workflows",
        "description": "Support-ticket workflows with idempotent replay.",
    },
    {
        "name": "Decide",
        "description": "Yes/no question classification and multi-option scoring.",
    },
    {
        "name": "Metrics",
        "description": "Client event tracking and runtime event counters.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]

RATE_LIMITED_TAGS = {"Policies", "Workflows", "Decide", "Metrics"}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and 429 responses.

    - Adds tags metadata if not present
    - Documents the 429 response on rate limited operations
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for methods in schema.get("paths", {}).values():
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                if not RATE_LIMITED_TAGS.intersection(method_obj.get("tags", [])):
                    continue
                method_obj.setdefault("responses", {}).setdefault(
                    "429",
                    {
                        "description": "Rate limit exceeded; see Retry-After.",
                        "headers": {
                            "Retry-After": {"schema": {"type": "integer"}},
                            "X-RateLimit-Reset": {"schema": {"type": "integer"}},
                        },
                    },
                )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
