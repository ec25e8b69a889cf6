from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers,
service container) so tests can build isolated apps with their own limiter
tables, idempotency store and LLM client.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from policy_api.adapters.llm.base import AbstractLLMClient
from policy_api.api.routes import (
    decide_router,
    health_router,
    metrics_router,
    policies_router,
    workflows_router,
)
from policy_api.core.config import Settings, settings as default_settings
from policy_api.core.container import build_container
from policy_api.core.exception_handlers import setup_exception_handlers
from policy_api.core.logging import configure_logging
from policy_api.core.middleware import build_request_id_middleware
from policy_api.core.openapi import apply_openapi_customizations


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app(
    app_settings: Settings | None = None,
    *,
    llm_client: AbstractLLMClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        llm_client: Classifier LLM client; built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Policy Decision API",
        description=(
            "Deterministic vendor policy checks (refund eligibility, cancellation "
            "penalty, return eligibility, trial terms) backed by versioned rules "
            "tables, support-ticket workflows with idempotent replay, a yes/no and "
            "multi-option decision classifier, and client event counters. Public "
            "endpoints are rate limited per client IP."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
    )

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_split_origins(cfg.app.cors_allow_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            cfg.log.request_id_header,
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
            "X-Idempotent-Replay",
        ],
    )
    app.middleware("http")(build_request_id_middleware(cfg.log.request_id_header))

    # Exception handlers
    setup_exception_handlers(app)

    # Per-process services: limiter tables, idempotency store, evaluators
    app.state.container = build_container(cfg.app, cfg.llm, llm_client=llm_client)

    # Routers
    app.include_router(health_router)
    app.include_router(policies_router, prefix="/api/v1")
    app.include_router(workflows_router, prefix="/api/v1")
    app.include_router(decide_router, prefix="/api")
    app.include_router(metrics_router, prefix="/api")

    apply_openapi_customizations(app)

    return app
