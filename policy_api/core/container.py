"""Process-scoped service container.

All mutable state (limiter tables, the idempotency store, event counters) lives on one
explicitly built container attached to ``app.state``. Nothing is a module
global, so every app built by the factory, and every test, starts clean.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from policy_api.adapters.idempotency import AbstractIdempotencyStore, InMemoryIdempotencyStore
from policy_api.adapters.llm import AbstractLLMClient, create_llm_client
from policy_api.adapters.metrics import AbstractMetricsStore, InMemoryMetricsStore
from policy_api.adapters.rate_limit import AbstractRateLimiter, InMemoryFixedWindowRateLimiter
from policy_api.core.config import AppSettings, LLMSettings
from policy_api.core.errors import ValidationAppError
from policy_api.services.decision_classifier import DecisionClassifier
from policy_api.services.event_tracker import EventTracker, parse_allowed_origins
from policy_api.services.policy_evaluator import PolicyEvaluator, build_policy_evaluators
from policy_api.services.workflow_service import WorkflowService

logger = logging.getLogger(__name__)

POLICY_LIMITER = "policy"
WORKFLOW_LIMITER = "workflow"
DECIDE_LIMITER = "decide"
TRACK_LIMITER = "track"


@dataclass
class ServiceContainer:
    """Everything a request handler needs, owned by one app instance."""

    app_settings: AppSettings
    limiters: dict[str, AbstractRateLimiter]
    idempotency: AbstractIdempotencyStore
    evaluators: dict[str, PolicyEvaluator]
    classifier: DecisionClassifier
    workflows: WorkflowService
    metrics: AbstractMetricsStore
    tracker: EventTracker


def build_limiters(app_settings: AppSettings) -> dict[str, AbstractRateLimiter]:
    """Create one independent limiter per endpoint class."""

    quotas = {
        POLICY_LIMITER: app_settings.policy_rate_limit_requests,
        WORKFLOW_LIMITER: app_settings.workflow_rate_limit_requests,
        DECIDE_LIMITER: app_settings.decide_rate_limit_requests,
        TRACK_LIMITER: app_settings.track_rate_limit_requests,
    }
    return {
        name: InMemoryFixedWindowRateLimiter(
            limit=limit,
            window_ms=app_settings.rate_limit_window_ms,
            sweep_threshold=app_settings.rate_limit_sweep_threshold,
        )
        for name, limit in quotas.items()
    }


def _build_llm_client(llm_settings: LLMSettings) -> AbstractLLMClient | None:
    try:
        return create_llm_client(llm_settings)
    except ValidationAppError as exc:
        logger.warning(
            "classifier.disabled",
            extra={"error_code": exc.code, "provider": llm_settings.provider},
        )
        return None


def build_container(
    app_settings: AppSettings,
    llm_settings: LLMSettings,
    *,
    llm_client: AbstractLLMClient | None = None,
) -> ServiceContainer:
    """Wire adapters and services for one application instance.

    Args:
        app_settings: Quotas, TTLs and feature flags.
        llm_settings: Provider configuration for the decision classifier.
        llm_client: Pre-built client (tests); built from settings otherwise.

    Returns:
        A fully wired ServiceContainer.
    """
    idempotency = InMemoryIdempotencyStore(ttl_seconds=app_settings.idempotency_ttl_seconds)
    evaluators = build_policy_evaluators()
    classifier = DecisionClassifier(llm_client or _build_llm_client(llm_settings))
    workflows = WorkflowService(
        idempotency=idempotency,
        classifier=classifier,
        evaluators=evaluators,
    )
    metrics = InMemoryMetricsStore(max_events=app_settings.metrics_max_events)

    return ServiceContainer(
        app_settings=app_settings,
        limiters=build_limiters(app_settings),
        idempotency=idempotency,
        evaluators=evaluators,
        classifier=classifier,
        workflows=workflows,
        metrics=metrics,
        tracker=EventTracker(metrics, parse_allowed_origins(app_settings.track_allowed_origins)),
    )


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container of the serving app."""

    return request.app.state.container
