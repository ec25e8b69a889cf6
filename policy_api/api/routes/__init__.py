from __future__ import annotations

from policy_api.api.routes.decide import router as decide_router
from policy_api.api.routes.health import router as health_router
from policy_api.api.routes.metrics import router as metrics_router
from policy_api.api.routes.policies import router as policies_router
from policy_api.api.routes.workflows import router as workflows_router

__all__ = ["decide_router", "health_router", "metrics_router", "policies_router", "workflows_router"]
