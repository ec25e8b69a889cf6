from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from policy_api.core.container import POLICY_LIMITER, get_container
from policy_api.core.errors import NotFoundAppError
from policy_api.core.logging import get_request_id
from policy_api.core.rate_limit import enforce_rate_limit
from policy_api.core.request_body import read_json_object
from policy_api.schemas.policy import (
    PolicyCatalogEntry,
    PolicyCatalogResponse,
    PolicyCheckRequest,
    PolicyVerdictResponse,
)
from policy_api.services.policy_evaluator import PolicyEvaluator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Policies"])


@router.get(
    "/policies",
    response_model=PolicyCatalogResponse,
    dependencies=[Depends(enforce_rate_limit(POLICY_LIMITER))],
)
async def list_policies(request: Request) -> PolicyCatalogResponse:
    """List policy endpoints with their rules version and supported vendors."""
    evaluators = get_container(request).evaluators
    return PolicyCatalogResponse(
        policies={
            key: PolicyCatalogEntry(
                endpoint=f"/api/v1/{key}",
                rules_version=evaluator.rules_version,
                supported_vendors=list(evaluator.supported_vendors),
            )
            for key, evaluator in sorted(evaluators.items())
        }
    )


def resolve_policy_evaluator(policy: str, action: str, request: Request) -> PolicyEvaluator:
    """Look up the evaluator for ``policy/action``.

    Raises:
        NotFoundAppError: If ``policy/action`` is not a known check.
    """
    evaluator = get_container(request).evaluators.get(f"{policy.lower()}/{action.lower()}")
    if evaluator is None:
        raise NotFoundAppError(
            code="not_found",
            message="Unknown policy endpoint",
            details={"endpoint": f"/api/v1/{policy}/{action}"},
        )
    return evaluator


# Unknown endpoints are rejected before they consume quota
@router.post(
    "/{policy}/{action}",
    response_model=PolicyVerdictResponse,
    dependencies=[Depends(resolve_policy_evaluator), Depends(enforce_rate_limit(POLICY_LIMITER))],
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": PolicyCheckRequest.model_json_schema()}},
        }
    },
)
async def check_policy(
    request: Request,
    evaluator: PolicyEvaluator = Depends(resolve_policy_evaluator),
) -> dict:
    """Evaluate one vendor policy question.

    Input problems (missing vendor, unsupported region, invalid days) are
    answered with verdict ``UNKNOWN`` and a specific code, not an error.
    """
    container = get_container(request)

    body = await read_json_object(request, container.app_settings.max_body_kb * 1024)
    check = PolicyCheckRequest.model_validate(body)
    result = evaluator.evaluate(check.vendor, check.region, check.plan, check.days_since_purchase)

    logger.info(
        "policy.evaluated",
        extra={
            "policy": evaluator.route_key,
            "vendor": result.get("vendor"),
            "verdict": result["verdict"],
            "code": result["code"],
        },
    )
    return {**result, "request_id": get_request_id()}
