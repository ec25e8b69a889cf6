from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from policy_api.core.container import WORKFLOW_LIMITER, get_container
from policy_api.core.rate_limit import enforce_rate_limit
from policy_api.core.request_body import read_json_object
from policy_api.schemas.workflow import WorkflowRequest, WorkflowResponse
from policy_api.services.workflow_service import WorkflowDefinition

router = APIRouter(tags=["Workflows"])

REPLAY_HEADER = "X-Idempotent-Replay"


def resolve_workflow(workflow: str, request: Request) -> WorkflowDefinition:
    return get_container(request).workflows.get_definition(workflow)


@router.post(
    "/workflows/zendesk/{workflow}",
    response_model=WorkflowResponse,
    dependencies=[Depends(resolve_workflow), Depends(enforce_rate_limit(WORKFLOW_LIMITER))],
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": WorkflowRequest.model_json_schema()}},
        }
    },
)
async def run_zendesk_workflow(
    request: Request,
    response: Response,
    definition: WorkflowDefinition = Depends(resolve_workflow),
) -> dict:
    """Run a support-ticket workflow (refund, cancel, return or trial).

    Repeating a request with the same idempotency key within the TTL replays
    the stored response with ``idempotent_replay: true`` and the
    ``X-Idempotent-Replay: 1`` header.
    """
    container = get_container(request)
    body = await read_json_object(request, container.app_settings.max_body_kb * 1024)

    outcome = await container.workflows.run(definition.workflow_type, body)
    if outcome.replayed:
        response.headers[REPLAY_HEADER] = "1"
    return outcome.response
