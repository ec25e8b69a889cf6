"""Support-ticket (Zendesk) workflow orchestration.

A workflow turns a ticket into a recommended agent action:

1. Normalize and validate the ticket fields.
2. Replay the stored response if the idempotency key was seen within TTL.
3. Classify the request (caller override or the decision classifier).
4. On "yes", evaluate the workflow's policy.
5. Build action, ticket tags and a private note, then store the response.

Replay is best-effort: the lookup and the store are not atomic, so two
concurrent first requests for one key both compute and the later store wins.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from policy_api.adapters.idempotency.base import AbstractIdempotencyStore, build_idempotency_key
from policy_api.core.errors import NotFoundAppError, UpstreamAppError, ValidationAppError
from policy_api.schemas.workflow import (
    WorkflowAction,
    WorkflowDecision,
    WorkflowInputEcho,
    WorkflowRequest,
    WorkflowResponse,
)
from policy_api.services.decision_classifier import DecisionClassifier
from policy_api.services.policy_evaluator import PolicyEvaluator
from policy_api.utils.text_normalizer import normalize_decision, normalize_text, parse_days

logger = logging.getLogger(__name__)

ESCALATE = "escalate_policy_owner"
_TIE_REASON = "Classifier returned tie; manual policy owner review required."
_NO_POLICY_REASON = "Policy service unavailable; manual review required."
_UNKNOWN_REASON = "Policy verdict UNKNOWN; manual review required."


def new_request_id() -> str:
    """Short sortable id: base-36 milliseconds plus random suffix."""
    millis = int(time.time() * 1000)
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    encoded = ""
    while millis:
        millis, rem = divmod(millis, 36)
        encoded = digits[rem] + encoded
    return f"{encoded or '0'}-{secrets.token_hex(4)}"


@dataclass(frozen=True)
class WorkflowDefinition:
    """Static description of one ticket workflow.

    Attributes:
        workflow_type: Path segment and required ``workflow_type`` value.
        version: Flow identifier reported in responses and tags.
        policy_key: Evaluator route key consulted on a "yes" decision.
        requires_days: Whether ``days_since_purchase`` is mandatory.
        deny_action: Action (type, reason) used when the classifier says no.
        verdict_actions: Policy verdict → (action type, reason).
    """

    workflow_type: str
    version: str
    policy_key: str
    requires_days: bool
    deny_action: tuple[str, str]
    verdict_actions: dict[str, tuple[str, str]] = field(default_factory=dict)

    def default_question(self, vendor: str) -> str:
        noun = "cancellation" if self.workflow_type == "cancel" else self.workflow_type
        return f"Should this {vendor} {noun} request proceed under policy?"

    def build_action(self, decision_class: str, policy: dict[str, Any] | None) -> tuple[str, str]:
        if decision_class == "tie":
            return ESCALATE, _TIE_REASON
        if decision_class == "no":
            return self.deny_action
        if policy is None:
            return ESCALATE, _NO_POLICY_REASON
        return self.verdict_actions.get(policy.get("verdict", ""), (ESCALATE, _UNKNOWN_REASON))


WORKFLOWS: dict[str, WorkflowDefinition] = {
    "refund": WorkflowDefinition(
        workflow_type="refund",
        version="zendesk_refund_v1",
        policy_key="refund/eligibility",
        requires_days=True,
        deny_action=(
            "deny_refund",
            "Classifier returned no; case does not proceed to automated refund execution.",
        ),
        verdict_actions={
            "ALLOWED": ("approve_refund", "Policy verdict ALLOWED within vendor rules."),
            "DENIED": ("deny_refund", "Policy verdict DENIED under vendor rules."),
        },
    ),
    "cancel": WorkflowDefinition(
        workflow_type="cancel",
        version="zendesk_cancel_v1",
        policy_key="cancel/penalty",
        requires_days=False,
        deny_action=(
            "retain_subscription",
            "Classifier returned no; do not proceed with automated cancellation.",
        ),
        verdict_actions={
            "FREE_CANCEL": (
                "approve_cancel",
                "Policy verdict FREE_CANCEL; cancellation can proceed without penalty.",
            ),
            "PENALTY": (
                "escalate_with_penalty_disclosure",
                "Policy verdict PENALTY; disclose fee and route for confirmation.",
            ),
            "LOCKED": (
                "deny_cancel",
                "Policy verdict LOCKED; account is not yet eligible for cancellation.",
            ),
        },
    ),
    "return": WorkflowDefinition(
        workflow_type="return",
        version="zendesk_return_v1",
        policy_key="return/eligibility",
        requires_days=True,
        deny_action=(
            "deny_return",
            "Classifier returned no; do not proceed with automated return handling.",
        ),
        verdict_actions={
            "RETURNABLE": (
                "approve_return",
                "Policy verdict RETURNABLE; return can proceed under vendor rules.",
            ),
            "EXPIRED": ("deny_return", "Policy verdict EXPIRED; return does not qualify."),
            "NON_RETURNABLE": ("deny_return", "Policy verdict NON_RETURNABLE; return does not qualify."),
        },
    ),
    "trial": WorkflowDefinition(
        workflow_type="trial",
        version="zendesk_trial_v1",
        policy_key="trial/terms",
        requires_days=False,
        deny_action=(
            "deny_trial",
            "Classifier returned no; do not proceed with automated trial handling.",
        ),
        verdict_actions={
            "TRIAL_AVAILABLE": (
                "approve_trial",
                "Policy verdict TRIAL_AVAILABLE; trial setup can proceed.",
            ),
            "NO_TRIAL": (
                "deny_trial",
                "Policy verdict NO_TRIAL; vendor does not offer an eligible trial.",
            ),
        },
    ),
}


@dataclass(frozen=True)
class WorkflowInput:
    """Normalized ticket fields."""

    ticket_id: str
    vendor: str
    region: str
    plan: str
    days_since_purchase: int | None
    workflow_type: str
    question: str
    decision_override: str
    explicit_key: str


@dataclass(frozen=True)
class WorkflowOutcome:
    response: dict[str, Any]
    replayed: bool


def normalize_workflow_input(definition: WorkflowDefinition, body: Any) -> WorkflowInput:
    """Validate and normalize a raw workflow body.

    Raises:
        ValidationAppError: If the body is not an object, required fields are
            missing, or ``workflow_type`` names another workflow.
    """
    try:
        request = WorkflowRequest.model_validate(body)
    except ValidationError as exc:
        raise ValidationAppError(
            code="invalid_json",
            message="Request body must be a JSON object",
        ) from exc

    vendor = normalize_text(request.vendor, 120).lower()
    data = WorkflowInput(
        ticket_id=normalize_text(request.ticket_id, 120),
        vendor=vendor,
        region=normalize_text(request.region, 20).upper() or "US",
        plan=normalize_text(request.plan, 40).lower() or "individual",
        days_since_purchase=parse_days(request.days_since_purchase),
        workflow_type=normalize_text(request.workflow_type, 40).lower() or definition.workflow_type,
        question=normalize_text(request.question, 400) or definition.default_question(vendor),
        decision_override=normalize_decision(request.decision_override),
        explicit_key=normalize_text(request.idempotency_key, 200),
    )

    missing_days = definition.requires_days and data.days_since_purchase is None
    if not data.ticket_id or not data.vendor or missing_days:
        required = "ticket_id, vendor, and days_since_purchase" if definition.requires_days else "ticket_id and vendor"
        raise ValidationAppError(
            code="missing_required_fields",
            message=f"{required} are required",
            details={"workflow": definition.workflow_type},
        )

    if data.workflow_type != definition.workflow_type:
        raise ValidationAppError(
            code="unsupported_workflow_type",
            message=f"Only workflow_type={definition.workflow_type} is supported by this endpoint",
            details={"workflow": definition.workflow_type},
        )

    return data


def build_tags(
    definition: WorkflowDefinition,
    decision_class: str,
    action_type: str,
    policy: dict[str, Any] | None,
) -> list[str]:
    tags = [
        "decide",
        "decide_workflow",
        f"wf_{definition.version}",
        f"decide_{decision_class}",
        f"action_{action_type}",
    ]
    if policy and policy.get("verdict"):
        tags.append(f"{definition.workflow_type}_{str(policy['verdict']).lower()}")
    return tags


def build_private_note(
    definition: WorkflowDefinition,
    data: WorkflowInput,
    *,
    decision_request_id: str,
    decision_class: str,
    action: tuple[str, str],
    policy: dict[str, Any] | None,
    idempotency_key: str,
) -> str:
    if policy:
        policy_line = policy["verdict"] + (f" ({policy['code']})" if policy.get("code") else "")
    else:
        policy_line = "SKIPPED"

    return "\n".join(
        [
            f"decide workflow: {definition.version}",
            f"ticket_id: {data.ticket_id}",
            f"request_id: {decision_request_id}",
            f"decision: {decision_class}",
            f"policy: {policy_line}",
            f"recommended_action: {action[0]}",
            f"reason: {action[1]}",
            f"idempotency_key: {idempotency_key}",
        ]
    )


class WorkflowService:
    """Runs ticket workflows with idempotent replay.

    Attributes:
        idempotency: Store used to replay responses for repeated keys.
        classifier: Decision classifier used when no override is supplied.
        evaluators: Policy evaluators keyed by route key.
    """

    def __init__(
        self,
        *,
        idempotency: AbstractIdempotencyStore,
        classifier: DecisionClassifier,
        evaluators: dict[str, PolicyEvaluator],
        workflows: dict[str, WorkflowDefinition] | None = None,
    ) -> None:
        self.idempotency = idempotency
        self.classifier = classifier
        self.evaluators = evaluators
        self.workflows = workflows or WORKFLOWS

    def get_definition(self, workflow: str) -> WorkflowDefinition:
        definition = self.workflows.get(workflow.lower().strip())
        if definition is None:
            raise NotFoundAppError(
                code="not_found",
                message="Unknown workflow endpoint",
                details={"endpoint": f"/api/v1/workflows/zendesk/{workflow}"},
            )
        return definition

    async def _decide(self, data: WorkflowInput) -> WorkflowDecision:
        if data.decision_override:
            return WorkflowDecision(
                c=data.decision_override,
                v=data.decision_override,
                request_id=new_request_id(),
            )

        try:
            decision = await self.classifier.classify(data.question)
        except UpstreamAppError as exc:
            raise UpstreamAppError(
                code="decide_classification_failed",
                message="Unable to classify workflow decision",
                details={"classify_status": exc.code},
            ) from exc

        decision_class = normalize_decision(decision.c)
        if not decision_class:
            raise UpstreamAppError(
                code="decide_classification_failed",
                message="Unable to classify workflow decision",
                details={"classify_status": decision.c},
            )
        return WorkflowDecision(c=decision_class, v=decision.v or decision_class, request_id=new_request_id())

    async def run(self, workflow: str, body: Any) -> WorkflowOutcome:
        """Run ``workflow`` for a raw request body.

        Args:
            workflow: Workflow name from the request path.
            body: Decoded JSON body.

        Returns:
            WorkflowOutcome with the response payload and whether it was replayed.

        Raises:
            NotFoundAppError: Unknown workflow.
            ValidationAppError: Invalid or incomplete ticket fields.
            UpstreamAppError: Classification failed.
        """
        definition = self.get_definition(workflow)
        data = normalize_workflow_input(definition, body)

        idempotency_key = build_idempotency_key(
            ticket_id=data.ticket_id,
            workflow_type=data.workflow_type,
            vendor=data.vendor,
            days_since_purchase=data.days_since_purchase if definition.requires_days else None,
            region=data.region,
            plan=data.plan,
            explicit_key=data.explicit_key,
        )

        cached = self.idempotency.get(idempotency_key)
        if cached is not None:
            logger.info(
                "idempotency.replay",
                extra={"workflow": definition.workflow_type, "ticket_id": data.ticket_id},
            )
            return WorkflowOutcome(response={**cached.response, "idempotent_replay": True}, replayed=True)

        decision = await self._decide(data)

        policy: dict[str, Any] | None = None
        if decision.c == "yes":
            evaluator = self.evaluators[definition.policy_key]
            policy = evaluator.evaluate(data.vendor, data.region, data.plan, data.days_since_purchase)

        action = definition.build_action(decision.c, policy)
        response = WorkflowResponse(
            flow=definition.version,
            ticket_id=data.ticket_id,
            idempotency_key=idempotency_key,
            idempotent_replay=False,
            decision=decision,
            policy=policy,
            action=WorkflowAction(
                type=action[0],
                reason=action[1],
                zendesk_tags=build_tags(definition, decision.c, action[0], policy),
                zendesk_private_note=build_private_note(
                    definition,
                    data,
                    decision_request_id=decision.request_id,
                    decision_class=decision.c,
                    action=action,
                    policy=policy,
                    idempotency_key=idempotency_key,
                ),
            ),
            input_echo=WorkflowInputEcho(
                workflow_type=data.workflow_type,
                question=data.question,
                vendor=data.vendor,
                days_since_purchase=data.days_since_purchase,
                region=data.region,
                plan=data.plan,
            ),
        ).model_dump()

        self.idempotency.put(idempotency_key, response)

        logger.info(
            "workflow.completed",
            extra={
                "workflow": definition.workflow_type,
                "workflow_version": definition.version,
                "ticket_id": data.ticket_id,
                "decision": decision.c,
                "decision_request_id": decision.request_id,
                "policy_verdict": policy.get("verdict") if policy else None,
                "policy_code": policy.get("code") if policy else None,
                "action": action[0],
            },
        )
        return WorkflowOutcome(response=response, replayed=False)
