"""Pydantic schemas for support-ticket workflow requests and responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WorkflowRequest(BaseModel):
    """Raw body of ``POST /api/v1/workflows/zendesk/{workflow}``.

    Values are normalized by the workflow service, so fields accept any JSON
    type here; wrong types behave like missing values.
    """

    model_config = ConfigDict(extra="ignore")

    ticket_id: Any = Field(None, description="Support ticket identifier.")
    vendor: Any = Field(None, description="Vendor key, e.g. 'adobe'.")
    days_since_purchase: Any = Field(None, description="Days since purchase (refund/return).")
    region: Any = Field(None, description="Region code; defaults to 'US'.")
    plan: Any = Field(None, description="Plan type; defaults to 'individual'.")
    workflow_type: Any = Field(None, description="Must match the workflow in the path.")
    question: Any = Field(None, description="Free-text question for the classifier.")
    decision_override: Any = Field(None, description="'yes', 'no' or 'tie' to skip the classifier.")
    idempotency_key: Any = Field(None, description="Explicit idempotency key.")


class WorkflowDecision(BaseModel):
    c: str = Field(..., description="Decision class: yes, no or tie.")
    v: str = Field(..., description="Display value returned by the classifier.")
    request_id: str = Field(..., description="Id of the classification step.")


class WorkflowAction(BaseModel):
    type: str = Field(..., description="Recommended agent action.")
    reason: str
    zendesk_tags: list[str] = Field(default_factory=list)
    zendesk_private_note: str


class WorkflowInputEcho(BaseModel):
    workflow_type: str
    question: str
    vendor: str
    days_since_purchase: int | None
    region: str
    plan: str


class WorkflowResponse(BaseModel):
    """Result of a ticket workflow run, replayed verbatim for the same key."""

    ok: bool = True
    flow: str
    ticket_id: str
    idempotency_key: str
    idempotent_replay: bool = Field(
        False,
        description="True when the response was replayed from the idempotency cache.",
    )
    decision: WorkflowDecision
    policy: dict[str, Any] | None = Field(
        None,
        description="Policy verdict; null unless the decision was 'yes'.",
    )
    action: WorkflowAction
    input_echo: WorkflowInputEcho
