"""Pydantic schemas for policy check requests and verdicts."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PolicyCheckRequest(BaseModel):
    """Body of ``POST /api/v1/{policy}/{action}``.

    Fields are deliberately untyped: the evaluator validates them and answers
    ``UNKNOWN`` with a specific code rather than rejecting the request.
    """

    model_config = ConfigDict(extra="ignore")

    vendor: Any = Field(None, description="Vendor key, e.g. 'adobe'.")
    region: Any = Field(None, description="Region code. Only 'US' is supported.")
    plan: Any = Field(None, description="Plan type. Only 'individual' is supported.")
    days_since_purchase: Any = Field(
        None,
        description="Whole days since purchase (refund and return checks only).",
    )


class PolicyVerdictResponse(BaseModel):
    """Verdict for a single policy question.

    Policy-specific fields (windows, penalties, trial terms) are passed
    through as extra attributes.
    """

    model_config = ConfigDict(extra="allow")

    verdict: str = Field(..., description="Policy verdict, e.g. ALLOWED, PENALTY, UNKNOWN.")
    code: str = Field(..., description="Machine-readable reason code.")
    message: str = Field(..., description="Human-readable explanation.")
    rules_version: str = Field(..., description="Version of the rules table used.")
    request_id: str | None = Field(None, description="Correlation id of this request.")


class PolicyCatalogEntry(BaseModel):
    """Describes one policy endpoint and the vendors it knows."""

    endpoint: str
    rules_version: str
    supported_vendors: list[str]


class PolicyCatalogResponse(BaseModel):
    policies: dict[str, PolicyCatalogEntry]
