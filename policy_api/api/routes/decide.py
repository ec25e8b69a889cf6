from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from policy_api.core.container import DECIDE_LIMITER, get_container
from policy_api.core.errors import UpstreamAppError, ValidationAppError
from policy_api.core.logging import get_request_id
from policy_api.core.rate_limit import enforce_rate_limit
from policy_api.core.request_body import read_json_object
from policy_api.schemas.decide import DecideRequest, DecideResponse, ScoredOption
from policy_api.services.decision_classifier import Decision, parse_multi_question
from policy_api.utils.text_normalizer import normalize_options, normalize_text

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Decide"])


async def _decide_multi(request: Request, payload: DecideRequest) -> Decision:
    classifier = get_container(request).classifier
    question = payload.question.strip()
    stem = normalize_text(payload.stem)
    options = normalize_options(payload.options)

    if question and (not stem or len(options) < 2):
        parsed_stem, parsed_options = parse_multi_question(question)
        stem = stem or parsed_stem
        if len(options) < 2:
            options = parsed_options

    return await classifier.classify_options(stem, options)


def _to_response(decision: Decision) -> DecideResponse:
    ranking = decision.ranking
    if ranking is None:
        return DecideResponse(c=decision.c, v=decision.v, request_id=get_request_id())
    return DecideResponse(
        c=decision.c,
        v=decision.v,
        request_id=get_request_id(),
        stem=ranking.stem,
        winner_index=ranking.winner_index,
        tie=ranking.tie,
        tie_indices=ranking.tie_indices,
        scores=ranking.scores,
        options=[
            ScoredOption(index=idx, option=option, score=score)
            for idx, (option, score) in enumerate(zip(ranking.options, ranking.scores))
        ],
    )


@router.post(
    "/decide",
    response_model=DecideResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(enforce_rate_limit(DECIDE_LIMITER))],
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": DecideRequest.model_json_schema()}},
        }
    },
)
async def decide(request: Request) -> DecideResponse:
    """Classify a yes/no question, or score 2-8 options and pick the best.

    Multi mode applies when ``mode`` is "multi", ``options`` is non-empty or
    the question contains ``|``. Classifier outages degrade to ``unclear`` /
    ``try again`` with HTTP 200.
    """
    container = get_container(request)
    body = await read_json_object(request, container.app_settings.max_body_kb * 1024)
    try:
        payload = DecideRequest.model_validate(body)
    except ValidationError as exc:
        raise ValidationAppError(
            code="invalid_question",
            message="question must be a string",
        ) from exc

    multi = (
        normalize_text(payload.mode).lower() == "multi"
        or bool(normalize_options(payload.options))
        or "|" in payload.question
    )
    try:
        if multi:
            decision = await _decide_multi(request, payload)
        else:
            decision = await container.classifier.classify(payload.question)
    except UpstreamAppError as exc:
        logger.warning("decide.degraded", extra={"error_code": exc.code, "multi": multi})
        return DecideResponse(c="unclear", v="try again", request_id=get_request_id())

    return _to_response(decision)
