"""Decision classifier backed by the LLM adapter.

Two modes share one filter: yes/no questions, and multi-option questions
where the model scores 2 to 8 options and the best one wins. Questions
asking for finance, medical or legal advice are filtered locally and never
reach the model.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from policy_api.adapters.llm.base import AbstractLLMClient
from policy_api.core.errors import UpstreamAppError

logger = logging.getLogger(__name__)

MIN_QUESTION_CHARS = 3
MIN_OPTIONS = 2
MAX_OPTIONS = 8
DEFAULT_STEM = "best option"
TIE_EPSILON = 0.05

_ADVICE_RE = re.compile(
    r"\b(should i|do i|can i|is it (smart|good|bad)|worth it|recommend|what should i|what do i|help me decide)\b"
)
_FINANCE_ACTION_RE = re.compile(r"\b(buy|sell|invest|trade|short|long|hold|dca|allocate|rebalance)\b")
_FINANCE_ASSET_RE = re.compile(
    r"\b(bitcoin|btc|crypto|eth|ethereum|solana|token|coin|stock|shares?|etf|options?|futures"
    r"|portfolio|yield|apy|apr|roi|price target)\b"
)
_MEDICAL_ACTION_RE = re.compile(
    r"\b(diagnos|diagnose|treat|treatment|cure|take|dosage|dose|prescription|medication|medicine)\b"
)
_MEDICAL_TOPIC_RE = re.compile(
    r"\b(symptom|pain|fever|rash|infection|disease|illness|pregnan|anxiety|depression|adhd)\b"
)
_LEGAL_ACTION_RE = re.compile(
    r"\b(is this legal|can i be sued|should i sue|lawsuit|press charges|legal action|settle)\b"
)
_LEGAL_TOPIC_RE = re.compile(
    r"\b(lawyer|attorney|court|liability|criminal|nda|contract|immigration|visa|trademark|copyright)\b"
)

_ANSWER_SCHEMA = {
    "type": "object",
    "properties": {"answer": {"type": "string", "enum": ["yes", "no"]}},
    "required": ["answer"],
}

_SCORES_SCHEMA = {
    "type": "object",
    "properties": {
        "scores": {"type": "array", "items": {"type": "number"}},
        "reason": {"type": "string"},
    },
    "required": ["scores"],
}


@dataclass(frozen=True)
class OptionRanking:
    """Scores for a multi-option question, in option order."""

    stem: str
    options: list[str]
    scores: list[float]
    tie_indices: list[int] = field(default_factory=list)

    @property
    def winner_index(self) -> int:
        return self.tie_indices[0] if self.tie_indices else 0

    @property
    def tie(self) -> bool:
        return len(self.tie_indices) > 1


@dataclass(frozen=True)
class Decision:
    """Classifier outcome: class ``c``, display value ``v`` and, for multi mode, the ranking."""

    c: str
    v: str
    ranking: OptionRanking | None = None


def normalize_question(question: str) -> str:
    return re.sub(r"\s+", " ", question.lower()).strip()


def restricted_category(question: str) -> str | None:
    """Return the advice category a question falls into, if any.

    Args:
        question: Question already passed through normalize_question().

    Returns:
        "finance", "medical", "legal" or None.
    """
    wants_advice = bool(_ADVICE_RE.search(question))

    if (wants_advice or _FINANCE_ACTION_RE.search(question)) and _FINANCE_ASSET_RE.search(question):
        return "finance"
    if (wants_advice or _MEDICAL_ACTION_RE.search(question)) and _MEDICAL_TOPIC_RE.search(question):
        return "medical"
    if (wants_advice or _LEGAL_ACTION_RE.search(question)) and _LEGAL_TOPIC_RE.search(question):
        return "legal"
    return None


def build_prompt(question: str) -> str:
    return (
        "You're a decisive oracle. You must commit and find the differentiation factor. "
        "Answer metaphorical questions based on intent.\n"
        f"User's question: {question}\n"
        'Return JSON of the form {"answer": "yes"} or {"answer": "no"}.'
    )


def parse_multi_question(question: str) -> tuple[str, list[str]]:
    """Split ``"stem: a | b | c"`` into a stem and its options.

    Text before the first colon of the first segment is the stem; without
    one the stem defaults to "best option". A question with no ``|`` is all
    stem and has no options.
    """
    text = question.strip()
    if not text:
        return DEFAULT_STEM, []
    segments = [segment.strip() for segment in text.split("|") if segment.strip()]
    if len(segments) < 2:
        return text, []

    stem = DEFAULT_STEM
    head, colon, rest = segments[0].partition(":")
    if colon:
        if head.strip():
            stem = head.strip()
        segments[0] = rest.strip()

    options = [" ".join(segment.split()) for segment in segments]
    return stem, [option for option in options if option]


def build_scores_prompt(stem: str, options: list[str]) -> str:
    option_list = "\n".join(f"{idx}. {option}" for idx, option in enumerate(options, start=1))
    return (
        "You are a strict comparative scoring engine.\n"
        "Task: score each option for this decision and pick the best.\n\n"
        f"Decision stem: {stem}\n"
        f"Options:\n{option_list}\n\n"
        'Return ONLY JSON of the form {"scores": [number, ...], "reason": "short reason"}.\n'
        "Rules:\n"
        f"- scores length must be exactly {len(options)}\n"
        "- each score must be between 1.0 and 10.0\n"
        "- use one decimal place\n"
        "- evaluate comparatively, not independently"
    )


def sanitize_score(value: Any) -> float | None:
    """Clamp a model score to 1..10 with one decimal; None if not a finite number."""
    if isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(parsed):
        return None
    return round(min(10.0, max(1.0, parsed)), 1)


def rank_options(stem: str, options: list[str], scores: list[float]) -> OptionRanking:
    top = max(scores)
    ties = [idx for idx, score in enumerate(scores) if abs(score - top) <= TIE_EPSILON]
    return OptionRanking(stem=stem, options=list(options), scores=list(scores), tie_indices=ties)


def _parse_answer(raw: dict) -> str:
    answer = str(raw.get("answer", "")).lower().strip().strip('"')
    return re.sub(r"[^\w\s]", "", answer).strip()


def _filtered(text: str) -> Decision | None:
    category = restricted_category(normalize_question(text))
    if category is None:
        return None
    logger.info("classifier.filtered", extra={"category": category})
    return Decision(c="filtered", v=f"Cannot provide {category} advice")


class DecisionClassifier:
    """Classify a free-text question into yes / no, or rank its options.

    Attributes:
        llm: LLM client, or None when no provider is configured.
    """

    def __init__(self, llm: AbstractLLMClient | None) -> None:
        self.llm = llm

    @property
    def available(self) -> bool:
        return self.llm is not None

    async def _generate(self, prompt: str, schema: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        if self.llm is None:
            raise UpstreamAppError(
                code="classifier_unavailable",
                message="Decision classifier is not configured",
                details={"hint": "Set LLM_API_KEY to enable classification"},
            )
        try:
            return await self.llm.generate_json(prompt, schema=schema, **kwargs)
        except RuntimeError as exc:
            logger.warning("classifier.failed", extra={"error_msg": str(exc)})
            raise UpstreamAppError(
                code="classifier_failed",
                message="Decision classifier call failed",
            ) from exc

    async def classify(self, question: str) -> Decision:
        """Classify ``question``.

        Returns:
            Decision with c in {"yes", "no", "unclear", "filtered"}.

        Raises:
            UpstreamAppError: If no provider is configured or the call fails.
        """
        question = question.strip()
        if len(question) < MIN_QUESTION_CHARS:
            return Decision(c="unclear", v="Ask a question")

        filtered = _filtered(question)
        if filtered:
            return filtered

        raw = await self._generate(build_prompt(question), _ANSWER_SCHEMA, temperature=0.7, max_tokens=20)

        answer = _parse_answer(raw)
        if answer in ("yes", "no"):
            return Decision(c=answer, v=answer)
        return Decision(c="unclear", v="try again")

    async def classify_options(self, stem: str, options: list[str]) -> Decision:
        """Score ``options`` against ``stem`` and pick the best.

        Options within TIE_EPSILON of the top score tie; the first of them
        is the winner.

        Returns:
            Decision with c "ok" and a ranking, or c "unclear" / "filtered".

        Raises:
            UpstreamAppError: If no provider is configured or the call fails.
        """
        stem = stem.strip() or DEFAULT_STEM
        if not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
            return Decision(c="unclear", v=f"Need {MIN_OPTIONS}-{MAX_OPTIONS} options")

        filtered = _filtered(f"{stem} {' '.join(options)}")
        if filtered:
            return filtered

        raw = await self._generate(
            build_scores_prompt(stem, options),
            _SCORES_SCHEMA,
            temperature=0,
            max_tokens=220,
        )

        raw_scores = raw.get("scores")
        if not isinstance(raw_scores, list) or len(raw_scores) != len(options):
            logger.info("classifier.scores_rejected", extra={"options": len(options)})
            return Decision(c="unclear", v="try again")
        scores = [sanitize_score(score) for score in raw_scores]
        if any(score is None for score in scores):
            logger.info("classifier.scores_rejected", extra={"options": len(options)})
            return Decision(c="unclear", v="try again")

        ranking = rank_options(stem, options, scores)
        logger.info(
            "classifier.ranked",
            extra={"options": len(options), "winner_index": ranking.winner_index, "tie": ranking.tie},
        )
        return Decision(c="ok", v="ok", ranking=ranking)
