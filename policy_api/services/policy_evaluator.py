"""Policy verdict computation over the vendor rules tables.

Every evaluator is pure and total: any input shape produces a structured
verdict. Invalid input yields ``verdict="UNKNOWN"`` with a machine-readable
code instead of an exception, so callers (REST checks, ticket workflows, the
idempotency cache) can treat the result as data.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any

from policy_api.services.policy_rules import RulesTable, load_rules

SUPPORTED_REGION = "US"
SUPPORTED_PLAN = "individual"

UNKNOWN = "UNKNOWN"


def _days_error(value: Any) -> str | None:
    """Return why ``value`` is not a usable day count, or None if it is."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return "days_since_purchase must be a number"
    if isinstance(value, int):
        return "days_since_purchase must be a non-negative finite number" if value < 0 else None
    if not math.isfinite(value) or value < 0:
        return "days_since_purchase must be a non-negative finite number"
    if isinstance(value, float) and not value.is_integer():
        return "days_since_purchase must be an integer (whole number)"
    return None


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


class PolicyEvaluator(ABC):
    """Shared validation and lookup flow for one policy question.

    Subclasses only implement ``_decide`` for a vendor that exists in the
    table; region, plan and vendor checks happen here in a fixed order.
    """

    policy: str = ""
    action: str = ""
    uses_days: bool = False
    outcome_field: str | None = None

    def __init__(self, rules: RulesTable) -> None:
        self.rules = rules

    @property
    def route_key(self) -> str:
        return f"{self.policy}/{self.action}"

    @property
    def rules_version(self) -> str:
        return self.rules.rules_version

    @property
    def supported_vendors(self) -> list[str]:
        return self.rules.supported_vendors

    def evaluate(
        self,
        vendor: Any,
        region: Any,
        plan: Any,
        days_since_purchase: Any = None,
    ) -> dict[str, Any]:
        """Compute the verdict for one vendor/region/plan (and days) tuple.

        Args:
            vendor: Vendor key; lowercased and trimmed before lookup.
            region: Region code; only "US" is supported.
            plan: Plan type; only "individual" is supported.
            days_since_purchase: Whole days since purchase, for window policies.

        Returns:
            dict with at least verdict, code, message and rules_version.
        """
        if isinstance(vendor, str):
            vendor = vendor.lower().strip()

        if _is_blank(vendor):
            return self._unknown("MISSING_VENDOR", "vendor is required and must be a non-empty string")

        if self.uses_days:
            days_error = _days_error(days_since_purchase)
            if days_error:
                return self._unknown("INVALID_DAYS_SINCE_PURCHASE", days_error)
            days_since_purchase = int(days_since_purchase)

        if _is_blank(region):
            return self._unknown("MISSING_REGION", "region is required and must be a non-empty string")
        if _is_blank(plan):
            return self._unknown("MISSING_PLAN", "plan is required and must be a non-empty string")

        if region != SUPPORTED_REGION:
            return self._unknown(
                "NON_US_REGION",
                f'Region "{region}" is not supported. Currently only "{SUPPORTED_REGION}" is supported.',
            )
        if plan != SUPPORTED_PLAN:
            return self._unknown(
                "NON_INDIVIDUAL_PLAN",
                f'Plan "{plan}" is not supported. Currently only "{SUPPORTED_PLAN}" plans are supported.',
            )

        rule = self.rules.vendor_rule(vendor)
        if rule is None:
            supported = self.supported_vendors
            return self._unknown(
                "UNSUPPORTED_VENDOR",
                f'Vendor "{vendor}" is not supported. Supported vendors: {", ".join(supported)}',
                vendor=vendor,
                supported_vendors=supported,
            )

        return self._decide(vendor, rule, days_since_purchase)

    @abstractmethod
    def _decide(self, vendor: str, rule: dict[str, Any], days: int | None) -> dict[str, Any]:
        raise NotImplementedError

    def _result(self, verdict: str, code: str, message: str, **fields: Any) -> dict[str, Any]:
        return {
            "verdict": verdict,
            "code": code,
            "message": message.strip(),
            "rules_version": self.rules_version,
            **fields,
        }

    def _unknown(self, code: str, message: str, **fields: Any) -> dict[str, Any]:
        if self.outcome_field:
            fields = {self.outcome_field: None, **fields}
        return self._result(UNKNOWN, code, message, **fields)


class RefundEligibilityEvaluator(PolicyEvaluator):
    policy = "refund"
    action = "eligibility"
    uses_days = True
    outcome_field = "refundable"

    def _decide(self, vendor: str, rule: dict[str, Any], days: int | None) -> dict[str, Any]:
        window = int(rule.get("refund_window_days", 0))
        refund_type = rule.get("refund_type", "none")
        notes = rule.get("notes", "")
        fields = {
            "vendor": vendor,
            "refund_window_days": window,
            "refund_type": refund_type,
        }

        if window == 0 or refund_type == "none":
            return self._result(
                "DENIED",
                "NO_REFUNDS",
                f"{vendor} does not offer refunds for individual plans. {notes}",
                refundable=False,
                **fields,
            )

        if days <= window:
            return self._result(
                "ALLOWED",
                "WITHIN_WINDOW",
                f"Refund is available. Purchase is {days} day(s) old, within {window}-day window. {notes}",
                refundable=True,
                days_since_purchase=days,
                **fields,
            )

        return self._result(
            "DENIED",
            "OUTSIDE_WINDOW",
            f"Refund window expired. Purchase is {days} day(s) old, exceeds {window}-day window.",
            refundable=False,
            days_since_purchase=days,
            **fields,
        )


class CancelPenaltyEvaluator(PolicyEvaluator):
    policy = "cancel"
    action = "penalty"

    _OUTCOMES = {
        "free_cancel": ("FREE_CANCEL", "NO_PENALTY", "{vendor} can be cancelled without penalty. {notes}"),
        "etf": (
            "PENALTY",
            "EARLY_TERMINATION_FEE",
            "{vendor} charges an early termination fee: {penalty}. {notes}",
        ),
        "locked": ("LOCKED", "CONTRACT_LOCKED", "{vendor} does not allow mid-contract cancellation. {notes}"),
    }

    def _decide(self, vendor: str, rule: dict[str, Any], days: int | None) -> dict[str, Any]:
        outcome = self._OUTCOMES.get(rule.get("policy", ""))
        if outcome is None:
            return self._unknown(
                "UNKNOWN_POLICY",
                f"Unable to determine cancellation policy for {vendor}.",
                vendor=vendor,
            )

        verdict, code, template = outcome
        return self._result(
            verdict,
            code,
            template.format(vendor=vendor, penalty=rule.get("penalty"), notes=rule.get("notes", "")),
            vendor=vendor,
            policy=rule.get("policy"),
            penalty=rule.get("penalty"),
            notice_days=rule.get("notice_days"),
        )


class ReturnEligibilityEvaluator(PolicyEvaluator):
    policy = "return"
    action = "eligibility"
    uses_days = True
    outcome_field = "returnable"

    _RETURN_CODES = {"prorated": "PRORATED_RETURN", "credit": "CREDIT_RETURN"}

    def _decide(self, vendor: str, rule: dict[str, Any], days: int | None) -> dict[str, Any]:
        window = int(rule.get("return_window_days", 0))
        return_type = rule.get("return_type", "none")
        conditions = rule.get("conditions", "")
        fields = {
            "vendor": vendor,
            "return_window_days": window,
            "return_type": return_type,
            "method": rule.get("method"),
        }

        if window == 0 or return_type == "none":
            return self._result(
                "NON_RETURNABLE",
                "NO_RETURNS",
                f"{vendor} does not accept returns for individual plans. {conditions}",
                returnable=False,
                **fields,
            )

        if days <= window:
            return self._result(
                "RETURNABLE",
                self._RETURN_CODES.get(return_type, "FULL_RETURN"),
                f"Return is available. Purchase is {days} day(s) old, within {window}-day window. {conditions}",
                returnable=True,
                days_since_purchase=days,
                **fields,
            )

        return self._result(
            "EXPIRED",
            "OUTSIDE_WINDOW",
            f"Return window expired. Purchase is {days} day(s) old, exceeds {window}-day window.",
            returnable=False,
            days_since_purchase=days,
            **fields,
        )


class TrialTermsEvaluator(PolicyEvaluator):
    policy = "trial"
    action = "terms"

    def _decide(self, vendor: str, rule: dict[str, Any], days: int | None) -> dict[str, Any]:
        card_required = bool(rule.get("card_required"))
        auto_converts = bool(rule.get("auto_converts"))
        notes = rule.get("notes", "")

        if not rule.get("trial_available"):
            return self._result(
                "NO_TRIAL",
                "TRIAL_NOT_AVAILABLE",
                f"{vendor} does not offer a free trial. {notes}",
                vendor=vendor,
                trial_available=False,
                trial_days=0,
                card_required=card_required,
                auto_converts=auto_converts,
            )

        trial_days = int(rule.get("trial_days", 0))
        card_text = "Credit card required." if card_required else "No credit card required."
        convert_text = "Auto-converts to paid plan." if auto_converts else "Does not auto-convert."
        return self._result(
            "TRIAL_AVAILABLE",
            "AUTO_CONVERTS" if auto_converts else "NO_AUTO_CONVERT",
            f"{vendor} offers a {trial_days}-day free trial. {card_text} {convert_text} {notes}",
            vendor=vendor,
            trial_available=True,
            trial_days=trial_days,
            card_required=card_required,
            auto_converts=auto_converts,
        )


EVALUATOR_CLASSES: tuple[type[PolicyEvaluator], ...] = (
    RefundEligibilityEvaluator,
    CancelPenaltyEvaluator,
    ReturnEligibilityEvaluator,
    TrialTermsEvaluator,
)


def build_policy_evaluators() -> dict[str, PolicyEvaluator]:
    """Instantiate every evaluator, keyed by ``policy/action`` route key."""

    evaluators: dict[str, PolicyEvaluator] = {}
    for evaluator_cls in EVALUATOR_CLASSES:
        evaluator = evaluator_cls(load_rules(evaluator_cls.policy))
        evaluators[evaluator.route_key] = evaluator
    return evaluators
