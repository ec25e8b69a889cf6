"""Tests for policy evaluators over the shipped rules tables."""

import math

import pytest

from policy_api.services.policy_evaluator import build_policy_evaluators
from policy_api.services.policy_rules import RULES_FILES, load_rules


@pytest.fixture(scope="module")
def evaluators():
    return build_policy_evaluators()


def test_every_policy_has_an_evaluator(evaluators) -> None:
    assert sorted(evaluators) == [
        "cancel/penalty",
        "refund/eligibility",
        "return/eligibility",
        "trial/terms",
    ]


@pytest.mark.parametrize("policy", sorted(RULES_FILES))
def test_rules_tables_load(policy: str) -> None:
    table = load_rules(policy)

    assert table.rules_version
    assert table.supported_vendors == sorted(table.vendors)
    assert "adobe" in table.vendors


class TestRefundEligibility:
    def test_within_window_is_allowed(self, evaluators) -> None:
        result = evaluators["refund/eligibility"].evaluate("adobe", "US", "individual", 5)

        assert result["verdict"] == "ALLOWED"
        assert result["code"] == "WITHIN_WINDOW"
        assert result["refundable"] is True
        assert result["refund_window_days"] == 14
        assert result["days_since_purchase"] == 5
        assert result["rules_version"] == "2026-01-15"

    def test_window_boundary_is_inclusive(self, evaluators) -> None:
        result = evaluators["refund/eligibility"].evaluate("adobe", "US", "individual", 14)

        assert result["verdict"] == "ALLOWED"

    def test_outside_window_is_denied(self, evaluators) -> None:
        result = evaluators["refund/eligibility"].evaluate("adobe", "US", "individual", 15)

        assert result["verdict"] == "DENIED"
        assert result["code"] == "OUTSIDE_WINDOW"
        assert result["refundable"] is False

    def test_vendor_without_refunds(self, evaluators) -> None:
        result = evaluators["refund/eligibility"].evaluate("netflix", "US", "individual", 0)

        assert result["verdict"] == "DENIED"
        assert result["code"] == "NO_REFUNDS"

    def test_vendor_is_normalized(self, evaluators) -> None:
        result = evaluators["refund/eligibility"].evaluate("  Adobe ", "US", "individual", 1)

        assert result["vendor"] == "adobe"
        assert result["verdict"] == "ALLOWED"

    def test_whole_float_days_accepted(self, evaluators) -> None:
        result = evaluators["refund/eligibility"].evaluate("adobe", "US", "individual", 3.0)

        assert result["days_since_purchase"] == 3

    def test_very_large_integer_days_are_outside_window(self, evaluators) -> None:
        result = evaluators["refund/eligibility"].evaluate("adobe", "US", "individual", 10**400)

        assert result["verdict"] == "DENIED"
        assert result["code"] == "OUTSIDE_WINDOW"
        assert result["days_since_purchase"] == 10**400

    @pytest.mark.parametrize("days", [None, "5", True, -1, 2.5, math.inf, math.nan])
    def test_invalid_days(self, evaluators, days) -> None:
        result = evaluators["refund/eligibility"].evaluate("adobe", "US", "individual", days)

        assert result["verdict"] == "UNKNOWN"
        assert result["code"] == "INVALID_DAYS_SINCE_PURCHASE"
        assert result["refundable"] is None


class TestValidationOrder:
    @pytest.mark.parametrize(
        "vendor,region,plan,code",
        [
            (None, "US", "individual", "MISSING_VENDOR"),
            ("  ", "US", "individual", "MISSING_VENDOR"),
            ("adobe", None, "individual", "MISSING_REGION"),
            ("adobe", "US", "", "MISSING_PLAN"),
            ("adobe", "CA", "individual", "NON_US_REGION"),
            ("adobe", "US", "family", "NON_INDIVIDUAL_PLAN"),
            ("acme", "US", "individual", "UNSUPPORTED_VENDOR"),
        ],
    )
    def test_unknown_codes(self, evaluators, vendor, region, plan, code) -> None:
        result = evaluators["cancel/penalty"].evaluate(vendor, region, plan)

        assert result["verdict"] == "UNKNOWN"
        assert result["code"] == code
        assert result["message"]

    def test_missing_vendor_checked_before_days(self, evaluators) -> None:
        result = evaluators["refund/eligibility"].evaluate(None, "US", "individual", None)

        assert result["code"] == "MISSING_VENDOR"

    def test_unsupported_vendor_lists_supported(self, evaluators) -> None:
        result = evaluators["trial/terms"].evaluate("acme", "US", "individual")

        assert result["vendor"] == "acme"
        assert result["supported_vendors"] == evaluators["trial/terms"].supported_vendors


class TestCancelPenalty:
    @pytest.mark.parametrize(
        "vendor,verdict,code",
        [
            ("spotify", "FREE_CANCEL", "NO_PENALTY"),
            ("adobe", "PENALTY", "EARLY_TERMINATION_FEE"),
            ("planet_fitness", "LOCKED", "CONTRACT_LOCKED"),
        ],
    )
    def test_verdicts(self, evaluators, vendor, verdict, code) -> None:
        result = evaluators["cancel/penalty"].evaluate(vendor, "US", "individual")

        assert result["verdict"] == verdict
        assert result["code"] == code
        assert result["vendor"] == vendor

    def test_days_are_ignored(self, evaluators) -> None:
        result = evaluators["cancel/penalty"].evaluate("spotify", "US", "individual", "not-a-number")

        assert result["verdict"] == "FREE_CANCEL"


class TestReturnEligibility:
    @pytest.mark.parametrize(
        "vendor,days,verdict,code",
        [
            ("adobe", 10, "RETURNABLE", "FULL_RETURN"),
            ("microsoft_365", 10, "RETURNABLE", "PRORATED_RETURN"),
            ("steam", 10, "RETURNABLE", "CREDIT_RETURN"),
            ("best_buy", 16, "EXPIRED", "OUTSIDE_WINDOW"),
            ("canva", 1, "NON_RETURNABLE", "NO_RETURNS"),
        ],
    )
    def test_verdicts(self, evaluators, vendor, days, verdict, code) -> None:
        result = evaluators["return/eligibility"].evaluate(vendor, "US", "individual", days)

        assert result["verdict"] == verdict
        assert result["code"] == code


class TestTrialTerms:
    def test_no_trial(self, evaluators) -> None:
        result = evaluators["trial/terms"].evaluate("netflix", "US", "individual")

        assert result["verdict"] == "NO_TRIAL"
        assert result["code"] == "TRIAL_NOT_AVAILABLE"
        assert result["trial_days"] == 0

    def test_trial_available(self, evaluators) -> None:
        result = evaluators["trial/terms"].evaluate("adobe", "US", "individual")

        assert result["verdict"] == "TRIAL_AVAILABLE"
        assert result["trial_days"] == 7
        assert result["code"] in {"AUTO_CONVERTS", "NO_AUTO_CONVERT"}
