"""
Tests for workflow_engines.conditions.

Tests cover:
- AMOUNT_RANGE bounds (inclusive), missing and malformed amounts
- RECEIPT_REQUIRED with a missing, empty and present receipt_url
- LOCATION / EXPENSE_CATEGORY id matching
- step_applies under AND and OR combinators
- select_applicable_step ordering, OR steps and after_step_number
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from workflow_engines.conditions import (
    conditions_match,
    evaluate_condition,
    select_applicable_step,
    step_applies,
)
from workflow_kernel.domain.definition import (
    AmountRangeCondition,
    ConditionOperator,
    ExpenseCategoryCondition,
    FormFieldCondition,
    LocationCondition,
    ReceiptRequiredCondition,
    Step,
    ValueType,
)

MID_TIER = AmountRangeCondition(min_amount=Decimal("100"), max_amount=Decimal("500"))
TRAVEL = ExpenseCategoryCondition(expense_category_id="travel")
BRANCH = LocationCondition(location_id="loc-branch-7")


def make_step(number: int, name: str, *conditions, all_must_match: bool = True) -> Step:
    return Step(
        step_id=uuid4(),
        step_number=number,
        name=name,
        conditions=conditions,
        all_conditions_must_match=all_must_match,
    )


# =========================================================================
# ConditionEvaluator
# =========================================================================


class TestAmountRange:
    @pytest.mark.parametrize(
        ("amount", "matched"),
        [
            (100, True),
            (500, True),
            (99, False),
            (501, False),
            ("100.00", True),
            ("500.01", False),
            (Decimal("99.99"), False),
        ],
    )
    def test_bounds_are_inclusive(self, amount, matched):
        outcome = evaluate_condition(MID_TIER, {"amount": amount})

        assert outcome.matched is matched
        assert outcome.diagnostic is None

    def test_open_ended_ranges(self):
        at_least_1000 = AmountRangeCondition(min_amount=Decimal("1000"))
        up_to_100 = AmountRangeCondition(max_amount=Decimal("100"))

        assert evaluate_condition(at_least_1000, {"amount": "1000000"}).matched
        assert not evaluate_condition(at_least_1000, {"amount": "999.99"}).matched
        assert evaluate_condition(up_to_100, {"amount": "-5"}).matched

    def test_missing_amount(self):
        outcome = evaluate_condition(MID_TIER, {})

        assert outcome.matched is False
        assert outcome.missing_field == "amount"

    def test_malformed_amount(self):
        outcome = evaluate_condition(MID_TIER, {"amount": "two hundred"})

        assert outcome.matched is False
        assert outcome.diagnostic.startswith("amount:")
        assert outcome.missing_field is None


class TestReceiptRequired:
    @pytest.mark.parametrize(
        ("context", "matched"),
        [
            ({}, False),
            ({"receipt_url": None}, False),
            ({"receipt_url": ""}, False),
            ({"receipt_url": "   "}, False),
            ({"receipt_url": "s3://receipts/4411.pdf"}, True),
        ],
    )
    def test_receipt_url(self, context, matched):
        outcome = evaluate_condition(ReceiptRequiredCondition(), context)

        assert outcome.matched is matched
        assert outcome.diagnostic is None


class TestIdConditions:
    def test_location(self):
        assert evaluate_condition(BRANCH, {"location_id": "loc-branch-7"}).matched
        assert not evaluate_condition(BRANCH, {"location_id": "loc-hq"}).matched
        assert evaluate_condition(BRANCH, {}).missing_field == "location_id"

    def test_expense_category(self):
        assert evaluate_condition(TRAVEL, {"expense_category_id": "travel"}).matched
        assert not evaluate_condition(TRAVEL, {"expense_category_id": "meals"}).matched


# =========================================================================
# StepApplicabilityResolver
# =========================================================================


class TestStepApplies:
    def test_unconditional_step_always_applies(self):
        assert step_applies(make_step(1, "Any"), {})
        assert step_applies(make_step(1, "Any", all_must_match=False), {})

    def test_and_needs_every_condition(self):
        step = make_step(1, "Travel mid-tier", MID_TIER, TRAVEL)

        assert step_applies(step, {"amount": 250, "expense_category_id": "travel"})
        assert not step_applies(step, {"amount": 250, "expense_category_id": "meals"})

    def test_or_with_one_match(self):
        step = make_step(1, "Travel or receipt", TRAVEL, ReceiptRequiredCondition(),
                         all_must_match=False)

        assert step_applies(step, {"expense_category_id": "meals", "receipt_url": "r.pdf"})
        assert step_applies(step, {"expense_category_id": "travel"})

    def test_or_with_no_match(self):
        step = make_step(1, "Travel or receipt", TRAVEL, ReceiptRequiredCondition(),
                         all_must_match=False)

        assert not step_applies(step, {"expense_category_id": "meals", "receipt_url": ""})
        assert not step_applies(step, {})

    def test_or_tolerates_an_unevaluable_condition(self):
        urgent = FormFieldCondition(
            source_field_name="urgent",
            operator=ConditionOperator.EQUALS,
            comparison_value="true",
            value_type=ValueType.BOOLEAN,
        )

        assert conditions_match(
            (urgent, BRANCH), {"urgent": "perhaps", "location_id": "loc-branch-7"},
            require_all=False,
        )


class TestSelectApplicableStep:
    def test_first_applicable_by_step_number(self):
        high = make_step(2, "High", AmountRangeCondition(min_amount=Decimal("500")))
        any_amount = make_step(3, "Fallback")
        mid = make_step(1, "Mid", MID_TIER)

        assert select_applicable_step([any_amount, high, mid], context={"amount": 300}) is mid
        assert select_applicable_step([any_amount, high, mid], context={"amount": 900}) is high

    def test_or_step_selected_on_one_match(self):
        strict = make_step(1, "Branch travel", BRANCH, TRAVEL)
        lenient = make_step(2, "Branch or travel", BRANCH, TRAVEL, all_must_match=False)
        context = {"location_id": "loc-hq", "expense_category_id": "travel"}

        assert select_applicable_step([strict, lenient], context=context) is lenient

    def test_nothing_applies(self):
        steps = [make_step(1, "Mid", MID_TIER), make_step(2, "Branch", BRANCH)]

        assert select_applicable_step(steps, context={"amount": 99}) is None

    def test_after_step_number(self):
        first = make_step(1, "First")
        second = make_step(2, "Second")

        assert select_applicable_step([first, second], context={}, after_step_number=1) is second
        assert select_applicable_step([first, second], context={}, after_step_number=2) is None
