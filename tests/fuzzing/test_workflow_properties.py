"""
Property-based tests for the pure workflow engines.

Properties:
- Condition evaluation never raises, whatever the context holds, and a
  diagnostic always means "not matched"
- EQUALS and NOT_EQUALS are complementary whenever both evaluate cleanly
- Amount ranges are inclusive on both bounds
- Aggregation: any counted rejection rejects, decisions by non-approvers
  never change the outcome, ALL approves only once every approver has
"""

from decimal import Decimal
from uuid import UUID, uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from workflow_engines.aggregation import aggregate
from workflow_engines.conditions import evaluate_condition
from workflow_kernel.domain.definition import (
    AMOUNT_KEY,
    AmountRangeCondition,
    ApprovalMode,
    Condition,
    ConditionOperator,
    ExpenseCategoryCondition,
    FormFieldCondition,
    LocationCondition,
    ReceiptRequiredCondition,
    ValueType,
)
from workflow_kernel.domain.instance import Decision, StepDecision, StepOutcome

FIELD = "field"
STEP_ID = uuid4()
INSTANCE_ID = uuid4()

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

amounts = st.decimals(
    min_value=Decimal("-1000000"), max_value=Decimal("1000000"),
    allow_nan=False, allow_infinity=False, places=2,
)

scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.text(max_size=12),
    st.decimals(allow_nan=True, allow_infinity=True),
    st.dates(),
    st.floats(),
)

context_values = st.one_of(scalars, st.lists(scalars, max_size=4))

form_field_conditions = st.builds(
    FormFieldCondition,
    source_field_name=st.just(FIELD),
    operator=st.sampled_from(list(ConditionOperator)),
    comparison_value=st.text(max_size=12),
    value_type=st.sampled_from(list(ValueType)),
)

conditions = st.one_of(
    form_field_conditions,
    st.builds(
        AmountRangeCondition,
        min_amount=st.one_of(st.none(), amounts),
        max_amount=st.one_of(st.none(), amounts),
    ),
    st.builds(LocationCondition, location_id=st.text(min_size=1, max_size=8)),
    st.builds(ExpenseCategoryCondition, expense_category_id=st.text(min_size=1, max_size=8)),
    st.builds(ReceiptRequiredCondition),
)

contexts = st.fixed_dictionaries(
    {},
    optional={
        FIELD: context_values,
        AMOUNT_KEY: context_values,
        "location_id": context_values,
        "expense_category_id": context_values,
        "receipt_url": context_values,
    },
)


def actors(n: int) -> list[UUID]:
    return [uuid4() for _ in range(n)]


def decision(actor_id: UUID, verdict: Decision) -> StepDecision:
    return StepDecision(
        decision_id=uuid4(),
        instance_id=INSTANCE_ID,
        step_id=STEP_ID,
        step_visit=1,
        actor_id=actor_id,
        action_name="approve",
        decision=verdict,
    )


# ---------------------------------------------------------------------------
# Condition evaluation
# ---------------------------------------------------------------------------


class TestConditionProperties:
    @given(condition=conditions, context=contexts)
    @settings(max_examples=300)
    def test_evaluation_never_raises(self, condition: Condition, context: dict):
        """Any condition against any context yields an outcome."""
        outcome = evaluate_condition(condition, context)
        if outcome.diagnostic is not None:
            assert outcome.matched is False

    @given(
        value=context_values,
        comparison=st.text(max_size=12),
        value_type=st.sampled_from(list(ValueType)),
    )
    def test_equals_and_not_equals_are_complementary(self, value, comparison, value_type):
        """When both sides coerce, exactly one of EQUALS and NOT_EQUALS holds."""
        context = {FIELD: value}
        equals = evaluate_condition(
            FormFieldCondition(FIELD, ConditionOperator.EQUALS, comparison, value_type), context,
        )
        not_equals = evaluate_condition(
            FormFieldCondition(FIELD, ConditionOperator.NOT_EQUALS, comparison, value_type), context,
        )
        if equals.diagnostic is None and not_equals.diagnostic is None:
            assert equals.matched != not_equals.matched

    @given(amount=amounts, low=amounts, high=amounts)
    def test_amount_range_is_inclusive(self, amount, low, high):
        """A range matches exactly the amounts between its bounds."""
        condition = AmountRangeCondition(min_amount=low, max_amount=high)
        outcome = evaluate_condition(condition, {AMOUNT_KEY: str(amount)})
        assert outcome.matched == (low <= amount <= high)

    @given(bound=amounts)
    def test_bounds_themselves_match(self, bound):
        context = {AMOUNT_KEY: bound}
        assert evaluate_condition(AmountRangeCondition(min_amount=bound), context).matched
        assert evaluate_condition(AmountRangeCondition(max_amount=bound), context).matched


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class TestAggregationProperties:
    @given(
        mode=st.sampled_from(list(ApprovalMode)),
        approver_count=st.integers(min_value=1, max_value=5),
        verdicts=st.lists(st.sampled_from(list(Decision)), min_size=1, max_size=5),
    )
    def test_any_counted_rejection_rejects(self, mode, approver_count, verdicts):
        approvers = actors(approver_count)
        decisions = [
            decision(approvers[i % approver_count], verdict)
            for i, verdict in enumerate(verdicts)
        ]

        outcome = aggregate(mode=mode, approvers=frozenset(approvers), decisions=decisions)

        if Decision.REJECT in verdicts:
            assert outcome is StepOutcome.REJECTED
        else:
            assert outcome is not StepOutcome.REJECTED

    @given(
        mode=st.sampled_from(list(ApprovalMode)),
        approver_count=st.integers(min_value=0, max_value=4),
        approving=st.integers(min_value=0, max_value=4),
        outsider_verdicts=st.lists(st.sampled_from(list(Decision)), max_size=4),
    )
    def test_outsiders_are_ignored(self, mode, approver_count, approving, outsider_verdicts):
        approvers = actors(approver_count)
        counted = [decision(a, Decision.APPROVE) for a in approvers[:approving]]
        outsiders = [decision(uuid4(), v) for v in outsider_verdicts]

        baseline = aggregate(mode=mode, approvers=frozenset(approvers), decisions=counted)
        with_outsiders = aggregate(
            mode=mode, approvers=frozenset(approvers), decisions=outsiders + counted,
        )

        assert with_outsiders is baseline

    @given(
        approver_count=st.integers(min_value=0, max_value=5),
        approving=st.integers(min_value=0, max_value=5),
    )
    def test_all_mode_needs_every_approver(self, approver_count, approving):
        approvers = actors(approver_count)
        decisions = [decision(a, Decision.APPROVE) for a in approvers[:approving]]

        outcome = aggregate(
            mode=ApprovalMode.ALL, approvers=frozenset(approvers), decisions=decisions,
        )

        if approver_count and approving >= approver_count:
            assert outcome is StepOutcome.APPROVED
        else:
            assert outcome is StepOutcome.PENDING
