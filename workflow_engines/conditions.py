"""
workflow_engines.conditions -- Condition evaluation and step applicability.

Responsibility:
    ConditionEvaluator: decide whether one condition holds for a request
    context.  StepApplicabilityResolver: combine a step's conditions with
    AND/OR semantics and pick the first applicable step in step order.

Architecture position:
    Engines -- pure functions, zero I/O.  Imports only from
    ``workflow_kernel.domain`` and the kernel logger.

Invariants enforced:
    - Evaluation never raises.  An unknown condition kind, a missing context
      field or a value that cannot be coerced makes the condition false
      and produces a diagnostic.
    - Amount bounds are inclusive on both ends; ``None`` means unbounded.
    - A step without conditions always applies (vacuous AND / OR alike).
    - Steps are considered in ascending ``step_number``.

Failure modes:
    - None raised.  Diagnostics are logged: missing fields at DEBUG,
      malformed values and unknown kinds at WARNING
      (``condition_evaluation_failed``).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from workflow_engines.tracer import traced_engine
from workflow_kernel.domain.definition import (
    AMOUNT_KEY,
    EXPENSE_CATEGORY_KEY,
    LOCATION_KEY,
    RECEIPT_URL_KEY,
    AmountRangeCondition,
    Condition,
    ConditionOperator,
    ExpenseCategoryCondition,
    FormFieldCondition,
    LocationCondition,
    ReceiptRequiredCondition,
    Step,
    ValueType,
)
from workflow_kernel.logging_config import get_logger

logger = get_logger("engines.conditions")

_TRUE_STRINGS = frozenset({"true", "yes", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "no", "0", "off"})


@dataclass(frozen=True)
class ConditionOutcome:
    """Result of evaluating one condition.

    ``diagnostic`` is set whenever the condition was false because it could
    not be evaluated, as opposed to evaluating cleanly to false.
    """

    matched: bool
    diagnostic: str | None = None
    missing_field: str | None = None


_MATCHED = ConditionOutcome(matched=True)
_NOT_MATCHED = ConditionOutcome(matched=False)


def _missing(field_name: str) -> ConditionOutcome:
    return ConditionOutcome(
        matched=False,
        diagnostic=f"context field '{field_name}' is missing",
        missing_field=field_name,
    )


def _malformed(message: str) -> ConditionOutcome:
    return ConditionOutcome(matched=False, diagnostic=message)


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


# =============================================================================
# Coercion
# =============================================================================


def to_decimal(value: Any) -> Decimal:
    """Coerce a context or comparison value to a finite Decimal.

    Raises:
        ValueError: bools, non-numeric strings, NaN and infinities.
    """
    if isinstance(value, bool):
        raise ValueError(f"boolean {value!r} is not a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"{value!r} is not a number") from exc
    if not result.is_finite():
        raise ValueError(f"{value!r} is not a finite number")
    return result


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"{value!r} is not a boolean")


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError as exc:
        raise ValueError(f"{value!r} is not an ISO date") from exc


def coerce_value(value: Any, value_type: ValueType) -> Any:
    """Coerce ``value`` per ``value_type``.

    Raises:
        ValueError: the value cannot be represented as ``value_type``.
    """
    if value_type is ValueType.NUMBER:
        return to_decimal(value)
    if value_type is ValueType.BOOLEAN:
        return _to_bool(value)
    if value_type is ValueType.DATE:
        return _to_date(value)
    return str(value)


# =============================================================================
# ConditionEvaluator
# =============================================================================


def _evaluate_amount_range(
    condition: AmountRangeCondition,
    context: Mapping[str, Any],
) -> ConditionOutcome:
    raw = context.get(AMOUNT_KEY)
    if _is_absent(raw):
        return _missing(AMOUNT_KEY)
    try:
        amount = to_decimal(raw)
    except ValueError as exc:
        return _malformed(f"amount: {exc}")
    if condition.min_amount is not None and amount < condition.min_amount:
        return _NOT_MATCHED
    if condition.max_amount is not None and amount > condition.max_amount:
        return _NOT_MATCHED
    return _MATCHED


def _evaluate_id_equals(
    key: str,
    expected: str,
    context: Mapping[str, Any],
) -> ConditionOutcome:
    actual = context.get(key)
    if _is_absent(actual):
        return _missing(key)
    return _MATCHED if str(actual) == str(expected) else _NOT_MATCHED


def _evaluate_contains(actual: Any, condition: FormFieldCondition) -> ConditionOutcome:
    if isinstance(actual, (list, tuple, set, frozenset)):
        try:
            expected = coerce_value(condition.comparison_value, condition.value_type)
            members = {coerce_value(item, condition.value_type) for item in actual}
        except ValueError as exc:
            return _malformed(f"{condition.source_field_name}: {exc}")
        return _MATCHED if expected in members else _NOT_MATCHED
    if condition.value_type is not ValueType.TEXT:
        return _malformed(
            f"CONTAINS needs TEXT or a list value, got {condition.value_type.value}"
        )
    return _MATCHED if condition.comparison_value in str(actual) else _NOT_MATCHED


def _evaluate_form_field(
    condition: FormFieldCondition,
    context: Mapping[str, Any],
) -> ConditionOutcome:
    actual = context.get(condition.source_field_name)
    if actual is None:
        return _missing(condition.source_field_name)

    op = condition.operator
    if op is ConditionOperator.CONTAINS:
        return _evaluate_contains(actual, condition)

    try:
        left = coerce_value(actual, condition.value_type)
        right = coerce_value(condition.comparison_value, condition.value_type)
    except ValueError as exc:
        return _malformed(f"{condition.source_field_name}: {exc}")

    if op is ConditionOperator.EQUALS:
        return _MATCHED if left == right else _NOT_MATCHED
    if op is ConditionOperator.NOT_EQUALS:
        return _MATCHED if left != right else _NOT_MATCHED

    if condition.value_type is ValueType.BOOLEAN:
        return _malformed(f"{op.value} is not defined for BOOLEAN values")
    if op is ConditionOperator.GREATER_THAN:
        matched = left > right
    elif op is ConditionOperator.LESS_THAN:
        matched = left < right
    elif op is ConditionOperator.GREATER_THAN_OR_EQUAL:
        matched = left >= right
    elif op is ConditionOperator.LESS_THAN_OR_EQUAL:
        matched = left <= right
    else:
        return _malformed(f"unsupported operator {op!r}")
    return _MATCHED if matched else _NOT_MATCHED


def evaluate_condition(
    condition: Condition,
    context: Mapping[str, Any],
) -> ConditionOutcome:
    """Evaluate a single condition against a request context. Never raises."""
    match condition:
        case AmountRangeCondition():
            return _evaluate_amount_range(condition, context)
        case LocationCondition(location_id=location_id):
            return _evaluate_id_equals(LOCATION_KEY, location_id, context)
        case ExpenseCategoryCondition(expense_category_id=category_id):
            return _evaluate_id_equals(EXPENSE_CATEGORY_KEY, category_id, context)
        case FormFieldCondition():
            return _evaluate_form_field(condition, context)
        case ReceiptRequiredCondition():
            return _NOT_MATCHED if _is_absent(context.get(RECEIPT_URL_KEY)) else _MATCHED
    return _malformed(f"unknown condition kind {type(condition).__name__}")


def condition_matches(condition: Condition, context: Mapping[str, Any]) -> bool:
    """Boolean form of evaluate_condition that logs any diagnostic."""
    outcome = evaluate_condition(condition, context)
    if outcome.diagnostic is not None:
        condition_type = getattr(condition, "condition_type", None)
        extra = {
            "condition_type": condition_type.value if condition_type else None,
            "diagnostic": outcome.diagnostic,
        }
        if outcome.missing_field is not None:
            logger.debug("condition_field_missing", extra=extra)
        else:
            logger.warning("condition_evaluation_failed", extra=extra)
    return outcome.matched


def conditions_match(
    conditions: Iterable[Condition],
    context: Mapping[str, Any],
    require_all: bool = True,
) -> bool:
    """Combine conditions with AND (require_all) or OR. Empty -> True."""
    conditions = tuple(conditions)
    if not conditions:
        return True
    if require_all:
        return all(condition_matches(c, context) for c in conditions)
    return any(condition_matches(c, context) for c in conditions)


# =============================================================================
# StepApplicabilityResolver
# =============================================================================


def step_applies(step: Step, context: Mapping[str, Any]) -> bool:
    """True if the step's conditions hold under its AND/OR combinator."""
    return conditions_match(
        step.conditions, context, require_all=step.all_conditions_must_match,
    )


@traced_engine(
    "step_applicability", "1.0",
    fingerprint_fields=("context", "after_step_number"),
)
def select_applicable_step(
    steps: Iterable[Step],
    *,
    context: Mapping[str, Any],
    after_step_number: int | None = None,
) -> Step | None:
    """First applicable step by ascending step_number.

    Args:
        steps: Candidate steps, any order.
        context: Request attributes.
        after_step_number: Only consider steps strictly after this number.

    Returns:
        The step, or None when nothing applies.
    """
    for step in sorted(steps, key=lambda s: s.step_number):
        if after_step_number is not None and step.step_number <= after_step_number:
            continue
        if step_applies(step, context):
            return step
    return None
