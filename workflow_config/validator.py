"""
Definition Validator (``workflow_config.validator``).

Responsibility
--------------
Validates a ``WorkflowDefinition`` before it is persisted, collecting
every structural problem instead of stopping at the first.

Architecture position
---------------------
**Config layer** -- build-time validation.  Called by the loader after
parsing and injected into ``DefinitionService`` so that no invalid
definition is ever written.

Invariants enforced
-------------------
* Step numbers are positive and unique; step names are unique.
* Action names are unique within a step; form field names likewise.
* Transition ``action_name`` references an action of its step and
  ``to_step_name`` references a declared step (or is omitted).
* ``initial_step_name`` references a declared step.
* Amount ranges have ``min_amount <= max_amount``.
* Form-field conditions name a field and carry a comparison value of
  their declared value type.
* A step with an assignee has at least one action.

Failure modes
-------------
* Errors (``DefinitionValidationResult.errors``)  -> the definition MUST
  NOT be persisted; ``ensure_valid`` raises ``DefinitionValidationError``.
* Warnings (``DefinitionValidationResult.warnings``)  -> shadowed
  transitions and transitions an UNASSIGNED step can never take.
  ``ensure_valid(strict=True)`` raises ``AmbiguousTransitionError`` for
  shadowed transitions.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from workflow_engines.conditions import coerce_value
from workflow_engines.transitions import find_ambiguous_transitions
from workflow_kernel.domain.definition import (
    AmountRangeCondition,
    Condition,
    ExpenseCategoryCondition,
    FormFieldCondition,
    FormFieldType,
    LocationCondition,
    Step,
    UnassignedAssignee,
    WorkflowDefinition,
)
from workflow_kernel.exceptions import AmbiguousTransitionError, DefinitionValidationError
from workflow_kernel.logging_config import get_logger

logger = get_logger("config.validator")

_CHOICE_FIELD_TYPES = frozenset({FormFieldType.SELECT, FormFieldType.RADIO_GROUP})


@dataclass
class DefinitionValidationResult:
    """
    Result of definition validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block persistence but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_definition(definition: WorkflowDefinition) -> DefinitionValidationResult:
    """
    Validate a definition.

    Postconditions:
        - Returns a ``DefinitionValidationResult`` with errors and warnings.
        - A definition with errors MUST NOT be persisted.
    """
    result = DefinitionValidationResult()

    if not definition.name.strip():
        result.add_error("Workflow name is required")
    if not definition.steps:
        result.add_error("Workflow must have at least one step")

    _validate_step_identity(definition, result)
    _validate_initial_step(definition, result)
    step_names = {s.name for s in definition.steps}
    for step in definition.steps:
        _validate_actions(step, result)
        _validate_form_fields(step, result)
        _validate_transitions(step, step_names, result)
        for condition in step.conditions:
            _validate_condition(condition, f"Step '{step.name}'", result)
        _warn_ambiguous_transitions(step, result)

    return result


def _validate_step_identity(
    definition: WorkflowDefinition, result: DefinitionValidationResult
) -> None:
    """Check step numbers and names."""
    for step in definition.steps:
        if step.step_number <= 0:
            result.add_error(
                f"Step '{step.name}' has step number {step.step_number}; must be positive"
            )
        if not step.name.strip():
            result.add_error(f"Step #{step.step_number} has no name")

    numbers = Counter(s.step_number for s in definition.steps)
    for number, count in sorted(numbers.items()):
        if count > 1:
            result.add_error(f"Duplicate step number: {number} appears {count} times")

    names = Counter(s.name for s in definition.steps)
    for name, count in sorted(names.items()):
        if count > 1:
            result.add_error(f"Duplicate step name: '{name}' appears {count} times")


def _validate_initial_step(
    definition: WorkflowDefinition, result: DefinitionValidationResult
) -> None:
    if definition.initial_step_name is None:
        return
    if definition.get_step_by_name(definition.initial_step_name) is None:
        result.add_error(
            f"Initial step '{definition.initial_step_name}' is not a declared step"
        )


def _validate_actions(step: Step, result: DefinitionValidationResult) -> None:
    names = Counter(a.name for a in step.actions)
    for name, count in sorted(names.items()):
        if not name.strip():
            result.add_error(f"Step '{step.name}' has an action without a name")
        elif count > 1:
            result.add_error(
                f"Step '{step.name}': duplicate action name '{name}' appears {count} times"
            )

    if not step.actions and not isinstance(step.assignee, UnassignedAssignee):
        result.add_error(
            f"Step '{step.name}' is assigned to "
            f"{step.assignee.assignee_type.value} but has no actions"
        )


def _validate_form_fields(step: Step, result: DefinitionValidationResult) -> None:
    names = Counter(f.field_name for f in step.form_fields)
    for name, count in sorted(names.items()):
        if not name.strip():
            result.add_error(f"Step '{step.name}' has a form field without a name")
        elif count > 1:
            result.add_error(
                f"Step '{step.name}': duplicate form field '{name}' appears {count} times"
            )
    for form_field in step.form_fields:
        if form_field.field_type in _CHOICE_FIELD_TYPES and not form_field.options:
            result.add_error(
                f"Step '{step.name}': form field '{form_field.field_name}' "
                f"is {form_field.field_type.value} but has no options"
            )


def _validate_transitions(
    step: Step,
    step_names: set[str],
    result: DefinitionValidationResult,
) -> None:
    action_names = {a.name for a in step.actions}
    for i, transition in enumerate(step.transitions):
        where = f"Step '{step.name}' transition #{i + 1}"
        if transition.action_name is not None and transition.action_name not in action_names:
            result.add_error(
                f"{where} references undeclared action '{transition.action_name}'"
            )
        if transition.to_step_name is not None and transition.to_step_name not in step_names:
            result.add_error(
                f"{where} targets undeclared step '{transition.to_step_name}'"
            )
        if step.is_unassigned and transition.action_name is not None:
            result.add_warning(
                f"{where} requires action '{transition.action_name}', but the step "
                f"is UNASSIGNED and only takes automatic transitions"
            )
        for condition in transition.conditions:
            _validate_condition(condition, where, result)


def _validate_condition(
    condition: Condition,
    where: str,
    result: DefinitionValidationResult,
) -> None:
    match condition:
        case AmountRangeCondition(min_amount=low, max_amount=high):
            if low is not None and high is not None and low > high:
                result.add_error(
                    f"{where}: amount range minimum {low} exceeds maximum {high}"
                )
        case LocationCondition(location_id=location_id):
            if not location_id.strip():
                result.add_error(f"{where}: LOCATION condition needs a location id")
        case ExpenseCategoryCondition(expense_category_id=category_id):
            if not category_id.strip():
                result.add_error(
                    f"{where}: EXPENSE_CATEGORY condition needs a category id"
                )
        case FormFieldCondition():
            if not condition.source_field_name.strip():
                result.add_error(f"{where}: FORM_FIELD_VALUE condition needs a field name")
            try:
                coerce_value(condition.comparison_value, condition.value_type)
            except ValueError as exc:
                result.add_error(
                    f"{where}: comparison value for '{condition.source_field_name}' "
                    f"is not {condition.value_type.value}: {exc}"
                )


def _warn_ambiguous_transitions(step: Step, result: DefinitionValidationResult) -> None:
    for finding in find_ambiguous_transitions(step):
        result.add_warning(finding.message)


def ensure_valid(definition: WorkflowDefinition, strict: bool = False) -> DefinitionValidationResult:
    """
    Validate and raise on errors.

    Args:
        definition: The definition to check.
        strict: Also reject shadowed (ambiguous) transitions.

    Raises:
        DefinitionValidationError: The definition has errors.
        AmbiguousTransitionError: ``strict`` and a transition is shadowed.
    """
    result = validate_definition(definition)
    if not result.is_valid:
        logger.warning(
            "definition_invalid",
            extra={
                "workflow_name": definition.name,
                "error_count": len(result.errors),
                "errors": result.errors,
            },
        )
        raise DefinitionValidationError(result.errors)

    for warning in result.warnings:
        logger.warning(
            "definition_warning",
            extra={"workflow_name": definition.name, "warning": warning},
        )

    if strict:
        for step in definition.steps:
            findings = find_ambiguous_transitions(step)
            if findings:
                raise AmbiguousTransitionError(
                    step.name, findings[0].action_name, [f.message for f in findings],
                )
    return result
