"""
Definition Loader (``workflow_config.loader``).

Responsibility
--------------
Parses workflow definition payloads into ``WorkflowDefinition`` domain
objects.  Two payload shapes are accepted:

* **template-style** -- named steps with ``assigneeLogic``, ``formFields``,
  ``actions`` and ``transitions`` (camelCase keys, ``order`` numbering).
  Each action records a fixed verdict: its ``decision`` when given,
  otherwise REJECT for actions named or labelled "reject", APPROVE for
  the rest.
* **approval-style** -- numbered steps with ``conditions`` and approver
  ``actions`` (``approverRole`` / ``specificMemberId`` / ``approvalMode``).
  Each approver becomes a ``StepAction`` named ``approver_<n>``
  whose verdict the approver states with each decision.

Payloads come from Python dicts or YAML files (``yaml.safe_load``).
``definition_to_payload`` writes a definition back out in template style.

Architecture position
---------------------
**Config layer** -- depends on kernel domain types, the kernel exceptions
and ``workflow_config.validator``.  No database access.

Invariants enforced
-------------------
* Structural errors (missing keys, unknown enum values, bad numbers) are
  collected across the whole payload and raised together as one
  ``DefinitionValidationError`` whose messages carry the payload path.
* Parsed definitions are validated (``validate=True`` by default), so
  nothing invalid leaves the loader.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Structural or semantic problems  -> ``DefinitionValidationError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar
from uuid import UUID, uuid4

import yaml

from workflow_config.validator import ensure_valid
from workflow_engines.conditions import to_decimal
from workflow_kernel.domain.definition import (
    ActionType,
    ApprovalMode,
    AssigneeLogic,
    AssigneeType,
    AmountRangeCondition,
    Condition,
    ConditionOperator,
    ConditionType,
    ExpenseCategoryCondition,
    FormField,
    FormFieldCondition,
    FormFieldType,
    LocationCondition,
    MemberAssignee,
    ReceiptRequiredCondition,
    RoleAssignee,
    Step,
    StepAction,
    SubmitterAssignee,
    Transition,
    UnassignedAssignee,
    ValueType,
    WorkflowDefinition,
)
from workflow_kernel.domain.instance import Decision
from workflow_kernel.exceptions import DefinitionValidationError

E = TypeVar("E", bound=Enum)

TEMPLATE_STYLE = "template"
APPROVAL_STYLE = "approval"

# Action ``decision`` value that leaves the verdict to the actor.
ACTOR_CHOICE = "ACTOR_CHOICE"

# Form field types compared as plain text by FORM_FIELD_VALUE conditions.
_VALUE_TYPE_ALIASES: dict[str, ValueType] = {
    "TEXT": ValueType.TEXT,
    "TEXTAREA": ValueType.TEXT,
    "SELECT": ValueType.TEXT,
    "RADIO_GROUP": ValueType.TEXT,
    "FILE_UPLOAD": ValueType.TEXT,
    "NUMBER": ValueType.NUMBER,
    "DATE": ValueType.DATE,
    "BOOLEAN": ValueType.BOOLEAN,
    "CHECKBOX": ValueType.BOOLEAN,
}


def load_yaml_file(path: Path | str) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


class _Errors:
    """Collects structural problems with their payload paths."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def add(self, path: str, message: str) -> None:
        self.messages.append(f"{path}: {message}" if path else message)

    def raise_if_any(self) -> None:
        if self.messages:
            raise DefinitionValidationError(self.messages)


# =============================================================================
# Field helpers
# =============================================================================


def _required_str(data: Mapping[str, Any], key: str, path: str, errors: _Errors) -> str:
    value = data.get(key)
    if value is None or str(value).strip() == "":
        errors.add(f"{path}.{key}" if path else key, "required")
        return ""
    return str(value)


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or str(value).strip() == "":
        return None
    return str(value)


def _uuid(value: Any, path: str, errors: _Errors) -> UUID | None:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        errors.add(path, f"{value!r} is not a UUID")
        return None


def _enum(enum_cls: type[E], value: Any, default: E, path: str, errors: _Errors) -> E:
    if value is None:
        return default
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        errors.add(path, f"unknown value {value!r} (expected one of {allowed})")
        return default


def _decimal(value: Any, path: str, errors: _Errors) -> Decimal | None:
    if value is None:
        return None
    try:
        return to_decimal(value)
    except ValueError as exc:
        errors.add(path, str(exc))
        return None


def _int(value: Any, default: int, path: str, errors: _Errors) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        errors.add(path, f"{value!r} is not an integer")
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        errors.add(path, f"{value!r} is not an integer")
        return default


def _action_decision(
    data: Mapping[str, Any], name: str, label: str | None, path: str, errors: _Errors,
) -> Decision | None:
    """Explicit ``decision`` if given, otherwise REJECT for reject actions."""
    raw = data.get("decision")
    if raw is None:
        words = f"{name} {label or ''}".lower()
        return Decision.REJECT if "reject" in words else Decision.APPROVE
    value = str(raw).upper()
    if value == ACTOR_CHOICE:
        return None
    try:
        return Decision(value)
    except ValueError:
        errors.add(
            f"{path}.decision",
            f"unknown value {raw!r} (expected one of APPROVE, REJECT, {ACTOR_CHOICE})",
        )
        return Decision.APPROVE


def _list(data: Mapping[str, Any], key: str, path: str, errors: _Errors) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        errors.add(f"{path}.{key}", "must be a list")
        return []
    return value


def _mapping(value: Any, path: str, errors: _Errors) -> Mapping[str, Any] | None:
    if not isinstance(value, Mapping):
        errors.add(path, "must be a mapping")
        return None
    return value


# =============================================================================
# Conditions and assignees
# =============================================================================


def _parse_condition(data: Mapping[str, Any], path: str, errors: _Errors) -> Condition | None:
    raw_type = data.get("type", data.get("sourceType"))
    if raw_type is None:
        errors.add(f"{path}.type", "required")
        return None
    condition_type = _enum(ConditionType, raw_type, None, f"{path}.type", errors)
    if condition_type is None:
        return None

    if condition_type is ConditionType.AMOUNT_RANGE:
        return AmountRangeCondition(
            min_amount=_decimal(data.get("minAmount"), f"{path}.minAmount", errors),
            max_amount=_decimal(data.get("maxAmount"), f"{path}.maxAmount", errors),
        )
    if condition_type is ConditionType.LOCATION:
        return LocationCondition(location_id=_required_str(data, "locationId", path, errors))
    if condition_type is ConditionType.EXPENSE_CATEGORY:
        return ExpenseCategoryCondition(
            expense_category_id=_required_str(data, "expenseCategoryId", path, errors),
        )
    if condition_type is ConditionType.RECEIPT_REQUIRED:
        return ReceiptRequiredCondition()

    raw_value_type = str(data.get("valueType", "TEXT")).upper()
    value_type = _VALUE_TYPE_ALIASES.get(raw_value_type)
    if value_type is None:
        errors.add(f"{path}.valueType", f"unknown value {data.get('valueType')!r}")
        value_type = ValueType.TEXT
    comparison = data.get("comparisonValue")
    if comparison is None:
        errors.add(f"{path}.comparisonValue", "required")
        comparison = ""
    return FormFieldCondition(
        source_field_name=_required_str(data, "sourceFieldName", path, errors),
        operator=_enum(
            ConditionOperator, data.get("operator"), ConditionOperator.EQUALS,
            f"{path}.operator", errors,
        ),
        comparison_value=str(comparison).lower() if isinstance(comparison, bool) else str(comparison),
        value_type=value_type,
    )


def _parse_conditions(
    data: Mapping[str, Any],
    path: str,
    errors: _Errors,
) -> tuple[Condition, ...]:
    conditions: list[Condition] = []
    for i, raw in enumerate(_list(data, "conditions", path, errors)):
        item_path = f"{path}.conditions[{i}]"
        item = _mapping(raw, item_path, errors)
        if item is None:
            continue
        condition = _parse_condition(item, item_path, errors)
        if condition is not None:
            conditions.append(condition)
    return tuple(conditions)


def _parse_assignee_logic(data: Any, path: str, errors: _Errors) -> AssigneeLogic:
    if data is None:
        return UnassignedAssignee()
    logic = _mapping(data, path, errors)
    if logic is None:
        return UnassignedAssignee()
    assignee_type = _enum(
        AssigneeType, logic.get("assigneeType"), AssigneeType.UNASSIGNED,
        f"{path}.assigneeType", errors,
    )
    return _assignee(
        assignee_type,
        role=logic.get("specificRoleId", logic.get("specificRole")),
        member_id=logic.get("specificMemberId"),
        path=path,
        errors=errors,
    )


def _assignee(
    assignee_type: AssigneeType,
    *,
    role: Any,
    member_id: Any,
    path: str,
    errors: _Errors,
) -> AssigneeLogic:
    if assignee_type is AssigneeType.SUBMITTER:
        return SubmitterAssignee()
    if assignee_type is AssigneeType.SPECIFIC_ROLE:
        if role is None or str(role).strip() == "":
            errors.add(f"{path}.role", "required for SPECIFIC_ROLE")
            return UnassignedAssignee()
        return RoleAssignee(role=str(role))
    if assignee_type is AssigneeType.SPECIFIC_MEMBER:
        parsed = _uuid(member_id, f"{path}.specificMemberId", errors)
        if parsed is None:
            if member_id is None:
                errors.add(f"{path}.specificMemberId", "required for SPECIFIC_MEMBER")
            return UnassignedAssignee()
        return MemberAssignee(member_id=parsed)
    return UnassignedAssignee()


# =============================================================================
# Template-style payloads
# =============================================================================


def _parse_form_field(data: Mapping[str, Any], index: int, path: str, errors: _Errors) -> FormField:
    options: list[str] = []
    for j, option in enumerate(_list(data, "options", path, errors)):
        if isinstance(option, Mapping):
            value = option.get("value")
            if value is None:
                errors.add(f"{path}.options[{j}].value", "required")
                continue
            options.append(str(value))
        else:
            options.append(str(option))
    return FormField(
        field_name=_required_str(data, "fieldName", path, errors),
        label=_optional_str(data, "label") or str(data.get("fieldName", "")),
        field_type=_enum(
            FormFieldType, data.get("fieldType"), FormFieldType.TEXT,
            f"{path}.fieldType", errors,
        ),
        is_required=bool(data.get("isRequired", False)),
        order=_int(data.get("order"), index + 1, f"{path}.order", errors),
        options=tuple(options),
    )


def _parse_template_action(
    data: Mapping[str, Any],
    index: int,
    path: str,
    errors: _Errors,
) -> StepAction:
    name = _required_str(data, "name", path, errors)
    label = _optional_str(data, "label")
    assignee = None
    if data.get("assigneeLogic") is not None:
        assignee = _parse_assignee_logic(data["assigneeLogic"], f"{path}.assigneeLogic", errors)
    return StepAction(
        name=name,
        label=label or name,
        action_type=_enum(
            ActionType, data.get("actionType"), ActionType.PRIMARY,
            f"{path}.actionType", errors,
        ),
        order=_int(data.get("order"), index + 1, f"{path}.order", errors),
        assignee=assignee,
        approval_mode=_enum(
            ApprovalMode, data.get("approvalMode"), ApprovalMode.ANY_ONE,
            f"{path}.approvalMode", errors,
        ),
        decision=_action_decision(data, name, label, path, errors),
    )


def _parse_transition(data: Mapping[str, Any], path: str, errors: _Errors) -> Transition:
    return Transition(
        to_step_name=_optional_str(data, "toStepName"),
        action_name=_optional_str(data, "actionName"),
        conditions=_parse_conditions(data, path, errors),
        description=_optional_str(data, "description"),
    )


def _parse_template_step(
    data: Mapping[str, Any],
    index: int,
    path: str,
    errors: _Errors,
) -> Step:
    form_fields = []
    for i, raw in enumerate(_list(data, "formFields", path, errors)):
        item = _mapping(raw, f"{path}.formFields[{i}]", errors)
        if item is not None:
            form_fields.append(_parse_form_field(item, i, f"{path}.formFields[{i}]", errors))

    actions = []
    for i, raw in enumerate(_list(data, "actions", path, errors)):
        item = _mapping(raw, f"{path}.actions[{i}]", errors)
        if item is not None:
            actions.append(_parse_template_action(item, i, f"{path}.actions[{i}]", errors))

    transitions = []
    for i, raw in enumerate(_list(data, "transitions", path, errors)):
        item = _mapping(raw, f"{path}.transitions[{i}]", errors)
        if item is not None:
            transitions.append(_parse_transition(item, f"{path}.transitions[{i}]", errors))

    return Step(
        step_id=uuid4(),
        step_number=_int(data.get("order"), index + 1, f"{path}.order", errors),
        name=_required_str(data, "stepName", path, errors),
        description=_optional_str(data, "description"),
        all_conditions_must_match=bool(data.get("allConditionsMustMatch", True)),
        conditions=_parse_conditions(data, path, errors),
        assignee=_parse_assignee_logic(data.get("assigneeLogic"), f"{path}.assigneeLogic", errors),
        actions=tuple(sorted(actions, key=lambda a: a.order)),
        transitions=tuple(transitions),
        form_fields=tuple(sorted(form_fields, key=lambda f: f.order)),
    )


def _header(
    payload: Mapping[str, Any],
    organization_id: UUID | None,
    errors: _Errors,
) -> dict[str, Any]:
    name = payload.get("name", payload.get("workflowName"))
    if name is None or str(name).strip() == "":
        errors.add("name", "required")
        name = ""

    org = organization_id or _uuid(payload.get("organizationId"), "organizationId", errors)
    if org is None and "organizationId" not in payload:
        errors.add("organizationId", "required")

    definition_id = _uuid(payload.get("id"), "id", errors) or uuid4()
    return {
        "definition_id": definition_id,
        "organization_id": org,
        "name": str(name),
        "description": _optional_str(payload, "description"),
        "is_active": bool(payload.get("isActive", True)),
        "department_id": _uuid(payload.get("departmentId"), "departmentId", errors),
        "version": _int(payload.get("version"), 1, "version", errors),
        "allow_self_approval": bool(payload.get("allowSelfApproval", False)),
        "require_rejection_comment": bool(payload.get("requireRejectionComment", False)),
    }


def _steps_of(payload: Mapping[str, Any], errors: _Errors) -> list[Mapping[str, Any]]:
    steps = []
    for i, raw in enumerate(_list(payload, "steps", "", errors)):
        item = _mapping(raw, f"steps[{i}]", errors)
        if item is not None:
            steps.append(item)
    return steps


def parse_template_payload(
    payload: Mapping[str, Any],
    *,
    organization_id: UUID | None = None,
    validate: bool = True,
) -> WorkflowDefinition:
    """
    Parse a template-style payload.

    Args:
        payload: ``{name | workflowName, organizationId, initialStepName,
            steps: [{stepName, order, assigneeLogic, formFields, actions,
            transitions}]}``.
        organization_id: Overrides ``organizationId`` (seed files omit it).
        validate: Run the definition validator on the result.

    Raises:
        DefinitionValidationError: with every problem found.
    """
    errors = _Errors()
    header = _header(payload, organization_id, errors)
    steps = tuple(
        _parse_template_step(s, i, f"steps[{i}]", errors)
        for i, s in enumerate(_steps_of(payload, errors))
    )
    errors.raise_if_any()

    definition = WorkflowDefinition(
        steps=steps,
        trigger_type=_optional_str(payload, "triggerType"),
        initial_step_name=_optional_str(payload, "initialStepName"),
        **header,
    )
    if validate:
        ensure_valid(definition)
    return definition


# =============================================================================
# Approval-style payloads
# =============================================================================


def _parse_approver_action(
    data: Mapping[str, Any],
    index: int,
    path: str,
    errors: _Errors,
) -> StepAction:
    raw_type = str(data.get("type", "ROLE")).upper()
    if raw_type == "ROLE":
        raw_type = AssigneeType.SPECIFIC_ROLE.value
    elif raw_type == "MEMBER":
        raw_type = AssigneeType.SPECIFIC_MEMBER.value
    assignee_type = _enum(AssigneeType, raw_type, AssigneeType.SPECIFIC_ROLE, f"{path}.type", errors)
    assignee = _assignee(
        assignee_type,
        role=data.get("approverRole"),
        member_id=data.get("specificMemberId"),
        path=path,
        errors=errors,
    )
    number = index + 1
    return StepAction(
        name=f"approver_{number}",
        label=_optional_str(data, "label") or f"Approver {number}",
        action_type=ActionType.PRIMARY,
        order=number,
        assignee=assignee,
        approval_mode=_enum(
            ApprovalMode, data.get("approvalMode"), ApprovalMode.ANY_ONE,
            f"{path}.approvalMode", errors,
        ),
        decision=None,
    )


def _parse_approval_step(
    data: Mapping[str, Any],
    index: int,
    path: str,
    errors: _Errors,
) -> Step:
    actions = []
    for i, raw in enumerate(_list(data, "actions", path, errors)):
        item = _mapping(raw, f"{path}.actions[{i}]", errors)
        if item is not None:
            actions.append(_parse_approver_action(item, i, f"{path}.actions[{i}]", errors))

    return Step(
        step_id=uuid4(),
        step_number=_int(data.get("stepNumber"), index + 1, f"{path}.stepNumber", errors),
        name=_required_str(data, "name", path, errors),
        description=_optional_str(data, "description"),
        all_conditions_must_match=bool(data.get("allConditionsMustMatch", True)),
        conditions=_parse_conditions(data, path, errors),
        actions=tuple(actions),
    )


def parse_approval_payload(
    payload: Mapping[str, Any],
    *,
    organization_id: UUID | None = None,
    validate: bool = True,
) -> WorkflowDefinition:
    """
    Parse an approval-style payload.

    Args:
        payload: ``{name, organizationId, isActive, steps: [{stepNumber,
            name, allConditionsMustMatch, conditions, actions: [{type,
            approverRole?, specificMemberId?, approvalMode}]}]}``.
        organization_id: Overrides ``organizationId``.
        validate: Run the definition validator on the result.

    Raises:
        DefinitionValidationError: with every problem found.
    """
    errors = _Errors()
    header = _header(payload, organization_id, errors)
    steps = tuple(
        _parse_approval_step(s, i, f"steps[{i}]", errors)
        for i, s in enumerate(_steps_of(payload, errors))
    )
    errors.raise_if_any()

    definition = WorkflowDefinition(
        steps=steps,
        trigger_type=_optional_str(payload, "triggerType"),
        **header,
    )
    if validate:
        ensure_valid(definition)
    return definition


# =============================================================================
# Shape detection and files
# =============================================================================


def detect_payload_style(payload: Mapping[str, Any]) -> str:
    """Return TEMPLATE_STYLE or APPROVAL_STYLE.

    Raises:
        DefinitionValidationError: Neither shape is recognisable.
    """
    if "workflowName" in payload or "initialStepName" in payload:
        return TEMPLATE_STYLE
    steps = payload.get("steps")
    if isinstance(steps, list):
        for step in steps:
            if not isinstance(step, Mapping):
                continue
            if "stepName" in step or "transitions" in step or "assigneeLogic" in step:
                return TEMPLATE_STYLE
            if "stepNumber" in step:
                return APPROVAL_STYLE
    raise DefinitionValidationError([
        "payload is neither template-style (stepName/transitions) "
        "nor approval-style (stepNumber)",
    ])


def parse_definition_payload(
    payload: Mapping[str, Any],
    *,
    organization_id: UUID | None = None,
    validate: bool = True,
) -> WorkflowDefinition:
    """Parse either payload shape."""
    if not isinstance(payload, Mapping):
        raise DefinitionValidationError(["payload must be a mapping"])
    if detect_payload_style(payload) == TEMPLATE_STYLE:
        return parse_template_payload(
            payload, organization_id=organization_id, validate=validate,
        )
    return parse_approval_payload(
        payload, organization_id=organization_id, validate=validate,
    )


def load_definition_file(
    path: Path | str,
    *,
    organization_id: UUID | None = None,
    validate: bool = True,
) -> WorkflowDefinition:
    """Load a definition from a YAML file in either payload shape."""
    return parse_definition_payload(
        load_yaml_file(path), organization_id=organization_id, validate=validate,
    )


# =============================================================================
# Serialization
# =============================================================================


def _condition_payload(condition: Condition) -> dict[str, Any]:
    match condition:
        case AmountRangeCondition(min_amount=low, max_amount=high):
            data: dict[str, Any] = {"type": condition.condition_type.value}
            if low is not None:
                data["minAmount"] = str(low)
            if high is not None:
                data["maxAmount"] = str(high)
            return data
        case LocationCondition(location_id=location_id):
            return {"type": condition.condition_type.value, "locationId": location_id}
        case ExpenseCategoryCondition(expense_category_id=category_id):
            return {"type": condition.condition_type.value, "expenseCategoryId": category_id}
        case FormFieldCondition():
            return {
                "type": condition.condition_type.value,
                "sourceFieldName": condition.source_field_name,
                "operator": condition.operator.value,
                "comparisonValue": condition.comparison_value,
                "valueType": condition.value_type.value,
            }
        case ReceiptRequiredCondition():
            return {"type": condition.condition_type.value}
    raise TypeError(f"Unsupported condition: {condition!r}")


def _assignee_payload(assignee: AssigneeLogic) -> dict[str, Any]:
    match assignee:
        case RoleAssignee(role=role):
            return {"assigneeType": assignee.assignee_type.value, "specificRoleId": role}
        case MemberAssignee(member_id=member_id):
            return {"assigneeType": assignee.assignee_type.value, "specificMemberId": str(member_id)}
        case SubmitterAssignee() | UnassignedAssignee():
            return {"assigneeType": assignee.assignee_type.value}
    raise TypeError(f"Unsupported assignee logic: {assignee!r}")


def definition_to_payload(definition: WorkflowDefinition) -> dict[str, Any]:
    """Serialize a definition as a template-style payload.

    ``parse_template_payload`` reads the result back into an equal
    definition, apart from freshly generated step ids and
    ``lineage_id`` (which restarts at the definition id).
    """
    steps = []
    for step in definition.steps:
        step_data: dict[str, Any] = {
            "stepName": step.name,
            "order": step.step_number,
            "assigneeLogic": _assignee_payload(step.assignee),
            "allConditionsMustMatch": step.all_conditions_must_match,
        }
        if step.description is not None:
            step_data["description"] = step.description
        if step.conditions:
            step_data["conditions"] = [_condition_payload(c) for c in step.conditions]
        step_data["formFields"] = [
            {
                "fieldName": f.field_name,
                "label": f.label,
                "fieldType": f.field_type.value,
                "isRequired": f.is_required,
                "order": f.order,
                **({"options": list(f.options)} if f.options else {}),
            }
            for f in step.form_fields
        ]
        step_data["actions"] = [
            {
                "name": a.name,
                "label": a.label,
                "actionType": a.action_type.value,
                "order": a.order,
                "approvalMode": a.approval_mode.value,
                "decision": a.decision.value if a.decision is not None else ACTOR_CHOICE,
                **({"assigneeLogic": _assignee_payload(a.assignee)} if a.assignee is not None else {}),
            }
            for a in step.actions
        ]
        step_data["transitions"] = [
            {
                **({"toStepName": t.to_step_name} if t.to_step_name is not None else {}),
                **({"actionName": t.action_name} if t.action_name is not None else {}),
                **({"conditions": [_condition_payload(c) for c in t.conditions]} if t.conditions else {}),
                **({"description": t.description} if t.description is not None else {}),
            }
            for t in step.transitions
        ]
        steps.append(step_data)

    payload: dict[str, Any] = {
        "id": str(definition.definition_id),
        "workflowName": definition.name,
        "organizationId": str(definition.organization_id),
        "isActive": definition.is_active,
        "version": definition.version,
        "allowSelfApproval": definition.allow_self_approval,
        "requireRejectionComment": definition.require_rejection_comment,
        "steps": steps,
    }
    if definition.description is not None:
        payload["description"] = definition.description
    if definition.department_id is not None:
        payload["departmentId"] = str(definition.department_id)
    if definition.trigger_type is not None:
        payload["triggerType"] = definition.trigger_type
    if definition.initial_step_name is not None:
        payload["initialStepName"] = definition.initial_step_name
    return payload
