"""
Workflow definition domain types (``workflow_kernel.domain.definition``).

Responsibility
--------------
Pure value objects describing a reusable approval workflow: its steps,
the conditions gating each step, who may act on a step, the actions an
actor may take, and the guarded transitions between steps.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Conditions and assignee logic are closed unions of frozen dataclasses;
  evaluators dispatch with an exhaustive ``match``.
* ``WorkflowDefinition.steps`` is always ordered by ascending
  ``step_number``.
* A transition without ``to_step_name`` ends the workflow; a transition
  without ``action_name`` is automatic and matches any action.

Both definition payload shapes (template-style with transitions and
approval-style with per-action approvers) load into these same types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Union
from uuid import UUID

from workflow_kernel.domain.instance import Decision


# Request context keys read by the built-in condition kinds.
AMOUNT_KEY = "amount"
LOCATION_KEY = "location_id"
EXPENSE_CATEGORY_KEY = "expense_category_id"
RECEIPT_URL_KEY = "receipt_url"


class ConditionType(str, Enum):
    """Kinds of step / transition conditions."""

    AMOUNT_RANGE = "AMOUNT_RANGE"
    LOCATION = "LOCATION"
    EXPENSE_CATEGORY = "EXPENSE_CATEGORY"
    FORM_FIELD_VALUE = "FORM_FIELD_VALUE"
    RECEIPT_REQUIRED = "RECEIPT_REQUIRED"


class ConditionOperator(str, Enum):
    """Comparison operators for form-field conditions."""

    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    CONTAINS = "CONTAINS"


class ValueType(str, Enum):
    """How a form-field condition coerces both sides before comparing."""

    TEXT = "TEXT"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"


class FormFieldType(str, Enum):
    """Input types for step form fields."""

    TEXT = "TEXT"
    TEXTAREA = "TEXTAREA"
    NUMBER = "NUMBER"
    DATE = "DATE"
    SELECT = "SELECT"
    RADIO_GROUP = "RADIO_GROUP"
    CHECKBOX = "CHECKBOX"
    FILE_UPLOAD = "FILE_UPLOAD"


class AssigneeType(str, Enum):
    """Who may act on a step."""

    SUBMITTER = "SUBMITTER"
    SPECIFIC_ROLE = "SPECIFIC_ROLE"
    SPECIFIC_MEMBER = "SPECIFIC_MEMBER"
    UNASSIGNED = "UNASSIGNED"


class ApprovalMode(str, Enum):
    """How many qualifying decisions resolve a step."""

    ANY_ONE = "ANY_ONE"
    ALL = "ALL"


class ActionType(str, Enum):
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"


# =========================================================================
# Conditions
# =========================================================================


@dataclass(frozen=True)
class AmountRangeCondition:
    """Request amount within [min_amount, max_amount], both inclusive.

    ``None`` on either side means unbounded.
    """

    min_amount: Decimal | None = None
    max_amount: Decimal | None = None

    condition_type: ClassVar[ConditionType] = ConditionType.AMOUNT_RANGE


@dataclass(frozen=True)
class LocationCondition:
    location_id: str

    condition_type: ClassVar[ConditionType] = ConditionType.LOCATION


@dataclass(frozen=True)
class ExpenseCategoryCondition:
    expense_category_id: str

    condition_type: ClassVar[ConditionType] = ConditionType.EXPENSE_CATEGORY


@dataclass(frozen=True)
class FormFieldCondition:
    """Compare ``context[source_field_name]`` with ``comparison_value``."""

    source_field_name: str
    operator: ConditionOperator
    comparison_value: str
    value_type: ValueType = ValueType.TEXT

    condition_type: ClassVar[ConditionType] = ConditionType.FORM_FIELD_VALUE


@dataclass(frozen=True)
class ReceiptRequiredCondition:
    """Request carries a receipt attachment."""

    condition_type: ClassVar[ConditionType] = ConditionType.RECEIPT_REQUIRED


Condition = Union[
    AmountRangeCondition,
    LocationCondition,
    ExpenseCategoryCondition,
    FormFieldCondition,
    ReceiptRequiredCondition,
]


# =========================================================================
# Assignee logic
# =========================================================================


@dataclass(frozen=True)
class SubmitterAssignee:
    """The request's originator acts on the step."""

    assignee_type: ClassVar[AssigneeType] = AssigneeType.SUBMITTER


@dataclass(frozen=True)
class RoleAssignee:
    """Every active member holding ``role`` (name or role id)."""

    role: str

    assignee_type: ClassVar[AssigneeType] = AssigneeType.SPECIFIC_ROLE


@dataclass(frozen=True)
class MemberAssignee:
    member_id: UUID

    assignee_type: ClassVar[AssigneeType] = AssigneeType.SPECIFIC_MEMBER


@dataclass(frozen=True)
class UnassignedAssignee:
    """No actor; the step is satisfied as soon as it is entered."""

    assignee_type: ClassVar[AssigneeType] = AssigneeType.UNASSIGNED


AssigneeLogic = Union[
    SubmitterAssignee,
    RoleAssignee,
    MemberAssignee,
    UnassignedAssignee,
]


# =========================================================================
# Steps
# =========================================================================


@dataclass(frozen=True)
class FormField:
    field_name: str
    label: str
    field_type: FormFieldType = FormFieldType.TEXT
    is_required: bool = False
    order: int = 0
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class StepAction:
    """Something an actor can do on a step.

    ``assignee`` overrides the step's assignee for this action only;
    approval-style definitions put their approver rules here.

    ``decision`` is the verdict taking the action records, so a "reject"
    action always rejects.  ``None`` leaves the verdict to the actor, who
    must then state it (approval-style approver actions).
    """

    name: str
    label: str
    action_type: ActionType = ActionType.PRIMARY
    order: int = 0
    assignee: AssigneeLogic | None = None
    approval_mode: ApprovalMode = ApprovalMode.ANY_ONE
    decision: Decision | None = Decision.APPROVE

    @property
    def is_actor_choice(self) -> bool:
        return self.decision is None


@dataclass(frozen=True)
class Transition:
    """Guarded edge out of a step, taken in declaration order."""

    to_step_name: str | None = None
    action_name: str | None = None
    conditions: tuple[Condition, ...] = ()
    description: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.to_step_name is None

    @property
    def is_automatic(self) -> bool:
        return self.action_name is None

    def triggered_by(self, action_name: str | None) -> bool:
        return self.action_name is None or self.action_name == action_name


@dataclass(frozen=True)
class Step:
    step_id: UUID
    step_number: int
    name: str
    description: str | None = None
    all_conditions_must_match: bool = True
    conditions: tuple[Condition, ...] = ()
    assignee: AssigneeLogic = field(default_factory=UnassignedAssignee)
    actions: tuple[StepAction, ...] = ()
    transitions: tuple[Transition, ...] = ()
    form_fields: tuple[FormField, ...] = ()

    @property
    def is_unassigned(self) -> bool:
        """True when nobody ever acts here: the step auto-advances."""
        if not isinstance(self.assignee, UnassignedAssignee):
            return False
        return all(
            a.assignee is None or isinstance(a.assignee, UnassignedAssignee)
            for a in self.actions
        )

    def get_action(self, name: str) -> StepAction | None:
        for action in self.actions:
            if action.name == name:
                return action
        return None

    def assignee_for(self, action: StepAction) -> AssigneeLogic:
        return action.assignee if action.assignee is not None else self.assignee

    @property
    def required_field_names(self) -> tuple[str, ...]:
        return tuple(f.field_name for f in self.form_fields if f.is_required)


@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Reusable approval workflow template.

    Steps are kept sorted by ``step_number``.  Versions of the same
    definition share ``lineage_id``.
    """

    definition_id: UUID
    organization_id: UUID
    name: str
    steps: tuple[Step, ...]
    description: str | None = None
    is_active: bool = True
    department_id: UUID | None = None
    trigger_type: str | None = None
    initial_step_name: str | None = None
    version: int = 1
    lineage_id: UUID | None = None
    allow_self_approval: bool = False
    require_rejection_comment: bool = False

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.steps, key=lambda s: s.step_number))
        if ordered != self.steps:
            object.__setattr__(self, "steps", ordered)
        if self.lineage_id is None:
            object.__setattr__(self, "lineage_id", self.definition_id)

    def get_step(self, step_id: UUID) -> Step | None:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None

    def get_step_by_name(self, name: str) -> Step | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    @property
    def initial_step(self) -> Step | None:
        """The named initial step, if the definition names one."""
        if self.initial_step_name is None:
            return None
        return self.get_step_by_name(self.initial_step_name)
