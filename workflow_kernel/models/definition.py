"""
Module: workflow_kernel.models.definition
Responsibility: ORM persistence for workflow definitions and everything
    they own: steps, conditions, actions, transitions and form fields, plus
    the per-organization active-definition pointer.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Ownership: a definition exclusively owns its steps; a step owns its
      conditions, actions, transitions and form fields; a transition owns
      its guard conditions.  Every owning relationship cascades
      ``all, delete-orphan`` so deleting the definition row is the single
      intent that removes the whole tree in one flush.
    - Step numbers and step names are unique within a definition.
    - Action names are unique within a step.
    - A condition row belongs to exactly one of a step or a transition.
    - Declaration order of transitions and conditions is preserved through
      ``position`` columns.

Failure modes:
    - IntegrityError on duplicate step number/name or action name.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workflow_kernel.db.base import Base, UUIDString
from workflow_kernel.domain.definition import (
    ActionType,
    AmountRangeCondition,
    ApprovalMode,
    AssigneeLogic,
    AssigneeType,
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

_CASCADE = "all, delete-orphan"


# =============================================================================
# Column <-> domain helpers for the closed unions
# =============================================================================


def _assignee_columns(
    assignee: AssigneeLogic | None,
) -> tuple[str | None, str | None, UUID | None]:
    match assignee:
        case None:
            return None, None, None
        case RoleAssignee(role=role):
            return AssigneeType.SPECIFIC_ROLE.value, role, None
        case MemberAssignee(member_id=member_id):
            return AssigneeType.SPECIFIC_MEMBER.value, None, member_id
        case SubmitterAssignee() | UnassignedAssignee():
            return assignee.assignee_type.value, None, None
    raise TypeError(f"Unsupported assignee logic: {assignee!r}")


def _assignee_from_columns(
    assignee_type: str | None,
    role: str | None,
    member_id: UUID | None,
) -> AssigneeLogic | None:
    if assignee_type is None:
        return None
    kind = AssigneeType(assignee_type)
    if kind is AssigneeType.SPECIFIC_ROLE:
        return RoleAssignee(role=role or "")
    if kind is AssigneeType.SPECIFIC_MEMBER:
        return MemberAssignee(member_id=member_id)
    if kind is AssigneeType.SUBMITTER:
        return SubmitterAssignee()
    return UnassignedAssignee()


# =============================================================================
# Definition
# =============================================================================


class WorkflowDefinitionModel(Base):
    """Persistent workflow definition (one version of a lineage)."""

    __tablename__ = "workflow_definitions"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "name", "version",
            name="uq_workflow_definitions_org_name_version",
        ),
        Index("ix_workflow_definitions_org", "organization_id", "is_active"),
        Index("ix_workflow_definitions_lineage", "lineage_id", "version"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    department_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trigger_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    initial_step_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    lineage_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    allow_self_approval: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    require_rejection_comment: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    steps: Mapped[list["WorkflowStepModel"]] = relationship(
        back_populates="definition",
        cascade=_CASCADE,
        order_by="WorkflowStepModel.step_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowDefinition {self.id} {self.name!r} "
            f"v{self.version} active={self.is_active}>"
        )

    def to_dto(self) -> WorkflowDefinition:
        """Convert ORM model to frozen domain definition."""
        return WorkflowDefinition(
            definition_id=self.id,
            organization_id=self.organization_id,
            name=self.name,
            steps=tuple(s.to_dto() for s in self.steps),
            description=self.description,
            is_active=self.is_active,
            department_id=self.department_id,
            trigger_type=self.trigger_type,
            initial_step_name=self.initial_step_name,
            version=self.version,
            lineage_id=self.lineage_id,
            allow_self_approval=self.allow_self_approval,
            require_rejection_comment=self.require_rejection_comment,
        )

    @classmethod
    def from_dto(
        cls,
        dto: WorkflowDefinition,
        created_at: datetime | None = None,
    ) -> WorkflowDefinitionModel:
        """Create ORM model (with its whole step tree) from a domain definition."""
        return cls(
            id=dto.definition_id,
            organization_id=dto.organization_id,
            department_id=dto.department_id,
            name=dto.name,
            description=dto.description,
            trigger_type=dto.trigger_type,
            initial_step_name=dto.initial_step_name,
            is_active=dto.is_active,
            version=dto.version,
            lineage_id=dto.lineage_id,
            allow_self_approval=dto.allow_self_approval,
            require_rejection_comment=dto.require_rejection_comment,
            created_at=created_at,
            steps=[WorkflowStepModel.from_dto(s) for s in dto.steps],
        )


# =============================================================================
# Step
# =============================================================================


class WorkflowStepModel(Base):
    """Persistent step of a workflow definition."""

    __tablename__ = "workflow_steps"

    __table_args__ = (
        UniqueConstraint(
            "definition_id", "step_number",
            name="uq_workflow_steps_number",
        ),
        UniqueConstraint(
            "definition_id", "name",
            name="uq_workflow_steps_name",
        ),
        CheckConstraint("step_number > 0", name="ck_workflow_steps_positive_number"),
    )

    definition_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_definitions.id", ondelete="CASCADE"),
        nullable=False,
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    all_conditions_must_match: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    assignee_type: Mapped[str] = mapped_column(String(30), nullable=False)
    assignee_role: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assignee_member_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )

    definition: Mapped["WorkflowDefinitionModel"] = relationship(
        back_populates="steps",
    )
    conditions: Mapped[list["WorkflowConditionModel"]] = relationship(
        back_populates="step",
        cascade=_CASCADE,
        order_by="WorkflowConditionModel.position",
        foreign_keys="WorkflowConditionModel.step_id",
        lazy="selectin",
    )
    actions: Mapped[list["StepActionModel"]] = relationship(
        back_populates="step",
        cascade=_CASCADE,
        order_by="StepActionModel.sort_order",
        lazy="selectin",
    )
    transitions: Mapped[list["StepTransitionModel"]] = relationship(
        back_populates="step",
        cascade=_CASCADE,
        order_by="StepTransitionModel.position",
        lazy="selectin",
    )
    form_fields: Mapped[list["FormFieldModel"]] = relationship(
        back_populates="step",
        cascade=_CASCADE,
        order_by="FormFieldModel.sort_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkflowStep {self.step_number} {self.name!r}>"

    def to_dto(self) -> Step:
        assignee = _assignee_from_columns(
            self.assignee_type, self.assignee_role, self.assignee_member_id,
        )
        return Step(
            step_id=self.id,
            step_number=self.step_number,
            name=self.name,
            description=self.description,
            all_conditions_must_match=self.all_conditions_must_match,
            conditions=tuple(c.to_dto() for c in self.conditions),
            assignee=assignee if assignee is not None else UnassignedAssignee(),
            actions=tuple(a.to_dto() for a in self.actions),
            transitions=tuple(t.to_dto() for t in self.transitions),
            form_fields=tuple(f.to_dto() for f in self.form_fields),
        )

    @classmethod
    def from_dto(cls, dto: Step) -> WorkflowStepModel:
        assignee_type, role, member_id = _assignee_columns(dto.assignee)
        return cls(
            id=dto.step_id,
            step_number=dto.step_number,
            name=dto.name,
            description=dto.description,
            all_conditions_must_match=dto.all_conditions_must_match,
            assignee_type=assignee_type,
            assignee_role=role,
            assignee_member_id=member_id,
            conditions=[
                WorkflowConditionModel.from_dto(c, position)
                for position, c in enumerate(dto.conditions)
            ],
            actions=[StepActionModel.from_dto(a) for a in dto.actions],
            transitions=[
                StepTransitionModel.from_dto(t, position)
                for position, t in enumerate(dto.transitions)
            ],
            form_fields=[FormFieldModel.from_dto(f) for f in dto.form_fields],
        )


# =============================================================================
# Condition (owned by a step or by a transition)
# =============================================================================


class WorkflowConditionModel(Base):
    """Persistent condition row; columns used depend on ``condition_type``."""

    __tablename__ = "workflow_conditions"

    __table_args__ = (
        CheckConstraint(
            "(step_id IS NULL) <> (transition_id IS NULL)",
            name="ck_workflow_conditions_single_owner",
        ),
        CheckConstraint(
            "condition_type IN ('AMOUNT_RANGE', 'LOCATION', 'EXPENSE_CATEGORY', "
            "'FORM_FIELD_VALUE', 'RECEIPT_REQUIRED')",
            name="ck_workflow_conditions_type",
        ),
        Index("ix_workflow_conditions_step", "step_id"),
        Index("ix_workflow_conditions_transition", "transition_id"),
    )

    step_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_steps.id", ondelete="CASCADE"),
        nullable=True,
    )
    transition_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_step_transitions.id", ondelete="CASCADE"),
        nullable=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    condition_type: Mapped[str] = mapped_column(String(30), nullable=False)
    min_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    location_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expense_category_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    source_field_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    operator: Mapped[str | None] = mapped_column(String(30), nullable=True)
    comparison_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    value_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    step: Mapped["WorkflowStepModel | None"] = relationship(
        back_populates="conditions",
        foreign_keys=[step_id],
    )
    transition: Mapped["StepTransitionModel | None"] = relationship(
        back_populates="conditions",
        foreign_keys=[transition_id],
    )

    def to_dto(self) -> Condition:
        kind = ConditionType(self.condition_type)
        if kind is ConditionType.AMOUNT_RANGE:
            return AmountRangeCondition(
                min_amount=self.min_amount, max_amount=self.max_amount,
            )
        if kind is ConditionType.LOCATION:
            return LocationCondition(location_id=self.location_id or "")
        if kind is ConditionType.EXPENSE_CATEGORY:
            return ExpenseCategoryCondition(
                expense_category_id=self.expense_category_id or "",
            )
        if kind is ConditionType.FORM_FIELD_VALUE:
            return FormFieldCondition(
                source_field_name=self.source_field_name or "",
                operator=ConditionOperator(self.operator),
                comparison_value=self.comparison_value or "",
                value_type=ValueType(self.value_type or ValueType.TEXT.value),
            )
        return ReceiptRequiredCondition()

    @classmethod
    def from_dto(cls, dto: Condition, position: int) -> WorkflowConditionModel:
        model = cls(position=position, condition_type=dto.condition_type.value)
        match dto:
            case AmountRangeCondition(min_amount=lo, max_amount=hi):
                model.min_amount = lo
                model.max_amount = hi
            case LocationCondition(location_id=location_id):
                model.location_id = location_id
            case ExpenseCategoryCondition(expense_category_id=category_id):
                model.expense_category_id = category_id
            case FormFieldCondition():
                model.source_field_name = dto.source_field_name
                model.operator = dto.operator.value
                model.comparison_value = dto.comparison_value
                model.value_type = dto.value_type.value
            case ReceiptRequiredCondition():
                pass
        return model


# =============================================================================
# Action
# =============================================================================


class StepActionModel(Base):
    """Persistent step action; assignee columns are null when inherited.

    A null ``decision`` leaves the verdict to the actor.
    """

    __tablename__ = "workflow_step_actions"

    __table_args__ = (
        UniqueConstraint("step_id", "name", name="uq_workflow_step_actions_name"),
        CheckConstraint(
            "approval_mode IN ('ANY_ONE', 'ALL')",
            name="ck_workflow_step_actions_mode",
        ),
        CheckConstraint(
            "decision IS NULL OR decision IN ('APPROVE', 'REJECT')",
            name="ck_workflow_step_actions_decision",
        ),
    )

    step_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_steps.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assignee_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    assignee_role: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assignee_member_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    approval_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalMode.ANY_ONE.value,
    )
    decision: Mapped[str | None] = mapped_column(String(10), nullable=True)

    step: Mapped["WorkflowStepModel"] = relationship(back_populates="actions")

    def to_dto(self) -> StepAction:
        return StepAction(
            name=self.name,
            label=self.label,
            action_type=ActionType(self.action_type),
            order=self.sort_order,
            assignee=_assignee_from_columns(
                self.assignee_type, self.assignee_role, self.assignee_member_id,
            ),
            approval_mode=ApprovalMode(self.approval_mode),
            decision=Decision(self.decision) if self.decision else None,
        )

    @classmethod
    def from_dto(cls, dto: StepAction) -> StepActionModel:
        assignee_type, role, member_id = _assignee_columns(dto.assignee)
        return cls(
            name=dto.name,
            label=dto.label,
            action_type=dto.action_type.value,
            sort_order=dto.order,
            assignee_type=assignee_type,
            assignee_role=role,
            assignee_member_id=member_id,
            approval_mode=dto.approval_mode.value,
            decision=dto.decision.value if dto.decision is not None else None,
        )


# =============================================================================
# Transition
# =============================================================================


class StepTransitionModel(Base):
    """Persistent guarded transition; ``position`` is declaration order."""

    __tablename__ = "workflow_step_transitions"

    __table_args__ = (
        Index("ix_workflow_step_transitions_step", "step_id", "position"),
    )

    step_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_steps.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    action_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    to_step_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    step: Mapped["WorkflowStepModel"] = relationship(back_populates="transitions")
    conditions: Mapped[list["WorkflowConditionModel"]] = relationship(
        back_populates="transition",
        cascade=_CASCADE,
        order_by="WorkflowConditionModel.position",
        foreign_keys="WorkflowConditionModel.transition_id",
        lazy="selectin",
    )

    def to_dto(self) -> Transition:
        return Transition(
            to_step_name=self.to_step_name,
            action_name=self.action_name,
            conditions=tuple(c.to_dto() for c in self.conditions),
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: Transition, position: int) -> StepTransitionModel:
        return cls(
            position=position,
            action_name=dto.action_name,
            to_step_name=dto.to_step_name,
            description=dto.description,
            conditions=[
                WorkflowConditionModel.from_dto(c, i)
                for i, c in enumerate(dto.conditions)
            ],
        )


# =============================================================================
# Form field
# =============================================================================


class FormFieldModel(Base):
    __tablename__ = "workflow_form_fields"

    __table_args__ = (
        UniqueConstraint("step_id", "field_name", name="uq_workflow_form_fields_name"),
    )

    step_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_steps.id", ondelete="CASCADE"),
        nullable=False,
    )
    field_name: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    field_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    options: Mapped[list | None] = mapped_column(JSON, nullable=True)

    step: Mapped["WorkflowStepModel"] = relationship(back_populates="form_fields")

    def to_dto(self) -> FormField:
        return FormField(
            field_name=self.field_name,
            label=self.label,
            field_type=FormFieldType(self.field_type),
            is_required=self.is_required,
            order=self.sort_order,
            options=tuple(self.options or ()),
        )

    @classmethod
    def from_dto(cls, dto: FormField) -> FormFieldModel:
        return cls(
            field_name=dto.field_name,
            label=dto.label,
            field_type=dto.field_type.value,
            is_required=dto.is_required,
            sort_order=dto.order,
            options=list(dto.options) or None,
        )


# =============================================================================
# Active definition per organization
# =============================================================================


class ActiveWorkflowModel(Base):
    """Which definition new submissions of an organization go to."""

    __tablename__ = "organization_active_workflows"

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(), nullable=False, unique=True,
    )
    definition_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_definitions.id"),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
