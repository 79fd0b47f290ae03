"""
Module: workflow_kernel.models.instance
Responsibility: ORM persistence for workflow instances, their per-step
    decision ledger and their execution history.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Instances reference their definition by id only (no foreign key), so
      deleting a finished definition never touches instance rows.
    - ``version`` is the compare-and-set column; only
      InstanceService.save_progress changes it.
    - Decisions: UNIQUE(instance_id, step_visit, actor_id); one decision per
      actor per step visit.
    - History: UNIQUE(instance_id, sequence); records are ordered and
      gap-free per instance.
    - Decisions and history are append-only: ORM before_update /
      before_delete listeners raise ImmutabilityViolationError.  Instances
      never cascade-delete them.

Failure modes:
    - IntegrityError on duplicate decision or sequence.
    - ImmutabilityViolationError on decision/history UPDATE or DELETE.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, JSONPayload, UUIDString
from workflow_kernel.domain.instance import (
    Decision,
    InstanceStatus,
    StepDecision,
    StepExecutionRecord,
    WorkflowInstance,
)
from workflow_kernel.exceptions import ImmutabilityViolationError


class WorkflowInstanceModel(Base):
    """Persistent workflow instance."""

    __tablename__ = "workflow_instances"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'IN_PROGRESS', 'APPROVED', 'REJECTED', 'CANCELLED')",
            name="ck_workflow_instances_valid_status",
        ),
        CheckConstraint("version >= 0", name="ck_workflow_instances_version"),
        Index("ix_workflow_instances_org_status", "organization_id", "status"),
        Index("ix_workflow_instances_workflow_status", "workflow_id", "status"),
    )

    workflow_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    submitted_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    current_step_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    context: Mapped[dict] = mapped_column(JSONPayload, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    step_visit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WorkflowInstance {self.id} workflow={self.workflow_id} "
            f"status={self.status} v{self.version}>"
        )

    def to_dto(self) -> WorkflowInstance:
        return WorkflowInstance(
            instance_id=self.id,
            workflow_id=self.workflow_id,
            organization_id=self.organization_id,
            submitted_by_id=self.submitted_by_id,
            status=InstanceStatus(self.status),
            context=dict(self.context or {}),
            current_step_id=self.current_step_id,
            version=self.version,
            step_visit=self.step_visit,
            record_count=self.record_count,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: WorkflowInstance) -> WorkflowInstanceModel:
        return cls(
            id=dto.instance_id,
            workflow_id=dto.workflow_id,
            organization_id=dto.organization_id,
            submitted_by_id=dto.submitted_by_id,
            current_step_id=dto.current_step_id,
            status=dto.status.value,
            context=dict(dto.context),
            version=dto.version,
            step_visit=dto.step_visit,
            record_count=dto.record_count,
            created_at=dto.created_at,
            updated_at=dto.updated_at or dto.created_at,
        )


class StepDecisionModel(Base):
    """Persistent decision ledger entry. Append-only."""

    __tablename__ = "workflow_step_decisions"

    __table_args__ = (
        UniqueConstraint(
            "instance_id", "step_visit", "actor_id",
            name="uq_workflow_step_decisions_actor",
        ),
        CheckConstraint(
            "decision IN ('APPROVE', 'REJECT')",
            name="ck_workflow_step_decisions_decision",
        ),
        Index("ix_workflow_step_decisions_visit", "instance_id", "step_visit"),
    )

    instance_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_instances.id"),
        nullable=False,
    )
    step_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    step_visit: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action_name: Mapped[str] = mapped_column(String(100), nullable=False)
    decision: Mapped[str] = mapped_column(String(10), nullable=False)
    form_data: Mapped[dict] = mapped_column(JSONPayload, nullable=False, default=dict)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    decided_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StepDecision {self.id} instance={self.instance_id} "
            f"actor={self.actor_id} {self.decision}>"
        )

    def to_dto(self) -> StepDecision:
        return StepDecision(
            decision_id=self.id,
            instance_id=self.instance_id,
            step_id=self.step_id,
            step_visit=self.step_visit,
            actor_id=self.actor_id,
            action_name=self.action_name,
            decision=Decision(self.decision),
            form_data=dict(self.form_data or {}),
            comment=self.comment,
            decided_at=self.decided_at,
        )

    @classmethod
    def from_dto(cls, dto: StepDecision) -> StepDecisionModel:
        return cls(
            id=dto.decision_id,
            instance_id=dto.instance_id,
            step_id=dto.step_id,
            step_visit=dto.step_visit,
            actor_id=dto.actor_id,
            action_name=dto.action_name,
            decision=dto.decision.value,
            form_data=dict(dto.form_data),
            comment=dto.comment,
            decided_at=dto.decided_at,
        )


class StepExecutionRecordModel(Base):
    """Persistent execution history entry. Append-only."""

    __tablename__ = "workflow_step_executions"

    __table_args__ = (
        UniqueConstraint(
            "instance_id", "sequence",
            name="uq_workflow_step_executions_sequence",
        ),
    )

    instance_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_instances.id"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    step_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    action_taken: Mapped[str] = mapped_column(String(100), nullable=False)
    decision: Mapped[str | None] = mapped_column(String(10), nullable=True)
    data_snapshot: Mapped[dict] = mapped_column(JSONPayload, nullable=False, default=dict)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StepExecutionRecord {self.instance_id}#{self.sequence} "
            f"{self.action_taken}>"
        )

    def to_dto(self) -> StepExecutionRecord:
        return StepExecutionRecord(
            record_id=self.id,
            workflow_instance_id=self.instance_id,
            sequence=self.sequence,
            step_id=self.step_id,
            actor_id=self.actor_id,
            action_taken=self.action_taken,
            decision=Decision(self.decision) if self.decision else None,
            data_snapshot=dict(self.data_snapshot or {}),
            comment=self.comment,
            timestamp=self.recorded_at,
        )

    @classmethod
    def from_dto(cls, dto: StepExecutionRecord) -> StepExecutionRecordModel:
        return cls(
            id=dto.record_id,
            instance_id=dto.workflow_instance_id,
            sequence=dto.sequence,
            step_id=dto.step_id,
            actor_id=dto.actor_id,
            action_taken=dto.action_taken,
            decision=dto.decision.value if dto.decision else None,
            data_snapshot=dict(dto.data_snapshot),
            comment=dto.comment,
            recorded_at=dto.timestamp,
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(StepDecisionModel, "before_update")
def prevent_decision_update(mapper, connection, target):
    """Prevent updates to decision ledger entries."""
    raise ImmutabilityViolationError(
        entity_type="StepDecision",
        entity_id=str(target.id),
        reason="Step decisions are immutable -- cannot modify",
    )


@event.listens_for(StepDecisionModel, "before_delete")
def prevent_decision_delete(mapper, connection, target):
    """Prevent deletion of decision ledger entries."""
    raise ImmutabilityViolationError(
        entity_type="StepDecision",
        entity_id=str(target.id),
        reason="Step decisions are immutable -- cannot delete",
    )


@event.listens_for(StepExecutionRecordModel, "before_update")
def prevent_history_update(mapper, connection, target):
    """Prevent updates to execution history."""
    raise ImmutabilityViolationError(
        entity_type="StepExecutionRecord",
        entity_id=str(target.id),
        reason="Execution history is append-only -- cannot modify",
    )


@event.listens_for(StepExecutionRecordModel, "before_delete")
def prevent_history_delete(mapper, connection, target):
    """Prevent deletion of execution history."""
    raise ImmutabilityViolationError(
        entity_type="StepExecutionRecord",
        entity_id=str(target.id),
        reason="Execution history is append-only -- cannot delete",
    )
