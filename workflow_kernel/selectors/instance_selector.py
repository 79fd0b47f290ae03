"""
Module: workflow_kernel.selectors.instance_selector
Responsibility: Read access to workflow instances, their decision ledger and
    their execution history.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - History is returned ordered by ``sequence``.
    - "Live" means PENDING or IN_PROGRESS.

Failure modes:
    - InstanceNotFoundError from get_instance.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from workflow_kernel.domain.instance import (
    TERMINAL_INSTANCE_STATUSES,
    InstanceStatus,
    StepDecision,
    StepExecutionRecord,
    WorkflowInstance,
)
from workflow_kernel.exceptions import InstanceNotFoundError
from workflow_kernel.models.instance import (
    StepDecisionModel,
    StepExecutionRecordModel,
    WorkflowInstanceModel,
)
from workflow_kernel.selectors.base import BaseSelector

LIVE_STATUSES: tuple[str, ...] = tuple(
    s.value for s in InstanceStatus if s not in TERMINAL_INSTANCE_STATUSES
)


class InstanceSelector(BaseSelector):
    """Queries over workflow_instances and their append-only children."""

    def find_instance(self, instance_id: UUID) -> WorkflowInstance | None:
        model = self.session.get(WorkflowInstanceModel, instance_id)
        return model.to_dto() if model is not None else None

    def get_instance(self, instance_id: UUID) -> WorkflowInstance:
        """Load an instance.

        Raises:
            InstanceNotFoundError: No instance with this id.
        """
        instance = self.find_instance(instance_id)
        if instance is None:
            raise InstanceNotFoundError(str(instance_id))
        return instance

    def get_history(self, instance_id: UUID) -> list[StepExecutionRecord]:
        rows = self.session.execute(
            select(StepExecutionRecordModel)
            .where(StepExecutionRecordModel.instance_id == instance_id)
            .order_by(StepExecutionRecordModel.sequence)
        ).scalars()
        return [row.to_dto() for row in rows]

    def get_decisions(
        self,
        instance_id: UUID,
        step_visit: int | None = None,
    ) -> list[StepDecision]:
        """Decision ledger of an instance, optionally for one step visit."""
        stmt = select(StepDecisionModel).where(StepDecisionModel.instance_id == instance_id)
        if step_visit is not None:
            stmt = stmt.where(StepDecisionModel.step_visit == step_visit)
        rows = self.session.execute(
            stmt.order_by(StepDecisionModel.decided_at, StepDecisionModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def list_live_instances(self, organization_id: UUID) -> list[WorkflowInstance]:
        rows = self.session.execute(
            select(WorkflowInstanceModel)
            .where(
                WorkflowInstanceModel.organization_id == organization_id,
                WorkflowInstanceModel.status.in_(LIVE_STATUSES),
            )
            .order_by(WorkflowInstanceModel.created_at, WorkflowInstanceModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def count_live_for_workflow(self, workflow_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(WorkflowInstanceModel)
            .where(
                WorkflowInstanceModel.workflow_id == workflow_id,
                WorkflowInstanceModel.status.in_(LIVE_STATUSES),
            )
        ).scalar_one()
