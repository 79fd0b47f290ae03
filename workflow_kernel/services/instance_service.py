"""
workflow_kernel.services.instance_service -- Instance persistence.

Responsibility:
    Persist what the state machine computed: the new instance, its
    updated state, the decision it recorded and the history records it
    appended.  Instance state changes go through a compare-and-set on
    ``version``.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/, selectors/.

Invariants enforced:
    - ``save_progress`` updates the instance row only if its stored version
      still equals ``expected_version``; otherwise nothing is written.
    - Decisions and history records are only ever inserted.

Failure modes:
    - StaleStepError when another writer advanced the instance first.
    - InstanceNotFoundError when the instance row does not exist.
    - IntegrityError (surfaced by flush) on a duplicate decision or
      history sequence.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select, update

from workflow_kernel.domain.instance import (
    StepDecision,
    StepExecutionRecord,
    WorkflowInstance,
)
from workflow_kernel.exceptions import InstanceNotFoundError, StaleStepError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.instance import (
    StepDecisionModel,
    StepExecutionRecordModel,
    WorkflowInstanceModel,
)
from workflow_kernel.services.base import BaseService

logger = get_logger("services.instance")


class InstanceService(BaseService):
    """Flush-only writes for workflow instances."""

    def insert_instance(
        self,
        instance: WorkflowInstance,
        records: Iterable[StepExecutionRecord] = (),
    ) -> WorkflowInstance:
        """Insert a newly submitted instance together with its first records."""
        model = WorkflowInstanceModel.from_dto(instance)
        self.session.add(model)
        self.session.flush()
        self._append_records(records)

        logger.info(
            "instance_created",
            extra={
                "instance_id": str(instance.instance_id),
                "workflow_id": str(instance.workflow_id),
                "status": instance.status.value,
                "version": instance.version,
            },
        )
        return model.to_dto()

    def save_progress(
        self,
        instance: WorkflowInstance,
        *,
        expected_version: int,
        records: Iterable[StepExecutionRecord] = (),
        decision: StepDecision | None = None,
    ) -> WorkflowInstance:
        """Compare-and-set the instance row, then append decision and records.

        Args:
            instance: New instance state (``version`` already incremented).
            expected_version: Version the state machine started from.
            records: History records to append.
            decision: Decision to append, if one was recorded.

        Raises:
            StaleStepError: The stored version is no longer expected_version.
            InstanceNotFoundError: The instance row is missing.
        """
        result = self.session.execute(
            update(WorkflowInstanceModel)
            .where(
                WorkflowInstanceModel.id == instance.instance_id,
                WorkflowInstanceModel.version == expected_version,
            )
            .values(
                status=instance.status.value,
                current_step_id=instance.current_step_id,
                context=dict(instance.context),
                version=instance.version,
                step_visit=instance.step_visit,
                record_count=instance.record_count,
                updated_at=instance.updated_at,
            )
        )
        if result.rowcount != 1:
            actual = self.session.execute(
                select(WorkflowInstanceModel.version).where(
                    WorkflowInstanceModel.id == instance.instance_id,
                )
            ).scalar_one_or_none()
            if actual is None:
                raise InstanceNotFoundError(str(instance.instance_id))
            logger.warning(
                "instance_version_conflict",
                extra={
                    "instance_id": str(instance.instance_id),
                    "expected_version": expected_version,
                    "actual_version": actual,
                },
            )
            raise StaleStepError(str(instance.instance_id), expected_version, actual)

        if decision is not None:
            self.session.add(StepDecisionModel.from_dto(decision))
        self._append_records(records)

        logger.info(
            "instance_progress_saved",
            extra={
                "instance_id": str(instance.instance_id),
                "status": instance.status.value,
                "version": instance.version,
            },
        )
        return instance

    def _append_records(self, records: Iterable[StepExecutionRecord]) -> None:
        self.session.add_all(StepExecutionRecordModel.from_dto(r) for r in records)
        self.session.flush()
