"""
ORM model tests for the instance persistence layer.

Tests: WorkflowInstanceModel, StepDecisionModel, StepExecutionRecordModel --
DTO round-trips, append-only enforcement and the uniqueness constraints
that back one-decision-per-visit and gap-free history sequences.

These are ORM-level tests only.  Service-layer behaviour is tested elsewhere.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from workflow_kernel.domain.instance import (
    Decision,
    InstanceStatus,
    StepDecision,
    StepExecutionRecord,
    WorkflowInstance,
)
from workflow_kernel.exceptions import ImmutabilityViolationError
from workflow_kernel.models.instance import (
    StepDecisionModel,
    StepExecutionRecordModel,
    WorkflowInstanceModel,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _insert_instance(session) -> WorkflowInstance:
    instance = WorkflowInstance(
        instance_id=uuid4(),
        workflow_id=uuid4(),
        organization_id=uuid4(),
        submitted_by_id=uuid4(),
        status=InstanceStatus.IN_PROGRESS,
        context={"amount": "250.00", "tags": ["travel"]},
        current_step_id=uuid4(),
        version=1,
        step_visit=1,
        record_count=1,
        created_at=NOW,
        updated_at=NOW,
    )
    session.add(WorkflowInstanceModel.from_dto(instance))
    session.flush()
    return instance


def _record(instance: WorkflowInstance, sequence: int = 1) -> StepExecutionRecord:
    return StepExecutionRecord(
        record_id=uuid4(),
        workflow_instance_id=instance.instance_id,
        sequence=sequence,
        step_id=instance.current_step_id,
        actor_id=instance.submitted_by_id,
        action_taken="Initiated",
        data_snapshot={"amount": "250.00"},
        timestamp=NOW,
    )


def _decision(instance: WorkflowInstance, actor_id=None) -> StepDecision:
    return StepDecision(
        decision_id=uuid4(),
        instance_id=instance.instance_id,
        step_id=instance.current_step_id,
        step_visit=instance.step_visit,
        actor_id=actor_id or uuid4(),
        action_name="approve",
        decision=Decision.APPROVE,
        form_data={"notes": "ok"},
        decided_at=NOW,
    )


def _insert(session, model):
    session.add(model)
    session.flush()
    return model


# ---------------------------------------------------------------------------
# Round-trips
# ---------------------------------------------------------------------------


class TestInstanceModel:
    def test_dto_round_trip(self, session):
        instance = _insert_instance(session)
        session.expire_all()

        loaded = session.get(WorkflowInstanceModel, instance.instance_id).to_dto()

        assert loaded.status is InstanceStatus.IN_PROGRESS
        assert loaded.context == {"amount": "250.00", "tags": ["travel"]}
        assert loaded.current_step_id == instance.current_step_id
        assert (loaded.version, loaded.step_visit, loaded.record_count) == (1, 1, 1)

    def test_history_dto_round_trip(self, session):
        instance = _insert_instance(session)
        record = _record(instance)
        _insert(session, StepExecutionRecordModel.from_dto(record))
        session.expire_all()

        (row,) = session.execute(
            select(StepExecutionRecordModel).where(
                StepExecutionRecordModel.instance_id == instance.instance_id,
            )
        ).scalars()
        loaded = row.to_dto()

        assert loaded.record_id == record.record_id
        assert loaded.action_taken == "Initiated"
        assert loaded.decision is None
        assert loaded.data_snapshot == {"amount": "250.00"}


# ---------------------------------------------------------------------------
# Append-only enforcement
# ---------------------------------------------------------------------------


class TestDecisionImmutability:
    def test_update_rejected(self, session):
        instance = _insert_instance(session)
        model = _insert(session, StepDecisionModel.from_dto(_decision(instance)))

        model.comment = "changed my mind"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "StepDecision"

    def test_delete_rejected(self, session):
        instance = _insert_instance(session)
        model = _insert(session, StepDecisionModel.from_dto(_decision(instance)))

        session.delete(model)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestHistoryImmutability:
    def test_update_rejected(self, session):
        instance = _insert_instance(session)
        model = _insert(session, StepExecutionRecordModel.from_dto(_record(instance)))

        model.action_taken = "Approved"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"

    def test_delete_rejected(self, session):
        instance = _insert_instance(session)
        model = _insert(session, StepExecutionRecordModel.from_dto(_record(instance)))

        session.delete(model)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------


class TestConstraints:
    def test_one_decision_per_actor_per_visit(self, session):
        instance = _insert_instance(session)
        actor = uuid4()
        _insert(session, StepDecisionModel.from_dto(_decision(instance, actor)))

        with pytest.raises(IntegrityError):
            with session.begin_nested():
                _insert(session, StepDecisionModel.from_dto(_decision(instance, actor)))

    def test_history_sequence_is_unique(self, session):
        instance = _insert_instance(session)
        _insert(session, StepExecutionRecordModel.from_dto(_record(instance, sequence=1)))

        with pytest.raises(IntegrityError):
            with session.begin_nested():
                _insert(session, StepExecutionRecordModel.from_dto(_record(instance, sequence=1)))
