"""
workflow_services.workflow_executor -- Approval workflow execution.

Responsibility:
    The facade hosts call: submit requests, record decisions, cancel
    instances and query status, history and pending work.  Thin
    coordinator -- delegates workflow logic to
    ``WorkflowInstanceStateMachine``, persistence to ``InstanceService`` /
    ``DefinitionService``, reads to ``InstanceSelector`` and member lookup
    to the injected ``OrganizationRoster``.

Architecture position:
    Services layer.  May import from workflow_engines/ (pure engines),
    workflow_config/ (validation) and workflow_kernel/ (domain, services,
    selectors).

Invariants enforced:
    - One state machine call per request; its result is persisted through
      a single compare-and-set on the instance version, so concurrent
      decisions on the same instance cannot both win.
    - Flush-only: the caller owns commit / rollback.
    - Every call runs inside a LogContext bound to the instance, workflow,
      actor and organization, and emits one WORKFLOW_TRANSITION trace.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from workflow_config.validator import ensure_valid
from workflow_engines.state_machine import StateMachineResult, WorkflowInstanceStateMachine
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.definition import WorkflowDefinition
from workflow_kernel.domain.instance import (
    Decision,
    InstanceStatus,
    PendingAssignment,
    StepExecutionRecord,
    WorkflowInstance,
)
from workflow_kernel.domain.roster import OrganizationRoster
from workflow_kernel.exceptions import WorkflowKernelError
from workflow_kernel.logging_config import LogContext, get_logger
from workflow_kernel.selectors.instance_selector import InstanceSelector
from workflow_kernel.services.definition_service import DefinitionService
from workflow_kernel.services.instance_service import InstanceService

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUBMITTED = "submitted"
OUTCOME_DECIDED = "decided"
OUTCOME_CANCELLED = "cancelled"
OUTCOME_FAILED = "failed"


def _emit_workflow_trace(
    operation: str,
    outcome: str,
    duration_ms: float,
    *,
    instance: WorkflowInstance | None = None,
    reason: str = "",
    outcome_sink: Callable[[dict], None] | None = None,
    **fields: Any,
) -> None:
    """Emit a structured workflow trace record for lookback."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "operation": operation,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if instance is not None:
        record["status"] = instance.status.value
        record["version"] = instance.version
        record["current_step_id"] = instance.current_step_id
    record.update(fields)
    logger.info("workflow_transition", extra=record)
    if outcome_sink is not None:
        record.update(LogContext.get_all())
        outcome_sink(record)


class WorkflowExecutor:
    """Submits requests into approval workflows and drives them to completion.

    Args:
        session: SQLAlchemy session; the caller commits.
        roster: Member lookup for assignee resolution.
        clock: Time source (``DeterministicClock`` in tests).
        strict_definitions: Reject definitions with shadowed transitions.
        outcome_sink: Receives every trace record, e.g. for a timeline.
    """

    def __init__(
        self,
        session: Session,
        roster: OrganizationRoster,
        clock: Clock | None = None,
        strict_definitions: bool = False,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        self._session = session
        self._roster = roster
        self._clock = clock or SystemClock()
        self._outcome_sink = outcome_sink
        self._definitions = DefinitionService(
            session,
            clock=self._clock,
            validator=lambda d: ensure_valid(d, strict=strict_definitions),
        )
        self._instances = InstanceService(session, clock=self._clock)
        self._selector = InstanceSelector(session)

    @property
    def definitions(self) -> DefinitionService:
        return self._definitions

    def _machine(self, definition: WorkflowDefinition) -> WorkflowInstanceStateMachine:
        return WorkflowInstanceStateMachine(
            definition, self._roster.members_of(definition.organization_id),
        )

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(
        self,
        definition_id: UUID,
        context: Mapping[str, Any],
        submitted_by_id: UUID,
    ) -> UUID:
        """Start a new instance of ``definition_id`` for a request.

        Returns:
            The new instance id.
        """
        definition = self._definitions.get_definition(definition_id)
        return self._submit(definition, context, submitted_by_id)

    def submit_to_active(
        self,
        organization_id: UUID,
        context: Mapping[str, Any],
        submitted_by_id: UUID,
    ) -> UUID:
        """Start an instance of the organization's active definition."""
        definition = self._definitions.get_active_definition(organization_id)
        return self._submit(definition, context, submitted_by_id)

    def _submit(
        self,
        definition: WorkflowDefinition,
        context: Mapping[str, Any],
        submitted_by_id: UUID,
    ) -> UUID:
        instance_id = uuid4()
        t0 = time.monotonic()
        with LogContext.bind(
            instance_id=instance_id,
            workflow_id=definition.definition_id,
            actor_id=submitted_by_id,
            organization_id=definition.organization_id,
        ):
            try:
                result = self._machine(definition).submit(
                    instance_id=instance_id,
                    context=context,
                    submitted_by_id=submitted_by_id,
                    now=self._clock.now(),
                )
            except WorkflowKernelError as exc:
                self._trace_failure("submit", exc, t0)
                raise
            self._instances.insert_instance(result.instance, result.records)
            self._trace("submit", OUTCOME_SUBMITTED, result, t0)
        return instance_id

    # =========================================================================
    # Decisions and cancellation
    # =========================================================================

    def record_decision(
        self,
        instance_id: UUID,
        actor_id: UUID,
        action_name: str,
        decision: Decision | None = None,
        form_data: Mapping[str, Any] | None = None,
        comment: str = "",
        expected_version: int | None = None,
    ) -> InstanceStatus:
        """Record ``actor_id``'s decision on the instance's current step.

        ``decision`` may be omitted for actions that carry their own verdict
        (``approve`` / ``reject``); approver actions need it stated.

        Returns:
            The instance status after the decision (and any transitions).

        Raises:
            InstanceNotFoundError, StaleStepError and every DecisionError /
            AuthorizationError the state machine raises.  Nothing is
            persisted when an error is raised.
        """
        instance = self._selector.get_instance(instance_id)
        t0 = time.monotonic()
        with LogContext.bind(
            instance_id=instance_id,
            workflow_id=instance.workflow_id,
            actor_id=actor_id,
            organization_id=instance.organization_id,
        ):
            definition = self._definitions.get_definition(instance.workflow_id)
            ledger = self._selector.get_decisions(instance_id, step_visit=instance.step_visit)
            try:
                result = self._machine(definition).record_decision(
                    instance,
                    ledger,
                    actor_id=actor_id,
                    action_name=action_name,
                    decision=decision,
                    form_data=form_data,
                    comment=comment,
                    now=self._clock.now(),
                    expected_version=expected_version,
                )
                self._instances.save_progress(
                    result.instance,
                    expected_version=instance.version,
                    records=result.records,
                    decision=result.decision,
                )
            except WorkflowKernelError as exc:
                self._trace_failure("record_decision", exc, t0, action_name=action_name)
                raise
            self._trace(
                "record_decision", OUTCOME_DECIDED, result, t0,
                action_name=action_name,
                decision=result.decision.decision.value,
                step_outcome=result.outcome.value if result.outcome else None,
            )
        return result.instance.status

    def cancel(
        self,
        instance_id: UUID,
        actor_id: UUID,
        reason: str = "",
    ) -> InstanceStatus:
        """Cancel an in-progress instance (submitter or organization admin)."""
        instance = self._selector.get_instance(instance_id)
        t0 = time.monotonic()
        with LogContext.bind(
            instance_id=instance_id,
            workflow_id=instance.workflow_id,
            actor_id=actor_id,
            organization_id=instance.organization_id,
        ):
            definition = self._definitions.get_definition(instance.workflow_id)
            try:
                result = self._machine(definition).cancel(
                    instance, actor_id=actor_id, now=self._clock.now(), reason=reason,
                )
                self._instances.save_progress(
                    result.instance,
                    expected_version=instance.version,
                    records=result.records,
                )
            except WorkflowKernelError as exc:
                self._trace_failure("cancel", exc, t0)
                raise
            self._trace("cancel", OUTCOME_CANCELLED, result, t0, reason=reason)
        return result.instance.status

    # =========================================================================
    # Queries
    # =========================================================================

    def get_instance(self, instance_id: UUID) -> WorkflowInstance:
        return self._selector.get_instance(instance_id)

    def get_status(self, instance_id: UUID) -> InstanceStatus:
        return self._selector.get_instance(instance_id).status

    def get_history(self, instance_id: UUID) -> list[StepExecutionRecord]:
        """Execution history in sequence order.

        Raises:
            InstanceNotFoundError: Unknown instance.
        """
        self._selector.get_instance(instance_id)
        return self._selector.get_history(instance_id)

    def pending_for_member(
        self,
        member_id: UUID,
        organization_id: UUID,
    ) -> list[PendingAssignment]:
        """Instances of the organization waiting on ``member_id``."""
        machines: dict[UUID, WorkflowInstanceStateMachine] = {}
        pending: list[PendingAssignment] = []
        for instance in self._selector.list_live_instances(organization_id):
            if instance.current_step_id is None:
                continue
            machine = machines.get(instance.workflow_id)
            if machine is None:
                machine = self._machine(self._definitions.get_definition(instance.workflow_id))
                machines[instance.workflow_id] = machine

            ledger = self._selector.get_decisions(
                instance.instance_id, step_visit=instance.step_visit,
            )
            actions = machine.pending_actions_for(instance, ledger, member_id)
            if not actions:
                continue
            step = machine.definition.get_step(instance.current_step_id)
            pending.append(
                PendingAssignment(
                    instance_id=instance.instance_id,
                    workflow_id=instance.workflow_id,
                    step_id=instance.current_step_id,
                    step_name=step.name if step is not None else "",
                    action_names=actions,
                    submitted_by_id=instance.submitted_by_id,
                    version=instance.version,
                )
            )
        return pending

    # =========================================================================
    # Tracing
    # =========================================================================

    def _trace(
        self,
        operation: str,
        outcome: str,
        result: StateMachineResult,
        t0: float,
        **fields: Any,
    ) -> None:
        _emit_workflow_trace(
            operation,
            outcome,
            (time.monotonic() - t0) * 1000,
            instance=result.instance,
            outcome_sink=self._outcome_sink,
            records_appended=len(result.records),
            stalled=result.stalled,
            **fields,
        )

    def _trace_failure(
        self,
        operation: str,
        exc: WorkflowKernelError,
        t0: float,
        **fields: Any,
    ) -> None:
        _emit_workflow_trace(
            operation,
            OUTCOME_FAILED,
            (time.monotonic() - t0) * 1000,
            reason=str(exc),
            outcome_sink=self._outcome_sink,
            error_code=exc.code,
            **fields,
        )
