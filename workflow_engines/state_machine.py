"""
workflow_engines.state_machine -- WorkflowInstanceStateMachine.

Responsibility:
    Drive one workflow instance from submission to a terminal status:
    enter the first applicable step, accept decisions from eligible
    approvers, aggregate them, follow transitions, auto-advance through
    UNASSIGNED steps and record every change in the execution history.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The caller loads the
    instance, its decision ledger and the organization roster, passes an
    explicit ``now``, and persists the returned ``StateMachineResult``
    atomically.

Invariants enforced:
    - Every call returns the instance with ``version`` increased by exactly
      one, or raises without producing anything.
    - Every change appends at least one history record; sequences are
      contiguous from ``record_count + 1``.
    - Decisions count only for the step visit they were made on.
    - A decision records the verdict of its action; only actor-choice
      actions take the caller's APPROVE or REJECT.
    - A terminal instance never changes.
    - An inapplicable transition target is skipped forward by step_number;
      if nothing later applies the workflow ends with the current outcome.
    - UNASSIGNED steps advance at most ``len(steps)`` times per call,
      otherwise TransitionLoopError.

Failure modes:
    - InactiveWorkflowError, NoApplicableStepError on submission.
    - InstanceAlreadyTerminalError, StaleStepError, UnknownActionError,
      DecisionMismatchError, DecisionRequiredError,
      UnauthorizedActorError, DuplicateDecisionError,
      RejectionCommentRequiredError, MissingFormFieldError on decisions.
    - InvalidInstanceTransitionError, UnauthorizedActorError on cancel.
    - InvalidAssigneeError when a step names an invalid member.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from workflow_engines.aggregation import aggregate, ensure_actor_authorized
from workflow_engines.assignees import (
    AssigneeResolution,
    resolve_assignees,
    resolve_step_approvers,
    union_of_approvers,
)
from workflow_engines.conditions import select_applicable_step, step_applies
from workflow_engines.transitions import NextStep, WorkflowEnd, next_step
from workflow_kernel.domain.definition import ActionType, Step, StepAction, WorkflowDefinition
from workflow_kernel.domain.instance import (
    ACTION_AUTO_ADVANCED,
    ACTION_CANCELLED,
    ACTION_INITIATED,
    Decision,
    InstanceStatus,
    StepDecision,
    StepExecutionRecord,
    StepOutcome,
    WorkflowInstance,
)
from workflow_kernel.domain.roster import Member
from workflow_kernel.exceptions import (
    DecisionMismatchError,
    DecisionRequiredError,
    DuplicateDecisionError,
    InactiveWorkflowError,
    InstanceAlreadyTerminalError,
    InvalidAssigneeError,
    InvalidInstanceTransitionError,
    MissingFormFieldError,
    NoApplicableStepError,
    RejectionCommentRequiredError,
    ResolutionError,
    StaleStepError,
    TransitionLoopError,
    UnauthorizedActorError,
    UnknownActionError,
)
from workflow_kernel.logging_config import get_logger

logger = get_logger("engines.state_machine")


@dataclass(frozen=True)
class StateMachineResult:
    """Everything a caller must persist after one state machine call.

    ``records`` are new history entries only.  ``decision`` is set when a
    decision was recorded.  ``outcome`` is the aggregated outcome of the
    decided step visit (None for submit and cancel).  ``stalled`` is True
    when the instance now waits on a step nobody can act on.
    """

    instance: WorkflowInstance
    records: tuple[StepExecutionRecord, ...] = ()
    decision: StepDecision | None = None
    outcome: StepOutcome | None = None
    stalled: bool = False


@dataclass
class _Progress:
    """Mutable accumulator for a single call."""

    instance: WorkflowInstance
    now: datetime
    records: list[StepExecutionRecord] = field(default_factory=list)
    stalled: bool = False

    def record(
        self,
        *,
        step_id: UUID | None,
        actor_id: UUID | None,
        action_taken: str,
        decision: Decision | None = None,
        data_snapshot: Mapping[str, Any] | None = None,
        comment: str = "",
    ) -> None:
        self.records.append(
            StepExecutionRecord(
                record_id=uuid4(),
                workflow_instance_id=self.instance.instance_id,
                sequence=self.instance.record_count + len(self.records) + 1,
                step_id=step_id,
                actor_id=actor_id,
                action_taken=action_taken,
                decision=decision,
                data_snapshot=dict(data_snapshot or {}),
                comment=comment,
                timestamp=self.now,
            )
        )

    def move_to(self, status: InstanceStatus) -> None:
        if status is self.instance.status:
            return
        if not self.instance.can_transition_to(status):
            raise InvalidInstanceTransitionError(self.instance.status.value, status.value)
        self.instance = replace(self.instance, status=status)

    def result(
        self,
        decision: StepDecision | None = None,
        outcome: StepOutcome | None = None,
    ) -> StateMachineResult:
        instance = replace(
            self.instance,
            version=self.instance.version + 1,
            record_count=self.instance.record_count + len(self.records),
            updated_at=self.now,
        )
        return StateMachineResult(
            instance=instance,
            records=tuple(self.records),
            decision=decision,
            outcome=outcome,
            stalled=self.stalled,
        )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


class WorkflowInstanceStateMachine:
    """State machine for instances of one workflow definition.

    Args:
        definition: The definition the instances run against.
        roster: Members of the definition's organization (any order,
            active or not).
    """

    def __init__(self, definition: WorkflowDefinition, roster: Iterable[Member]):
        self._definition = definition
        self._roster = tuple(roster)

    @property
    def definition(self) -> WorkflowDefinition:
        return self._definition

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(
        self,
        *,
        instance_id: UUID,
        context: Mapping[str, Any],
        submitted_by_id: UUID,
        now: datetime,
    ) -> StateMachineResult:
        """Create an instance and enter its first applicable step.

        Raises:
            InactiveWorkflowError: The definition is not active.
            NoApplicableStepError: No step applies to the context.
        """
        definition = self._definition
        if not definition.is_active:
            raise InactiveWorkflowError(str(definition.definition_id))

        instance = WorkflowInstance(
            instance_id=instance_id,
            workflow_id=definition.definition_id,
            organization_id=definition.organization_id,
            submitted_by_id=submitted_by_id,
            status=InstanceStatus.PENDING,
            context=dict(context),
            created_at=now,
            updated_at=now,
        )

        first = self._initial_step(instance.context)
        if first is None:
            logger.error(
                "no_applicable_step",
                extra={
                    "workflow_id": str(definition.definition_id),
                    "organization_id": str(definition.organization_id),
                },
            )
            raise NoApplicableStepError(
                str(definition.definition_id), str(definition.organization_id),
            )

        progress = _Progress(instance=instance, now=now)
        progress.record(
            step_id=first.step_id,
            actor_id=submitted_by_id,
            action_taken=ACTION_INITIATED,
            data_snapshot=instance.context,
        )
        self._enter(progress, first, incoming=StepOutcome.APPROVED)
        return progress.result()

    def _initial_step(self, context: Mapping[str, Any]) -> Step | None:
        named = self._definition.initial_step
        if named is None:
            return select_applicable_step(self._definition.steps, context=context)
        if step_applies(named, context):
            return named
        return select_applicable_step(
            self._definition.steps,
            context=context,
            after_step_number=named.step_number,
        )

    # =========================================================================
    # Decisions
    # =========================================================================

    def record_decision(
        self,
        instance: WorkflowInstance,
        ledger: Iterable[StepDecision],
        *,
        actor_id: UUID,
        action_name: str,
        decision: Decision | None = None,
        form_data: Mapping[str, Any] | None = None,
        comment: str = "",
        now: datetime,
        expected_version: int | None = None,
    ) -> StateMachineResult:
        """Record one actor's decision on the current step.

        Args:
            instance: Current instance state.
            ledger: Decisions already recorded for the instance (any visit).
            actor_id: Member deciding.
            action_name: Action on the current step.
            decision: APPROVE or REJECT.  Optional when the action records
                its own verdict, and then it must agree with it.
            form_data: Values for the step's form fields.
            comment: Free text; required for rejections when the definition
                says so.
            now: Decision timestamp.
            expected_version: Version the caller last saw.
        """
        if instance.is_terminal:
            raise InstanceAlreadyTerminalError(str(instance.instance_id), instance.status.value)
        if expected_version is not None and expected_version != instance.version:
            raise StaleStepError(str(instance.instance_id), expected_version, instance.version)

        step = self._current_step(instance)
        action = step.get_action(action_name)
        if action is None:
            raise UnknownActionError(action_name, step.name)

        resolution = self._resolve(step.assignee_for(action), instance)
        ensure_actor_authorized(
            actor_id, resolution.approvers,
            instance_id=instance.instance_id, action_name=action_name,
        )
        decision = self._verdict(step, action, decision)

        visit_ledger = [
            d for d in ledger
            if d.step_visit == instance.step_visit and d.step_id == step.step_id
        ]
        if any(d.actor_id == actor_id for d in visit_ledger):
            raise DuplicateDecisionError(str(instance.instance_id), str(actor_id), step.name)

        if (
            decision is Decision.REJECT
            and self._definition.require_rejection_comment
            and not comment.strip()
        ):
            raise RejectionCommentRequiredError(str(instance.instance_id))

        form_data = dict(form_data or {})
        if decision is Decision.APPROVE and action.action_type is ActionType.PRIMARY:
            missing = [f for f in step.required_field_names if _is_blank(form_data.get(f))]
            if missing:
                raise MissingFormFieldError(step.name, missing)

        new_decision = StepDecision(
            decision_id=uuid4(),
            instance_id=instance.instance_id,
            step_id=step.step_id,
            step_visit=instance.step_visit,
            actor_id=actor_id,
            action_name=action_name,
            decision=decision,
            form_data=form_data,
            comment=comment,
            decided_at=now,
        )

        step_data = {**instance.context, **form_data}
        progress = _Progress(instance=replace(instance, context=step_data), now=now)
        progress.record(
            step_id=step.step_id,
            actor_id=actor_id,
            action_taken=action_name,
            decision=decision,
            data_snapshot=form_data,
            comment=comment,
        )

        outcome = aggregate(
            mode=action.approval_mode,
            approvers=resolution.approvers,
            decisions=[*visit_ledger, new_decision],
        )
        logger.info(
            "decision_recorded",
            extra={
                "instance_id": str(instance.instance_id),
                "step_name": step.name,
                "action_name": action_name,
                "decision": decision.value,
                "step_outcome": outcome.value,
            },
        )

        if outcome is not StepOutcome.PENDING:
            self._follow(progress, step, action_taken=action_name, outcome=outcome)
        return progress.result(decision=new_decision, outcome=outcome)

    @staticmethod
    def _verdict(step: Step, action: StepAction, given: Decision | None) -> Decision:
        if action.decision is None:
            if given is None:
                raise DecisionRequiredError(action.name, step.name)
            return given
        if given is not None and given is not action.decision:
            raise DecisionMismatchError(
                action.name, step.name, action.decision.value, given.value,
            )
        return action.decision

    def _current_step(self, instance: WorkflowInstance) -> Step:
        step = (
            self._definition.get_step(instance.current_step_id)
            if instance.current_step_id is not None
            else None
        )
        if step is None:
            raise ResolutionError(
                f"Instance {instance.instance_id} is at step "
                f"{instance.current_step_id}, which workflow "
                f"{self._definition.definition_id} does not define"
            )
        return step

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel(
        self,
        instance: WorkflowInstance,
        *,
        actor_id: UUID,
        now: datetime,
        reason: str = "",
    ) -> StateMachineResult:
        """Cancel an in-progress instance.

        Only the submitter or an organization OWNER/ADMIN may cancel.
        """
        if instance.status is not InstanceStatus.IN_PROGRESS:
            raise InvalidInstanceTransitionError(
                instance.status.value, InstanceStatus.CANCELLED.value,
            )
        if actor_id != instance.submitted_by_id and not self._is_admin(
            actor_id, instance.organization_id,
        ):
            raise UnauthorizedActorError(str(actor_id), str(instance.instance_id), "cancel")

        progress = _Progress(instance=instance, now=now)
        progress.record(
            step_id=instance.current_step_id,
            actor_id=actor_id,
            action_taken=ACTION_CANCELLED,
            comment=reason,
        )
        progress.move_to(InstanceStatus.CANCELLED)
        logger.info(
            "instance_cancelled",
            extra={"instance_id": str(instance.instance_id), "actor_id": str(actor_id)},
        )
        return progress.result()

    def _is_admin(self, actor_id: UUID, organization_id: UUID) -> bool:
        return any(
            m.member_id == actor_id
            and m.organization_id == organization_id
            and m.is_active
            and m.is_admin
            for m in self._roster
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def eligible_approvers(self, instance: WorkflowInstance) -> dict[str, AssigneeResolution]:
        """Resolution per action of the instance's current step."""
        if instance.is_terminal:
            return {}
        step = self._current_step(instance)
        return resolve_step_approvers(
            step,
            organization_id=instance.organization_id,
            submitted_by_id=instance.submitted_by_id,
            roster=self._roster,
            allow_self_approval=self._definition.allow_self_approval,
        )

    def pending_actions_for(
        self,
        instance: WorkflowInstance,
        ledger: Iterable[StepDecision],
        member_id: UUID,
    ) -> tuple[str, ...]:
        """Actions ``member_id`` may still take on the current step visit.

        An action whose assignee cannot be resolved is left out and logged.
        """
        if instance.is_terminal or instance.current_step_id is None:
            return ()
        if any(
            d.step_visit == instance.step_visit and d.actor_id == member_id
            for d in ledger
        ):
            return ()

        step = self._current_step(instance)
        names: list[str] = []
        for action in step.actions:
            try:
                resolution = self._resolve(step.assignee_for(action), instance)
            except InvalidAssigneeError as exc:
                logger.warning(
                    "assignee_unresolvable",
                    extra={
                        "instance_id": str(instance.instance_id),
                        "step_name": step.name,
                        "action_name": action.name,
                        "error": str(exc),
                    },
                )
                continue
            if member_id in resolution.approvers:
                names.append(action.name)
        return tuple(names)

    # =========================================================================
    # Internals
    # =========================================================================

    def _resolve(self, assignee, instance: WorkflowInstance) -> AssigneeResolution:
        return resolve_assignees(
            assignee,
            organization_id=instance.organization_id,
            submitted_by_id=instance.submitted_by_id,
            roster=self._roster,
            allow_self_approval=self._definition.allow_self_approval,
        )

    def _follow(
        self,
        progress: _Progress,
        step: Step,
        *,
        action_taken: str | None,
        outcome: StepOutcome,
    ) -> None:
        """Apply the transition out of a resolved step."""
        result = next_step(
            step,
            action_taken=action_taken,
            step_data=progress.instance.context,
            outcome=outcome,
        )
        match result:
            case WorkflowEnd(outcome=final):
                self._finish(progress, final)
            case NextStep(step_name=target_name):
                target = self._resolve_target(target_name, progress.instance.context)
                if target is None:
                    self._finish(progress, outcome)
                else:
                    self._enter(progress, target, incoming=outcome)

    def _resolve_target(self, name: str, context: Mapping[str, Any]) -> Step | None:
        target = self._definition.get_step_by_name(name)
        if target is None:
            raise ResolutionError(
                f"Transition target '{name}' is not a step of workflow "
                f"{self._definition.definition_id}"
            )
        if step_applies(target, context):
            return target
        skipped_to = select_applicable_step(
            self._definition.steps,
            context=context,
            after_step_number=target.step_number,
        )
        logger.info(
            "step_skipped",
            extra={
                "step_name": target.name,
                "next_step": skipped_to.name if skipped_to else None,
            },
        )
        return skipped_to

    def _enter(self, progress: _Progress, step: Step, *, incoming: StepOutcome) -> None:
        """Enter ``step``, auto-advancing through UNASSIGNED steps."""
        hops = 0
        max_hops = len(self._definition.steps)
        current: Step | None = step
        while current is not None:
            progress.move_to(InstanceStatus.IN_PROGRESS)
            progress.instance = replace(
                progress.instance,
                current_step_id=current.step_id,
                step_visit=progress.instance.step_visit + 1,
            )

            if not current.is_unassigned:
                resolutions = resolve_step_approvers(
                    current,
                    organization_id=progress.instance.organization_id,
                    submitted_by_id=progress.instance.submitted_by_id,
                    roster=self._roster,
                    allow_self_approval=self._definition.allow_self_approval,
                )
                if not union_of_approvers(resolutions):
                    progress.stalled = True
                    logger.warning(
                        "step_stalled",
                        extra={
                            "instance_id": str(progress.instance.instance_id),
                            "step_name": current.name,
                        },
                    )
                else:
                    logger.info(
                        "step_entered",
                        extra={
                            "instance_id": str(progress.instance.instance_id),
                            "step_name": current.name,
                        },
                    )
                return

            hops += 1
            if hops > max_hops:
                raise TransitionLoopError(
                    str(self._definition.definition_id), current.name, hops,
                )
            progress.record(
                step_id=current.step_id,
                actor_id=None,
                action_taken=ACTION_AUTO_ADVANCED,
            )
            result = next_step(
                current,
                action_taken=None,
                step_data=progress.instance.context,
                outcome=incoming,
            )
            match result:
                case WorkflowEnd(outcome=final):
                    self._finish(progress, final)
                    return
                case NextStep(step_name=target_name):
                    current = self._resolve_target(target_name, progress.instance.context)
        self._finish(progress, incoming)

    def _finish(self, progress: _Progress, outcome: StepOutcome) -> None:
        status = outcome.to_instance_status()
        progress.move_to(status)
        logger.info(
            "instance_completed",
            extra={
                "instance_id": str(progress.instance.instance_id),
                "status": status.value,
            },
        )
