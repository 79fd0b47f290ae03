"""
workflow_engines.aggregation -- ApprovalAggregator.

Responsibility:
    Decide a step visit's outcome from the approval mode, the resolved
    approvers and the decisions recorded so far.

Architecture position:
    Engines -- pure functions, zero I/O.

Invariants enforced:
    - Only decisions by members of the approver set count.
    - Any counted rejection rejects the step, in both modes, regardless of
      approvals already recorded.
    - ANY_ONE approves on the first counted approval.
    - ALL approves once every approver has approved.  An empty approver
      set never approves.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from workflow_engines.tracer import traced_engine
from workflow_kernel.domain.definition import ApprovalMode
from workflow_kernel.domain.instance import Decision, StepDecision, StepOutcome
from workflow_kernel.exceptions import UnauthorizedActorError


@traced_engine("approval_aggregation", "1.0", fingerprint_fields=("mode", "approvers"))
def aggregate(
    *,
    mode: ApprovalMode,
    approvers: frozenset[UUID],
    decisions: Iterable[StepDecision],
) -> StepOutcome:
    """Aggregate decisions into PENDING, APPROVED or REJECTED."""
    approved_by: set[UUID] = set()
    for decision in decisions:
        if decision.actor_id not in approvers:
            continue
        if decision.decision is Decision.REJECT:
            return StepOutcome.REJECTED
        approved_by.add(decision.actor_id)

    if mode is ApprovalMode.ANY_ONE:
        return StepOutcome.APPROVED if approved_by else StepOutcome.PENDING

    if approvers and approvers <= approved_by:
        return StepOutcome.APPROVED
    return StepOutcome.PENDING


def ensure_actor_authorized(
    actor_id: UUID,
    approvers: frozenset[UUID],
    *,
    instance_id: UUID,
    action_name: str,
) -> None:
    """Reject decisions from actors outside the resolved approver set.

    Raises:
        UnauthorizedActorError: actor_id not in approvers.
    """
    if actor_id not in approvers:
        raise UnauthorizedActorError(
            str(actor_id), str(instance_id), f"perform '{action_name}'",
        )
