"""
Workflow instance domain types (``workflow_kernel.domain.instance``).

Responsibility
--------------
Pure value objects for one in-flight execution of a workflow definition:
the instance lifecycle, the per-step decision ledger, and the append-only
execution history.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``INSTANCE_TRANSITIONS`` defines the only valid status changes.
  Terminal statuses have no outgoing edges.
* ``version`` increases by one on every decision, transition or
  cancellation; persistence compares-and-sets on it.
* ``step_visit`` increases each time a step is entered.  Decisions are
  scoped to a visit, so a step entered twice starts with an empty ledger.
* ``record_count`` is the number of history records; the next record
  gets ``sequence = record_count + 1``.
* History records and decisions are never mutated after creation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class InstanceStatus(str, Enum):
    """Workflow instance lifecycle states."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


INSTANCE_TRANSITIONS: dict[InstanceStatus, frozenset[InstanceStatus]] = {
    InstanceStatus.PENDING: frozenset({
        InstanceStatus.IN_PROGRESS,
        # An UNASSIGNED initial step can finish the instance on submission.
        InstanceStatus.APPROVED,
        InstanceStatus.REJECTED,
    }),
    InstanceStatus.IN_PROGRESS: frozenset({
        InstanceStatus.IN_PROGRESS,
        InstanceStatus.APPROVED,
        InstanceStatus.REJECTED,
        InstanceStatus.CANCELLED,
    }),
    InstanceStatus.APPROVED: frozenset(),
    InstanceStatus.REJECTED: frozenset(),
    InstanceStatus.CANCELLED: frozenset(),
}

TERMINAL_INSTANCE_STATUSES: frozenset[InstanceStatus] = frozenset({
    InstanceStatus.APPROVED,
    InstanceStatus.REJECTED,
    InstanceStatus.CANCELLED,
})


class Decision(str, Enum):
    """An actor's verdict on a step."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"


class StepOutcome(str, Enum):
    """Aggregated result of the decisions recorded on a step visit."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    def to_instance_status(self) -> InstanceStatus:
        if self is StepOutcome.APPROVED:
            return InstanceStatus.APPROVED
        if self is StepOutcome.REJECTED:
            return InstanceStatus.REJECTED
        return InstanceStatus.IN_PROGRESS


# Non-decision entries in the execution history.
ACTION_INITIATED = "Initiated"
ACTION_AUTO_ADVANCED = "AutoAdvanced"
ACTION_CANCELLED = "Cancelled"


@dataclass(frozen=True)
class WorkflowInstance:
    """One execution of a workflow definition against a request.

    ``context`` is the request attributes conditions read; form data
    recorded with decisions is merged into it.  Treat it as read-only.
    """

    instance_id: UUID
    workflow_id: UUID
    organization_id: UUID
    submitted_by_id: UUID
    status: InstanceStatus
    context: dict[str, Any] = field(default_factory=dict)
    current_step_id: UUID | None = None
    version: int = 0
    step_visit: int = 0
    record_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_INSTANCE_STATUSES

    def can_transition_to(self, new_status: InstanceStatus) -> bool:
        return new_status in INSTANCE_TRANSITIONS.get(self.status, frozenset())


@dataclass(frozen=True)
class StepDecision:
    """One actor's decision on one step visit. Append-only."""

    decision_id: UUID
    instance_id: UUID
    step_id: UUID
    step_visit: int
    actor_id: UUID
    action_name: str
    decision: Decision
    form_data: dict[str, Any] = field(default_factory=dict)
    comment: str = ""
    decided_at: datetime | None = None


@dataclass(frozen=True)
class StepExecutionRecord:
    """Audit trail entry for an instance. Append-only.

    ``sequence`` orders records within the instance starting at 1.
    """

    record_id: UUID
    workflow_instance_id: UUID
    sequence: int
    step_id: UUID | None
    actor_id: UUID | None
    action_taken: str
    decision: Decision | None = None
    data_snapshot: dict[str, Any] = field(default_factory=dict)
    comment: str = ""
    timestamp: datetime | None = None


@dataclass(frozen=True)
class PendingAssignment:
    """A step waiting on a given member."""

    instance_id: UUID
    workflow_id: UUID
    step_id: UUID
    step_name: str
    action_names: tuple[str, ...]
    submitted_by_id: UUID
    version: int
