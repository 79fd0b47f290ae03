"""
Module: workflow_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    workflow engines.  This is the canonical import surface for
    workflow_services and workflow_config.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import workflow_kernel.domain, workflow_kernel.exceptions and
    the kernel logger (and sibling engine modules).
    MUST NOT import workflow_services or workflow_kernel.db.

Invariants enforced:
    - Purity: engines never read the clock.  ``now`` is passed in by the
      service layer.
    - Determinism: identical inputs produce identical outputs, apart from
      the uuid4 ids of new history records and decisions.

Audit relevance:
    Engine entry points are traced via ``@traced_engine`` (see
    ``workflow_engines.tracer``), emitting WORKFLOW_ENGINE_TRACE debug
    records with engine name, version and input fingerprint.

Usage:
    from workflow_engines.conditions import select_applicable_step
    from workflow_engines.state_machine import WorkflowInstanceStateMachine
"""

from workflow_engines.aggregation import aggregate, ensure_actor_authorized
from workflow_engines.assignees import (
    AssigneeResolution,
    resolve_assignees,
    resolve_step_approvers,
    union_of_approvers,
)
from workflow_engines.conditions import (
    ConditionOutcome,
    coerce_value,
    condition_matches,
    conditions_match,
    evaluate_condition,
    select_applicable_step,
    step_applies,
    to_decimal,
)
from workflow_engines.state_machine import (
    StateMachineResult,
    WorkflowInstanceStateMachine,
)
from workflow_engines.tracer import compute_input_fingerprint, traced_engine
from workflow_engines.transitions import (
    AmbiguousTransition,
    NextStep,
    TransitionResult,
    WorkflowEnd,
    find_ambiguous_transitions,
    next_step,
)

__all__ = [
    # Conditions / applicability
    "ConditionOutcome",
    "coerce_value",
    "condition_matches",
    "conditions_match",
    "evaluate_condition",
    "select_applicable_step",
    "step_applies",
    "to_decimal",
    # Assignees
    "AssigneeResolution",
    "resolve_assignees",
    "resolve_step_approvers",
    "union_of_approvers",
    # Aggregation
    "aggregate",
    "ensure_actor_authorized",
    # Transitions
    "AmbiguousTransition",
    "NextStep",
    "TransitionResult",
    "WorkflowEnd",
    "find_ambiguous_transitions",
    "next_step",
    # State machine
    "StateMachineResult",
    "WorkflowInstanceStateMachine",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
