"""
workflow_engines.transitions -- TransitionEngine.

Responsibility:
    Given the step just resolved, the action that resolved it and the data
    recorded so far, choose the next step or end the workflow.  Also
    provides the definition-time ambiguity lint for overlapping
    transitions.

Architecture position:
    Engines -- pure functions, zero I/O.

Invariants enforced:
    - Transitions are considered in declaration order; first match wins.
    - A transition matches when its action_name equals the action taken
      (or it has no action_name) and all its guards hold.
    - A matching transition without to_step_name, or no matching
      transition at all, ends the workflow with the step's outcome.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from workflow_engines.conditions import conditions_match
from workflow_engines.tracer import traced_engine
from workflow_kernel.domain.definition import Step, Transition
from workflow_kernel.domain.instance import StepOutcome


@dataclass(frozen=True)
class NextStep:
    step_name: str
    transition: Transition


@dataclass(frozen=True)
class WorkflowEnd:
    """The instance finishes with ``outcome`` as its final status."""

    outcome: StepOutcome
    transition: Transition | None = None


TransitionResult = Union[NextStep, WorkflowEnd]


@traced_engine("transitions", "1.0", fingerprint_fields=("action_taken", "outcome"))
def next_step(
    step: Step,
    *,
    action_taken: str | None,
    step_data: Mapping[str, Any],
    outcome: StepOutcome,
) -> TransitionResult:
    """Select the destination for a resolved step.

    Args:
        step: The step whose outcome was just decided.
        action_taken: Action that resolved the step; None when an
            UNASSIGNED step auto-advances.
        step_data: Context overlaid with the current visit's form data;
            guard conditions are evaluated against it.
        outcome: APPROVED or REJECTED.
    """
    for transition in step.transitions:
        if not transition.triggered_by(action_taken):
            continue
        if not conditions_match(transition.conditions, step_data, require_all=True):
            continue
        if transition.to_step_name is None:
            return WorkflowEnd(outcome=outcome, transition=transition)
        return NextStep(step_name=transition.to_step_name, transition=transition)
    return WorkflowEnd(outcome=outcome)


@dataclass(frozen=True)
class AmbiguousTransition:
    """A transition that can never fire because an earlier one wins first."""

    step_name: str
    action_name: str | None
    shadowing_index: int
    shadowed_index: int

    @property
    def message(self) -> str:
        return (
            f"step '{self.step_name}': transition #{self.shadowed_index + 1} "
            f"for action '{self.action_name or '*'}' is shadowed by "
            f"transition #{self.shadowing_index + 1}"
        )


def find_ambiguous_transitions(step: Step) -> list[AmbiguousTransition]:
    """Report transitions shadowed by an earlier, less-guarded one.

    An earlier transition shadows a later one when it fires for every action
    the later one fires for and its guards are a subset of the later
    one's guards (so whenever the later guards hold, the earlier hold too).
    """
    findings: list[AmbiguousTransition] = []
    transitions = step.transitions
    for j, later in enumerate(transitions):
        later_guards = set(later.conditions)
        for i in range(j):
            earlier = transitions[i]
            if earlier.action_name is not None and earlier.action_name != later.action_name:
                continue
            if set(earlier.conditions) <= later_guards:
                findings.append(
                    AmbiguousTransition(
                        step_name=step.name,
                        action_name=later.action_name,
                        shadowing_index=i,
                        shadowed_index=j,
                    )
                )
                break
    return findings
