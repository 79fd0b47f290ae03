"""
workflow_engines.assignees -- AssigneeResolver.

Responsibility:
    Turn a step's (or action's) assignee logic into the concrete set of
    members allowed to decide, using an organization roster supplied by
    the caller.

Architecture position:
    Engines -- pure functions, zero I/O.  The roster is fetched by the
    service layer and passed in.

Invariants enforced:
    - SUBMITTER resolves to exactly the submitter.
    - SPECIFIC_MEMBER must be an active member of the instance's
      organization, otherwise InvalidAssigneeError.
    - SPECIFIC_ROLE resolves to active organization members holding the
      role, minus the submitter unless the definition allows self-approval.
      An empty result is a stalled step, reported but not an error.
    - UNASSIGNED resolves to nobody and marks the step auto-advancing.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from workflow_kernel.domain.definition import (
    AssigneeLogic,
    MemberAssignee,
    RoleAssignee,
    Step,
    SubmitterAssignee,
    UnassignedAssignee,
)
from workflow_kernel.domain.roster import Member
from workflow_kernel.exceptions import InvalidAssigneeError


@dataclass(frozen=True)
class AssigneeResolution:
    approvers: frozenset[UUID] = frozenset()
    auto_advance: bool = False

    @property
    def stalled(self) -> bool:
        """Nobody can act and the step does not advance on its own."""
        return not self.auto_advance and not self.approvers


def resolve_assignees(
    assignee: AssigneeLogic,
    *,
    organization_id: UUID,
    submitted_by_id: UUID,
    roster: Iterable[Member],
    allow_self_approval: bool = False,
) -> AssigneeResolution:
    """Resolve assignee logic to eligible member ids.

    Raises:
        InvalidAssigneeError: SPECIFIC_MEMBER outside the organization or
            inactive.
    """
    match assignee:
        case SubmitterAssignee():
            return AssigneeResolution(approvers=frozenset({submitted_by_id}))

        case MemberAssignee(member_id=member_id):
            for member in roster:
                if (
                    member.member_id == member_id
                    and member.organization_id == organization_id
                    and member.is_active
                ):
                    return AssigneeResolution(approvers=frozenset({member_id}))
            raise InvalidAssigneeError(str(member_id), str(organization_id))

        case RoleAssignee(role=role):
            approvers = frozenset(
                m.member_id
                for m in roster
                if m.organization_id == organization_id
                and m.is_active
                and m.holds_role(role)
                and (allow_self_approval or m.member_id != submitted_by_id)
            )
            return AssigneeResolution(approvers=approvers)

        case UnassignedAssignee():
            return AssigneeResolution(auto_advance=True)

    raise TypeError(f"Unsupported assignee logic: {assignee!r}")


def resolve_step_approvers(
    step: Step,
    *,
    organization_id: UUID,
    submitted_by_id: UUID,
    roster: Iterable[Member],
    allow_self_approval: bool = False,
) -> dict[str, AssigneeResolution]:
    """Resolution per action name (action assignee overrides the step's)."""
    roster = tuple(roster)
    return {
        action.name: resolve_assignees(
            step.assignee_for(action),
            organization_id=organization_id,
            submitted_by_id=submitted_by_id,
            roster=roster,
            allow_self_approval=allow_self_approval,
        )
        for action in step.actions
    }


def union_of_approvers(resolutions: dict[str, AssigneeResolution]) -> frozenset[UUID]:
    members: set[UUID] = set()
    for resolution in resolutions.values():
        members |= resolution.approvers
    return frozenset(members)
