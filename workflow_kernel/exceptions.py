"""
Typed Exception Hierarchy for the Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow engine (web handlers, job runners, tests) must react
to failures by category: a malformed definition goes back to its author, an
unauthorized decision goes back to the actor, a stale decision is retried.
Matching on message text is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        executor.record_decision(instance_id, actor_id, "approve")
    except StaleStepError as e:
        retry_with_fresh_state(e.instance_id)
    except UnauthorizedActorError as e:
        api_response(status=403, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- DefinitionError
    |   +-- DefinitionValidationError
    |   +-- AmbiguousTransitionError
    |   +-- WorkflowNotFoundError
    |   +-- InactiveWorkflowError
    |   +-- NoActiveWorkflowError
    |   +-- DefinitionInUseError
    |
    +-- ResolutionError
    |   +-- NoApplicableStepError
    |   +-- TransitionLoopError
    |
    +-- AuthorizationError
    |   +-- InvalidAssigneeError
    |   +-- UnauthorizedActorError
    |
    +-- DecisionError
    |   +-- UnknownActionError
    |   +-- DecisionMismatchError
    |   +-- DecisionRequiredError
    |   +-- DuplicateDecisionError
    |   +-- RejectionCommentRequiredError
    |   +-- MissingFormFieldError
    |
    +-- InstanceError
    |   +-- InstanceNotFoundError
    |   +-- InstanceAlreadyTerminalError
    |   +-- InvalidInstanceTransitionError
    |
    +-- ConcurrencyError
    |   +-- StaleStepError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | When Raised
--------------|-----------------------------|-------------------------------------------
Definition    | VALIDATION_ERROR            | Malformed payload or definition
              | AMBIGUOUS_TRANSITION        | Shadowed transition (strict lint only)
              | WORKFLOW_NOT_FOUND          | Definition ID doesn't exist
              | WORKFLOW_INACTIVE           | Submitting to / activating inactive def
              | NO_ACTIVE_WORKFLOW          | Organization has no active definition
              | DEFINITION_IN_USE           | Delete/mutate with live instances
--------------|-----------------------------|-------------------------------------------
Resolution    | NO_APPLICABLE_STEP          | No step applies to the request context
              | TRANSITION_LOOP             | Automatic transitions never settle
--------------|-----------------------------|-------------------------------------------
Authorization | INVALID_ASSIGNEE            | Configured member outside organization
              | UNAUTHORIZED_ACTOR          | Actor not an eligible approver
--------------|-----------------------------|-------------------------------------------
Decision      | UNKNOWN_ACTION              | Action not declared on current step
              | DUPLICATE_DECISION          | Same actor decided this step visit
              | REJECTION_COMMENT_REQUIRED  | Rejection without comment
              | MISSING_FORM_FIELD          | Required form field absent
--------------|-----------------------------|-------------------------------------------
Instance      | INSTANCE_NOT_FOUND          | Instance ID doesn't exist
              | INSTANCE_ALREADY_TERMINAL   | Decision on a finished instance
              | INVALID_INSTANCE_TRANSITION | Illegal lifecycle status change
--------------|-----------------------------|-------------------------------------------
Concurrency   | STALE_STEP                  | Compare-and-set on version failed
--------------|-----------------------------|-------------------------------------------
Immutability  | IMMUTABILITY_VIOLATION      | UPDATE/DELETE on history or decisions

ConcurrencyError subclasses are retryable: re-fetch the instance and retry.
DefinitionError and ResolutionError are configuration defects and belong to
the definition owner, not the submitter.
"""


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"


# Definition-related exceptions


class DefinitionError(WorkflowKernelError):
    """Base exception for workflow definition errors."""

    code: str = "DEFINITION_ERROR"


class DefinitionValidationError(DefinitionError):
    """
    A definition payload or domain definition failed validation.

    Raised before anything is persisted.  ``errors`` lists every problem
    found, not only the first.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, errors: list[str] | tuple[str, ...]):
        self.errors = list(errors)
        summary = "; ".join(self.errors[:5])
        if len(self.errors) > 5:
            summary += f" (+{len(self.errors) - 5} more)"
        super().__init__(f"Invalid workflow definition: {summary}")


class AmbiguousTransitionError(DefinitionError):
    """
    Transitions for the same action overlap so a later one can never fire.

    Only raised when strict validation is requested; by default this is a
    validator warning and first-match-wins applies at runtime.
    """

    code: str = "AMBIGUOUS_TRANSITION"

    def __init__(self, step_name: str, action_name: str | None, warnings: list[str]):
        self.step_name = step_name
        self.action_name = action_name
        self.warnings = list(warnings)
        super().__init__(
            f"Ambiguous transitions on step '{step_name}' "
            f"for action '{action_name or '*'}': {'; '.join(self.warnings)}"
        )


class WorkflowNotFoundError(DefinitionError):
    """Workflow definition with given ID was not found."""

    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow definition not found: {workflow_id}")


class InactiveWorkflowError(DefinitionError):
    """Workflow definition is not active."""

    code: str = "WORKFLOW_INACTIVE"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow definition is not active: {workflow_id}")


class NoActiveWorkflowError(DefinitionError):
    """Organization has no active workflow definition."""

    code: str = "NO_ACTIVE_WORKFLOW"

    def __init__(self, organization_id: str):
        self.organization_id = organization_id
        super().__init__(
            f"No active workflow definition for organization {organization_id}"
        )


class DefinitionInUseError(DefinitionError):
    """Definition is referenced by instances that have not finished."""

    code: str = "DEFINITION_IN_USE"

    def __init__(self, workflow_id: str, live_instance_count: int, operation: str):
        self.workflow_id = workflow_id
        self.live_instance_count = live_instance_count
        self.operation = operation
        super().__init__(
            f"Cannot {operation} workflow definition {workflow_id}: "
            f"{live_instance_count} instance(s) still in progress"
        )


# Step resolution exceptions


class ResolutionError(WorkflowKernelError):
    """Base exception for step resolution failures (configuration defects)."""

    code: str = "RESOLUTION_ERROR"


class NoApplicableStepError(ResolutionError):
    """No step of the definition applies to the request context."""

    code: str = "NO_APPLICABLE_STEP"

    def __init__(self, workflow_id: str, organization_id: str):
        self.workflow_id = workflow_id
        self.organization_id = organization_id
        super().__init__(
            f"No applicable step in workflow {workflow_id} "
            f"for organization {organization_id}"
        )


class TransitionLoopError(ResolutionError):
    """Automatic transitions kept advancing without reaching an actor step."""

    code: str = "TRANSITION_LOOP"

    def __init__(self, workflow_id: str, step_name: str, hops: int):
        self.workflow_id = workflow_id
        self.step_name = step_name
        self.hops = hops
        super().__init__(
            f"Workflow {workflow_id} auto-advanced {hops} times "
            f"without settling (last step '{step_name}')"
        )


# Authorization exceptions


class AuthorizationError(WorkflowKernelError):
    """Base exception for request-time authorization failures."""

    code: str = "AUTHORIZATION_ERROR"


class InvalidAssigneeError(AuthorizationError):
    """Configured member does not belong to the instance's organization."""

    code: str = "INVALID_ASSIGNEE"

    def __init__(self, member_id: str, organization_id: str):
        self.member_id = member_id
        self.organization_id = organization_id
        super().__init__(
            f"Member {member_id} is not an active member "
            f"of organization {organization_id}"
        )


class UnauthorizedActorError(AuthorizationError):
    """Actor is not allowed to perform the requested operation."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(self, actor_id: str, instance_id: str, operation: str):
        self.actor_id = actor_id
        self.instance_id = instance_id
        self.operation = operation
        super().__init__(
            f"Actor {actor_id} is not authorized to {operation} "
            f"on instance {instance_id}"
        )


# Decision exceptions


class DecisionError(WorkflowKernelError):
    """Base exception for rejected decisions."""

    code: str = "DECISION_ERROR"


class UnknownActionError(DecisionError):
    """Action is not declared on the instance's current step."""

    code: str = "UNKNOWN_ACTION"

    def __init__(self, action_name: str, step_name: str):
        self.action_name = action_name
        self.step_name = step_name
        super().__init__(f"Action '{action_name}' is not defined on step '{step_name}'")


class DecisionMismatchError(DecisionError):
    """Caller's verdict contradicts the verdict the action records."""

    code: str = "DECISION_MISMATCH"

    def __init__(self, action_name: str, step_name: str, action_decision: str, given: str):
        self.action_name = action_name
        self.step_name = step_name
        self.action_decision = action_decision
        self.given = given
        super().__init__(
            f"Action '{action_name}' on step '{step_name}' records {action_decision}, "
            f"not {given}"
        )


class DecisionRequiredError(DecisionError):
    """Action leaves the verdict to the actor and none was given."""

    code: str = "DECISION_REQUIRED"

    def __init__(self, action_name: str, step_name: str):
        self.action_name = action_name
        self.step_name = step_name
        super().__init__(
            f"Action '{action_name}' on step '{step_name}' needs an explicit "
            f"APPROVE or REJECT decision"
        )


class DuplicateDecisionError(DecisionError):
    """Actor already recorded a decision for this step visit."""

    code: str = "DUPLICATE_DECISION"

    def __init__(self, instance_id: str, actor_id: str, step_name: str):
        self.instance_id = instance_id
        self.actor_id = actor_id
        self.step_name = step_name
        super().__init__(
            f"Actor {actor_id} already decided on step '{step_name}' "
            f"of instance {instance_id}"
        )


class RejectionCommentRequiredError(DecisionError):
    """Rejections must carry a comment under this definition."""

    code: str = "REJECTION_COMMENT_REQUIRED"

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"A comment is required to reject instance {instance_id}")


class MissingFormFieldError(DecisionError):
    """Required form fields were not supplied with a primary action."""

    code: str = "MISSING_FORM_FIELD"

    def __init__(self, step_name: str, field_names: list[str]):
        self.step_name = step_name
        self.field_names = list(field_names)
        super().__init__(
            f"Step '{step_name}' requires form field(s): {', '.join(self.field_names)}"
        )


# Instance lifecycle exceptions


class InstanceError(WorkflowKernelError):
    """Base exception for workflow instance errors."""

    code: str = "INSTANCE_ERROR"


class InstanceNotFoundError(InstanceError):
    """Workflow instance with given ID was not found."""

    code: str = "INSTANCE_NOT_FOUND"

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"Workflow instance not found: {instance_id}")


class InstanceAlreadyTerminalError(InstanceError):
    """Instance already reached APPROVED, REJECTED or CANCELLED."""

    code: str = "INSTANCE_ALREADY_TERMINAL"

    def __init__(self, instance_id: str, status: str):
        self.instance_id = instance_id
        self.status = status
        super().__init__(f"Instance {instance_id} is already {status}")


class InvalidInstanceTransitionError(InstanceError):
    """Requested lifecycle status change is not allowed."""

    code: str = "INVALID_INSTANCE_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid instance transition: {from_status} -> {to_status}")


# Concurrency-related exceptions


class ConcurrencyError(WorkflowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class StaleStepError(ConcurrencyError):
    """
    Decision or save was made against an outdated instance version.

    Retryable: re-fetch the instance and submit again.
    """

    code: str = "STALE_STEP"

    def __init__(self, instance_id: str, expected_version: int, actual_version: int | None):
        self.instance_id = instance_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stale step version for instance {instance_id}: expected "
            f"{expected_version}, found {actual_version}"
        )


# Immutability-related exceptions


class ImmutabilityError(WorkflowKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
