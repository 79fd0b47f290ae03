"""
Pure domain layer.

This module contains pure data transfer objects with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from workflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workflow_kernel.domain.definition import (
    ActionType,
    AmountRangeCondition,
    ApprovalMode,
    AssigneeLogic,
    AssigneeType,
    Condition,
    ConditionOperator,
    ConditionType,
    ExpenseCategoryCondition,
    FormField,
    FormFieldCondition,
    FormFieldType,
    LocationCondition,
    MemberAssignee,
    ReceiptRequiredCondition,
    RoleAssignee,
    Step,
    StepAction,
    SubmitterAssignee,
    Transition,
    UnassignedAssignee,
    ValueType,
    WorkflowDefinition,
)
from workflow_kernel.domain.instance import (
    INSTANCE_TRANSITIONS,
    TERMINAL_INSTANCE_STATUSES,
    Decision,
    InstanceStatus,
    PendingAssignment,
    StepDecision,
    StepExecutionRecord,
    StepOutcome,
    WorkflowInstance,
)
from workflow_kernel.domain.roster import (
    ADMIN_ROLES,
    Member,
    MemberRole,
    OrganizationRoster,
)

__all__ = [
    "ADMIN_ROLES",
    "INSTANCE_TRANSITIONS",
    "TERMINAL_INSTANCE_STATUSES",
    "ActionType",
    "AmountRangeCondition",
    "ApprovalMode",
    "AssigneeLogic",
    "AssigneeType",
    "Clock",
    "Condition",
    "ConditionOperator",
    "ConditionType",
    "Decision",
    "DeterministicClock",
    "ExpenseCategoryCondition",
    "FormField",
    "FormFieldCondition",
    "FormFieldType",
    "InstanceStatus",
    "LocationCondition",
    "Member",
    "MemberAssignee",
    "MemberRole",
    "OrganizationRoster",
    "PendingAssignment",
    "ReceiptRequiredCondition",
    "RoleAssignee",
    "Step",
    "StepAction",
    "StepDecision",
    "StepExecutionRecord",
    "StepOutcome",
    "SubmitterAssignee",
    "SystemClock",
    "Transition",
    "UnassignedAssignee",
    "ValueType",
    "WorkflowDefinition",
    "WorkflowInstance",
]
