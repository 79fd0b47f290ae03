"""ORM models. Importing this package registers every table on Base.metadata."""

from workflow_kernel.models.definition import (
    ActiveWorkflowModel,
    FormFieldModel,
    StepActionModel,
    StepTransitionModel,
    WorkflowConditionModel,
    WorkflowDefinitionModel,
    WorkflowStepModel,
)
from workflow_kernel.models.instance import (
    StepDecisionModel,
    StepExecutionRecordModel,
    WorkflowInstanceModel,
)

__all__ = [
    "ActiveWorkflowModel",
    "FormFieldModel",
    "StepActionModel",
    "StepDecisionModel",
    "StepExecutionRecordModel",
    "StepTransitionModel",
    "WorkflowConditionModel",
    "WorkflowDefinitionModel",
    "WorkflowInstanceModel",
    "WorkflowStepModel",
]
