"""
workflow_services -- facade over the workflow kernel and engines.

``WorkflowExecutor`` is the entry point hosts use to submit requests,
record decisions, cancel instances and query pending work.
``StaticRoster`` is the default in-memory member directory.
"""

from workflow_services.roster import StaticRoster
from workflow_services.workflow_executor import (
    TRACE_TYPE_WORKFLOW_TRANSITION,
    WorkflowExecutor,
)

__all__ = [
    "StaticRoster",
    "TRACE_TYPE_WORKFLOW_TRANSITION",
    "WorkflowExecutor",
]
