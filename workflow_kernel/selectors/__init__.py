"""Read-only selectors for the workflow kernel (query side)."""

from workflow_kernel.selectors.instance_selector import LIVE_STATUSES, InstanceSelector

__all__ = [
    "InstanceSelector",
    "LIVE_STATUSES",
]
