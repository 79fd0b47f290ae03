"""Services for the workflow kernel (write side)."""

from workflow_kernel.services.base import BaseService
from workflow_kernel.services.definition_service import (
    DefinitionService,
    DefinitionValidator,
)
from workflow_kernel.services.instance_service import InstanceService

__all__ = [
    "BaseService",
    "DefinitionService",
    "DefinitionValidator",
    "InstanceService",
]
