"""
workflow_config -- definition payload loading and validation.

Responsibility:
    Turns workflow definition payloads (dicts or YAML files, in either the
    template-style or the approval-style shape) into validated
    ``WorkflowDefinition`` objects, and ships the seeded definitions under
    ``workflow_config/definitions/``.

Architecture position:
    Configuration -- sits above ``workflow_kernel`` and ``workflow_engines``
    and below ``workflow_services``.  The kernel MUST NEVER import from
    ``workflow_config``; the validator reaches the kernel's
    ``DefinitionService`` by injection.

Failure modes:
    - ``DefinitionValidationError`` -- structural or semantic problems,
      all of them collected in ``.errors``.
    - ``FileNotFoundError`` / ``yaml.YAMLError`` -- unreadable seed files.
"""

from __future__ import annotations

from pathlib import Path
from uuid import UUID

from workflow_config.loader import (
    APPROVAL_STYLE,
    ACTOR_CHOICE,
    TEMPLATE_STYLE,
    definition_to_payload,
    detect_payload_style,
    load_definition_file,
    load_yaml_file,
    parse_approval_payload,
    parse_definition_payload,
    parse_template_payload,
)
from workflow_config.validator import (
    DefinitionValidationResult,
    ensure_valid,
    validate_definition,
)
from workflow_kernel.domain.definition import WorkflowDefinition

DEFINITIONS_DIR = Path(__file__).parent / "definitions"


def seeded_definition_paths() -> list[Path]:
    """YAML files of the seeded definitions, sorted by file name."""
    return sorted(DEFINITIONS_DIR.glob("*.yaml"))


def load_seeded_definitions(organization_id: UUID) -> list[WorkflowDefinition]:
    """Load every seeded definition for ``organization_id``."""
    return [
        load_definition_file(path, organization_id=organization_id)
        for path in seeded_definition_paths()
    ]


def branch_office_definition(organization_id: UUID, location_id: str) -> WorkflowDefinition:
    """Manager approval for expenses raised at one branch location.

    Built from ``location_id`` rather than read from ``definitions/``.  The
    step targets the MANAGER role; requests from any other location find
    no applicable step.
    """
    return parse_approval_payload(
        {
            "name": f"Branch Office Approval ({location_id})",
            "description": f"Requires Manager approval for expenses at location ID: {location_id}.",
            "triggerType": "EXPENSE_SUBMITTED",
            "steps": [{
                "stepNumber": 1,
                "name": "Branch Manager Review",
                "allConditionsMustMatch": True,
                "conditions": [{"type": "LOCATION", "locationId": location_id}],
                "actions": [
                    {"type": "ROLE", "approverRole": "MANAGER", "approvalMode": "ANY_ONE"},
                ],
            }],
        },
        organization_id=organization_id,
    )


__all__ = [
    "ACTOR_CHOICE",
    "APPROVAL_STYLE",
    "DEFINITIONS_DIR",
    "DefinitionValidationResult",
    "TEMPLATE_STYLE",
    "branch_office_definition",
    "definition_to_payload",
    "detect_payload_style",
    "ensure_valid",
    "load_definition_file",
    "load_seeded_definitions",
    "load_yaml_file",
    "parse_approval_payload",
    "parse_definition_payload",
    "parse_template_payload",
    "seeded_definition_paths",
    "validate_definition",
]
