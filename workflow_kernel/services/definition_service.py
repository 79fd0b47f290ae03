"""
workflow_kernel.services.definition_service -- Definition management.

Responsibility:
    Create, read, activate, deactivate, revise and delete workflow
    definitions, and track each organization's active definition.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/, selectors/.
    Payload parsing and validation live in ``workflow_config``; callers
    inject a validator so that invalid definitions are rejected before
    anything is written.

Invariants enforced:
    - A definition referenced by a live (PENDING / IN_PROGRESS) instance is
      never mutated in place: revisions create a new version in the same
      lineage and deactivate the old one.
    - Deleting a definition removes it and every step, condition, action,
      transition and form field it owns in one savepoint, or nothing.
    - An organization's active definition belongs to that organization and
      is itself active.

Failure modes:
    - WorkflowNotFoundError for unknown definition ids.
    - NoActiveWorkflowError when an organization has no active definition.
    - InactiveWorkflowError when activating an inactive definition.
    - DefinitionInUseError when deleting a definition live instances use.
    - DefinitionValidationError from the injected validator, or when
      activating a definition of another organization.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from workflow_kernel.domain.clock import Clock
from workflow_kernel.domain.definition import WorkflowDefinition
from workflow_kernel.exceptions import (
    DefinitionInUseError,
    DefinitionValidationError,
    InactiveWorkflowError,
    NoActiveWorkflowError,
    WorkflowNotFoundError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.definition import (
    ActiveWorkflowModel,
    WorkflowDefinitionModel,
    WorkflowStepModel,
)
from workflow_kernel.selectors.instance_selector import InstanceSelector
from workflow_kernel.services.base import BaseService

logger = get_logger("services.definition")

DefinitionValidator = Callable[[WorkflowDefinition], None]


def _with_fresh_step_ids(definition: WorkflowDefinition) -> tuple:
    return tuple(replace(step, step_id=uuid4()) for step in definition.steps)


class DefinitionService(BaseService):
    """Flush-only writes (and keyed reads) for workflow definitions."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        validator: DefinitionValidator | None = None,
    ):
        super().__init__(session, clock)
        self._validator = validator
        self._instances = InstanceSelector(session)

    # =========================================================================
    # Reads
    # =========================================================================

    def _load(self, definition_id: UUID) -> WorkflowDefinitionModel:
        model = self.session.get(WorkflowDefinitionModel, definition_id)
        if model is None:
            raise WorkflowNotFoundError(str(definition_id))
        return model

    def get_definition(self, definition_id: UUID) -> WorkflowDefinition:
        return self._load(definition_id).to_dto()

    def list_definitions(
        self,
        organization_id: UUID,
        include_inactive: bool = True,
    ) -> list[WorkflowDefinition]:
        stmt = select(WorkflowDefinitionModel).where(
            WorkflowDefinitionModel.organization_id == organization_id,
        )
        if not include_inactive:
            stmt = stmt.where(WorkflowDefinitionModel.is_active.is_(True))
        rows = self.session.execute(
            stmt.order_by(WorkflowDefinitionModel.name, WorkflowDefinitionModel.version)
        ).scalars()
        return [row.to_dto() for row in rows]

    def get_active_definition(self, organization_id: UUID) -> WorkflowDefinition:
        """The definition new submissions of the organization go to.

        Raises:
            NoActiveWorkflowError: No active definition is set.
        """
        pointer = self.session.execute(
            select(ActiveWorkflowModel).where(
                ActiveWorkflowModel.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if pointer is None:
            raise NoActiveWorkflowError(str(organization_id))
        return self.get_definition(pointer.definition_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def create_definition(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Validate and persist a definition with its whole step tree."""
        if self._validator is not None:
            self._validator(definition)

        model = WorkflowDefinitionModel.from_dto(definition, created_at=self.clock.now())
        self.session.add(model)
        self.session.flush()

        logger.info(
            "definition_created",
            extra={
                "workflow_id": str(definition.definition_id),
                "organization_id": str(definition.organization_id),
                "workflow_name": definition.name,
                "version": definition.version,
                "step_count": len(definition.steps),
            },
        )
        return model.to_dto()

    def set_active_definition(
        self,
        organization_id: UUID,
        definition_id: UUID | None,
    ) -> WorkflowDefinition | None:
        """Point the organization at a definition, or clear the pointer.

        Raises:
            WorkflowNotFoundError: Unknown definition.
            InactiveWorkflowError: The definition is deactivated.
            DefinitionValidationError: The definition belongs to another
                organization.
        """
        pointer = self.session.execute(
            select(ActiveWorkflowModel).where(
                ActiveWorkflowModel.organization_id == organization_id,
            )
        ).scalar_one_or_none()

        if definition_id is None:
            if pointer is not None:
                self.session.delete(pointer)
                self.session.flush()
            logger.info(
                "active_definition_cleared",
                extra={"organization_id": str(organization_id)},
            )
            return None

        model = self._load(definition_id)
        if model.organization_id != organization_id:
            raise DefinitionValidationError([
                f"workflow {definition_id} belongs to organization "
                f"{model.organization_id}, not {organization_id}",
            ])
        if not model.is_active:
            raise InactiveWorkflowError(str(definition_id))

        now = self.clock.now()
        if pointer is None:
            self.session.add(
                ActiveWorkflowModel(
                    organization_id=organization_id,
                    definition_id=definition_id,
                    updated_at=now,
                )
            )
        else:
            pointer.definition_id = definition_id
            pointer.updated_at = now
        self.session.flush()

        logger.info(
            "active_definition_set",
            extra={
                "organization_id": str(organization_id),
                "workflow_id": str(definition_id),
            },
        )
        return model.to_dto()

    def deactivate_definition(self, definition_id: UUID) -> WorkflowDefinition:
        """Stop new submissions to a definition; live instances carry on."""
        model = self._load(definition_id)
        model.is_active = False
        self._clear_active_pointers(definition_id)
        self.session.flush()

        logger.info("definition_deactivated", extra={"workflow_id": str(definition_id)})
        return model.to_dto()

    def revise_definition(
        self,
        definition_id: UUID,
        revised: WorkflowDefinition,
    ) -> WorkflowDefinition:
        """Apply a revised step tree to a definition.

        Without live instances the steps are replaced in place.  With live
        instances a new version is created in the same lineage, the old one
        is deactivated and the organization's active pointer follows.

        Returns:
            The definition new submissions should use.
        """
        model = self._load(definition_id)
        live = self._instances.count_live_for_workflow(definition_id)

        if live == 0:
            candidate = replace(
                revised,
                definition_id=model.id,
                organization_id=model.organization_id,
                version=model.version,
                lineage_id=model.lineage_id,
                steps=_with_fresh_step_ids(revised),
            )
            if self._validator is not None:
                self._validator(candidate)

            # Old steps must be gone before their (step_number, name) pairs
            # are reused.
            model.steps.clear()
            self.session.flush()

            model.name = candidate.name
            model.description = candidate.description
            model.department_id = candidate.department_id
            model.trigger_type = candidate.trigger_type
            model.initial_step_name = candidate.initial_step_name
            model.allow_self_approval = candidate.allow_self_approval
            model.require_rejection_comment = candidate.require_rejection_comment
            model.steps = [WorkflowStepModel.from_dto(s) for s in candidate.steps]
            self.session.flush()

            logger.info(
                "definition_revised_in_place",
                extra={"workflow_id": str(definition_id), "version": model.version},
            )
            return model.to_dto()

        candidate = replace(
            revised,
            definition_id=uuid4(),
            organization_id=model.organization_id,
            version=self._next_version(model),
            lineage_id=model.lineage_id,
            is_active=True,
            steps=_with_fresh_step_ids(revised),
        )
        if self._validator is not None:
            self._validator(candidate)

        new_model = WorkflowDefinitionModel.from_dto(candidate, created_at=self.clock.now())
        self.session.add(new_model)
        model.is_active = False
        self.session.flush()

        for pointer in self._active_pointers_to(definition_id):
            pointer.definition_id = new_model.id
            pointer.updated_at = self.clock.now()
        self.session.flush()

        logger.info(
            "definition_revised_new_version",
            extra={
                "workflow_id": str(definition_id),
                "new_workflow_id": str(new_model.id),
                "version": new_model.version,
                "live_instance_count": live,
            },
        )
        return new_model.to_dto()

    def delete_definition(self, definition_id: UUID) -> None:
        """Delete a definition and everything it owns, atomically.

        Raises:
            WorkflowNotFoundError: Unknown definition.
            DefinitionInUseError: Live instances reference the definition.
        """
        model = self._load(definition_id)
        live = self._instances.count_live_for_workflow(definition_id)
        if live:
            raise DefinitionInUseError(str(definition_id), live, "delete")

        step_count = len(model.steps)
        with self.session.begin_nested():
            self.session.execute(
                delete(ActiveWorkflowModel).where(
                    ActiveWorkflowModel.definition_id == definition_id,
                )
            )
            self.session.delete(model)
            self.session.flush()

        logger.info(
            "definition_deleted",
            extra={"workflow_id": str(definition_id), "step_count": step_count},
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _active_pointers_to(self, definition_id: UUID) -> list[ActiveWorkflowModel]:
        return list(
            self.session.execute(
                select(ActiveWorkflowModel).where(
                    ActiveWorkflowModel.definition_id == definition_id,
                )
            ).scalars()
        )

    def _clear_active_pointers(self, definition_id: UUID) -> None:
        for pointer in self._active_pointers_to(definition_id):
            self.session.delete(pointer)

    def _next_version(self, model: WorkflowDefinitionModel) -> int:
        latest = self.session.execute(
            select(WorkflowDefinitionModel.version)
            .where(WorkflowDefinitionModel.lineage_id == model.lineage_id)
            .order_by(WorkflowDefinitionModel.version.desc())
            .limit(1)
        ).scalar_one()
        return latest + 1
