"""
Tests for workflow_config.loader and the seeded definitions.

Tests cover:
- Template-style payloads: steps, assignees, form fields, actions,
  transitions and their guards
- Approval-style payloads: numbered steps, amount conditions, approver
  actions named approver_<n>
- Action verdicts: explicit, inferred for reject actions, left to the actor
- The location-parameterized branch office definition
- Shape detection
- Structural errors collected across the whole payload
- YAML files and the seeded definitions
- definition_to_payload read back by the parser
"""

from dataclasses import replace
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import yaml

from workflow_config import (
    APPROVAL_STYLE,
    TEMPLATE_STYLE,
    branch_office_definition,
    definition_to_payload,
    detect_payload_style,
    load_definition_file,
    load_seeded_definitions,
    parse_approval_payload,
    parse_definition_payload,
    parse_template_payload,
    seeded_definition_paths,
)
from workflow_engines.conditions import step_applies
from workflow_kernel.domain.definition import (
    ActionType,
    AmountRangeCondition,
    ApprovalMode,
    ConditionOperator,
    ExpenseCategoryCondition,
    FormFieldCondition,
    FormFieldType,
    LocationCondition,
    MemberAssignee,
    ReceiptRequiredCondition,
    RoleAssignee,
    SubmitterAssignee,
    UnassignedAssignee,
    ValueType,
)
from workflow_kernel.domain.instance import Decision
from workflow_kernel.exceptions import DefinitionValidationError

ORG = uuid4()
ZERO = UUID(int=0)


def template_payload() -> dict:
    return {
        "workflowName": "Laptop Request",
        "initialStepName": "Request",
        "requireRejectionComment": True,
        "steps": [
            {
                "stepName": "Request",
                "order": 1,
                "assigneeLogic": {"assigneeType": "SUBMITTER"},
                "formFields": [
                    {"fieldName": "model", "fieldType": "SELECT", "isRequired": True,
                     "options": [{"value": "air", "label": "Air"}, "pro"]},
                    {"fieldName": "urgent", "fieldType": "CHECKBOX"},
                ],
                "actions": [{"name": "request", "label": "Request laptop"}],
                "transitions": [
                    {
                        "toStepName": "IT",
                        "actionName": "request",
                        "conditions": [{
                            "sourceType": "FORM_FIELD_VALUE",
                            "sourceFieldName": "urgent",
                            "operator": "equals",
                            "comparisonValue": True,
                            "valueType": "CHECKBOX",
                        }],
                    },
                    {"toStepName": "IT", "actionName": "request"},
                ],
            },
            {
                "stepName": "IT",
                "order": 2,
                "assigneeLogic": {"assigneeType": "SPECIFIC_ROLE", "specificRoleId": "it_staff"},
                "actions": [
                    {"name": "reject", "actionType": "SECONDARY", "order": 2},
                    {"name": "fulfil", "order": 1, "approvalMode": "ALL"},
                ],
                "transitions": [{"actionName": "reject"}],
            },
        ],
    }


# ---------------------------------------------------------------------------
# Template-style
# ---------------------------------------------------------------------------


class TestTemplatePayload:
    def test_header(self):
        definition = parse_template_payload(template_payload(), organization_id=ORG)

        assert definition.name == "Laptop Request"
        assert definition.organization_id == ORG
        assert definition.initial_step_name == "Request"
        assert definition.require_rejection_comment is True
        assert definition.is_active is True
        assert definition.version == 1

    def test_steps_assignees_and_form_fields(self):
        request, it = parse_template_payload(template_payload(), organization_id=ORG).steps

        assert request.assignee == SubmitterAssignee()
        assert it.assignee == RoleAssignee(role="it_staff")
        model, urgent = request.form_fields
        assert model.field_type is FormFieldType.SELECT
        assert model.options == ("air", "pro")
        assert model.is_required is True
        assert urgent.label == "urgent"
        assert request.required_field_names == ("model",)

    def test_actions_sorted_by_order(self):
        _, it = parse_template_payload(template_payload(), organization_id=ORG).steps

        assert [a.name for a in it.actions] == ["fulfil", "reject"]
        assert it.actions[0].approval_mode is ApprovalMode.ALL
        assert it.actions[1].action_type is ActionType.SECONDARY
        assert it.actions[0].label == "fulfil"

    def test_transitions_and_guards(self):
        request, it = parse_template_payload(template_payload(), organization_id=ORG).steps

        guarded = request.transitions[0]
        assert guarded.conditions == (
            FormFieldCondition(
                source_field_name="urgent",
                operator=ConditionOperator.EQUALS,
                comparison_value="true",
                value_type=ValueType.BOOLEAN,
            ),
        )
        assert it.transitions[0].is_terminal is True

    def test_specific_member_assignee(self):
        member_id = uuid4()
        payload = template_payload()
        payload["steps"][1]["assigneeLogic"] = {
            "assigneeType": "SPECIFIC_MEMBER", "specificMemberId": str(member_id),
        }

        _, it = parse_template_payload(payload, organization_id=ORG).steps

        assert it.assignee == MemberAssignee(member_id=member_id)

    def test_missing_assignee_logic_is_unassigned(self):
        payload = template_payload()
        payload["steps"].append({"stepName": "Done", "order": 3})

        definition = parse_template_payload(payload, organization_id=ORG)

        assert definition.steps[2].assignee == UnassignedAssignee()
        assert definition.steps[2].is_unassigned

    def test_action_verdicts(self):
        payload = template_payload()
        payload["steps"][1]["actions"].extend([
            {"name": "decline", "label": "Reject request", "order": 3},
            {"name": "review", "decision": "actor_choice", "order": 4},
            {"name": "waive", "decision": "REJECT", "order": 5},
        ])

        _, it = parse_template_payload(payload, organization_id=ORG).steps

        verdicts = {a.name: a.decision for a in it.actions}
        assert verdicts == {
            "fulfil": Decision.APPROVE,
            "reject": Decision.REJECT,
            "decline": Decision.REJECT,
            "review": None,
            "waive": Decision.REJECT,
        }
        assert it.get_action("review").is_actor_choice

    def test_unknown_verdict(self):
        payload = template_payload()
        payload["steps"][1]["actions"][1]["decision"] = "maybe"

        with pytest.raises(DefinitionValidationError) as exc_info:
            parse_template_payload(payload, organization_id=ORG)

        assert exc_info.value.errors == [
            "steps[1].actions[1].decision: unknown value 'maybe' "
            "(expected one of APPROVE, REJECT, ACTOR_CHOICE)",
        ]


# ---------------------------------------------------------------------------
# Approval-style
# ---------------------------------------------------------------------------


class TestApprovalPayload:
    def test_tiered_seed(self):
        (path,) = [p for p in seeded_definition_paths() if p.stem == "tiered_expense_approval"]

        definition = load_definition_file(path, organization_id=ORG)

        manager, admin = definition.steps
        assert manager.name == "Manager Approval"
        assert manager.conditions == (
            AmountRangeCondition(min_amount=Decimal("100.00"), max_amount=Decimal("1000.00")),
        )
        assert [a.name for a in manager.actions] == ["approver_1"]
        assert manager.actions[0].assignee == RoleAssignee(role="MANAGER")
        assert admin.conditions == (AmountRangeCondition(min_amount=Decimal("1000.00")),)
        assert admin.actions[0].assignee == RoleAssignee(role="ADMIN")

    def test_member_approver_and_numbering(self):
        member_id = uuid4()
        payload = {
            "name": "Board sign-off",
            "organizationId": str(ORG),
            "steps": [{
                "stepNumber": 5,
                "name": "Board",
                "actions": [
                    {"type": "MEMBER", "specificMemberId": str(member_id)},
                    {"type": "ROLE", "approverRole": "OWNER", "approvalMode": "ALL"},
                ],
            }],
        }

        definition = parse_approval_payload(payload)

        (step,) = definition.steps
        assert step.step_number == 5
        assert definition.organization_id == ORG
        assert [a.name for a in step.actions] == ["approver_1", "approver_2"]
        assert step.actions[0].assignee == MemberAssignee(member_id=member_id)
        assert step.actions[1].approval_mode is ApprovalMode.ALL
        assert all(a.is_actor_choice for a in step.actions)

    def test_any_condition_combinator(self):
        payload = {
            "name": "Receipts or travel",
            "steps": [{
                "stepNumber": 1,
                "name": "Audit",
                "allConditionsMustMatch": False,
                "conditions": [
                    {"type": "RECEIPT_REQUIRED"},
                    {"type": "EXPENSE_CATEGORY", "expenseCategoryId": "travel"},
                ],
                "actions": [{"type": "ROLE", "approverRole": "ADMIN"}],
            }],
        }

        (step,) = parse_approval_payload(payload, organization_id=ORG).steps

        assert step.all_conditions_must_match is False
        assert step.conditions == (
            ReceiptRequiredCondition(), ExpenseCategoryCondition(expense_category_id="travel"),
        )
        assert step_applies(step, {"receipt_url": "s3://receipts/1.pdf"})
        assert step_applies(step, {"expense_category_id": "travel"})
        assert not step_applies(step, {"expense_category_id": "meals"})

    def test_branch_office_definition(self):
        definition = branch_office_definition(ORG, "loc-branch-7")

        (step,) = definition.steps
        assert definition.name == "Branch Office Approval (loc-branch-7)"
        assert definition.organization_id == ORG
        assert step.name == "Branch Manager Review"
        assert step.conditions == (LocationCondition(location_id="loc-branch-7"),)
        assert step.actions[0].assignee == RoleAssignee(role="MANAGER")
        assert step.actions[0].is_actor_choice


# ---------------------------------------------------------------------------
# Shape detection and errors
# ---------------------------------------------------------------------------


class TestDetection:
    def test_template_markers(self):
        assert detect_payload_style({"workflowName": "x"}) == TEMPLATE_STYLE
        assert detect_payload_style({"steps": [{"stepName": "a"}]}) == TEMPLATE_STYLE

    def test_approval_marker(self):
        assert detect_payload_style({"name": "x", "steps": [{"stepNumber": 1}]}) == APPROVAL_STYLE

    def test_unrecognisable(self):
        with pytest.raises(DefinitionValidationError):
            detect_payload_style({"name": "x", "steps": []})

    def test_non_mapping_payload(self):
        with pytest.raises(DefinitionValidationError) as exc_info:
            parse_definition_payload(["not", "a", "mapping"])
        assert exc_info.value.errors == ["payload must be a mapping"]


class TestStructuralErrors:
    def test_errors_are_collected_with_paths(self):
        payload = {
            "workflowName": "",
            "organizationId": "nope",
            "steps": [
                {"order": "first", "assigneeLogic": {"assigneeType": "WIZARD"}},
                "not a step",
            ],
        }

        with pytest.raises(DefinitionValidationError) as exc_info:
            parse_template_payload(payload)

        errors = exc_info.value.errors
        assert "name: required" in errors
        assert any(e.startswith("organizationId:") for e in errors)
        assert any(e.startswith("steps[0].order:") for e in errors)
        assert "steps[0].stepName: required" in errors
        assert any(e.startswith("steps[0].assigneeLogic.assigneeType:") for e in errors)
        assert "steps[1]: must be a mapping" in errors

    def test_organization_required(self):
        payload = template_payload()
        with pytest.raises(DefinitionValidationError) as exc_info:
            parse_template_payload(payload)
        assert "organizationId: required" in exc_info.value.errors

    def test_bad_amount_and_missing_role(self):
        payload = {
            "name": "Broken",
            "steps": [{
                "stepNumber": 1,
                "name": "Only",
                "conditions": [{"type": "AMOUNT_RANGE", "minAmount": "lots"}],
                "actions": [{"type": "ROLE"}],
            }],
        }

        with pytest.raises(DefinitionValidationError) as exc_info:
            parse_approval_payload(payload, organization_id=ORG)

        errors = exc_info.value.errors
        assert any(e.startswith("steps[0].conditions[0].minAmount:") for e in errors)
        assert "steps[0].actions[0].role: required for SPECIFIC_ROLE" in errors

    def test_semantic_errors_from_validator(self):
        payload = template_payload()
        payload["steps"][0]["transitions"] = [{"toStepName": "Nowhere", "actionName": "request"}]

        with pytest.raises(DefinitionValidationError) as exc_info:
            parse_template_payload(payload, organization_id=ORG)
        assert any("Nowhere" in e for e in exc_info.value.errors)

        unchecked = parse_template_payload(payload, organization_id=ORG, validate=False)
        assert unchecked.steps[0].transitions[0].to_step_name == "Nowhere"


# ---------------------------------------------------------------------------
# Files, seeds and serialization
# ---------------------------------------------------------------------------


class TestFiles:
    def test_yaml_file(self, tmp_path):
        path = tmp_path / "laptop.yaml"
        path.write_text(yaml.safe_dump(template_payload()))

        definition = load_definition_file(path, organization_id=ORG)

        assert definition.name == "Laptop Request"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_definition_file(tmp_path / "absent.yaml", organization_id=ORG)

    def test_seeded_definitions(self):
        definitions = load_seeded_definitions(ORG)

        assert sorted(d.name for d in definitions) == [
            "Low Value Expense Approval",
            "Purchase Request Approval",
            "Standard Document Approval",
            "Tiered Expense Approval",
        ]
        assert all(d.organization_id == ORG for d in definitions)

    def test_purchase_request_finance_guard(self):
        by_name = {d.name: d for d in load_seeded_definitions(ORG)}
        review = by_name["Purchase Request Approval"].get_step_by_name("Manager_Review")

        finance, fallback, rejected = review.transitions
        assert finance.to_step_name == "Finance_Approval"
        assert finance.conditions[0].operator is ConditionOperator.GREATER_THAN_OR_EQUAL
        assert fallback.to_step_name == "Request_Approved"
        assert fallback.conditions == ()
        assert rejected.action_name == "reject"


class TestDefinitionToPayload:
    @pytest.mark.parametrize("index", range(4))
    def test_payload_reads_back_as_the_same_definition(self, index):
        original = load_seeded_definitions(ORG)[index]

        reparsed = parse_template_payload(definition_to_payload(original))

        def without_step_ids(definition):
            return replace(
                definition, steps=tuple(replace(s, step_id=ZERO) for s in definition.steps),
            )

        assert without_step_ids(reparsed) == without_step_ids(original)
